"""
Tests for the command line interface.
"""

import pytest
from click.testing import CliRunner

from tipvault.cli.main import cli
from tipvault.core.deployment import Deployment
from tipvault.core.storage import StorageManager
from tipvault.crypto import address_from_label, bytes_to_hex
from tipvault.utils.logger import TipVaultLogger


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def reset_logging():
    """The CLI binds log handlers to the runner's streams; drop them afterwards."""
    yield
    TipVaultLogger.reset()


class TestDemo:

    def test_demo_runs(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "demo"])
        assert result.exit_code == 0, result.output
        assert "Fee decay scenario" in result.output
        assert "Premium staking scenario" in result.output
        assert "Demo complete" in result.output

    def test_decay_rates(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "demo", "--scenario", "decay"])
        assert result.exit_code == 0, result.output
        for rate in ("400 bps", "390 bps", "350 bps", "200 bps"):
            assert rate in result.output
        assert "Premium staking scenario" not in result.output

    def test_bad_stake_type(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "demo", "--stake-type", "9"])
        assert result.exit_code == 1
        assert "stake_type" in result.output

    def test_persist_then_stats(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "demo", "--persist"])
        assert result.exit_code == 0, result.output
        assert (tmp_path / "tipvault.db").exists()

        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "stats"])
        assert result.exit_code == 0, result.output
        assert "TipVault Statistics" in result.output
        assert "total_accounts: 2" in result.output


class TestStats:

    def test_missing_deployment(self, runner, tmp_path):
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "stats"])
        assert result.exit_code == 1
        assert "No deployment found" in result.output

    def test_merchant_view(self, runner, tmp_path):
        d = Deployment.create()
        merchant = address_from_label("cli.merchant")
        d.registry.create_account(merchant)
        storage = StorageManager(tmp_path)
        d.save(storage)
        storage.close()

        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "stats", "--merchant", bytes_to_hex(merchant)])
        assert result.exit_code == 0, result.output
        assert '"base_fee": 400' in result.output

        unknown = bytes_to_hex(address_from_label("nobody"))
        result = runner.invoke(cli, ["--data-dir", str(tmp_path), "stats", "--merchant", unknown])
        assert result.exit_code == 1
        assert "No account" in result.output


class TestFeeSchedule:

    def test_schedule(self, runner):
        result = runner.invoke(cli, ["fee-schedule", "--volumes", "1000000,4000000,15000000,1000000"])
        assert result.exit_code == 0, result.output
        rows = [line.split() for line in result.output.splitlines()]
        rows = [row for row in rows if len(row) == 4 and row[0].isdigit()]
        assert [int(row[-1]) for row in rows] == [390, 350, 200, 200]
        assert [int(row[2]) for row in rows] == [400, 390, 350, 200]

    def test_rejects_bad_fee(self, runner):
        result = runner.invoke(cli, ["fee-schedule", "--base-fee", "20000", "--volumes", "1"])
        assert result.exit_code == 1
        assert "base_fee" in result.output

    def test_rejects_bad_volumes(self, runner):
        result = runner.invoke(cli, ["fee-schedule", "--volumes", "1,abc"])
        assert result.exit_code == 1
        assert "not an integer" in result.output

    def test_exact_policy_underflow(self, runner, monkeypatch):
        monkeypatch.setenv("TIPVAULT_FEE_FLOOR_POLICY", "exact")
        result = runner.invoke(cli, ["fee-schedule", "--base-fee", "350", "--volumes", "36000000"])
        assert result.exit_code == 1
        assert "underflow" in result.output


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
