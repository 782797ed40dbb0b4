"""
Tests for logging configuration.

Tests cover:
1. Tree and subsystem levels from EngineConfig
2. Optional file output
3. Subsystem name checks
"""

import logging

import pytest

from tipvault.core.config import EngineConfig
from tipvault.utils.logger import ROOT_LOGGER, TipVaultLogger, configure_logging, get_logger


@pytest.fixture(autouse=True)
def fresh_logging():
    TipVaultLogger.reset()
    yield
    TipVaultLogger.reset()


class TestConfigure:

    def test_tree_level(self):
        configure_logging(EngineConfig(log_level="WARNING"))
        root = logging.getLogger(ROOT_LOGGER)
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert not get_logger("fees").isEnabledFor(logging.INFO)

    def test_subsystem_override(self):
        configure_logging(EngineConfig(log_level="WARNING", log_levels={"fees": "DEBUG"}))
        assert get_logger("fees").isEnabledFor(logging.DEBUG)
        assert not get_logger("token").isEnabledFor(logging.INFO)

    def test_reconfigure_drops_old_overrides(self):
        configure_logging(EngineConfig(log_levels={"staking": "DEBUG"}))
        configure_logging(EngineConfig())
        assert not get_logger("staking").isEnabledFor(logging.DEBUG)
        assert len(logging.getLogger(ROOT_LOGGER).handlers) == 1

    def test_file_output(self, tmp_path):
        configure_logging(EngineConfig(log_to_file=True, log_dir=tmp_path / "logs"))
        get_logger("registry").warning("written to file")
        for handler in logging.getLogger(ROOT_LOGGER).handlers:
            handler.flush()
        assert "written to file" in (tmp_path / "logs" / "tipvault.log").read_text()


class TestGetLogger:

    def test_configures_defaults_on_first_use(self):
        logger = get_logger("account")
        assert logger.name == "tipvault.account"
        assert logging.getLogger(ROOT_LOGGER).level == logging.INFO

    def test_dotted_child(self):
        assert get_logger("storage.sqlite").name == "tipvault.storage.sqlite"

    def test_unknown_subsystem(self):
        with pytest.raises(ValueError):
            get_logger("dag")


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
