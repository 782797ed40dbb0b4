"""
TipVault CLI - Command Line Interface for the tip settlement engine

Main entry point for all CLI commands.
"""

import json
from pathlib import Path

import click

from tipvault import __version__
from tipvault.utils.logger import configure_logging


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--data-dir", default=None, help="Data directory (default: TIPVAULT_DATA_DIR or ./data)")
@click.option("--env-file", default=None, type=click.Path(dir_okay=False), help="Optional .env file")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, debug, data_dir, env_file):
    """TipVault - merchant tip accounts with fee decay and premium staking"""
    from tipvault.core.config import load_config

    overrides = {"data_dir": Path(data_dir).expanduser()} if data_dir else {}
    if debug:
        overrides["log_level"] = "DEBUG"
    try:
        cfg = load_config(env_file=env_file, **overrides)
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint="configuration")

    configure_logging(cfg)

    ctx.ensure_object(dict)
    ctx.obj["config"] = cfg


def _fail(message: str) -> None:
    click.echo(f"❌ {message}")
    raise click.exceptions.Exit(1)


def _units(cfg, amount: int) -> str:
    """Human-readable whole-token amount."""
    scale = 10**cfg.token_decimals
    whole, frac = divmod(amount, scale)
    if not frac:
        return f"{whole:,}"
    return f"{whole:,}.{str(frac).rjust(cfg.token_decimals, '0').rstrip('0')}"


# =============================================================================
# Demo Command
# =============================================================================


def _run_decay_demo(deployment, cfg) -> None:
    from tipvault.crypto import address_from_label, short_hex

    merchant = address_from_label("demo.merchant.decay")
    payer = address_from_label("demo.payer")

    click.echo("📉 Fee decay scenario")
    account = deployment.registry.create_account(merchant)
    click.echo(f"  ✓ Account {short_hex(account.address)} created, base fee {account.state.base_fee} bps")

    volumes = [1_000_000, 4_000_000, 15_000_000, 1_000_000]
    total = cfg.to_units(sum(volumes))
    deployment.mint(payer, total)
    deployment.token.approve(payer, account.address, total)

    for volume in volumes:
        receipt = account.tip(payer, cfg.to_units(volume))
        click.echo(
            f"  ✓ Tip {volume:>12,} TIP at {receipt.rate:>3} bps: "
            f"fee {_units(cfg, receipt.fee)}, merchant {_units(cfg, receipt.merchant_amount)}"
        )
    click.echo(f"  ✓ Rate after last tip: {account.get_fee_rate()} bps")
    click.echo()


def _run_premium_demo(deployment, cfg, stake_type: int) -> None:
    from tipvault.crypto import address_from_label, generate_keypair, short_hex

    merchant = address_from_label("demo.merchant.premium")
    payer = generate_keypair().address

    click.echo("💎 Premium staking scenario")
    account = deployment.registry.create_account(merchant)
    deployment.fund_rewards(cfg.to_units(2_000_000))
    click.echo(f"  ✓ Account {short_hex(account.address)} created, reward reserve funded")

    stake_amount = cfg.premium_threshold
    deployment.mint(merchant, stake_amount)
    deployment.token.approve(merchant, account.address, stake_amount)
    stake_id = account.stake_for_premium(merchant, stake_amount, stake_type)
    click.echo(
        f"  ✓ Stake {stake_id}: {_units(cfg, stake_amount)} TIP locked until t={account.state.premium_expiry}"
    )

    tip = cfg.to_units(1_000)
    deployment.mint(payer, tip)
    deployment.token.approve(payer, account.address, tip)
    receipt = account.tip(payer, tip)
    click.echo(f"  ✓ Tip during premium charged {receipt.rate} bps (fee {_units(cfg, receipt.fee)})")

    deployment.runtime.set_time(account.state.premium_expiry)
    settlement = account.withdraw_stake(merchant)
    click.echo(f"  ✓ Lock expired after {settlement.elapsed}s")
    click.echo(f"  ✓ Total reward:    {_units(cfg, settlement.total_reward)} TIP")
    click.echo(f"  ✓ Platform cut:    {_units(cfg, settlement.platform_cut)} TIP")
    click.echo(f"  ✓ Merchant reward: {_units(cfg, settlement.merchant_reward)} TIP")
    click.echo(f"  ✓ Rate after withdrawal: {account.get_fee_rate()} bps")
    click.echo()


@cli.command("demo")
@click.option(
    "--scenario",
    type=click.Choice(["decay", "premium", "all"]),
    default="all",
    help="Demo scenario to run",
)
@click.option("--stake-type", type=int, default=0, help="Stake type used by the premium scenario")
@click.option("--persist", is_flag=True, help="Save the resulting deployment to the data directory")
@click.pass_context
def demo(ctx, scenario, stake_type, persist):
    """Run the fee decay and premium staking scenarios"""
    from tipvault.core.deployment import Deployment
    from tipvault.core.errors import TipVaultError
    from tipvault.core.storage import StorageManager
    from tipvault.utils.validation import validate_stake_type

    cfg = ctx.obj["config"]

    deployment = Deployment.create(config=cfg)
    valid, err = validate_stake_type(stake_type, deployment.facility.stake_type_count)
    if not valid:
        _fail(err)

    click.echo("=" * 60)
    click.echo("  TIPVAULT - DEMO")
    click.echo("=" * 60)
    click.echo()

    try:
        if scenario in ("decay", "all"):
            _run_decay_demo(deployment, cfg)
        if scenario in ("premium", "all"):
            _run_premium_demo(deployment, cfg, stake_type)
    except TipVaultError as e:
        _fail(f"Demo failed [{e.error_code}]: {e.message}")

    click.echo("📊 Final Statistics:")
    for section, values in deployment.stats().items():
        click.echo(f"  {section}: {values}")
    click.echo()

    if persist:
        storage = StorageManager(cfg.data_dir)
        try:
            deployment.save(storage)
        finally:
            storage.close()
        click.echo(f"💾 Saved to {storage.db_path}")

    click.echo("✅ Demo complete!")


# =============================================================================
# Fee Schedule Command
# =============================================================================


@cli.command("fee-schedule")
@click.option("--base-fee", type=int, default=None, help="Starting base fee in bps (default: config)")
@click.option(
    "--volumes",
    required=True,
    help="Comma-separated tip volumes in whole tokens, e.g. 1000000,4000000",
)
@click.pass_context
def fee_schedule(ctx, base_fee, volumes):
    """Project the base-fee decay over a sequence of tips"""
    from tipvault.core.errors import ArithmeticFault
    from tipvault.core.fees import FeeEngine
    from tipvault.utils.validation import ensure_all_valid, parse_amount_list, validate_fee

    cfg = ctx.obj["config"]
    if base_fee is None:
        base_fee = cfg.default_base_fee
    try:
        ensure_all_valid([validate_fee(base_fee, cfg.precision, "base_fee")])
        amounts = parse_amount_list(volumes)
    except ValueError as e:
        _fail(str(e))

    try:
        next_rates = FeeEngine(cfg).project_schedule(base_fee, [cfg.to_units(a) for a in amounts])
    except ArithmeticFault as e:
        _fail(f"Decay underflow: {e.message}")

    click.echo(f"Fee schedule from {base_fee} bps ({cfg.fee_floor_policy} floor at {cfg.fee_floor} bps)")
    click.echo("-" * 60)
    click.echo(f"  {'#':>3}  {'volume (TIP)':>16}  {'rate':>6}  {'next rate':>9}")
    rates = [base_fee] + next_rates
    for i, amount in enumerate(amounts, start=1):
        click.echo(f"  {i:>3}  {amount:>16,}  {rates[i - 1]:>6}  {rates[i]:>9}")


# =============================================================================
# Stats Command
# =============================================================================


@cli.command("stats")
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON")
@click.option("--merchant", default=None, help="Show the account of this merchant address (0x...)")
@click.pass_context
def stats(ctx, as_json, merchant):
    """Show statistics of the persisted deployment"""
    from tipvault.core.deployment import Deployment
    from tipvault.core.storage import StorageManager
    from tipvault.utils.validation import parse_address

    cfg = ctx.obj["config"]
    db_path = cfg.data_dir / "tipvault.db"
    if not db_path.exists():
        _fail(f"No deployment found at {db_path} (run `tipvault demo --persist` first)")

    storage = StorageManager(cfg.data_dir)
    try:
        deployment = Deployment.load(storage, config=cfg)
    except ValueError as e:
        _fail(str(e))
    finally:
        storage.close()

    if merchant is not None:
        try:
            account = deployment.registry.get_account(parse_address(merchant, "merchant"))
        except ValueError as e:
            _fail(str(e))
        data = account.state.to_dict()
        data["balance"] = account.balance()
        data["premium"] = account.has_premium()
    else:
        data = deployment.stats()

    if as_json or merchant is not None:
        click.echo(json.dumps(data, indent=2, default=str))
        return

    click.echo("TipVault Statistics")
    click.echo("-" * 40)
    click.echo(f"  Version: {__version__}")
    click.echo(f"  Clock: t={data['now']}")
    click.echo(f"  Events: {data['events']}")
    for section in ("token", "facility", "registry"):
        click.echo(f"  {section.capitalize()}:")
        for key, value in data[section].items():
            click.echo(f"    {key}: {value}")


if __name__ == "__main__":
    cli()
