"""
Engine configuration parameters for TipVault.

Defines fee, staking and settlement constants plus operational paths.
Values can be overridden through TIPVAULT_* environment variables or a
.env file (see load_config).
"""

import os
from pathlib import Path
from typing import Dict, Literal, Optional

from dotenv import dotenv_values
from pydantic import BaseModel, field_validator, model_validator

ENV_PREFIX = "TIPVAULT_"

DEFAULT_DECIMALS = 18

SECONDS_PER_DAY = 86_400

# Top-level logger names under "tipvault"; each can get its own level
LOG_SUBSYSTEMS = ("runtime", "token", "staking", "fees", "account", "registry", "deployment", "storage")

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def tokens(amount: int, decimals: int = DEFAULT_DECIMALS) -> int:
    """Scale a whole-token amount to native units."""
    return amount * 10**decimals


def _parse_level(value: str) -> str:
    value = value.upper()
    if value not in LOG_LEVELS:
        raise ValueError(f"unknown log level {value}")
    return value


class EngineConfig(BaseModel):
    """Engine-wide configuration parameters"""

    # Fee parameters (basis points of precision)
    precision: int = 10_000  # 100%
    premium_fee: int = 100  # 1% while premium is active
    fee_floor: int = 200  # 2% lowest non-premium fee
    default_base_fee: int = 400  # 4% for newly created accounts
    fee_floor_policy: Literal["clamp", "exact"] = "clamp"

    # Token parameters
    token_decimals: int = DEFAULT_DECIMALS
    volume_threshold: int = tokens(1_000_000)  # volume per decay step
    premium_threshold: int = tokens(10_000_000)  # minimum premium stake

    # Settlement parameters
    platform_apr: int = 200  # 2% annual platform yield cut
    seconds_per_year: int = 365 * SECONDS_PER_DAY
    unbonding_period: int = 7 * SECONDS_PER_DAY

    # Paths and logging
    data_dir: Path = Path("data")
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_levels: Dict[str, str] = {}  # per-subsystem overrides of log_level
    log_to_file: bool = False

    model_config = {"frozen": True}

    @property
    def decay_step(self) -> int:
        """Basis points removed from the base fee per volume unit."""
        return self.precision // 1000

    @field_validator("precision")
    @classmethod
    def _precision_divisible(cls, value: int) -> int:
        if value <= 0 or value % 1000 != 0:
            raise ValueError(f"precision must be a positive multiple of 1000, got {value}")
        return value

    @field_validator(
        "volume_threshold",
        "premium_threshold",
        "seconds_per_year",
    )
    @classmethod
    def _positive(cls, value: int) -> int:
        if value <= 0:
            raise ValueError(f"must be positive, got {value}")
        return value

    @field_validator("premium_fee", "fee_floor", "platform_apr", "unbonding_period", "token_decimals")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError(f"must be non-negative, got {value}")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        return _parse_level(value)

    @field_validator("log_levels", mode="before")
    @classmethod
    def _subsystem_levels(cls, value):
        # From the environment: "fees=DEBUG,storage=WARNING"
        if isinstance(value, str):
            pairs = [item.split("=", 1) for item in value.split(",") if item.strip()]
            if any(len(pair) != 2 for pair in pairs):
                raise ValueError(f"expected name=LEVEL pairs, got {value!r}")
            value = {name.strip(): level.strip() for name, level in pairs}
        levels = {}
        for name, level in dict(value).items():
            if name not in LOG_SUBSYSTEMS:
                raise ValueError(f"unknown log subsystem {name!r}")
            levels[name] = _parse_level(level)
        return levels

    @model_validator(mode="after")
    def _fee_bounds(self) -> "EngineConfig":
        if self.premium_fee > self.precision:
            raise ValueError("premium_fee exceeds precision")
        if not self.fee_floor <= self.default_base_fee <= self.precision:
            raise ValueError(
                f"default_base_fee must lie in [{self.fee_floor}, {self.precision}], "
                f"got {self.default_base_fee}"
            )
        return self

    def to_units(self, amount: int) -> int:
        """Scale a whole-token amount using this config's decimals."""
        return tokens(amount, self.token_decimals)


def _collect_overrides(values: Dict[str, Optional[str]]) -> Dict[str, str]:
    overrides = {}
    for key, value in values.items():
        if value is None or not key.startswith(ENV_PREFIX):
            continue
        overrides[key[len(ENV_PREFIX):].lower()] = value
    return overrides


def load_config(env_file: Optional[str] = None, **overrides) -> EngineConfig:
    """
    Load configuration from environment and optional .env file.

    Precedence (highest first): keyword overrides, process environment,
    .env file, defaults.

    Args:
        env_file: Optional path to a .env file
        **overrides: Explicit field values

    Returns:
        EngineConfig instance
    """
    values: Dict[str, object] = {}
    if env_file:
        values.update(_collect_overrides(dotenv_values(env_file)))
    values.update(_collect_overrides(dict(os.environ)))
    values.update(overrides)

    known = set(EngineConfig.model_fields)
    return EngineConfig(**{k: v for k, v in values.items() if k in known})
