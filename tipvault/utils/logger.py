"""
Logging for TipVault.

Every component logs to a child of the "tipvault" logger, one per
subsystem (see LOG_SUBSYSTEMS). Levels come from EngineConfig:
`log_level` for the whole tree and `log_levels` for single subsystems,
e.g. TIPVAULT_LOG_LEVELS="fees=DEBUG,storage=WARNING".

Console output is colored with colorlog; `log_to_file` adds a plain copy
under `log_dir`.
"""

import logging
import sys
from typing import Optional

import colorlog

from tipvault.core.config import LOG_SUBSYSTEMS, EngineConfig

ROOT_LOGGER = "tipvault"
LOG_FILE = "tipvault.log"

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
CONSOLE_FORMAT = "%(log_color)s%(asctime)s [%(name)s] %(levelname)-8s%(reset)s %(message)s"
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"

LEVEL_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class TipVaultLogger:
    """Owns the handlers and levels of the tipvault logger tree."""

    _config: Optional[EngineConfig] = None

    @classmethod
    def configure(cls, config: EngineConfig) -> None:
        """Rebuild handlers and levels from `config`, replacing any earlier setup."""
        cls._clear()
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(config.log_level)

        console = colorlog.StreamHandler(sys.stdout)
        console.setFormatter(
            colorlog.ColoredFormatter(CONSOLE_FORMAT, datefmt=DATE_FORMAT, log_colors=LEVEL_COLORS)
        )
        root.addHandler(console)

        if config.log_to_file:
            config.log_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(config.log_dir / LOG_FILE)
            file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=DATE_FORMAT))
            root.addHandler(file_handler)

        # Handlers carry no level, so a subsystem set below log_level still gets through
        for name, level in config.log_levels.items():
            logging.getLogger(f"{ROOT_LOGGER}.{name}").setLevel(level)

        cls._config = config

    @classmethod
    def reset(cls) -> None:
        """Drop handlers so the next logger request configures from defaults."""
        cls._clear()
        cls._config = None

    @classmethod
    def _clear(cls) -> None:
        root = logging.getLogger(ROOT_LOGGER)
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        for name in LOG_SUBSYSTEMS:
            logging.getLogger(f"{ROOT_LOGGER}.{name}").setLevel(logging.NOTSET)

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """
        Logger of a subsystem.

        Args:
            name: Subsystem name, optionally dotted ('staking', 'storage.sqlite')

        Raises:
            ValueError: the top-level name is not in LOG_SUBSYSTEMS
        """
        if name.split(".", 1)[0] not in LOG_SUBSYSTEMS:
            raise ValueError(f"Unknown log subsystem {name!r}")
        if cls._config is None:
            cls.configure(EngineConfig())
        return logging.getLogger(f"{ROOT_LOGGER}.{name}")


def get_logger(name: str) -> logging.Logger:
    """Get a logger for a specific subsystem"""
    return TipVaultLogger.get_logger(name)


def configure_logging(config: EngineConfig) -> None:
    """Apply the logging section of `config`"""
    TipVaultLogger.configure(config)
