import dataclasses
import enum
import logging
import pathlib

import click
from beancount_black.formatter import VERBOSE_LOG_LEVEL
from rich.console import Console
from rich.logging import RichHandler

from .ledger import Ledger


@enum.unique
class LogLevel(enum.Enum):
    VERBOSE = "verbose"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"


LOG_LEVEL_MAP = {
    LogLevel.VERBOSE: VERBOSE_LOG_LEVEL,
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARNING: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
    LogLevel.FATAL: logging.FATAL,
}


def setup_logging(log_level: LogLevel):
    logging.basicConfig(
        level=LOG_LEVEL_MAP[log_level],
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True))],
        force=True,
    )


@dataclasses.dataclass
class Environment:
    log_level: LogLevel = LogLevel.INFO
    logger: logging.Logger = logging.getLogger("beancounters")
    data_dir: pathlib.Path | None = None
    config_path: str | None = None
    ledger: Ledger | None = None


pass_env = click.make_pass_decorator(Environment, ensure=True)
