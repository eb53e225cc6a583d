import logging
import pathlib

import yaml

from .data_types import LedgerConfig

logger = logging.getLogger(__name__)


def load_config(config_path: pathlib.Path | None) -> LedgerConfig:
    """Load the ledger config from a YAML file, defaults apply when the file does not exist"""
    if config_path is None or not config_path.exists():
        return LedgerConfig()
    with config_path.open("rt") as fo:
        payload = yaml.safe_load(fo)
    config = LedgerConfig.model_validate(payload or {})
    logger.info(
        "Loaded ledger config from [green]%s[/]",
        config_path,
        extra={"markup": True, "highlighter": None},
    )
    return config
