"""Loguru sink setup."""

import sys

from loguru import logger

from kubesafe.config.schema import Config
from kubesafe.utils.helpers import ensure_dir


def setup_logging(config: Config, interactive: bool = False) -> None:
    """
    Configure loguru sinks.

    The full-screen shell must never see log output on the terminal, so it
    logs to the rotating file only. Other commands also keep stderr at
    WARNING.
    """
    logger.remove()

    log_path = config.log_path
    ensure_dir(log_path.parent)
    logger.add(
        log_path,
        level=config.logging.level,
        rotation=config.logging.rotation,
        retention=config.logging.retention,
        backtrace=False,
        diagnose=False,
    )

    if not interactive:
        logger.add(sys.stderr, level="WARNING")
