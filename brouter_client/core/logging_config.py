# brouter_client/core/logging_config.py
from loguru import logger
import sys

from brouter_client.core.config import settings


def setup_logging(level: str | None = None) -> None:
    """
    Configure application-wide logging using loguru.

    Everything goes to stderr so that a route written to stdout stays clean.
    """
    # Remove the handler installed by brouter_client.core.logger
    logger.remove()

    logger.add(
        sys.stderr,
        level=(level or settings.LOG_LEVEL).upper(),
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
        backtrace=True,
        diagnose=False,
    )
