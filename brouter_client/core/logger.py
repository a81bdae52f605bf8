# brouter_client/core/logger.py
from loguru import logger
import sys

# Default sink; stdout is left to route payloads written by the CLI
logger.remove()
logger.add(
    sys.stderr,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
           "<level>{level}</level> | "
           "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
           "{message}",
    level="INFO",
)

__all__ = ["logger"]
