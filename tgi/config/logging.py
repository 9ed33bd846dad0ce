"""
Logging configuration.

Configures loguru for the processing tier.
Sets up log rotation and retention policies.
"""

import sys
from pathlib import Path

from loguru import logger


def setup_logging(level: str = "INFO", log_dir: str | None = None) -> None:
    """Configure stderr logging and, optionally, a rotating file sink."""
    logger.remove()
    logger.add(sys.stderr, level=level)

    if log_dir:
        logger.add(
            str(Path(log_dir) / "processing.log"),
            rotation="1 day",
            retention="7 days",
            level=level,
            encoding="utf-8",
        )
