"""
Logging Configuration
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger


def setup_logger(log_dir: Optional[Path] = None, level: str = "INFO", file_logging: bool = True):
    """Setup application logger."""
    logger.remove()

    # Console (if available)
    if sys.stderr is not None:
        logger.add(
            sys.stderr,
            format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
            level=level.upper(),
            colorize=True,
        )

    if not file_logging:
        return logger

    if log_dir is None:
        log_dir = Path("data/logs")
    log_dir = Path(log_dir)
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"File logging disabled, cannot create {log_dir}: {e}")
        return logger

    # File
    logger.add(
        log_dir / "netpulse_{time:YYYY-MM-DD}.log",
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        level="DEBUG",
        rotation="5 MB",
        retention="7 days",
    )

    return logger
