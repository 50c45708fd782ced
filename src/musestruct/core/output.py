"""
Logging output using Loguru.
File sink with rotation, optional console sink for debugging.
"""

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

from .config import LoggingConfig, get_data_dir


def get_log_file_path() -> Path:
    """Get the default path to the log file."""
    return get_data_dir() / "musestruct.log"


def setup_loguru(
    log_file: Optional[Path] = None,
    level: str = "INFO",
    console_output: bool = False,
) -> Path:
    """
    Configure loguru with a rotating file sink.

    Args:
        log_file: Path to log file (default: ~/.local/share/musestruct/musestruct.log)
        level: Minimum level for logging (DEBUG, INFO, WARNING, ERROR)
        console_output: Whether to also log to stderr

    Returns:
        Path of the log file in use
    """
    log_file = log_file or get_log_file_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)

    # Remove default handler
    logger.remove()

    logger.add(
        log_file,
        rotation="10 MB",
        retention=5,  # Keep 5 backup files
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{line} | {message}",
        enqueue=False,
    )

    if console_output:
        logger.add(sys.stderr, level=level, format="{level}: {message}")

    logger.info(f"Loguru initialized: {log_file} (level={level})")
    return log_file


def setup_logging_from_config(config: LoggingConfig) -> Path:
    """Configure logging from the [logging] config section."""
    log_file = Path(config.log_file) if config.log_file else None
    return setup_loguru(
        log_file=log_file,
        level=config.level,
        console_output=config.console_output,
    )
