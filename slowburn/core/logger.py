"""Logger configuration for SlowBurn.

Console output is human-readable; the optional file sink can write one JSON
record per line so request and reconciliation logs can be grepped or shipped.
"""

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    rotation: str = "10 MB",
    retention: str = "14 days",
    compression: str | None = "zip",
    serialize: bool = False,
) -> None:
    """Configure loguru with a stderr sink and an optional rotating file sink.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to a log file; console only when None
        rotation: File rotation trigger (e.g., "10 MB", "1 day")
        retention: How long rotated files are kept
        compression: Archive format for closed files, or None to leave them as is
        serialize: Write the file sink as JSON lines instead of text
    """
    logger.remove()

    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression=compression,
            serialize=serialize,
            backtrace=True,
            diagnose=False,
        )

    logger.info(f"Logger initialized with level={level} file={log_file or '-'} json={serialize}")
