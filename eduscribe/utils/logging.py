import logging
import sys
from typing import Optional, Iterable
from pathlib import Path
from rich.logging import RichHandler
from rich.console import Console

console = Console()

ROOT_LOGGER = "eduscribe"

# Client libraries that log every HTTP round trip at INFO/DEBUG
NOISY_LIBRARIES = (
    "googleapiclient.discovery",
    "googleapiclient.discovery_cache",
    "google.auth.transport.requests",
    "urllib3.connectionpool",
)

FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s"
PLAIN_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _console_handler(enable_rich: bool) -> logging.Handler:
    if enable_rich:
        handler = RichHandler(
            console=console,
            show_time=True,
            show_path=False,
            rich_tracebacks=True
        )
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
    handler.setLevel(logging.DEBUG)
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    enable_rich: bool = True,
    quiet_libraries: Iterable[str] = NOISY_LIBRARIES
) -> logging.Logger:
    """
    Configure the ``eduscribe`` logger for one CLI run.

    Args:
        level: Level name for eduscribe modules; unknown names fall back to INFO
        log_file: Optional file that receives every record with call-site details
        enable_rich: Use RichHandler for console output
        quiet_libraries: Third-party loggers capped at WARNING

    Returns:
        The configured ``eduscribe`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Repeated invocations in one process (tests, CliRunner) must not stack handlers
    logger.handlers.clear()
    logger.addHandler(_console_handler(enable_rich))

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        logger.addHandler(file_handler)

    for name in quiet_libraries:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logger


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    return logging.getLogger(name)
