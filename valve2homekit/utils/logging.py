"""Logging configuration for valve2homekit."""

import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

# Third-party loggers that are chatty at INFO
LIBRARY_LOGGERS = ("asyncio", "aiomqtt", "pyhap", "zeroconf")


def setup_logging(
    level: str = "INFO",
    log_file: Optional[Path] = None,
    format_string: Optional[str] = None,
    library_loggers: Iterable[str] = LIBRARY_LOGGERS,
) -> None:
    """Configure the root logger.

    Output goes to stdout and, if ``log_file`` is set, to that file.
    Library loggers are held at WARNING unless ``level`` is DEBUG.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_file: Optional file path for log output
        format_string: Custom log format string
        library_loggers: Names of third-party loggers to quiet
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    formatter = logging.Formatter(format_string)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    # Replace handlers from any previous call
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)

    library_level = logging.DEBUG if numeric_level == logging.DEBUG else logging.WARNING
    for name in library_loggers:
        logging.getLogger(name).setLevel(library_level)

    logging.info(f"Logging configured: level={level}")
    if log_file:
        logging.info(f"Log file: {log_file}")
