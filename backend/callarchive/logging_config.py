"""Process-wide logging: console plus a rotating file under ``LOG_DIR``.

Ingestion runs unattended, so the file log is what an operator reads after
the fact to see which captures were rejected, moved, indexed or deleted.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_FILENAME = "callarchive.log"
# 5MB per file, 2 backups
LOG_MAX_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 2

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(funcName)s - %(lineno)d - %(message)s"

# Third-party loggers that are too chatty at INFO
_LIBRARY_LEVELS = {
    "uvicorn": logging.INFO,
    "uvicorn.error": logging.INFO,
    "uvicorn.access": logging.WARNING,
    "watchdog": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def _has_console(root: logging.Logger) -> bool:
    return any(
        type(h) is logging.StreamHandler and getattr(h, "stream", None) is sys.stdout
        for h in root.handlers
    )


def _has_file(root: logging.Logger, log_file: str) -> bool:
    return any(
        isinstance(h, logging.FileHandler) and h.baseFilename == os.path.abspath(log_file)
        for h in root.handlers
    )


def setup_logging(log_dir: Optional[str] = None, level: Optional[str] = None) -> str:
    """
    Attach the console and rotating-file handlers to the root logger.

    ``log_dir`` and ``level`` default to the ``LOG_DIR`` and ``LOG_LEVEL``
    environment variables.  Calling it again adds no duplicate handlers.
    Returns the path of the log file.
    """
    log_dir = log_dir or os.getenv("LOG_DIR") or "logs"
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    app_level = logging.getLevelName(level_name)
    if not isinstance(app_level, int):
        app_level = logging.INFO

    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILENAME)
    formatter = logging.Formatter(LOG_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO)

    if not _has_console(root_logger):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    if not _has_file(root_logger, log_file):
        file_handler = RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUPS)
        file_handler.setFormatter(formatter)
        root_logger.addHandler(file_handler)

    logging.getLogger("callarchive").setLevel(app_level)
    for name, library_level in _LIBRARY_LEVELS.items():
        logging.getLogger(name).setLevel(library_level)

    logging.getLogger(__name__).info("Logging to console and %s at %s", log_file, logging.getLevelName(app_level))
    return log_file
