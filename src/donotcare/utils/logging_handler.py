import logging
import os
from logging.handlers import RotatingFileHandler
from typing import Optional

LOG_DIR_ENV = "DONOTCARE_LOG_DIR"
LOG_LEVEL_ENV = "DONOTCARE_LOG_LEVEL"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# the service runs for days; keep a few megabytes of history
MAX_LOG_BYTES = 1_000_000
LOG_BACKUPS = 3


def _resolve_level(level: Optional[int]) -> int:
    if level is not None:
        return level
    resolved = logging.getLevelName(os.getenv(LOG_LEVEL_ENV, "DEBUG").upper())
    return resolved if isinstance(resolved, int) else logging.DEBUG


def _log_dir() -> str:
    configured = os.getenv(LOG_DIR_ENV)
    if configured:
        return configured
    from donotcare.utils import BASE_DIR
    return os.path.join(BASE_DIR, "logs")


def setup_logger(
    name: str,
    log_file: str = "donotcare.log",
    level: Optional[int] = None,
    console: bool = True,
    handler_level: Optional[int] = None,
) -> logging.Logger:
    """Module-level logger writing to a rotating file and, optionally, the console.

    Handlers are attached on the first call for ``name`` only.
    """
    level = _resolve_level(level)
    logger = logging.getLogger(name)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    log_dir = _log_dir()
    os.makedirs(log_dir, exist_ok=True)
    formatter = logging.Formatter(LOG_FORMAT)

    handlers = [
        RotatingFileHandler(
            os.path.join(log_dir, log_file),
            maxBytes=MAX_LOG_BYTES,
            backupCount=LOG_BACKUPS,
            encoding="utf-8",
        )
    ]
    if console:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setLevel(handler_level or level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger
