import logging
import sys
from typing import Union

from notify_service.core.config import settings

LOG_FORMAT = "%(asctime)s.%(msecs)03d | %(levelname)-7s | %(name)s:%(funcName)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# third-party loggers and the level they run at outside DEBUG
QUIET_LOGGERS = {
    "uvicorn.access": logging.WARNING,
    "httpcore": logging.WARNING,
    "httpx": logging.WARNING,
    "apscheduler.executors": logging.WARNING,
    "apscheduler.scheduler": logging.INFO,
    "aiosqlite": logging.WARNING,
    "sqlalchemy.engine": logging.WARNING,
}


def resolve_level(level: Union[str, int, None] = None) -> int:
    """LOG_LEVEL name (or an explicit level) to a logging constant; unknown names fall back to INFO."""
    if level is None:
        level = settings.LOG_LEVEL
    if isinstance(level, int):
        return level
    value = getattr(logging, level.strip().upper(), None)
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Union[str, int, None] = None) -> logging.Logger:
    """
    Configure the service-wide log format.
    Format: 2026-03-21 10:00:00.123 | INFO    | module:function:line - message

    The root level comes from LOG_LEVEL unless ``level`` is given. At DEBUG the
    library loggers are left alone so SQL and HTTP traffic show up too.
    """
    root_level = resolve_level(level)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    if root_logger.hasHandlers():
        root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(root_level)

    for name, quiet_level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(logging.NOTSET if root_level <= logging.DEBUG else quiet_level)

    # uvicorn installs its own handlers; give them the same format
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        if uvicorn_logger.handlers:
            for h in uvicorn_logger.handlers:
                h.setFormatter(formatter)
        else:
            uvicorn_logger.addHandler(handler)
        uvicorn_logger.propagate = False

    logging.getLogger(__name__).info(
        f"Logging initialized at {logging.getLevelName(root_level)} for {settings.APP_NAME}"
    )
    return root_logger
