# core/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List

# Passes and webhook deliveries run on their own threads; tag records with it.
LOG_FORMAT = "%(asctime)s %(levelname)s [%(threadName)s] [%(name)s] %(message)s"

# Chatty third-party loggers held at WARNING unless LOG_LEVEL=DEBUG.
QUIET_LOGGERS = ("urllib3", "uvicorn.access")

_configured = False


def _env_flag(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes")


def _build_handlers(level: int, formatter: logging.Formatter) -> List[logging.Handler]:
    handlers: List[logging.Handler] = []

    if _env_flag("LOG_TO_STDOUT", True):
        handlers.append(logging.StreamHandler(sys.stdout))

    if _env_flag("LOG_TO_FILE", True):
        log_file = os.getenv("LOG_FILE", "/data/reminders_server.log")
        try:
            os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
            handlers.append(
                RotatingFileHandler(
                    log_file,
                    maxBytes=int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024))),
                    backupCount=int(os.getenv("LOG_BACKUPS", "3")),
                )
            )
        except OSError as e:
            logging.getLogger(__name__).warning("Failed to initialize file logging: %s", e)

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def setup_logging(force: bool = False) -> None:
    """
    Configure the root logger once per process from LOG_* env vars.
    uvicorn is started with log_config=None so its records land here too.
    """
    global _configured
    if _configured and not force:
        return

    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)

    if not root.handlers:
        for handler in _build_handlers(level, logging.Formatter(LOG_FORMAT)):
            root.addHandler(handler)

    quiet_level = logging.NOTSET if level <= logging.DEBUG else logging.WARNING
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)

    _configured = True


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
