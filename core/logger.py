# core/logger.py
import logging
import os
import sys
from logging.handlers import RotatingFileHandler

_configured = False

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
# Per-request retry chatter from these drowns the per-product log
NOISY_LOGGERS = ("urllib3", "PIL")


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def _with_format(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handler


def setup_logging():
    global _configured
    if _configured:
        return

    level = _level(os.getenv("LOG_LEVEL", "INFO"))
    log_to_stdout = os.getenv("LOG_TO_STDOUT", "true").lower() == "true"
    log_to_file = os.getenv("LOG_TO_FILE", "false").lower() == "true"
    log_file = os.getenv("LOG_FILE", "logs/sldownloader.log")

    root = logging.getLogger()
    root.setLevel(level)

    # Avoid duplicate handlers
    if not root.handlers:
        if log_to_stdout:
            root.addHandler(_with_format(logging.StreamHandler(sys.stdout), level))

        if log_to_file:
            try:
                log_dir = os.path.dirname(log_file)
                if log_dir:
                    os.makedirs(log_dir, exist_ok=True)
                fh = RotatingFileHandler(
                    log_file,
                    maxBytes=int(os.getenv("LOG_MAX_BYTES", str(2 * 1024 * 1024))),
                    backupCount=int(os.getenv("LOG_BACKUPS", "3")),
                    encoding="utf-8",
                )
                root.addHandler(_with_format(fh, level))
            except OSError as e:
                root.warning("Failed to initialize file logging at %s: %s", log_file, e)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _configured = True


def set_level(name: str) -> None:
    """Override LOG_LEVEL after startup, e.g. from a --verbose flag."""
    setup_logging()
    level = _level(name)
    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers:
        handler.setLevel(level)


def get_logger(name: str | None = None) -> logging.Logger:
    setup_logging()
    return logging.getLogger(name)
