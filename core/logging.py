"""Simple logging setup (single canonical format for the intake service)."""

import logging
import os

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# Chatty transport loggers; request lines from the completion SDK are noise at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "openai")


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=_FORMAT)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


configure_logging()


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
