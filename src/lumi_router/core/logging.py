# src/lumi_router/core/logging.py
from __future__ import annotations
import logging
import os

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR":    logging.ERROR,
    "WARNING":  logging.WARNING,
    "INFO":     logging.INFO,
    "DEBUG":    logging.DEBUG,
}

# HTTP client libraries log every connection at DEBUG/INFO
_NOISY = ("urllib3", "httpx", "httpcore")

FMT = "%(asctime)s.%(msecs)03d %(levelname)-8s %(name)s %(message)s"
DATEFMT = "%Y-%m-%dT%H:%M:%S"


def level_from_env(var: str = "LOG_LEVEL", default: str = "INFO") -> int:
    val = (os.getenv(var, default) or "").strip().upper()
    return _LEVELS.get(val, _LEVELS[default])


def setup_logging() -> None:
    """
    Configure root logging once. Idempotent.

    LOG_LEVEL controls verbosity (default INFO). Provider HTTP libraries
    stay at WARNING unless LOG_LEVEL=DEBUG so request lines don't drown
    the router's own attempt logs.
    """
    level = level_from_env()
    root = logging.getLogger()

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt=FMT, datefmt=DATEFMT))
        root.addHandler(handler)
    # else: pytest / uvicorn installed handlers already, only adjust the level

    root.setLevel(level)
    for name in _NOISY:
        logging.getLogger(name).setLevel(level if level <= logging.DEBUG else logging.WARNING)
