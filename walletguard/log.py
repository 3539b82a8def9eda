"""Logging setup for walletguard."""

import logging

from walletguard.config import get_log_level


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_root = logging.getLogger("walletguard")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the ``walletguard`` namespace.

    The first call installs a single stream handler on the package logger;
    child loggers propagate to it.
    """
    if not _root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        _root.addHandler(handler)
        _root.setLevel(getattr(logging, get_log_level(), logging.INFO))

    if name.startswith("walletguard"):
        return logging.getLogger(name)
    return _root.getChild(name)
