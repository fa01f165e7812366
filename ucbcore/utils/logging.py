"""
Package logging for ucbcore.

Every module logs through a child of the ``ucbcore`` logger. Only that
package logger carries handlers, so chain output from the engine, the
waveforms and the likelihood shares one stream (and optionally one file).
``DEFAULT_LEVEL`` applies until a caller picks a level; after that the
configured level is kept across engines unless one is passed explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

PACKAGE_LOGGER = "ucbcore"
DEFAULT_LEVEL = logging.INFO


class UCBLogger:
    """Configures the handlers and level of the package logger."""

    _formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    @classmethod
    def get_logger(
        cls,
        name: str = PACKAGE_LOGGER,
        level: Optional[int] = None,
        log_file: Optional[str] = None,
        propagate: bool = False,
    ) -> logging.Logger:
        """
        Logger ``name`` with a stream handler and, if given, a file handler.

        ``level=None`` keeps a level set earlier and falls back to
        ``DEFAULT_LEVEL`` for a logger that has none.
        """
        logger = logging.getLogger(name)
        if level is not None:
            cls.set_level(level, name)
        elif logger.level == logging.NOTSET:
            logger.setLevel(DEFAULT_LEVEL)
        logger.propagate = propagate

        if not logger.handlers:
            cls._attach(logger, logging.StreamHandler())
        if log_file is not None:
            cls.add_file(log_file, name)
        return logger

    @classmethod
    def set_level(cls, level: int, name: str = PACKAGE_LOGGER) -> logging.Logger:
        """Set the level of logger ``name`` and of each of its handlers."""
        logger = logging.getLogger(name)
        logger.setLevel(level)
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    @classmethod
    def add_file(cls, log_file: str, name: str = PACKAGE_LOGGER) -> logging.FileHandler:
        """Attach a file handler for ``log_file`` unless one already writes there."""
        logger = logging.getLogger(name)
        log_path = Path(log_file).resolve()
        for handler in logger.handlers:
            if isinstance(handler, logging.FileHandler) and Path(handler.baseFilename).resolve() == log_path:
                return handler
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return cls._attach(logger, logging.FileHandler(log_path))

    @classmethod
    def _attach(cls, logger: logging.Logger, handler: logging.Handler) -> logging.Handler:
        handler.setFormatter(cls._formatter)
        handler.setLevel(logger.level)
        logger.addHandler(handler)
        return handler


def get_logger(name: str) -> logging.Logger:
    """Module logger under the package namespace; carries no handlers of its own."""
    return logging.getLogger(name)
