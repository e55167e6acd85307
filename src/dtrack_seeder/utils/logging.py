"""Logging setup for seeding runs."""

from __future__ import annotations

import logging
from logging import Logger
from typing import Iterable, Optional

# Third-party loggers that are chatty at INFO.
_QUIET_LOGGERS = ("httpx", "httpcore")


def configure_logging(
    level: int = logging.INFO,
    *,
    name: str = "dtrack_seeder",
    propagate: bool = False,
    extra_loggers: Optional[Iterable[str]] = None,
) -> Logger:
    """Configure and return the package logger, optionally binding extra loggers.

    Parameters
    ----------
    level: int
        Logging verbosity.
    name: str
        Logical logger namespace.
    """

    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    handler.setFormatter(formatter)

    def _attach(target: Logger, target_level: int) -> None:
        if not any(isinstance(existing, logging.StreamHandler) for existing in target.handlers):
            target.addHandler(handler)
        target.setLevel(target_level)
        target.propagate = propagate

    logger = logging.getLogger(name)
    _attach(logger, level)

    for logger_name in _QUIET_LOGGERS:
        _attach(logging.getLogger(logger_name), max(level, logging.WARNING))

    if extra_loggers:
        for logger_name in extra_loggers:
            _attach(logging.getLogger(logger_name), level)

    return logger
