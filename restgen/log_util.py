# File: restgen/log_util.py
"""
RestGen - Logger Factory
=========================
Hierarchical, labeled loggers built on the standard ``logging`` module.

``get_logger(label, config)`` reads the verbosity threshold from the
configuration object *at call time*, so a configuration merge performed
before the call is honoured.  ``LabeledLogger.bind`` derives a child
logger (``restgen.<label>.<sub>``) that inherits its parent's threshold
without consulting the configuration again.
"""

from __future__ import annotations

import logging
import sys
from typing import Any, Mapping, MutableMapping, Optional, Tuple

from restgen.config import Config

ROOT_LOGGER_NAME: str = "restgen"

_FORMAT: str = "%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s"
_DATE_FORMAT: str = "%H:%M:%S"


class LabeledLogger(logging.LoggerAdapter):
    """A ``LoggerAdapter`` that knows its label and can spawn children."""

    def __init__(self, logger: logging.Logger, label: str) -> None:
        super().__init__(logger, {"label": label})
        self.label: str = label

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs.setdefault("extra", {}).setdefault("label", self.label)
        return msg, kwargs

    @property
    def name(self) -> str:
        return self.logger.name

    def bind(self, label: Optional[str] = None) -> "LabeledLogger":
        """Return a child logger scoped under ``label`` (or a copy of self)."""
        if not label:
            return LabeledLogger(self.logger, self.label)
        return LabeledLogger(self.logger.getChild(label), f"{self.label}.{label}")

    def __repr__(self) -> str:
        return f"<LabeledLogger {self.name} ({logging.getLevelName(self.getEffectiveLevel())})>"


def get_logger(label: str, config: Config) -> LabeledLogger:
    """
    Get a new logger with a root label.

    Args:
        label: The root label, e.g. ``"api"`` or ``"models"``.
        config: The configuration whose ``loglevel`` is applied now.
    """
    base: logging.Logger = logging.getLogger(f"{ROOT_LOGGER_NAME}.{label}")
    base.setLevel(config.log_level_value)
    return LabeledLogger(base, label)


def configure_logging(level: int = logging.WARNING) -> logging.Logger:
    """
    Install a single stderr handler on the ``restgen`` root logger.

    Existing handlers are removed to prevent duplicate lines when called
    more than once (e.g. from tests or repeated CLI invocations).
    """
    handler: logging.StreamHandler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FORMAT))

    root_logger: logging.Logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.propagate = False
    return root_logger


def _format_details(details: Optional[Mapping[str, Any]]) -> str:
    if not details:
        return ""
    return " " + ", ".join(f"{key}={value!r}" for key, value in details.items())


def log_action_start(
    log: logging.LoggerAdapter | logging.Logger,
    action: str,
    details: Optional[Mapping[str, Any]] = None,
) -> None:
    """Log the start of a named action with optional key/value details."""
    log.info("%s...%s", action, _format_details(details))


def log_action_complete(
    log: logging.LoggerAdapter | logging.Logger,
    action: str,
    details: Optional[Mapping[str, Any]] = None,
) -> None:
    log.info("%s complete.%s", action, _format_details(details))


__all__ = [
    "LabeledLogger",
    "ROOT_LOGGER_NAME",
    "configure_logging",
    "get_logger",
    "log_action_complete",
    "log_action_start",
]
