"""femtologging helpers for the reconciliation pipeline.

Each pipeline stage writes one summary line through these helpers. Messages
use percent-style templates so arguments are only interpolated here, and the
level is taken from ``SCORECARD_LOG_LEVEL`` unless a caller passes one.

Examples
--------
>>> configure_logging("debug")
('DEBUG', False)
>>> log_info(get_logger(__name__), "Resolved %s shows", 12)
"""

from __future__ import annotations

import enum
import os
import typing as typ

from femtologging import basicConfig, get_logger

LOG_LEVEL_ENV = "SCORECARD_LOG_LEVEL"

_LEVEL_ALIASES: dict[str, str] = {"WARN": "WARNING", "FATAL": "CRITICAL"}


class LogLevel(enum.StrEnum):
    """Levels accepted by ``configure_logging``."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class _SupportsLog(typ.Protocol):
    def log(
        self,
        level: str,
        message: str,
        /,
        *,
        exc_info: object | None = None,
        stack_info: bool = False,
    ) -> None: ...


def resolve_log_level(level: str | None) -> tuple[LogLevel, bool]:
    """Map a requested level name onto a ``LogLevel``.

    Parameters
    ----------
    level : str | None
        Level name in any case. ``None`` reads ``SCORECARD_LOG_LEVEL``;
        ``WARN`` and ``FATAL`` are accepted as aliases.

    Returns
    -------
    tuple[LogLevel, bool]
        The level to use and whether ``INFO`` was substituted because the
        name was missing or unknown.
    """
    raw = level if level is not None else os.getenv(LOG_LEVEL_ENV)
    name = (raw or "").strip().upper()
    name = _LEVEL_ALIASES.get(name, name)
    if name not in LogLevel.__members__:
        return (LogLevel.INFO, True)
    return (LogLevel(name), False)


def configure_logging(
    level: str | None = None,
    *,
    force: bool = False,
) -> tuple[str, bool]:
    """Install the femtologging root handler.

    Returns the effective level name and whether it was a fallback, so a
    command-line entry point can warn about an unusable setting.
    """
    resolved, used_default = resolve_log_level(level)
    basicConfig(level=resolved, force=force)
    return (resolved.value, used_default)


def _emit(
    logger: _SupportsLog,
    level: LogLevel,
    template: str,
    args: tuple[object, ...],
    exc_info: object | None,
) -> None:
    message = template % args if args else template
    logger.log(level, message, exc_info=exc_info, stack_info=False)


def log_debug(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit a DEBUG message."""
    _emit(logger, LogLevel.DEBUG, template, args, exc_info)


def log_info(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit an INFO message.

    Parameters
    ----------
    logger : _SupportsLog
        Any logger exposing the femtologging ``log`` method.
    template : str
        Percent-style template.
    *args : object
        Values interpolated into ``template``.
    exc_info : object | None, optional
        Exception information attached to the record.

    Raises
    ------
    TypeError
        If ``args`` do not fit the template.
    """
    _emit(logger, LogLevel.INFO, template, args, exc_info)


def log_warning(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit a WARNING message, used for records skipped and gates failed."""
    _emit(logger, LogLevel.WARNING, template, args, exc_info)


def log_error(
    logger: _SupportsLog,
    template: str,
    *args: object,
    exc_info: object | None = None,
) -> None:
    """Emit an ERROR message."""
    _emit(logger, LogLevel.ERROR, template, args, exc_info)


__all__ = (
    "LOG_LEVEL_ENV",
    "LogLevel",
    "configure_logging",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_warning",
    "resolve_log_level",
)
