"""Process-wide logging setup for the audit engine.

`configure_logging` is called once by the composition root (the CLI). It routes
DEBUG/INFO records to stdout and WARNING+ to stderr, so job tables and progress
stay on stdout while failures can be redirected separately.

Every record carries the id of the audit session that emitted it. Ticks of
one session run as separate tasks, but tasks copy the context they were
created in, so the id set on session entry reaches every poll and dispatch log
line of that session.
"""

from __future__ import annotations

import contextvars
import logging
import sys
from typing import Iterable, Optional, TextIO

NO_SESSION = "-"

# Audit session id of the running task (set by AuditSession on entry)
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "audit_session_id", default=NO_SESSION
)

DEFAULT_FORMAT = "[%(asctime)s] %(levelname)s %(name)s session=%(session_id)s: %(message)s"

# third-party loggers that are noisy at INFO
HTTP_CLIENT_LOGGERS = ("aiohttp.client", "aiohttp.internal", "aiohttp.access")


def coerce_level(level: int | str | None) -> int:
    """Accept `logging` constants or names ("debug", " WARNING "); default INFO."""
    if isinstance(level, int):
        return level
    if not level:
        return logging.INFO
    return logging.getLevelNamesMapping().get(str(level).strip().upper(), logging.INFO)


def bind_session_id(session_id: str) -> contextvars.Token:
    return correlation_id_var.set(session_id)


def unbind_session_id(token: contextvars.Token) -> None:
    correlation_id_var.reset(token)


class _SessionIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = correlation_id_var.get()
        return True


class _LevelRangeFilter(logging.Filter):
    """Pass records with `low <= levelno <= high`."""

    def __init__(self, low: int, high: int = logging.CRITICAL):
        super().__init__()
        self.low = low
        self.high = high

    def filter(self, record: logging.LogRecord) -> bool:
        return self.low <= record.levelno <= self.high


def _stream_handler(stream: TextIO, level_filter: logging.Filter, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.StreamHandler(stream=stream)
    handler.addFilter(level_filter)
    handler.addFilter(_SessionIdFilter())
    handler.setFormatter(formatter)
    return handler


def configure_logging(
    level: int | str | None = None,
    fmt: Optional[str] = None,
    quiet_loggers: Iterable[str] = HTTP_CLIENT_LOGGERS,
) -> None:
    """Install the stdout/stderr handlers on the root logger.

    Calling it again replaces the handlers instead of stacking them. Loggers
    named in `quiet_loggers` are raised to WARNING.
    """
    numeric_level = coerce_level(level)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(numeric_level)
    for existing in list(root.handlers):
        root.removeHandler(existing)

    root.addHandler(_stream_handler(sys.stdout, _LevelRangeFilter(logging.DEBUG, logging.INFO), formatter))
    root.addHandler(_stream_handler(sys.stderr, _LevelRangeFilter(logging.WARNING), formatter))

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("audit_engine").debug(
        "[logging] configured level=%s quiet=%s", logging.getLevelName(numeric_level), list(quiet_loggers)
    )
