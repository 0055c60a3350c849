import logging

from audit_engine.core.interfaces.logging import LoggingPort
from audit_engine.core.logging_config import coerce_level


class LoggingAdapter(LoggingPort):
    """`LoggingPort` backed by a named stdlib logger.

    Only sets the level of its own logger; sinks and the session id filter
    belong to the root handlers installed by `configure_logging`.
    """

    def __init__(self, name: str = "audit_engine", log_level: int | str = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(coerce_level(log_level))

    def _log(self, level: int, msg: str, args) -> None:
        if self.logger.isEnabledFor(level):
            # stacklevel points records at the caller, not this adapter
            self.logger.log(level, msg, *args, stacklevel=3)

    def debug(self, msg: str, *args):
        self._log(logging.DEBUG, msg, args)

    def info(self, msg: str, *args):
        self._log(logging.INFO, msg, args)

    def warning(self, msg: str, *args):
        self._log(logging.WARNING, msg, args)

    def error(self, msg: str, *args):
        self._log(logging.ERROR, msg, args)
