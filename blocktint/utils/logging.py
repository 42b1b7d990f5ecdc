"""
blocktint Structured Logging
loguru sinks for the block color cache, plus a small wrapper that tags every
record with the component that emitted it.

Records carry ``component`` in ``extra`` and whatever context the caller bound
(``archive_path``, ``cache_path``, ``entry``), so a reload can be followed
across the reconciler and the persistence layer.
"""
import sys
from typing import Any, Dict, Optional

from loguru import logger

from blocktint.config import config

LOG_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss} | {level: <7} | {extra[component]} | "
    "{message} | {extra}"
)

_configured = False


def configure_logging(level: Optional[str] = None, log_file: Optional[str] = None,
                      serialize: Optional[bool] = None):
    """
    (Re)install the blocktint sinks.

    Arguments default to the ``BLOCKTINT_LOG_*`` configuration. Records that
    were not emitted through a StructuredLogger are tagged ``component=app``.
    """
    global _configured
    level = level or config.LOG_LEVEL
    log_file = log_file if log_file is not None else config.LOG_FILE
    serialize = config.LOG_SERIALIZE if serialize is None else serialize

    logger.remove()
    logger.configure(extra={"component": "app"})
    logger.add(sys.stderr, format=LOG_FORMAT, level=level, serialize=serialize)
    if log_file:
        logger.add(log_file, format=LOG_FORMAT, level=level, serialize=serialize,
                   rotation="10 MB", encoding="utf-8")
    _configured = True


class StructuredLogger:
    """Logger bound to a component name and optional fixed context."""

    def __init__(self, component: str, **context: Any):
        if not _configured:
            configure_logging()
        self.component = component
        self.context = context
        self._logger = logger.bind(component=component, **context)

    def bind(self, **context: Any) -> "StructuredLogger":
        """Child logger carrying additional context on every record."""
        return StructuredLogger(self.component, **{**self.context, **context})

    def contextualize(self, **context: Any):
        """
        Context manager adding ``context`` to every record logged inside it,
        from any component.
        """
        return logger.contextualize(**context)

    def _log(self, level: str, message: str, extra: Optional[Dict[str, Any]]):
        target = self._logger.bind(**extra) if extra else self._logger
        # depth=2 attributes the record to our caller, not this wrapper
        target.opt(depth=2).log(level, message)

    def info(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("INFO", message, extra)

    def warning(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("WARNING", message, extra)

    def error(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("ERROR", message, extra)

    def debug(self, message: str, extra: Optional[Dict[str, Any]] = None):
        self._log("DEBUG", message, extra)


_loggers: Dict[str, StructuredLogger] = {}


def get_logger(component: str = "app") -> StructuredLogger:
    """Get or create the logger for a component."""
    if component not in _loggers:
        _loggers[component] = StructuredLogger(component)
    return _loggers[component]
