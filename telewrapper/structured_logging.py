"""
Structured Logging — JSON log lines for the telewrapper namespace.

Every telewrapper logger lives under ``telewrapper``, so the single handler
installed by :func:`enable_structured_logging` covers the whole library.
Each line names the subsystem that emitted it: the diagnostic channel tags
its records explicitly, every other module is identified by its logger
name (``telewrapper.routing.auth`` → ``routing.auth``).

The Dispatcher stores the ids of the event it is processing in context
variables; the formatter attaches them to every line logged while that
event is in flight.
"""

import json
import logging
import sys
from contextvars import ContextVar
from enum import Enum
from typing import Any, Dict, Optional, Union

chat_id_var: ContextVar[Optional[int]] = ContextVar("chat_id", default=None)
message_id_var: ContextVar[Optional[int]] = ContextVar("message_id", default=None)
callback_id_var: ContextVar[str] = ContextVar("callback_id", default="")

ROOT_LOGGER = "telewrapper"


class Subsystem(str, Enum):
    DIAGNOSTICS = "diagnostics"


def subsystem_of(record: logging.LogRecord) -> str:
    """Explicit subsystem tag, else the logger name below ``telewrapper.``."""
    tagged = getattr(record, "subsystem", None)
    if tagged:
        return tagged
    prefix = ROOT_LOGGER + "."
    if record.name.startswith(prefix):
        return record.name[len(prefix):]
    return "general"


class StructuredFormatter(logging.Formatter):
    """One JSON object per log line, with the current event ids."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "subsystem": subsystem_of(record),
            "message": record.getMessage(),
        }

        event = {
            "chat_id": chat_id_var.get(),
            "message_id": message_id_var.get(),
            "callback_id": callback_id_var.get() or None,
        }
        entry.update({k: v for k, v in event.items() if v is not None})

        data = getattr(record, "extra_data", None)
        if data:
            entry["data"] = data
        if record.exc_info and record.exc_info[0]:
            entry["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
            }
        return json.dumps(entry, default=str)


class SubsystemLogger:
    """Logger that tags records with a subsystem and optional structured data."""

    def __init__(self, subsystem: Subsystem):
        self.subsystem = subsystem
        self.logger = logging.getLogger(f"{ROOT_LOGGER}.{subsystem.value}")

    def log(self, level: int, msg: str, data: Any = None, **kwargs):
        extra = {"subsystem": self.subsystem.value}
        if data:
            extra["extra_data"] = data
        self.logger.log(level, msg, extra=extra, **kwargs)

    def error(self, msg: str, data: Any = None, **kwargs):
        self.log(logging.ERROR, msg, data, **kwargs)


_loggers: Dict[Subsystem, SubsystemLogger] = {}
_structured_enabled = False


def get_subsystem_logger(subsystem: Subsystem) -> SubsystemLogger:
    if subsystem not in _loggers:
        _loggers[subsystem] = SubsystemLogger(subsystem)
    return _loggers[subsystem]


def enable_structured_logging(level: Union[int, str] = logging.INFO):
    """Send every telewrapper log line to stdout as JSON. Idempotent."""
    global _structured_enabled
    if _structured_enabled:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger(ROOT_LOGGER)
    root.addHandler(handler)
    root.setLevel(level)
    _structured_enabled = True


def set_event_context(
    chat_id: Optional[int] = None,
    message_id: Optional[int] = None,
    callback_id: str = "",
):
    """Set context variables for the event being processed."""
    chat_id_var.set(chat_id)
    message_id_var.set(message_id)
    callback_id_var.set(callback_id)
