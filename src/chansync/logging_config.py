"""Logging configuration and custom formatters for chansync.

Logs are emitted through the standard library with structured ``extra``
fields. The console handler renders them either human-readable, with the
extras appended as ``key:value`` pairs, or as JSON lines through
python-json-logger. A context id naming the channel being synchronized is
attached to every record logged while that channel runs.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
import copy
import json
import logging
from logging.config import dictConfig
import sys
from typing import Any, Literal

APP_LOGGER_NAME = "chansync"

_original_log_record_factory = logging.getLogRecordFactory()


def custom_record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    """Create a log record that surfaces exception context.

    When the record carries an exception, the public attributes of every
    exception in its cause chain are collected into ``exc_custom_attrs``
    (first occurrence wins), and their messages into ``semantic_trace``.
    """
    record = _original_log_record_factory(*args, **kwargs)
    if not (record.exc_info and record.exc_info[1]):
        return record

    collected_attrs: dict[str, Any] = {}
    chain_messages: list[str] = []
    current_exc: BaseException | None = record.exc_info[1]
    while current_exc:
        for name, val in vars(current_exc).items():
            if not name.startswith("_") and val is not None:
                collected_attrs.setdefault(name, val)
        chain_messages.append(str(current_exc))
        current_exc = current_exc.__cause__ or current_exc.__context__

    if collected_attrs:
        record.exc_custom_attrs = collected_attrs
    record.semantic_trace = chain_messages
    return record


_context_id_var: ContextVar[str | None] = ContextVar("context_id", default=None)


def set_context_id(context_id: str | None) -> None:
    """Set the context id included in log records of the current async context."""
    _context_id_var.set(context_id)


@contextmanager
def log_context(context_id: str) -> Iterator[None]:
    """Attach a context id to every record logged inside the block."""
    token = _context_id_var.set(context_id)
    try:
        yield
    finally:
        _context_id_var.reset(token)


class ContextIdFilter(logging.Filter):
    """Inject the current context id into log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        context_id = _context_id_var.get()
        if context_id is not None:
            record.context_id = context_id
        return True


_should_include_stacktrace: bool = False

# Attributes every LogRecord has; anything else was passed through ``extra``.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", None, None))
) | {"message", "asctime", "context_id", "exc_custom_attrs", "semantic_trace"}


def _format_extra_value(value: Any) -> str:
    if isinstance(value, dict | list | tuple | set):
        if isinstance(value, set):
            value = sorted(value, key=str)  # type: ignore
        try:
            return json.dumps(
                value, sort_keys=True, separators=(", ", ":"), default=str
            )
        except (TypeError, ValueError):
            return f"[Unserializable Value: {type(value).__name__}]"
    return str(value)


class HumanReadableExtrasFormatter(logging.Formatter):
    """Human-readable formatter that appends ``extra`` fields to the message.

    Output looks like::

        2024-05-01 10:00:00 INFO [chansync.reconciler] CtxID:news item_id:v1 - Renamed file.

    Exception attributes collected by ``custom_record_factory`` are merged
    into the extras. Stack traces are printed only when enabled; otherwise
    the chain of exception messages is printed instead.
    """

    def format(self, record: logging.LogRecord) -> str:
        prefix = [
            self.formatTime(record, self.datefmt),
            record.levelname,
            f"[{record.name}]",
        ]
        ctx_id = getattr(record, "context_id", None)
        if ctx_id is not None:
            prefix.append(f"CtxID:{ctx_id}")

        extras: dict[str, Any] = {}
        exc_attrs = getattr(record, "exc_custom_attrs", None)
        if isinstance(exc_attrs, dict):
            extras.update(exc_attrs)  # type: ignore
        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                extras[key] = value

        parts = [" ".join(prefix)]
        if extras:
            parts.append(
                " ".join(f"{k}:{_format_extra_value(v)}" for k, v in extras.items())
            )
        message = record.getMessage()
        parts.append(f"- {message}" if message else "-")
        output = " ".join(parts)

        if record.exc_info:
            if _should_include_stacktrace:
                if not record.exc_text:
                    record.exc_text = self.formatException(record.exc_info)
                output += "\n" + record.exc_text
            else:
                trace: list[str] = getattr(record, "semantic_trace", None) or []
                for i, msg in enumerate(trace):
                    output += f"\nError: {msg}" if i == 0 else f"\n  Caused by: {msg}"

        if record.stack_info:
            output += "\n" + self.formatStack(record.stack_info)
        return output


LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "filters": {
        "context_id_filter": {
            "()": ContextIdFilter,
        },
    },
    "formatters": {
        "human_readable_formatter": {
            "()": HumanReadableExtrasFormatter,
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "json_formatter": {
            "()": "pythonjsonlogger.json.JsonFormatter",
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console_handler": {
            "class": "logging.StreamHandler",
            "formatter": "human_readable_formatter",
            "stream": "ext://sys.stdout",
            "filters": ["context_id_filter"],
        },
    },
    "loggers": {
        APP_LOGGER_NAME: {
            "handlers": ["console_handler"],
            "level": "INFO",
            "propagate": False,
        },
    },
    "root": {
        "handlers": ["console_handler"],
        "level": "WARNING",
    },
}


def setup_logging(
    log_format_type: Literal["human", "json"],
    app_log_level_name: str,
    include_stacktrace: bool,
) -> None:
    """Install the chansync console handler and record factory.

    Args:
        log_format_type: 'human' text or 'json' lines.
        app_log_level_name: Level for the chansync logger; unknown names fall
            back to INFO with a warning on stderr.
        include_stacktrace: Print tracebacks instead of the message chain.
    """
    global _should_include_stacktrace
    _should_include_stacktrace = include_stacktrace

    logging.setLogRecordFactory(custom_record_factory)

    config = copy.deepcopy(LOGGING_CONFIG)
    level = app_log_level_name.upper()
    if not isinstance(logging.getLevelNamesMapping().get(level), int):
        print(
            f"Unknown LOG_LEVEL '{app_log_level_name}', using INFO.",
            file=sys.stderr,
        )
        level = "INFO"
    config["loggers"][APP_LOGGER_NAME]["level"] = level

    if log_format_type.lower() == "json":
        config["handlers"]["console_handler"]["formatter"] = "json_formatter"

    dictConfig(config)
