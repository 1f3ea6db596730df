"""
Logging for the vits_voice package.

Modules get their logger from ``get_logger`` and log ``event key=value``
messages. The package installs only a NullHandler: nothing is printed or
written until an application calls ``configure_logging`` (the CLI does) or
opts into per-module log files with ``VITS_VOICE_LOG_DIR``.
"""

from __future__ import annotations

import contextvars
import json
import logging
import logging.config
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Mapping, NamedTuple, Optional, Union

import numpy as np

PACKAGE_LOGGER = "vits_voice"
LOG_DIR_ENV = "VITS_VOICE_LOG_DIR"
LOG_LEVEL_ENV = "VITS_VOICE_LOG_LEVEL"

DEFAULT_LOG_FORMAT = (
    "%(asctime)s %(levelname)s %(name)s %(filename)s:%(lineno)d "
    "voice=%(voice)s request_id=%(request_id)s %(message)s"
)

logging.getLogger(PACKAGE_LOGGER).addHandler(logging.NullHandler())


class LogContext(NamedTuple):
    voice: str = "-"
    request_id: str = "-"


_context: contextvars.ContextVar[LogContext] = contextvars.ContextVar(
    "vits_voice_log_context", default=LogContext()
)


def set_log_context(*, voice: Optional[str] = None, request_id: Optional[str] = None) -> None:
    """Tag log records emitted from the current context with a voice and/or request id."""
    current = _context.get()
    _context.set(
        LogContext(
            voice=current.voice if voice is None else voice,
            request_id=current.request_id if request_id is None else request_id,
        )
    )


def clear_log_context() -> None:
    _context.set(LogContext())


class LoggingContextFilter(logging.Filter):
    """Copy the current voice and request id onto each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        context = _context.get()
        record.voice = context.voice
        record.request_id = context.request_id
        return True


_RECORD_ATTRS = frozenset(logging.LogRecord("", 0, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields are kept as top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
                timespec="milliseconds"
            ),
            "level": record.levelname,
            "logger": record.name,
            "location": f"{record.filename}:{record.lineno}",
            "message": record.getMessage(),
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RECORD_ATTRS
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def _json_requested() -> bool:
    if os.getenv("LOG_FORMAT", "").lower() == "json":
        return True
    return os.getenv("LOG_JSON", "").lower() in {"1", "true", "yes"}


def build_formatter(json_logs: Optional[bool] = None) -> logging.Formatter:
    """JSON when asked for (argument, then LOG_FORMAT/LOG_JSON), else the text format."""
    if json_logs is None:
        json_logs = _json_requested()
    return JsonFormatter() if json_logs else logging.Formatter(DEFAULT_LOG_FORMAT)


def _prepare_handler(handler: logging.Handler, formatter: logging.Formatter) -> logging.Handler:
    handler.setFormatter(formatter)
    if not any(isinstance(f, LoggingContextFilter) for f in handler.filters):
        handler.addFilter(LoggingContextFilter())
    return handler


def configure_logging(
    *,
    level: Union[int, str, None] = None,
    log_dir: Union[str, Path, None] = None,
    json_logs: Optional[bool] = None,
) -> None:
    """
    Set up application logging.

    A ``LOG_CONFIG`` dictConfig JSON file wins when present; otherwise records
    go to stderr. ``log_dir`` adds a ``vits_voice.log`` file for the package
    loggers. ``VITS_VOICE_LOG_LEVEL`` overrides ``level``.
    """
    formatter = build_formatter(json_logs)
    level = os.getenv(LOG_LEVEL_ENV) or level
    if isinstance(level, str):
        level = level.upper()
    config_path = os.getenv("LOG_CONFIG")
    if config_path and Path(config_path).exists():
        config = json.loads(Path(config_path).read_text(encoding="utf-8"))
        logging.config.dictConfig(config)
    else:
        logging.basicConfig(level=level or logging.INFO)
    if level:
        logging.getLogger().setLevel(level)

    if log_dir is not None:
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        target = str((path / f"{PACKAGE_LOGGER}.log").resolve())
        if not any(getattr(h, "baseFilename", None) == target for h in package_logger.handlers):
            package_logger.addHandler(
                _prepare_handler(logging.FileHandler(target, encoding="utf-8"), formatter)
            )

    for handler in logging.getLogger().handlers:
        _prepare_handler(handler, formatter)


def get_logger(module_name: str) -> logging.Logger:
    """
    Return the module logger.

    With ``VITS_VOICE_LOG_DIR`` set, each module also writes DEBUG records to
    ``<dir>/<module_name>.log``.
    """
    logger = logging.getLogger(module_name)
    log_dir = os.getenv(LOG_DIR_ENV)
    if not log_dir or getattr(logger, "_vits_voice_file_handler", False):
        return logger
    path = Path(log_dir)
    path.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path / f"{module_name.replace('.', '_')}.log", encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    logger.addHandler(_prepare_handler(handler, build_formatter()))
    logger._vits_voice_file_handler = True
    return logger


def summarize_payload(value: Any, *, max_items: int = 20, max_str: int = 200, depth: int = 3) -> Any:
    """
    Shrink a payload for debug logging.

    Arrays become ``{"__ndarray__": shape, "dtype": ...}``; long strings,
    sequences and mappings are truncated; nesting stops at ``depth``.
    """
    if isinstance(value, np.ndarray):
        return {"__ndarray__": list(value.shape), "dtype": str(value.dtype)}
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, str):
        return value if len(value) <= max_str else value[:max_str] + "...(truncated)"
    if isinstance(value, bytes):
        return {"__bytes__": len(value)}
    if isinstance(value, Path):
        return str(value)
    if depth <= 0 and isinstance(value, (Mapping, list, tuple)):
        return f"<{type(value).__name__}>"

    def inner(item: Any) -> Any:
        return summarize_payload(item, max_items=max_items, max_str=max_str, depth=depth - 1)

    if isinstance(value, Mapping):
        summary = {str(key): inner(item) for key, item in list(value.items())[:max_items]}
        if len(value) > max_items:
            summary["__len__"] = len(value)
        return summary
    if isinstance(value, (list, tuple)):
        if len(value) > max_items:
            return {"__len__": len(value), "sample": [inner(item) for item in value[:5]]}
        return [inner(item) for item in value]
    return value
