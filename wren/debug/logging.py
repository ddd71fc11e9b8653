# wren/debug/logging.py
"""Logging setup shared by the packager and the runtime."""

from __future__ import annotations

import json
import logging
import os
import queue
from dataclasses import dataclass
from datetime import UTC, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

LOG_LEVEL_ENV = "WREN_LOG_LEVEL"
TEXT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_QUEUE_LISTENER: QueueListener | None = None

_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "message",
    }
)


@dataclass(frozen=True)
class LoggingConfig:
    level_name: str = "INFO"
    console_format: str = "text"
    file_path: Path | None = None
    file_format: str = "json"


class JsonFormatter(logging.Formatter):
    """One JSON object per record, keeping ``extra=`` fields."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": datetime.now(UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        extras = {
            k: v for k, v in record.__dict__.items() if k not in _STANDARD_ATTRS
        }
        if extras:
            payload["fields"] = extras
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=True, default=str)


def resolve_level_name(default: str = "INFO") -> str:
    value = os.environ.get(LOG_LEVEL_ENV, "").strip().upper()
    if value in logging.getLevelNamesMapping():
        return value
    return default


def configure_logging(config: LoggingConfig) -> None:
    """
    Configure the root logger.

    With a file path set, records go through a queue so that slow disks do
    not stall the asset threads.
    """
    global _QUEUE_LISTENER

    if _QUEUE_LISTENER is not None:
        _QUEUE_LISTENER.stop()
        _QUEUE_LISTENER = None

    level = getattr(logging, config.level_name.upper(), logging.INFO)
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(_resolve_formatter(config.console_format))
    handlers: list[logging.Handler] = [console_handler]

    if config.file_path:
        file_path = Path(config.file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(
            file_path, mode="a", encoding="utf-8", delay=True
        )
        file_handler.setFormatter(_resolve_formatter(config.file_format))
        handlers.append(file_handler)

    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level)

    if len(handlers) == 1:
        root.addHandler(handlers[0])
        return

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    root.addHandler(QueueHandler(log_queue))
    _QUEUE_LISTENER = QueueListener(
        log_queue, *handlers, respect_handler_level=True
    )
    _QUEUE_LISTENER.start()


def setup_logging() -> None:
    """Minimal console logging, unless something already configured it."""
    if logging.getLogger().handlers:
        return
    configure_logging(LoggingConfig(level_name=resolve_level_name()))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def _resolve_formatter(kind: str) -> logging.Formatter:
    if kind.strip().lower() == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)
