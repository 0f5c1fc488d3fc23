"""
Logging for the bot process.

Every module logs through `get_logger(__name__)` with structured `extra={...}`
fields. Records are handed to a bounded in-memory queue on the event loop and
written out by a listener thread, so a slow terminal or disk never stalls a
sweep.

Outputs
-------
- stdout: JSON when `LOG_JSON` is set (or in production), colored text on a
  development TTY, plain text otherwise.
- `logs/rewardwatch_daily.json.log`: JSON, rotated at UTC midnight, one
  backup kept.

Context
-------
`LogContext` binds `user_id`, `command`, `component`, `operation` and a short
`correlation_id` for the current task. Concurrent per-user sweeps each run in
their own task, so each sees only its own context.

When the queue is full the record is dropped and a line goes to stderr. The
number of dropped records is reported by `shutdown_logging()`.
"""

from __future__ import annotations

import json
import logging
import queue
import sys
import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from datetime import datetime, timezone
from logging import Logger
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional

from rewardwatch.core.config.config import Config

_log_context: ContextVar[Dict[str, Any]] = ContextVar("log_context", default={})

NOISY_LOGGERS = (
    "discord",
    "discord.http",
    "discord.gateway",
    "aiohttp.access",
    "aiosqlite",
    "asyncio",
)


@dataclass(frozen=True, slots=True)
class LoggerConfig:
    """Logging knobs, resolved from `Config` on each access."""

    CONSOLE_FORMAT: str = "%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s"
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"
    DAILY_BASENAME: str = "rewardwatch_daily.json.log"
    DAILY_BACKUP_COUNT: int = 1
    QUEUE_MAX_SIZE: int = 10_000

    @property
    def environment(self) -> str:
        return str(Config.ENVIRONMENT).lower()

    @property
    def logs_dir(self) -> Path:
        return Path(Config.LOGS_DIR).resolve()

    @property
    def log_level(self) -> int:
        level = logging.getLevelName(str(Config.LOG_LEVEL).upper())
        return level if isinstance(level, int) else logging.INFO

    @property
    def use_json(self) -> bool:
        if Config.LOG_JSON is None:
            return self.environment == "production"
        return bool(Config.LOG_JSON)

    @property
    def use_colors(self) -> bool:
        return not self.use_json and bool(Config.LOG_COLORS) and sys.stdout.isatty()


LOGGER_CONFIG = LoggerConfig()


# ============================================================================
# Filters & Formatters
# ============================================================================


class ContextFilter(logging.Filter):
    """Copy the current `LogContext` onto the record before it leaves the task."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        context = _log_context.get()
        record.user_id = context.get("user_id", "N/A")
        record.command = context.get("command", "N/A")
        record.correlation_id = context.get("correlation_id") or "N/A"
        record.component = context.get("component") or record.name.split(".", 1)[0]
        record.operation = context.get("operation") or "N/A"
        return True


class ColoredFormatter(logging.Formatter):
    LEVEL_COLORS: Dict[str, str] = {
        "DEBUG": "\033[90m",
        "INFO": "\033[94m",
        "WARNING": "\033[93m",
        "ERROR": "\033[91m",
        "CRITICAL": "\033[91m\033[1m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        color = self.LEVEL_COLORS.get(record.levelname)
        if color is None:
            return super().format(record)
        plain = record.levelname
        record.levelname = f"{color}{plain}{self.RESET}"
        try:
            return super().format(record)
        finally:
            record.levelname = plain


class JSONFormatter(logging.Formatter):
    """One JSON object per line; `extra` fields are nested under "extra"."""

    CONTEXT_ATTRS = ("user_id", "command", "correlation_id", "component", "operation")

    # attributes every LogRecord carries, plus the ones formatting adds
    RESERVED_ATTRS = frozenset(
        vars(logging.LogRecord("", 0, "", 0, "", None, None)).keys()
        | {"message", "asctime", "taskName"}
        | set(CONTEXT_ATTRS)
    )

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        for attr in self.CONTEXT_ATTRS:
            value = getattr(record, attr, None)
            if value not in (None, "N/A"):
                payload[attr] = value

        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)

        extra = {
            key: value
            for key, value in vars(record).items()
            if key not in self.RESERVED_ATTRS and not key.startswith("_")
        }
        if extra:
            payload["extra"] = extra

        return json.dumps(payload, ensure_ascii=False, default=str)


# ============================================================================
# Queue Plumbing
# ============================================================================


class WatchQueueHandler(QueueHandler):
    """Non-blocking enqueue; a full queue drops the record instead of waiting."""

    def __init__(self, log_queue: "queue.Queue[logging.LogRecord]") -> None:
        super().__init__(log_queue)
        self.dropped = 0

    def enqueue(self, record: logging.LogRecord) -> None:  # type: ignore[override]
        try:
            self.queue.put_nowait(record)
        except queue.Full:
            self.dropped += 1
            sys.stderr.write("RewardWatch logging queue full; dropping log record.\n")


_queue_handler: Optional[WatchQueueHandler] = None
_queue_listener: Optional[QueueListener] = None


def _console_formatter() -> logging.Formatter:
    if LOGGER_CONFIG.use_json:
        return JSONFormatter()
    if LOGGER_CONFIG.use_colors:
        return ColoredFormatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)
    return logging.Formatter(fmt=LOGGER_CONFIG.CONSOLE_FORMAT, datefmt=LOGGER_CONFIG.DATE_FORMAT)


def _build_handlers() -> List[logging.Handler]:
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(_console_formatter())

    LOGGER_CONFIG.logs_dir.mkdir(parents=True, exist_ok=True)
    daily = TimedRotatingFileHandler(
        filename=str(LOGGER_CONFIG.logs_dir / LOGGER_CONFIG.DAILY_BASENAME),
        when="midnight",
        backupCount=LOGGER_CONFIG.DAILY_BACKUP_COUNT,
        encoding="utf-8",
        utc=True,
        delay=True,
    )
    daily.setFormatter(JSONFormatter())

    for handler in (console, daily):
        handler.setLevel(LOGGER_CONFIG.log_level)
    return [console, daily]


# ============================================================================
# Lifecycle
# ============================================================================


def setup_logging() -> None:
    """Install the queue handler on the root logger. Safe to call repeatedly."""
    global _queue_handler, _queue_listener

    if _queue_handler is not None:
        return

    root = logging.getLogger()
    root.setLevel(LOGGER_CONFIG.log_level)
    root.handlers.clear()
    root.filters.clear()

    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(LOGGER_CONFIG.QUEUE_MAX_SIZE)
    _queue_listener = QueueListener(log_queue, *_build_handlers(), respect_handler_level=True)
    _queue_listener.start()

    _queue_handler = WatchQueueHandler(log_queue)
    _queue_handler.setLevel(LOGGER_CONFIG.log_level)
    # the listener thread cannot see the emitting task's ContextVars
    _queue_handler.addFilter(ContextFilter())
    root.addHandler(_queue_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging initialized",
        extra={
            "environment": LOGGER_CONFIG.environment,
            "log_level": logging.getLevelName(LOGGER_CONFIG.log_level),
            "json": LOGGER_CONFIG.use_json,
            "colors": LOGGER_CONFIG.use_colors,
            "logs_dir": str(LOGGER_CONFIG.logs_dir),
        },
    )


def shutdown_logging() -> None:
    """Flush the queue through the listener and detach every root handler."""
    global _queue_handler, _queue_listener

    if _queue_handler is None:
        return

    log = logging.getLogger(__name__)
    if _queue_handler.dropped:
        log.warning("Log records were dropped during this run", extra={"dropped": _queue_handler.dropped})
    log.info("Shutting down logging subsystem.")

    if _queue_listener is not None:
        try:
            _queue_listener.stop()
        except Exception:
            sys.stderr.write("RewardWatch logging listener failed to stop cleanly.\n")
        _queue_listener = None

    root = logging.getLogger()
    for handler in list(root.handlers):
        handler.close()
        root.removeHandler(handler)
    _queue_handler = None


def get_logger(name: str) -> Logger:
    return logging.getLogger(name)


class LogContext:
    """
    Bind log fields to the current task, as a sync or async context manager.

    >>> async with LogContext(user_id=42, operation="update_sweep"):
    ...     logger.info("Checking rewards")  # carries user_id=42
    """

    def __init__(
        self,
        user_id: Optional[int] = None,
        command: Optional[str] = None,
        component: Optional[str] = None,
        operation: Optional[str] = None,
        correlation_id: Optional[str] = None,
        **extra: Any,
    ) -> None:
        self.context: Dict[str, Any] = {
            "user_id": str(user_id) if user_id is not None else "N/A",
            "command": command or "N/A",
            "component": component,
            "operation": operation,
            "correlation_id": correlation_id or uuid.uuid4().hex[:8],
            **extra,
        }
        self._token: Optional[Token[Dict[str, Any]]] = None

    def __enter__(self) -> "LogContext":
        self._token = _log_context.set(self.context)
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._token is not None:
            _log_context.reset(self._token)
            self._token = None

    async def __aenter__(self) -> "LogContext":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        self.__exit__(exc_type, exc_val, exc_tb)


setup_logging()
