"""Structured logging setup with JSON-lines or text output and correlation context."""

from __future__ import annotations

import contextvars
import json
import logging
import math
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import Final

JSONScalar = str | int | float | bool | None
JSONValue = JSONScalar | list["JSONValue"] | dict[str, "JSONValue"]

_DEFAULT_LOG_FILENAME: Final[str] = "instruction_audit.jsonl"
_DEFAULT_LOGGER_NAME: Final[str] = "instruction_audit"
_LOG_FORMATS: Final[tuple[str, ...]] = ("json", "text")

_CORRELATION_KEYS: Final[tuple[str, ...]] = ("run_id", "source", "correlation_id")

_STANDARD_LOG_RECORD_FIELDS: Final[frozenset[str]] = frozenset(
    {
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "message",
        "module",
        "msecs",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "thread",
        "threadName",
        "taskName",
    }
)

_CorrelationState = tuple[tuple[str, str], ...]
_CORRELATION_CONTEXT: contextvars.ContextVar[_CorrelationState] = contextvars.ContextVar(
    "instruction_audit_correlation", default=()
)

_ACTIVE_HANDLE_LOCK = threading.Lock()
_ACTIVE_HANDLE: StructuredLoggingHandle | None = None


@dataclass(frozen=True, slots=True)
class LoggingConfig:
    """Configuration for one run's logging sinks.

    The console sink writes to stderr so command output on stdout stays
    machine-readable; the optional file sink lives at
    ``<base_log_dir>/<run_id>/instruction_audit.jsonl`` and always uses JSON.
    """

    run_id: str
    level: int | str = "INFO"
    console_level: int | str = "WARNING"
    log_format: str = "text"
    base_log_dir: Path | str = Path("logs")
    log_to_file: bool = False
    log_filename: str = _DEFAULT_LOG_FILENAME
    logger_name: str = _DEFAULT_LOGGER_NAME


class _JsonLineFormatter(logging.Formatter):
    """Formatter that emits canonical JSON objects per log line."""

    def __init__(self, *, base_context: Mapping[str, str]) -> None:
        super().__init__()
        self._base_context = dict(base_context)

    def format(self, record: logging.LogRecord) -> str:
        event: dict[str, JSONValue] = {
            "timestamp": _iso8601z_from_epoch(record.created),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in sorted(_merge_correlation_context(record, self._base_context).items()):
            event[key] = value

        extras = _extract_extra_fields(record)
        if extras:
            event["fields"] = extras
        if record.exc_info is not None:
            event["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            event["stack"] = str(record.stack_info)

        return json.dumps(event, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


class _TextFormatter(logging.Formatter):
    """Single-line human format: ``LEVEL logger: message [key=value ...]``."""

    def __init__(self, *, base_context: Mapping[str, str]) -> None:
        super().__init__("%(levelname)s %(name)s: %(message)s")
        self._base_context = dict(base_context)

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _merge_correlation_context(record, self._base_context)
        context.pop("run_id", None)
        pairs = [f"{key}={value}" for key, value in sorted(context.items())]
        pairs.extend(
            f"{key}={_render_text_value(value)}"
            for key, value in sorted(_extract_extra_fields(record).items())
        )
        if not pairs:
            return line
        first, newline, rest = line.partition("\n")
        return f"{first} [{' '.join(pairs)}]{newline}{rest}"


class StructuredLoggingHandle:
    """Runtime handle for an active logging setup."""

    def __init__(
        self,
        *,
        logger: logging.Logger,
        run_id: str,
        log_path: Path | None,
        handlers: tuple[logging.Handler, ...],
        restore_state: tuple[int, bool] = (logging.NOTSET, True),
    ) -> None:
        self.logger = logger
        self.run_id = run_id
        self.log_path = log_path
        self._handlers = handlers
        self._restore_state = restore_state
        self._shutdown_lock = threading.Lock()
        self._is_shutdown = False

    @property
    def is_shutdown(self) -> bool:
        return self._is_shutdown

    def flush(self) -> None:
        for handler in self._handlers:
            _flush_if_open(handler)

    def shutdown(self) -> None:
        with self._shutdown_lock:
            if self._is_shutdown:
                return
            for handler in self._handlers:
                _flush_if_open(handler)
                self.logger.removeHandler(handler)
                handler.close()
            level, propagate = self._restore_state
            self.logger.setLevel(level)
            self.logger.propagate = propagate
            self._is_shutdown = True


def _flush_if_open(handler: logging.Handler) -> None:
    # Console streams can be closed by their owner before shutdown.
    stream = getattr(handler, "stream", None)
    if stream is not None and getattr(stream, "closed", False):
        return
    handler.flush()

def setup_logging(
    observability_config: Mapping[str, object] | None = None,
    *,
    run_id: str,
    log_dir: Path | str | None = None,
    verbose: bool = False,
) -> StructuredLoggingHandle:
    """Configure logging from an ``[observability]`` config section.

    The console sink shows WARNING and above unless ``verbose`` is set, which
    lowers both sinks to DEBUG.
    """

    cfg = dict(observability_config or {})
    raw_level = cfg.get("log_level", "INFO")
    level: int | str = raw_level if isinstance(raw_level, (int, str)) else "INFO"
    raw_format = cfg.get("log_format", "text")
    log_format = raw_format if isinstance(raw_format, str) else "text"
    raw_base_log_dir: object = log_dir if log_dir is not None else cfg.get("log_dir", "logs")
    base_log_dir: Path | str = (
        raw_base_log_dir if isinstance(raw_base_log_dir, (Path, str)) else "logs"
    )
    parsed_level = _parse_log_level(level)
    if verbose:
        parsed_level = min(parsed_level, logging.DEBUG)
        console_level = parsed_level
    else:
        console_level = max(parsed_level, logging.WARNING)

    return setup_structured_logging(
        LoggingConfig(
            run_id=run_id,
            level=parsed_level,
            console_level=console_level,
            log_format=log_format,
            base_log_dir=base_log_dir,
            log_to_file=bool(cfg.get("log_to_file", False)),
        )
    )


def setup_structured_logging(config: LoggingConfig) -> StructuredLoggingHandle:
    """Configure sinks for a single run, replacing any previous setup."""

    shutdown_logging()

    run_id = _validate_text(config.run_id, "run_id")
    logger_name = _validate_text(config.logger_name, "logger_name")
    log_filename = _validate_log_filename(config.log_filename)
    level = _parse_log_level(config.level)
    console_level = _parse_log_level(config.console_level)
    if config.log_format not in _LOG_FORMATS:
        expected = ", ".join(_LOG_FORMATS)
        raise ValueError(
            f"unsupported log format {config.log_format!r}; expected one of: {expected}"
        )

    base_context = {"run_id": run_id}
    console_formatter: logging.Formatter = (
        _JsonLineFormatter(base_context=base_context)
        if config.log_format == "json"
        else _TextFormatter(base_context=base_context)
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(console_level)
    console_handler.setFormatter(console_formatter)
    handlers: list[logging.Handler] = [console_handler]

    log_path: Path | None = None
    if config.log_to_file:
        run_log_dir = Path(config.base_log_dir) / run_id
        run_log_dir.mkdir(parents=True, exist_ok=True)
        log_path = run_log_dir / log_filename
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(_JsonLineFormatter(base_context=base_context))
        handlers.append(file_handler)

    logger = logging.getLogger(logger_name)
    restore_state = (logger.level, logger.propagate)
    logger.setLevel(min(level, console_level))
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()
    for handler in handlers:
        logger.addHandler(handler)

    handle = StructuredLoggingHandle(
        logger=logger,
        run_id=run_id,
        log_path=log_path,
        handlers=tuple(handlers),
        restore_state=restore_state,
    )
    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        _ACTIVE_HANDLE = handle
    return handle


def shutdown_logging(handle: StructuredLoggingHandle | None = None) -> None:
    """Close all sinks of ``handle`` (default: the active handle)."""

    with _ACTIVE_HANDLE_LOCK:
        global _ACTIVE_HANDLE
        resolved = handle if handle is not None else _ACTIVE_HANDLE
        if resolved is None:
            return
        if _ACTIVE_HANDLE is resolved:
            _ACTIVE_HANDLE = None
    resolved.shutdown()


def get_active_logging_handle() -> StructuredLoggingHandle | None:
    with _ACTIVE_HANDLE_LOCK:
        return _ACTIVE_HANDLE


def get_correlation_context() -> dict[str, str]:
    """Return the current correlation context as a plain dictionary."""
    return dict(_CORRELATION_CONTEXT.get())


def set_correlation_fields(**fields: str | None) -> contextvars.Token[_CorrelationState]:
    """Set correlation fields for the active context and return a reset token."""
    state = get_correlation_context()
    for key, value in fields.items():
        key_name = _validate_text(key, "correlation key")
        if value is None:
            state.pop(key_name, None)
            continue
        state[key_name] = _validate_text(value, "correlation value")
    return _CORRELATION_CONTEXT.set(tuple(state.items()))


def reset_correlation_fields(token: contextvars.Token[_CorrelationState]) -> None:
    _CORRELATION_CONTEXT.reset(token)


@contextmanager
def correlation_scope(**fields: str | None) -> Iterator[None]:
    """Temporarily bind correlation fields for log records in scope."""
    token = set_correlation_fields(**fields)
    try:
        yield
    finally:
        reset_correlation_fields(token)


def _validate_text(value: object, label: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{label} must be a string, got {type(value).__name__}")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{label} must not be empty")
    return normalized


def _validate_log_filename(log_filename: str) -> str:
    normalized = _validate_text(log_filename, "log_filename")
    if Path(normalized).name != normalized:
        raise ValueError("log_filename must not include path separators")
    return normalized


def _parse_log_level(value: int | str) -> int:
    if isinstance(value, int):
        return value
    if not isinstance(value, str):
        raise ValueError(f"level must be int or str, got {type(value).__name__}")
    parsed = logging.getLevelName(value.strip().upper())
    if isinstance(parsed, int):
        return parsed
    raise ValueError(f"unsupported logging level {value!r}")


def _iso8601z_from_epoch(epoch_seconds: float) -> str:
    timestamp = datetime.fromtimestamp(epoch_seconds, tz=UTC)
    return timestamp.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _merge_correlation_context(
    record: logging.LogRecord,
    base_context: Mapping[str, str],
) -> dict[str, str]:
    merged = dict(base_context)
    merged.update(get_correlation_context())
    for key in _CORRELATION_KEYS:
        value = getattr(record, key, None)
        if isinstance(value, str) and value.strip():
            merged[key] = value.strip()
    return merged


def _extract_extra_fields(record: logging.LogRecord) -> dict[str, JSONValue]:
    fields: dict[str, JSONValue] = {}
    for key, value in record.__dict__.items():
        if key in _STANDARD_LOG_RECORD_FIELDS or key in _CORRELATION_KEYS:
            continue
        if key.startswith("_"):
            continue
        fields[key] = _normalize_json_value(value)
    return fields


def _render_text_value(value: JSONValue) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _normalize_json_value(value: object) -> JSONValue:
    if value is None or isinstance(value, (bool, int, str)):
        return value
    if isinstance(value, float):
        return value if math.isfinite(value) else str(value)
    if isinstance(value, Enum):
        return _normalize_json_value(value.value)
    if isinstance(value, datetime):
        normalized = value.replace(tzinfo=UTC) if value.tzinfo is None else value.astimezone(UTC)
        return normalized.isoformat(timespec="milliseconds").replace("+00:00", "Z")
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _normalize_json_value(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_json_value(item) for item in value]
    if isinstance(value, (set, frozenset)):
        return sorted((_normalize_json_value(item) for item in value), key=_render_text_value)
    return repr(value)


__all__ = [
    "JSONScalar",
    "JSONValue",
    "LoggingConfig",
    "StructuredLoggingHandle",
    "correlation_scope",
    "get_active_logging_handle",
    "get_correlation_context",
    "reset_correlation_fields",
    "set_correlation_fields",
    "setup_logging",
    "setup_structured_logging",
    "shutdown_logging",
]
