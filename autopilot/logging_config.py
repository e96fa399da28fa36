"""
Logging setup for the autopilot scripts.

Two output formats, chosen with LOG_FORMAT:
- text (default): `time - logger - LEVEL - [cycle][league] message`
- json: one object per line, for log shipping

Correlation fields (cycle_id, league) live in context variables, so
concurrent league tasks under one event loop each tag their own records.

Usage:
    setup_logging()
    with log_context(cycle_id=ctx.id):
        ...
        with log_context(league="123456"):
            logger.info("Snapshot fetched")
"""
import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterator

CONTEXT_FIELDS = ("cycle_id", "league")

_context: dict[str, ContextVar[str | None]] = {
    name: ContextVar(name, default=None) for name in CONTEXT_FIELDS
}

# Attributes every LogRecord carries; anything else came in through `extra`
_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


@contextmanager
def log_context(**fields: str | None) -> Iterator[None]:
    """Tag every record emitted inside the block with the given fields."""
    unknown = set(fields) - set(_context)
    if unknown:
        raise ValueError(f"Unknown log context fields: {sorted(unknown)}")

    tokens = [(_context[name], _context[name].set(value)) for name, value in fields.items()]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


def current_context() -> dict[str, str]:
    """Correlation fields currently set, without the empty ones."""
    values = {name: var.get() for name, var in _context.items()}
    return {name: value for name, value in values.items() if value}


def _record_context(record: logging.LogRecord) -> dict[str, str]:
    # An explicit extra={"league": ...} wins over the ambient context
    fields = current_context()
    for name in CONTEXT_FIELDS:
        value = getattr(record, name, None)
        if value:
            fields[name] = str(value)
    return fields


class JsonFormatter(logging.Formatter):

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            **_record_context(record),
        }

        for key, value in vars(record).items():
            if key in _RECORD_ATTRS or key in entry or key.startswith("_"):
                continue
            try:
                json.dumps(value)
            except (TypeError, ValueError):
                value = repr(value)
            entry[key] = value

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):

    def __init__(self):
        super().__init__(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    def formatMessage(self, record: logging.LogRecord) -> str:
        fields = _record_context(record)
        if fields:
            tags = "".join(f"[{fields[name]}]" for name in CONTEXT_FIELDS if name in fields)
            record.message = f"{tags} {record.message}"
        return super().formatMessage(record)


def _resolve_level(log_level: int | str | None) -> int:
    if isinstance(log_level, int):
        return log_level
    if log_level is None:
        if os.getenv("DEBUG", "false").lower() == "true":
            return logging.DEBUG
        log_level = os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, str(log_level).upper(), logging.INFO)


def setup_logging(
    log_level: int | str | None = None,
    log_dir: str | Path | None = "logs",
) -> logging.Logger:
    """
    Configure the root logger with a stdout handler and, unless `log_dir`
    is None, a daily file under `log_dir`.

    Environment Variables:
        LOG_FORMAT: "json" or "text" (default: text)
        LOG_LEVEL: level name (default: INFO)
        DEBUG: "true" forces DEBUG
    """
    level = _resolve_level(log_level)
    use_json = os.getenv("LOG_FORMAT", "text").lower() == "json"
    formatter: logging.Formatter = JsonFormatter() if use_json else TextFormatter()

    root = logging.getLogger()
    root.setLevel(level)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = None
    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        log_file = Path(log_dir) / f"autopilot_{datetime.now(timezone.utc):%Y%m%d}.log"
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    root.info(
        "Logging initialized",
        extra={"format": "json" if use_json else "text", "log_file": str(log_file) if log_file else None},
    )
    return root


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
