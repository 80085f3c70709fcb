"""Structured logging for the proxy.

Every record leaves the process as one JSON line (or a plain line when
``LOG_FORMAT=plain`` or ``LOG_LEVEL=trace``). Before formatting, extras
pass through a redactor that:

- masks credential-bearing fields, matched by exact name (``cookie``,
  ``authorization``) or by fragment (``x-auth-token``, ``client_secret``),
  including inside nested mappings such as logged request headers
- cuts oversized strings, since upstream bodies are logged at TRACE

The request id bound by the HTTP middleware is attached to every record
emitted while that request is being handled.
"""

from __future__ import annotations

import json
import logging
import sys
from contextvars import ContextVar, Token
from datetime import datetime, timezone
from logging import LogRecord
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterable, Mapping

from feed_proxy.core.config import LogSettings, settings

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

REDACTED = "[REDACTED]"
TRUNCATED_SUFFIX = "...[truncated]"
MAX_FIELD_CHARS = 2000

SENSITIVE_KEYS_DEFAULT: frozenset[str] = frozenset(
    {
        "api_key",
        "x-api-key",
        "authorization",
        "proxy-authorization",
        "cookie",
        "set-cookie",
    }
)
# Any field whose lowercased name contains one of these is masked too
SENSITIVE_FRAGMENTS_DEFAULT: tuple[str, ...] = ("token", "secret", "password")

# Attributes every LogRecord carries; anything else was passed via ``extra``
_RECORD_ATTRS = frozenset(vars(LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


def set_request_id(request_id: str | None) -> Token:
    """Bind ``request_id`` to the current context.

    Args:
        request_id: Correlation identifier for subsequent logs.

    Returns:
        Token: Pass to ``clear_request_id`` to restore the previous binding.
    """

    return _request_id_var.set(request_id)


def get_request_id() -> str | None:
    """Return the request id bound to the current context, if any."""

    return _request_id_var.get()


def clear_request_id(token: Token | None = None) -> None:
    """Undo ``set_request_id``; without a token the binding is just emptied."""

    if token is not None:
        _request_id_var.reset(token)
    else:
        _request_id_var.set(None)


class Redactor:
    """Masks credentials and truncates long strings in log extras."""

    def __init__(
        self,
        sensitive_keys: Iterable[str] | None = None,
        sensitive_fragments: Iterable[str] | None = None,
        max_chars: int = MAX_FIELD_CHARS,
    ) -> None:
        self.sensitive_keys = frozenset(
            key.lower() for key in (sensitive_keys or SENSITIVE_KEYS_DEFAULT)
        )
        self.sensitive_fragments = tuple(
            sensitive_fragments if sensitive_fragments is not None else SENSITIVE_FRAGMENTS_DEFAULT
        )
        self.max_chars = max_chars

    def is_sensitive(self, key: Any) -> bool:
        """True when ``key`` names a field that must be masked."""

        name = str(key).lower()
        return name in self.sensitive_keys or any(
            fragment in name for fragment in self.sensitive_fragments
        )

    def clean(self, value: Any) -> Any:
        """Return ``value`` with nested secrets masked and long strings cut."""

        if isinstance(value, Mapping):
            return {
                k: REDACTED if self.is_sensitive(k) else self.clean(v)
                for k, v in value.items()
            }
        if isinstance(value, (list, tuple)):
            return type(value)(self.clean(v) for v in value)
        if isinstance(value, str) and len(value) > self.max_chars:
            return value[: self.max_chars] + TRUNCATED_SUFFIX
        return value

    def extras(self, record: LogRecord) -> dict[str, Any]:
        """Cleaned copy of the user-supplied extras on ``record``."""

        return {
            key: REDACTED if self.is_sensitive(key) else self.clean(value)
            for key, value in vars(record).items()
            if key not in _RECORD_ATTRS and not key.startswith("_")
        }


class RequestIdFilter(logging.Filter):
    """Copy the context-bound request id onto records that lack one."""

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        if getattr(record, "request_id", None) is None:
            request_id = get_request_id()
            if request_id:
                record.request_id = request_id
        return True


class SensitiveDataFilter(logging.Filter):
    """Rewrite record extras in place so every handler sees redacted values."""

    def __init__(self, redactor: Redactor | None = None) -> None:
        super().__init__()
        self.redactor = redactor or Redactor()

    def filter(self, record: LogRecord) -> bool:  # noqa: D401
        for key, value in self.redactor.extras(record).items():
            setattr(record, key, value)
        return True


class JsonFormatter(logging.Formatter):
    """Render a record and its (redacted) extras as one JSON object."""

    def __init__(self, *, redactor: Redactor | None = None, ensure_ascii: bool = True) -> None:
        super().__init__()
        self.redactor = redactor or Redactor()
        self.ensure_ascii = ensure_ascii

    def format(self, record: LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        request_id = getattr(record, "request_id", None) or get_request_id()
        if request_id:
            payload["request_id"] = request_id

        payload.update(self.redactor.extras(record))

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str, ensure_ascii=self.ensure_ascii)


def resolve_level(name: str) -> int:
    """Translate a configured level name, ``trace`` included, to a number.

    Unknown names fall back to INFO.
    """

    normalized = name.strip().upper()
    if normalized == "TRACE":
        return TRACE
    level = logging.getLevelName(normalized)
    return level if isinstance(level, int) else logging.INFO


def _build_handler(log_settings: LogSettings) -> logging.Handler:
    """Stdout handler, or a (rotating) file handler when ``output=file``."""

    if log_settings.output.lower() != "file":
        return logging.StreamHandler(sys.stdout)

    file_path = Path(log_settings.file_path or "logs/feed-proxy.log")
    file_path.parent.mkdir(parents=True, exist_ok=True)
    if not log_settings.max_bytes:
        return logging.FileHandler(file_path, encoding="utf-8")
    return RotatingFileHandler(
        file_path,
        maxBytes=log_settings.max_bytes,
        backupCount=log_settings.backup_count,
        encoding="utf-8",
    )


def configure_logging(log_settings: LogSettings | None = None) -> None:
    """Install a single redacting handler on the root logger.

    TRACE switches to the plain formatter, which is easier to read while
    inspecting upstream payloads locally.

    Args:
        log_settings: Settings to apply; the global ones when omitted.
    """

    cfg = log_settings or settings.log
    level = resolve_level(cfg.level)
    redactor = Redactor()

    handler = _build_handler(cfg)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter(redactor))
    if cfg.format.lower() == "plain" or level == TRACE:
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(JsonFormatter(redactor=redactor))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(level)

    # uvicorn installs its own handlers; keep its records off the root handler
    for name in ("uvicorn", "uvicorn.access"):
        logging.getLogger(name).propagate = False

    # httpx logs every request at INFO; upstream calls are logged by the dispatcher
    for name in ("httpx", "httpcore"):
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
