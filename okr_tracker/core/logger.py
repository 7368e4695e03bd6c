"""Logging setup: JSON lines in production, readable lines in development."""

import json
import logging
import secrets
import string
import time
from datetime import datetime, timezone

AUDIT = 45
logging.addLevelName(AUDIT, "AUDIT")

REDACTED = "[REDACTED]"
SENSITIVE_KEYS = (
    "password",
    "token",
    "secret",
    "authorization",
    "cookie",
    "api_key",
    "apikey",
    "service_role_key",
)

# Attributes every LogRecord carries; anything else came in through `extra`.
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}

_BASE36 = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_request_id() -> str:
    """Short sortable id for correlating the log lines of one request."""
    random_part = "".join(secrets.choice(_BASE36) for _ in range(7))
    return f"req_{_to_base36(int(time.time() * 1000))}_{random_part}"


def is_sensitive(key: str) -> bool:
    lowered = key.lower()
    return any(marker in lowered for marker in SENSITIVE_KEYS)


def redact(value):
    """Recursively mask values stored under sensitive keys."""
    if isinstance(value, dict):
        return {
            k: REDACTED if is_sensitive(str(k)) else redact(v)
            for k, v in value.items()
        }
    if isinstance(value, (list, tuple)):
        return [redact(v) for v in value]
    return value


def extra_fields(record: logging.LogRecord) -> dict:
    return {
        key: value
        for key, value in vars(record).items()
        if key not in _RESERVED_ATTRS and not key.startswith("_")
    }


class RedactingFilter(logging.Filter):
    """Masks sensitive values passed through `extra=`."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in extra_fields(record).items():
            if is_sensitive(key):
                setattr(record, key, REDACTED)
            elif isinstance(value, (dict, list, tuple)):
                setattr(record, key, redact(value))
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(extra_fields(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str, ensure_ascii=False)


class DevFormatter(logging.Formatter):
    def __init__(self):
        super().__init__("%(asctime)s %(levelname)-7s %(name)s: %(message)s", "%H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = extra_fields(record)
        if context:
            line += " " + json.dumps(context, default=str, ensure_ascii=False)
        return line


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure the root logger once at application start."""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter() if json_output else DevFormatter())
    handler.addFilter(RedactingFilter())

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level.upper())


def audit(logger: logging.Logger, event: str, **context) -> None:
    """Emit an administrative event at AUDIT level."""
    logger.log(AUDIT, event, extra=context)
