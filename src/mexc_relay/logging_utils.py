from __future__ import annotations

import json
import logging
import re
import sys
from typing import Any

# Structured fields the relay passes through `extra=`.
_EXTRA_KEYS = (
    "symbol",
    "side",
    "order_type",
    "qty",
    "order_id",
    "kind",
    "asset",
    "free",
    "precision",
    "threshold",
    "status_code",
    "path",
    "query",
    "error",
)

_SIGNATURE = re.compile(r"(signature=)[0-9A-Fa-f]+")


def redact(value: Any) -> Any:
    """Mask request signatures in signed query strings and URLs."""
    if isinstance(value, str):
        return _SIGNATURE.sub(r"\1***", value)
    return value


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": redact(record.getMessage()),
        }
        for key in _EXTRA_KEYS:
            if hasattr(record, key):
                payload[key] = redact(getattr(record, key))
        if record.exc_info:
            # Transport errors can embed the signed request URL.
            payload["exc"] = redact(self.formatException(record.exc_info))
        return json.dumps(payload, ensure_ascii=False, default=str)


def configure_logging(level: str) -> None:
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(level.upper())

    # httpx logs every request URL, signature included; keep it above INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.addHandler(handler)
