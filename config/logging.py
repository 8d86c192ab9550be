"""Structured log output for the ledger and counting services.

Services log an event name as the message and pass the context through
``extra`` (``logger.info("inventory.batch_completed", extra={...})``).
"""

import json
import logging
import random
from datetime import datetime, timezone

# Attributes every LogRecord carries; anything else came from ``extra``
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime", "taskName"}


class JsonFormatter(logging.Formatter):
    """One JSON object per line.

    Base fields are ``time`` (ISO-8601 UTC), ``level``, ``name`` and
    ``message``; ``extra`` attributes (``event``, ``stock_item_id``,
    ``session`` ...) are merged in. Dict messages are merged as keys.
    Values that are not JSON-serializable are stringified.
    """

    def format(self, record: logging.LogRecord) -> str:  # type: ignore[override]
        payload = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "name": record.name,
        }

        if isinstance(record.msg, dict):
            payload.update(record.msg)
        else:
            payload["message"] = record.getMessage()

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            try:
                json.dumps(value)
            except TypeError:
                value = str(value)
            payload.setdefault(key, value)

        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False)


class SamplingFilter(logging.Filter):
    """Drop a fraction of routine records.

    ``rate`` is the share of records kept for the sampled ``levels``.
    Records whose ``event`` (or message) is in ``allow_events`` are always
    kept; other levels pass untouched.
    """

    def __init__(self, rate: float = 1.0, levels: list[str] | None = None, allow_events: list[str] | None = None):
        super().__init__()
        try:
            self.rate = min(1.0, max(0.0, float(rate)))
        except (TypeError, ValueError):
            self.rate = 1.0
        self.levels = set(levels or ["INFO"])
        self.allow_events = set(allow_events or [])

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if record.levelname not in self.levels:
            return True
        event = getattr(record, "event", None) or record.msg
        if event in self.allow_events:
            return True
        if self.rate >= 1.0:
            return True
        if self.rate <= 0.0:
            return False
        return random.random() < self.rate


# EOF
