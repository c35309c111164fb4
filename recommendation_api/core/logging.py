"""
JSON logging for the recommendation service.

Every record is written to stdout as one JSON object carrying the service name,
the environment, the request's correlation id and any `extra=` fields, so strategy
decisions (mode, fallback reason, candidate counts) stay queryable.

The correlation id lives in a ContextVar. ObservabilityMiddleware sets it for each
HTTP request and the sync command leaves it unset.
"""

from __future__ import annotations

import json
import logging
import sys
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from recommendation_api.core.config import get_settings

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# Attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime"}

_CONFIGURED_FLAG = "_recommendation_api_json"


class JsonFormatter(logging.Formatter):
    """Render a record and its `extra=` fields as a single JSON line."""

    def format(self, record: logging.LogRecord) -> str:
        settings = get_settings()
        payload: Dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": settings.OBS_SERVICE_NAME,
            "environment": settings.OBS_ENVIRONMENT,
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            payload["correlation_id"] = correlation_id

        for key, value in vars(record).items():
            if key not in _RECORD_ATTRS and key not in payload:
                payload[key] = value

        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(payload, ensure_ascii=False, default=str)


def _install_handler() -> None:
    root = logging.getLogger()
    if getattr(root, _CONFIGURED_FLAG, False):
        return
    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setFormatter(JsonFormatter())
    root.handlers = [handler]
    root.setLevel(get_settings().LOG_LEVEL.upper())
    setattr(root, _CONFIGURED_FLAG, True)


# PUBLIC_INTERFACE
def get_logger(name: str = "recommendation_api") -> logging.Logger:
    """Named logger whose records go through the JSON stdout handler."""
    _install_handler()
    return logging.getLogger(name)


# PUBLIC_INTERFACE
def set_correlation_id(correlation_id: Optional[str]) -> str:
    """
    Bind a correlation id to the current context.

    Returns:
        The id that was bound; a new uuid4 when correlation_id is empty.
    """
    correlation_id = correlation_id or str(uuid.uuid4())
    _correlation_id.set(correlation_id)
    return correlation_id


# PUBLIC_INTERFACE
def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


# PUBLIC_INTERFACE
def clear_correlation_id() -> None:
    _correlation_id.set(None)
