"""
Observability client forwarding logs and metrics to the monitoring service.

Uses environment variables via Settings:
- OBS_ENABLED (bool): enable/disable sending
- OBS_ENDPOINT (str): base URL of the observability service (e.g., http://monitoring:8000)
- OBS_API_KEY (str): bearer token for authentication
- OBS_SERVICE_NAME, OBS_ENVIRONMENT: metadata

Endpoints used:
- POST {OBS_ENDPOINT}/logs/ingest
- POST {OBS_ENDPOINT}/metrics/ingest

Forwarding is best-effort: failures are logged locally at debug level and never
raised to the caller.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from recommendation_api.core.config import get_settings
from recommendation_api.core.logging import get_correlation_id, get_logger
from recommendation_api.schemas.recommendations import RecommendationResult

logger = get_logger("observability")

_FORWARD_TIMEOUT_SECONDS = 3.0


def _auth_headers() -> Dict[str, str]:
    settings = get_settings()
    headers: Dict[str, str] = {"Content-Type": "application/json"}
    if settings.OBS_API_KEY:
        headers["Authorization"] = f"Bearer {settings.OBS_API_KEY}"
    return headers


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _with_correlation(metadata: Dict[str, Any]) -> Dict[str, Any]:
    cid = get_correlation_id()
    if cid:
        metadata["correlation_id"] = cid
    return metadata


async def _forward(path: str, payload: Dict[str, Any]) -> None:
    settings = get_settings()
    if not settings.OBS_ENABLED or not settings.OBS_ENDPOINT:
        return
    url = settings.OBS_ENDPOINT.rstrip("/") + path
    try:
        async with httpx.AsyncClient(timeout=_FORWARD_TIMEOUT_SECONDS) as client:
            await client.post(url, headers=_auth_headers(), json=payload)
    except httpx.HTTPError as exc:
        logger.debug("Failed to forward to observability service", extra={"path": path, "error": str(exc)})


# PUBLIC_INTERFACE
async def send_log(level: str, message: str, metadata: Optional[Dict[str, Any]] = None) -> None:
    """Send a log entry to the monitoring service (best-effort)."""
    settings = get_settings()
    payload: Dict[str, Any] = {
        "source": settings.OBS_SERVICE_NAME,
        "timestamp": _now_iso(),
        "level": level.upper(),
        "message": message,
        "metadata": _with_correlation({"environment": settings.OBS_ENVIRONMENT, **(metadata or {})}),
    }
    await _forward("/logs/ingest", payload)


# PUBLIC_INTERFACE
async def send_metric(name: str, metrics: Dict[str, Any], metadata: Optional[Dict[str, Any]] = None) -> None:
    """Send a metrics payload to the monitoring service (best-effort)."""
    settings = get_settings()
    payload: Dict[str, Any] = {
        "source": settings.OBS_SERVICE_NAME,
        "timestamp": _now_iso(),
        "metrics": {"name": name, **metrics},
        "metadata": _with_correlation(dict(metadata or {})),
    }
    await _forward("/metrics/ingest", payload)


# PUBLIC_INTERFACE
async def record_recommendation(result: RecommendationResult, duration_ms: float) -> None:
    """Emit a `recommendation` metric describing which path produced a result."""
    await send_metric(
        name="recommendation",
        metrics={"duration_ms": round(duration_ms, 2), "songs": len(result.songs), "count": 1},
        metadata={
            "mode": result.mode,
            "source": result.source,
            "fallback_reason": result.metadata.fallback_reason,
        },
    )
