"""
Observability middleware for FastAPI/Starlette.

Features:
- Assign and propagate correlation IDs per request (from X-Request-ID / X-Correlation-ID or generated)
- Measure request latency and record status code
- Forward an `http_request` metric and request logs via services.observability

Headers:
- Sets X-Correlation-ID on the response

Enabled via Settings.OBS_ENABLED; mounted conditionally in app.
"""

from __future__ import annotations

import time
from typing import Callable

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from recommendation_api.core.logging import clear_correlation_id, get_logger, set_correlation_id
from recommendation_api.services.observability import send_log, send_metric

logger = get_logger("observability.middleware")


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """Correlates, times and reports each request."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        cid = set_correlation_id(request.headers.get("X-Request-ID") or request.headers.get("X-Correlation-ID"))
        route = {"method": request.method, "path": request.url.path}

        start = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        except Exception as exc:
            logger.exception("Unhandled exception in request", extra=route)
            await send_log("ERROR", "request.exception", metadata={**route, "error": str(exc)})
            raise
        finally:
            duration_ms = (time.perf_counter() - start) * 1000.0
            await send_metric(
                name="http_request",
                metrics={"duration_ms": duration_ms, "status_code": status_code, "count": 1},
                metadata=route,
            )
            logger.info("request.end", extra={**route, "status_code": status_code, "duration_ms": round(duration_ms, 2)})
            clear_correlation_id()

        response.headers["X-Correlation-ID"] = cid
        return response
