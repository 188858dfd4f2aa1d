"""Correlation ID middleware.

Generates or extracts a correlation ID for each request and binds it, along
with the tenant header, to the logging context.

Uses the pure ASGI middleware pattern rather than Starlette's
BaseHTTPMiddleware to avoid event loop issues with asyncpg connections.
"""

import time
import uuid

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from oncall.config import settings
from oncall.logging_config import correlation_id_ctx, get_logger, tenant_ctx

logger = get_logger(__name__)

CORRELATION_ID_HEADER = "X-Correlation-ID"

# Probe and scrape endpoints are not logged per request
QUIET_PATHS = frozenset({"/health", "/health/live", "/health/ready", "/metrics"})


class CorrelationIdMiddleware:
    """Pure ASGI middleware that adds correlation IDs to requests.

    Uses the incoming X-Correlation-ID header when present, otherwise a new
    UUID. The ID is set in the logging context and echoed in the response
    headers.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] not in ("http", "websocket"):
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        correlation_id = headers.get(b"x-correlation-id", b"").decode() or str(
            uuid.uuid4()
        )
        tenant = headers.get(settings.tenant_header.lower().encode(), b"").decode()

        correlation_token = correlation_id_ctx.set(correlation_id)
        tenant_token = tenant_ctx.set(tenant or None)

        start_time = time.perf_counter()
        status_code: int | None = None
        method = scope.get("method", "")
        path = scope.get("path", "")
        quiet = path in QUIET_PATHS

        async def send_wrapper(message: Message) -> None:
            nonlocal status_code

            if message["type"] == "http.response.start":
                status_code = message.get("status")
                response_headers = list(message.get("headers", []))
                response_headers.append(
                    (CORRELATION_ID_HEADER.lower().encode(), correlation_id.encode())
                )
                message = {**message, "headers": response_headers}

            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)

            if not quiet:
                logger.info(
                    "Request completed",
                    method=method,
                    path=path,
                    status_code=status_code,
                    duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
                )
        except Exception:
            logger.exception(
                "Request failed",
                method=method,
                path=path,
                duration_ms=round((time.perf_counter() - start_time) * 1000, 2),
            )
            raise
        finally:
            tenant_ctx.reset(tenant_token)
            correlation_id_ctx.reset(correlation_token)
