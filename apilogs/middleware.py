"""Inbound request logging middleware for FastAPI / Starlette.

Every logged request gets a correlation id (taken from the configured
header or generated), a ``LogRecord`` built from the request, and a
completion step that runs as a response background task once the response
has been sent.

Example usage:
    service = ApiLogService.from_settings()
    app.add_middleware(ApiLogMiddleware, service=service)

    @app.post("/orders")
    async def create_order(request: Request, correlation_id=Depends(get_correlation_id)):
        order = save_order(...)
        service.register_entity(correlation_id, "order", order.id)
"""

import logging

from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import Headers
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from .records import LogRecord, decode_body, format_headers
from .service import ApiLogService

logger = logging.getLogger("apilogs.middleware")


class ApiLogMiddleware(BaseHTTPMiddleware):
    """Logs inbound calls through an ApiLogService."""

    def __init__(self, app, service: ApiLogService | None = None):
        """Initialize the middleware.

        Args:
            app: ASGI application
            service: ApiLogService instance (built from settings if not provided)
        """
        super().__init__(app)
        self.service = service or ApiLogService.from_settings()

    async def dispatch(self, request: Request, call_next):
        """Log the request and its response.

        Args:
            request: Incoming request
            call_next: Next middleware/handler

        Returns:
            Response
        """
        if not self.service.should_log_path(request.method, request.url.path):
            return await call_next(request)

        header_name = self.service.key_source.header_name
        presented = self.service.key_source.from_headers(request.headers)
        correlation_id = self.service.open_call(presented)
        if correlation_id is None:
            return await call_next(request)

        if not presented:
            # Downstream handlers see the generated id as if the caller sent it
            request.scope["headers"] = [
                *request.scope["headers"],
                (header_name.lower().encode("latin-1"), correlation_id.encode("latin-1")),
            ]

        record = await self._start_record(request, correlation_id)
        request.state.correlation_id = correlation_id
        request.state.api_log_record = record

        try:
            response = await call_next(request)
        except Exception as e:
            record.complete_with_error(e)
            await run_in_threadpool(self.service.complete_call, correlation_id, record)
            raise

        body = b"".join([chunk async for chunk in response.body_iterator])
        route = request.scope.get("route")
        record.complete(
            response.status_code,
            headers=format_headers(response.headers.items()),
            body=decode_body(body, response.headers.get("content-type")),
            operation=getattr(route, "name", None),
        )

        replayed = Response(
            content=body,
            status_code=response.status_code,
            background=BackgroundTask(self.service.complete_call, correlation_id, record),
        )
        replayed.raw_headers = list(response.raw_headers)
        return replayed

    async def _start_record(self, request: Request, correlation_id: str) -> LogRecord:
        headers = Headers(scope=request.scope)
        query = dict(request.query_params)

        raw_body = await request.body()
        body = decode_body(raw_body, headers.get("content-type"))
        if isinstance(body, dict):
            body = {**query, **body}
        elif not raw_body:
            body = query

        return LogRecord.start(
            correlation_id,
            request.method,
            str(request.url),
            headers=format_headers(headers.items()),
            body=body,
            ip_address=request.client.host if request.client else None,
            user_agent=headers.get("user-agent"),
            api_version=headers.get("accept-version"),
        )


def get_correlation_id(request: Request) -> str | None:
    """FastAPI dependency returning the current request's correlation id."""
    return getattr(request.state, "correlation_id", None)
