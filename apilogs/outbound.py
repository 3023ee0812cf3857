"""Outbound call logging for httpx clients.

Wrap the client's transport so every request it sends is logged:

    client = httpx.Client(transport=AuditTransport(service, parent_id=correlation_id))

Per-request control goes through request extensions:

    client.get(url, extensions={"api_logs_skip": True})
    client.get(url, extensions={"api_logs_parent_id": inbound_correlation_id})
"""

from __future__ import annotations

import logging

import httpx
from starlette.concurrency import run_in_threadpool

from .records import LogRecord, decode_body, format_headers
from .service import ApiLogService

logger = logging.getLogger("apilogs.outbound")

SKIP_EXTENSION = "api_logs_skip"
PARENT_EXTENSION = "api_logs_parent_id"


class _AuditMixin:
    service: ApiLogService
    parent_id: str | None

    def _should_log(self, request: httpx.Request) -> bool:
        if request.extensions.get(SKIP_EXTENSION):
            return False
        return self.service.should_log_host(request.url.host)

    def _open(self, request: httpx.Request) -> str | None:
        """Resolve the correlation id and write it onto the request."""
        header_name = self.service.key_source.header_name
        presented = self.service.key_source.from_headers(request.headers)
        correlation_id = self.service.open_call(presented)
        if correlation_id is not None and not presented:
            request.headers[header_name] = correlation_id
        return correlation_id

    def _start_record(self, request: httpx.Request, correlation_id: str) -> LogRecord:
        meta = {"type": "outbound", "client": "httpx"}
        parent_id = request.extensions.get(PARENT_EXTENSION) or self.parent_id
        if parent_id:
            meta["parent_id"] = parent_id

        headers = format_headers(request.headers.multi_items())
        return LogRecord.start(
            correlation_id,
            request.method,
            str(request.url),
            operation=f"{request.method} {request.url.host}{request.url.path}",
            headers=headers,
            body=decode_body(request.content, request.headers.get("content-type")),
            ip_address=request.url.host,
            user_agent=headers.get("user-agent"),
            api_version=headers.get("accept-version"),
            meta=meta,
        )

    def _complete(self, record: LogRecord, response: httpx.Response) -> None:
        record.complete(
            response.status_code,
            headers=format_headers(response.headers.multi_items()),
            body=decode_body(response.content, response.headers.get("content-type")),
        )


class AuditTransport(_AuditMixin, httpx.BaseTransport):
    """Synchronous httpx transport that logs each request it sends."""

    def __init__(
        self,
        service: ApiLogService,
        transport: httpx.BaseTransport | None = None,
        parent_id: str | None = None,
    ):
        """Initialize the transport.

        Args:
            service: ApiLogService the calls are logged through
            transport: Transport that actually sends requests
            parent_id: Correlation id of the call these requests belong to
        """
        self.service = service
        self.transport = transport or httpx.HTTPTransport()
        self.parent_id = parent_id

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        if not self._should_log(request):
            return self.transport.handle_request(request)

        correlation_id = self._open(request)
        if correlation_id is None:
            return self.transport.handle_request(request)

        request.read()
        record = self._start_record(request, correlation_id)

        try:
            response = self.transport.handle_request(request)
            response.read()
        except Exception as e:
            record.complete_with_error(e)
            self.service.complete_call(correlation_id, record)
            raise

        self._complete(record, response)
        self.service.complete_call(correlation_id, record)
        return response

    def close(self) -> None:
        self.transport.close()


class AsyncAuditTransport(_AuditMixin, httpx.AsyncBaseTransport):
    """Async httpx transport that logs each request it sends.

    Completion runs in the threadpool so the event loop is never blocked
    by the store or the sinks.
    """

    def __init__(
        self,
        service: ApiLogService,
        transport: httpx.AsyncBaseTransport | None = None,
        parent_id: str | None = None,
    ):
        self.service = service
        self.transport = transport or httpx.AsyncHTTPTransport()
        self.parent_id = parent_id

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        if not self._should_log(request):
            return await self.transport.handle_async_request(request)

        correlation_id = self._open(request)
        if correlation_id is None:
            return await self.transport.handle_async_request(request)

        await request.aread()
        record = self._start_record(request, correlation_id)

        try:
            response = await self.transport.handle_async_request(request)
            await response.aread()
        except Exception as e:
            record.complete_with_error(e)
            await run_in_threadpool(self.service.complete_call, correlation_id, record)
            raise

        self._complete(record, response)
        await run_in_threadpool(self.service.complete_call, correlation_id, record)
        return response

    async def aclose(self) -> None:
        await self.transport.aclose()
