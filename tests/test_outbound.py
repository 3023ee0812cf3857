"""Tests for outbound httpx call logging."""

import asyncio
import time
from unittest.mock import patch

import httpx
import pytest

from apilogs.config import ApiLogsSettings
from apilogs.outbound import AsyncAuditTransport, AuditTransport
from apilogs.service import ApiLogService


@pytest.fixture
def service(tmp_path, sink):
    settings = ApiLogsSettings(
        database_path=tmp_path / "logs.db",
        outbound_exclude_hosts=["*.internal"],
    )
    return ApiLogService.from_settings(settings, sink=sink)


def echo_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(
        201,
        json={"id": "ch_1", "correlation": request.headers.get("Idempotency-Key")},
        request=request,
    )


class TestAuditTransport:
    """Tests for the synchronous transport."""

    def test_logs_outbound_call(self, service, sink):
        """Test an outbound call is logged with outbound metadata."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler), parent_id="in-1")
        with httpx.Client(transport=transport) as client:
            response = client.post(
                "https://payments.example.com/v1/charges",
                json={"amount": 100, "card": {"number": "4111111111111111", "expiry": "12/30"}},
            )

        assert response.status_code == 201
        raw = sink.for_channel("api_logs_raw")[0]
        assert raw["meta"] == {"type": "outbound", "client": "httpx", "parent_id": "in-1"}
        assert raw["operation"] == "POST payments.example.com/v1/charges"
        assert raw["request"]["body"]["card"]["number"] == "4111111111111111"
        assert raw["response"]["body"]["id"] == "ch_1"
        assert raw["status_code"] == 201

    def test_correlation_header_added(self, service, sink):
        """Test a generated correlation id is sent to the remote service."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            response = client.get("https://api.example.com/things")

        sent = response.json()["correlation"]
        assert sent
        assert sink.for_channel("api_logs_raw")[0]["correlation_id"] == sent
        assert service.store.get_summary(sent).path == "/things"

    def test_presented_correlation_header_kept(self, service, sink):
        """Test an explicit correlation header is reused."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            response = client.get("https://api.example.com/things", headers={"Idempotency-Key": "out-1"})

        assert response.json()["correlation"] == "out-1"
        assert sink.for_channel("api_logs_raw")[0]["correlation_id"] == "out-1"

    def test_presented_header_any_case(self, service, sink):
        """Test the correlation header is found regardless of its case."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            client.get("https://api.example.com/things", headers={"idempotency-key": "out-4"})

        assert sink.for_channel("api_logs_raw")[0]["correlation_id"] == "out-4"

    def test_api_version_header(self, service, sink):
        """Test Accept-Version is recorded as the api version."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            client.get("https://api.example.com/things", headers={"Accept-Version": "2024-06"})
            client.get("https://api.example.com/things")

        raw = sink.for_channel("api_logs_raw")
        assert raw[0]["request"]["api_version"] == "2024-06"
        assert raw[1]["request"]["api_version"] == "default"

    def test_parent_id_from_extension(self, service, sink):
        """Test the per-request parent id overrides the transport default."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler), parent_id="default")
        with httpx.Client(transport=transport) as client:
            client.get("https://api.example.com/things", extensions={"api_logs_parent_id": "in-9"})

        assert sink.for_channel("api_logs_raw")[0]["meta"]["parent_id"] == "in-9"

    def test_skip_extension(self, service, sink):
        """Test requests can opt out of logging."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            response = client.get("https://api.example.com/things", extensions={"api_logs_skip": True})

        assert response.json()["correlation"] is None
        assert sink.emitted == []

    def test_excluded_host(self, service, sink):
        """Test excluded hosts are not logged."""
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            client.get("https://billing.internal/invoices")

        assert sink.emitted == []

    def test_outbound_disabled(self, service, sink):
        """Test outbound logging can be switched off."""
        service.settings.outbound_enabled = False
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            client.get("https://api.example.com/things")

        assert sink.emitted == []

    def test_transport_error_logged_and_raised(self, service, sink):
        """Test transport failures are logged as errors and re-raised."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        transport = AuditTransport(service, transport=httpx.MockTransport(refuse))
        with httpx.Client(transport=transport) as client:
            with pytest.raises(httpx.ConnectError):
                client.get("https://api.example.com/things", headers={"Idempotency-Key": "out-2"})

        raw = sink.for_channel("api_logs_raw")[0]
        assert raw["status_code"] == 500
        assert raw["success"] is False
        assert raw["response"]["body"] == {"error": "connection refused"}
        assert service.store.get_summary("out-2").is_error is True

    def test_redacted_channel_masks_outbound_card(self, service, sink):
        """Test a deep card rule applies to outbound request bodies."""
        service.channels.register_channel("pci", ["pci"])
        transport = AuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with httpx.Client(transport=transport) as client:
            client.post(
                "https://payments.example.com/v1/charges",
                json={"payment": {"billing": {"card": {"number": "4111111111111111", "expiry": "12/30"}}}},
            )

        card = sink.for_channel("pci")[0]["request"]["body"]["payment"]["billing"]["card"]
        assert card == {"number": "[REDACTED]", "expiry": "[REDACTED]"}


class TestAsyncAuditTransport:
    """Tests for the async transport."""

    @pytest.mark.asyncio
    async def test_logs_outbound_call(self, service, sink):
        """Test async outbound calls are logged."""
        transport = AsyncAuditTransport(service, transport=httpx.MockTransport(echo_handler), parent_id="in-1")
        async with httpx.AsyncClient(transport=transport) as client:
            response = await client.get("https://api.example.com/things", headers={"Idempotency-Key": "out-3"})

        assert response.status_code == 201
        raw = sink.for_channel("api_logs_raw")[0]
        assert raw["correlation_id"] == "out-3"
        assert raw["meta"]["parent_id"] == "in-1"
        assert raw["response"]["body"]["correlation"] == "out-3"

    @pytest.mark.asyncio
    async def test_transport_error_reraised(self, service, sink):
        """Test async transport failures are logged and re-raised."""

        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        transport = AsyncAuditTransport(service, transport=httpx.MockTransport(refuse))
        async with httpx.AsyncClient(transport=transport) as client:
            with pytest.raises(httpx.ReadTimeout):
                await client.get("https://api.example.com/things")

        assert sink.for_channel("api_logs_raw")[0]["response"]["body"] == {"error": "timed out"}

    @pytest.mark.asyncio
    async def test_completion_does_not_block_event_loop(self, service, sink):
        """Test a slow store write leaves the event loop free."""
        upsert = service.store.upsert_call_summary

        def slow_upsert(summary):
            time.sleep(0.5)
            return upsert(summary)

        gaps = []
        done = asyncio.Event()

        async def tick():
            last = time.perf_counter()
            while not done.is_set():
                await asyncio.sleep(0.02)
                now = time.perf_counter()
                gaps.append(now - last)
                last = now

        transport = AsyncAuditTransport(service, transport=httpx.MockTransport(echo_handler))
        with patch.object(service.store, "upsert_call_summary", side_effect=slow_upsert):
            ticker = asyncio.create_task(tick())
            async with httpx.AsyncClient(transport=transport) as client:
                await client.get("https://api.example.com/things", headers={"Idempotency-Key": "out-5"})
            done.set()
            await ticker

        assert max(gaps) < 0.2
        assert service.store.get_summary("out-5") is not None
        assert len(sink.for_channel("api_logs_raw")) == 1
