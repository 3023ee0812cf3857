"""Structured audit logging for inbound and outbound HTTP calls.

This package provides:
- Path-based redaction with exact paths, ``*`` and ``**`` wildcards
- Named output channels, each with its own redaction pipeline
- Correlation of calls with the domain entities they touched
- Call summaries and entity associations persisted in SQLite
- FastAPI/Starlette middleware and httpx transports

Example usage:
    from apilogs import ApiLogMiddleware, ApiLogService, AuditTransport

    service = ApiLogService.from_settings()
    app.add_middleware(ApiLogMiddleware, service=service)

    # Inside a handler
    service.register_entity(request.state.correlation_id, "user", user.id)

    # Outbound calls made while handling the request
    client = httpx.Client(
        transport=AuditTransport(service, parent_id=request.state.correlation_id)
    )

    # Redaction on its own
    from apilogs import redact

    redact(payload, ["request.headers.authorization", "**.card.number"])
"""

from __future__ import annotations

from .channels import Channel, ChannelManager, DispatchReport
from .config import ApiLogsSettings, get_settings, load_channel_config
from .correlation import CorrelationKeySource
from .entities import EntityRegistry, TableEntityLookup
from .exceptions import (
    ApiLogsError,
    ConfigurationError,
    DispatchError,
    PersistenceError,
    RecordAlreadyCompletedError,
    UnknownEntityTypeError,
)
from .middleware import ApiLogMiddleware, get_correlation_id
from .orchestrator import CompletionOrchestrator, CompletionResult
from .outbound import AsyncAuditTransport, AuditTransport
from .pipeline import RedactionPipeline
from .records import Association, CallSummary, EntityRef, LogRecord, RequestData, ResponseData
from .redaction import (
    CommonBodyFields,
    CommonHeaderFields,
    DotNotationRedactor,
    HipaaRedactor,
    PciRedactor,
    PiiRedactor,
    RedactionRule,
    Redactor,
    RedactorRegistry,
    ValuePatternRedactor,
    default_registry,
    redact,
)
from .service import ApiLogService
from .sinks import ChannelSink, JsonlChannelSink, LoggingChannelSink
from .store import CallLogStore
from .tracker import CorrelationTracker
from .worker import CompletionWorker

__version__ = "0.1.0"

__all__ = [
    # Records
    "LogRecord",
    "RequestData",
    "ResponseData",
    "EntityRef",
    "CallSummary",
    "Association",
    # Redaction
    "redact",
    "RedactionRule",
    "Redactor",
    "DotNotationRedactor",
    "CommonHeaderFields",
    "CommonBodyFields",
    "PiiRedactor",
    "PciRedactor",
    "HipaaRedactor",
    "ValuePatternRedactor",
    "RedactorRegistry",
    "default_registry",
    "RedactionPipeline",
    # Channels
    "Channel",
    "ChannelManager",
    "DispatchReport",
    "ChannelSink",
    "LoggingChannelSink",
    "JsonlChannelSink",
    # Completion
    "CorrelationTracker",
    "CorrelationKeySource",
    "CompletionOrchestrator",
    "CompletionResult",
    "CompletionWorker",
    "CallLogStore",
    "EntityRegistry",
    "TableEntityLookup",
    # Boundaries
    "ApiLogService",
    "ApiLogMiddleware",
    "get_correlation_id",
    "AuditTransport",
    "AsyncAuditTransport",
    # Config
    "ApiLogsSettings",
    "get_settings",
    "load_channel_config",
    # Errors
    "ApiLogsError",
    "ConfigurationError",
    "PersistenceError",
    "DispatchError",
    "UnknownEntityTypeError",
    "RecordAlreadyCompletedError",
]
