"""Log record and persisted call models.

A ``LogRecord`` is created when a call starts, completed exactly once when
the call finishes and treated as read-only afterwards. ``CallSummary`` and
``Association`` are the rows written by the completion orchestrator.
"""

from __future__ import annotations

import copy
import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, PrivateAttr

from .exceptions import RecordAlreadyCompletedError


def _utcnow() -> datetime:
    """Return current UTC time as timezone-aware datetime."""
    return datetime.now(UTC)


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def url_path(url: str) -> str:
    """Return the path component of a URL, ``/`` when empty."""
    return urlsplit(url).path or "/"


def format_headers(raw: Mapping[str, str] | Iterable[tuple[str, str]]) -> dict[str, str]:
    """Lower-case header names and join repeated headers with newlines."""
    items = raw.items() if isinstance(raw, Mapping) else raw
    headers: dict[str, str] = {}
    for name, value in items:
        name = name.lower()
        headers[name] = f"{headers[name]}\n{value}" if name in headers else value
    return headers


def decode_body(content: bytes, content_type: str | None = None) -> Any:
    """Decode a captured body: JSON when declared, text otherwise.

    Empty bodies decode to ``{}``. Invalid JSON is kept as text.
    """
    if not content:
        return {}
    text = content.decode("utf-8", errors="replace")
    if content_type and "json" in content_type.lower():
        try:
            return json.loads(text)
        except ValueError:
            return text
    return text


class RequestData(BaseModel):
    """Request side of a log record."""

    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)
    ip_address: str | None = None
    user_agent: str | None = None
    api_version: str = "default"
    timestamp: str = Field(default_factory=lambda: _utcnow().isoformat())


class ResponseData(BaseModel):
    """Response side of a log record. Empty until the call completes."""

    headers: dict[str, str] = Field(default_factory=dict)
    body: Any = Field(default_factory=dict)
    timestamp: str | None = None


class LogRecord(BaseModel):
    """Structured audit record of a single inbound or outbound HTTP call.

    Attributes:
        correlation_id: Caller-supplied or generated correlation key
        operation: Route name or ``METHOD path``
        url: Full request URL
        method: HTTP method
        status_code: Response status (0 until completed)
        success: ``status_code < 400`` (False until completed)
        request: Request headers, body and client details
        response: Response headers and body
        meta: Free-form metadata; ``parent_id`` links an outbound call to
            the inbound call that triggered it
    """

    correlation_id: str
    operation: str = ""
    url: str = ""
    method: str = "GET"
    status_code: int = 0
    success: bool = False
    request: RequestData = Field(default_factory=RequestData)
    response: ResponseData = Field(default_factory=ResponseData)
    meta: dict[str, Any] = Field(default_factory=dict)

    _completed: bool = PrivateAttr(default=False)

    @classmethod
    def start(
        cls,
        correlation_id: str,
        method: str,
        url: str,
        *,
        operation: str | None = None,
        headers: dict[str, str] | None = None,
        body: Any = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        api_version: str | None = None,
        meta: dict[str, Any] | None = None,
        timestamp: datetime | None = None,
    ) -> LogRecord:
        """Create a record at call start with the response side empty."""
        method = method.upper()
        return cls(
            correlation_id=correlation_id,
            operation=operation or f"{method} {url_path(url)}",
            url=url,
            method=method,
            request=RequestData(
                headers=headers or {},
                body=body if body is not None else {},
                ip_address=ip_address,
                user_agent=user_agent,
                api_version=api_version or "default",
                timestamp=(timestamp or _utcnow()).isoformat(),
            ),
            meta=meta or {},
        )

    @property
    def completed(self) -> bool:
        return self._completed

    def complete(
        self,
        status_code: int,
        headers: dict[str, str] | None = None,
        body: Any = None,
        timestamp: datetime | None = None,
        operation: str | None = None,
    ) -> None:
        """Fill in the response side. May only be called once.

        Raises:
            RecordAlreadyCompletedError: If the record was already completed
        """
        if self._completed:
            raise RecordAlreadyCompletedError(self.correlation_id)

        self.status_code = status_code
        self.success = status_code < 400
        self.response = ResponseData(
            headers=headers or {},
            body=body if body is not None else {},
            timestamp=(timestamp or _utcnow()).isoformat(),
        )
        if operation:
            self.operation = operation
        self._completed = True

    def complete_with_error(
        self,
        error: BaseException,
        status_code: int | None = None,
        body: Any = None,
        timestamp: datetime | None = None,
    ) -> None:
        """Complete the record for a call that failed before a usable response."""
        self.complete(
            status_code or 500,
            body=body or {"error": str(error)},
            timestamp=timestamp,
        )
        self.success = False

    def to_dict(self) -> dict[str, Any]:
        """Return a fresh plain-data view of the record.

        Each call returns independent containers, so callers may mutate the
        result without affecting the record or other views.
        """
        return copy.deepcopy(self.model_dump())

    def snapshot(self) -> LogRecord:
        """Return a deep value copy for handoff to another thread."""
        clone = self.model_copy(deep=True)
        clone._completed = self._completed
        return clone


@dataclass(frozen=True)
class EntityRef:
    """Reference to a domain entity touched during a call.

    ``entity_id`` is always stored as a string so integer and UUID primary
    keys compare equal to their string forms.
    """

    entity_type: str
    entity_id: str

    def __post_init__(self):
        object.__setattr__(self, "entity_id", str(self.entity_id))

    @property
    def key(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"


@dataclass
class CallSummary:
    """Persisted summary of one call, unique per correlation id."""

    correlation_id: str
    path: str
    method: str
    api_version: str = "default"
    request_at: datetime | None = None
    response_at: datetime | None = None
    response_status: int | None = None
    is_error: bool = False
    id: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_record(cls, record: LogRecord) -> CallSummary:
        """Derive the summary fields from a completed log record."""
        return cls(
            correlation_id=record.correlation_id,
            path=url_path(record.url),
            method=record.method,
            api_version=record.request.api_version or "default",
            request_at=_parse_timestamp(record.request.timestamp),
            response_at=_parse_timestamp(record.response.timestamp),
            response_status=record.status_code or None,
            is_error=not record.success,
        )

    @property
    def duration_ms(self) -> int | None:
        """Milliseconds between request and response, if both are known."""
        if not self.request_at or not self.response_at:
            return None
        return round((self.response_at - self.request_at).total_seconds() * 1000)

    @property
    def duration_formatted(self) -> str | None:
        duration = self.duration_ms
        if duration is None:
            return None
        if duration < 1000:
            return f"{duration}ms"
        return f"{round(duration / 1000, 2)}s"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "correlation_id": self.correlation_id,
            "path": self.path,
            "method": self.method,
            "api_version": self.api_version,
            "request_at": self.request_at.isoformat() if self.request_at else None,
            "response_at": self.response_at.isoformat() if self.response_at else None,
            "response_status": self.response_status,
            "is_error": self.is_error,
            "duration_ms": self.duration_ms,
        }


@dataclass
class Association:
    """Link between a call summary and an entity it touched."""

    call_summary_id: str
    entity_type: str
    entity_id: str
    created_at: datetime = field(default_factory=_utcnow)

    @property
    def entity(self) -> EntityRef:
        return EntityRef(self.entity_type, self.entity_id)
