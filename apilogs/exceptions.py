"""Exceptions for API call logging."""


class ApiLogsError(Exception):
    """Base exception for all API logging errors."""

    def __init__(self, message: str, correlation_id: str | None = None):
        self.correlation_id = correlation_id
        self.message = message
        super().__init__(f"[{correlation_id}] {message}" if correlation_id else message)


class ConfigurationError(ApiLogsError):
    """Raised when redactor, channel or logging configuration is invalid.

    Always raised while configuration is being loaded, never while a request
    is being handled.
    """

    def __init__(self, message: str, errors: list[str] | None = None):
        self.errors = errors or []
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class PersistenceError(ApiLogsError):
    """Raised when a call summary or association write fails."""

    def __init__(
        self,
        reason: str,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ):
        self.reason = reason
        self.cause = cause
        super().__init__(f"Persistence failed: {reason}", correlation_id)


class DispatchError(ApiLogsError):
    """Raised (and captured) when a channel cannot receive a log record."""

    def __init__(
        self,
        channel: str,
        reason: str,
        correlation_id: str | None = None,
        cause: Exception | None = None,
    ):
        self.channel = channel
        self.reason = reason
        self.cause = cause
        super().__init__(f"Channel '{channel}' dispatch failed: {reason}", correlation_id)


class UnknownEntityTypeError(ApiLogsError):
    """Raised when no lookup is registered for an entity type."""

    def __init__(self, entity_type: str):
        self.entity_type = entity_type
        super().__init__(f"No lookup registered for entity type '{entity_type}'")


class RecordAlreadyCompletedError(ApiLogsError):
    """Raised when a log record is completed a second time."""

    def __init__(self, correlation_id: str):
        super().__init__("Log record has already been completed", correlation_id)
