"""API logging service.

The facade business code and the HTTP boundaries talk to. It owns the
process-wide tracker, the channel manager, the store and, when completion
is deferred, the worker pool.

Example usage:
    service = ApiLogService.from_settings()

    correlation_id = service.open_call(request_headers.get("Idempotency-Key"))
    service.register_entity(correlation_id, "user", user.id)
    ...
    service.complete_call(correlation_id, record)
"""

from __future__ import annotations

import logging
from typing import Any

from .channels import ChannelManager
from .config.loader import default_channels, load_channel_config
from .config.settings import ApiLogsSettings, get_settings
from .correlation import CorrelationKeySource, matches_any
from .entities import EntityRegistry
from .orchestrator import CompletionOrchestrator, CompletionResult
from .records import LogRecord
from .sinks import ChannelSink, JsonlChannelSink, LoggingChannelSink
from .store import CallLogStore
from .tracker import CorrelationTracker
from .worker import CompletionWorker

logger = logging.getLogger("apilogs.service")


class ApiLogService:
    """Open, track and complete logged calls."""

    def __init__(
        self,
        store: CallLogStore,
        channels: ChannelManager,
        tracker: CorrelationTracker | None = None,
        key_source: CorrelationKeySource | None = None,
        settings: ApiLogsSettings | None = None,
        worker: CompletionWorker | None = None,
    ):
        """Initialize the service.

        Args:
            store: Persistence for call summaries and associations
            channels: Channel manager records are dispatched through
            tracker: Correlation tracker (a new one by default)
            key_source: Correlation id source (built from settings by default)
            settings: Settings for filtering and retention
            worker: Completion worker; when set, completion is deferred
        """
        self.settings = settings or ApiLogsSettings()
        self.store = store
        self.channels = channels
        self.tracker = tracker or CorrelationTracker()
        self.key_source = key_source or CorrelationKeySource(
            header_name=self.settings.correlation_header,
            ensure=self.settings.ensure_correlation_header,
        )
        self.orchestrator = CompletionOrchestrator(self.store, self.tracker, self.channels)
        self.worker = worker

    @classmethod
    def from_settings(
        cls,
        settings: ApiLogsSettings | None = None,
        sink: ChannelSink | None = None,
        entities: EntityRegistry | None = None,
        channels: dict[str, list[Any]] | None = None,
    ) -> ApiLogService:
        """Build a service from settings.

        Args:
            settings: Settings to use (cached environment settings by default)
            sink: Channel sink; defaults to JSONL files under ``log_dir`` when
                set, otherwise the ``logging`` module
            entities: Entity lookups used for associations
            channels: Channel configuration, overriding ``channels_path``

        Raises:
            ConfigurationError: If the channel configuration is invalid
        """
        settings = settings or get_settings()
        logging.getLogger("apilogs").setLevel(settings.log_level.upper())

        if sink is None:
            sink = JsonlChannelSink(settings.log_dir) if settings.log_dir else LoggingChannelSink()

        if channels is None:
            channels = load_channel_config(settings.channels_path) if settings.channels_path else default_channels()

        manager = ChannelManager(sink).load_channels(channels)
        store = CallLogStore(settings.database_path, entities=entities)

        service = cls(store, manager, settings=settings)
        if settings.defer_completion:
            service.worker = CompletionWorker(
                service.orchestrator,
                max_workers=settings.completion_workers,
                max_attempts=settings.completion_max_attempts,
            )
        return service

    # --- Call lifecycle ---

    def open_call(self, correlation_id: str | None = None) -> str | None:
        """Start tracking a call.

        Returns:
            The presented or generated correlation id, or None when the
            call carries no id and generation is disabled
        """
        correlation_id = self.key_source.resolve(correlation_id)
        if correlation_id is not None:
            self.tracker.open(correlation_id)
        return correlation_id

    def register_entity(self, correlation_id: str | None, entity_type: str, entity_id: Any) -> None:
        """Record that the call touched an entity. Ignored without a correlation id."""
        if not correlation_id:
            return
        self.tracker.register(correlation_id, entity_type, entity_id)

    def complete_call(self, correlation_id: str, record: LogRecord) -> CompletionResult | None:
        """Finalize a call.

        Runs synchronously, or hands a snapshot to the worker and returns
        None. Never raises.
        """
        try:
            if self.worker is not None:
                self.worker.submit(correlation_id, record)
                return None
            return self.orchestrator.complete(correlation_id, record)
        except Exception as e:
            logger.error(f"Failed to complete call {correlation_id}: {e}")
            self.tracker.clear(correlation_id)
            return None

    # --- Filtering ---

    def should_log_path(self, method: str, path: str) -> bool:
        """Check whether an inbound request is logged.

        Exclusion patterns are matched against the path without its leading
        slash, so ``health/*`` excludes ``/health/live``.
        """
        if not self.settings.enabled:
            return False
        if method.upper() == "OPTIONS":
            return False
        patterns = [pattern.lstrip("/") for pattern in self.settings.exclude_paths]
        return not matches_any(path.lstrip("/"), patterns)

    def should_log_host(self, host: str) -> bool:
        """Check whether an outbound call to ``host`` is logged."""
        if not self.settings.enabled or not self.settings.outbound_enabled:
            return False
        return not matches_any(host, self.settings.outbound_exclude_hosts)

    # --- Maintenance ---

    def prune(self) -> int:
        """Delete call summaries older than the retention horizon."""
        return self.store.prune(self.settings.retention_ttl_hours)

    def close(self) -> None:
        """Wait for deferred completions and close channel files."""
        if self.worker is not None:
            self.worker.shutdown(wait=True)
        close_sink = getattr(self.channels.sink, "close", None)
        if callable(close_sink):
            close_sink()
