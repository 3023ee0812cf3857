"""Channel pipeline manager.

A channel is a named output with its own redaction pipeline. Dispatching a
record sends an independently redacted copy to every channel, so a rule
configured for one channel can never leak into another channel's view.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable, Mapping
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any

from .exceptions import ConfigurationError, DispatchError
from .pipeline import RedactionPipeline
from .records import LogRecord
from .redaction import RedactorRegistry, default_registry
from .sinks import ChannelSink

logger = logging.getLogger("apilogs.channels")


@dataclass
class Channel:
    """A named output bound to a redaction pipeline."""

    name: str
    pipeline: RedactionPipeline = field(default_factory=RedactionPipeline)

    @property
    def is_raw(self) -> bool:
        """True when the channel receives the record unredacted."""
        return len(self.pipeline) == 0


@dataclass
class DispatchReport:
    """Outcome of dispatching one record to every channel."""

    correlation_id: str
    delivered: list[str] = field(default_factory=list)
    failures: dict[str, DispatchError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


class ChannelManager:
    """Registry of named channels and their redaction pipelines.

    Thread-safe. Channel order is registration order.
    """

    def __init__(
        self,
        sink: ChannelSink,
        registry: RedactorRegistry | None = None,
        concurrent: bool = False,
        max_workers: int | None = None,
    ):
        """Initialize the manager.

        Args:
            sink: Backend that receives each channel's processed record
            registry: Resolves redactor identifiers (built-ins by default)
            concurrent: Dispatch channels on a thread pool
            max_workers: Thread pool size when dispatching concurrently
        """
        self.sink = sink
        self.registry = registry or default_registry()
        self.concurrent = concurrent
        self.max_workers = max_workers
        self._channels: dict[str, Channel] = {}
        self._lock = threading.Lock()

    def _build_channel(self, name: str, rules: Any) -> Channel:
        if not isinstance(name, str) or not name:
            raise ConfigurationError(f"Channel name must be a non-empty string, got {name!r}")

        if isinstance(rules, RedactionPipeline):
            return Channel(name, rules)

        if rules is None:
            rules = []
        if isinstance(rules, (str, Mapping)) or not isinstance(rules, Iterable):
            raise ConfigurationError(f"Channel '{name}' rules must be a list, got {rules!r}")

        return Channel(name, RedactionPipeline(self.registry.create_all(rules)))

    def register_channel(self, name: str, rules: Iterable[Any] | RedactionPipeline = ()) -> Channel:
        """Bind ``name`` to a pipeline built from ``rules``, replacing any existing binding.

        Raises:
            ConfigurationError: If any rule cannot be resolved
        """
        channel = self._build_channel(name, rules)
        with self._lock:
            self._channels[name] = channel
        logger.debug(f"Registered channel '{name}' with {len(channel.pipeline)} redaction stage(s)")
        return channel

    def load_channels(self, config: Mapping[str, Any]) -> ChannelManager:
        """Replace all channels with ``{name: rules}`` from ``config``.

        Every channel is built before any is swapped in, so an invalid
        entry leaves the current channels untouched.
        """
        channels = {name: self._build_channel(name, rules) for name, rules in config.items()}
        with self._lock:
            self._channels = channels
        logger.info(f"Loaded {len(channels)} channel(s): {list(channels)}")
        return self

    def remove_channel(self, name: str) -> bool:
        with self._lock:
            return self._channels.pop(name, None) is not None

    def clear_channels(self) -> ChannelManager:
        with self._lock:
            self._channels = {}
        return self

    def get_channel(self, name: str) -> Channel | None:
        with self._lock:
            return self._channels.get(name)

    @property
    def channels(self) -> list[str]:
        with self._lock:
            return list(self._channels)

    def __len__(self) -> int:
        with self._lock:
            return len(self._channels)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._channels

    def dispatch(self, record: LogRecord) -> DispatchReport:
        """Send an independently redacted copy of ``record`` to every channel.

        Failures are logged and collected in the report; they never stop
        the remaining channels and are never raised.
        """
        with self._lock:
            channels = list(self._channels.values())

        message = f"{record.method} {record.url}"

        if self.concurrent and len(channels) > 1:
            with ThreadPoolExecutor(
                max_workers=self.max_workers or len(channels),
                thread_name_prefix="apilogs-channel",
            ) as pool:
                outcomes = list(pool.map(lambda ch: self._dispatch_one(ch, record, message), channels))
        else:
            outcomes = [self._dispatch_one(channel, record, message) for channel in channels]

        report = DispatchReport(record.correlation_id)
        for channel, error in zip(channels, outcomes):
            if error is None:
                report.delivered.append(channel.name)
            else:
                report.failures[channel.name] = error
        return report

    def _dispatch_one(self, channel: Channel, record: LogRecord, message: str) -> DispatchError | None:
        try:
            context = channel.pipeline.process(record.to_dict())
            self.sink.emit(channel.name, message, context)
        except Exception as e:
            logger.error(f"Failed to dispatch {record.correlation_id} to channel '{channel.name}': {e}")
            return DispatchError(channel.name, str(e), record.correlation_id, cause=e)
        return None
