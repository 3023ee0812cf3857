"""Output sinks that receive processed log records, keyed by channel name.

Two sinks are provided:
- ``LoggingChannelSink`` hands each record to a stdlib ``logging`` logger
  named after the channel, so existing handlers decide where it goes
- ``JsonlChannelSink`` writes one JSONL file per channel with size-based
  rotation
"""

from __future__ import annotations

import json
import logging
import re
import threading
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, TextIO, runtime_checkable

logger = logging.getLogger("apilogs.sinks")

_CHANNEL_NAME = re.compile(r"^[A-Za-z0-9_.\-]+$")


@runtime_checkable
class ChannelSink(Protocol):
    """Logging backend keyed by channel name."""

    def emit(self, channel: str, message: str, context: dict[str, Any]) -> None:
        ...


class LoggingChannelSink:
    """Emit records through ``logging.getLogger(f"{namespace}.{channel}")``.

    The processed record is attached to the log record as ``api_log``.
    """

    def __init__(self, namespace: str = "apilogs.channel", level: int = logging.INFO):
        self.namespace = namespace
        self.level = level

    def emit(self, channel: str, message: str, context: dict[str, Any]) -> None:
        logging.getLogger(f"{self.namespace}.{channel}").log(
            self.level,
            message,
            extra={"api_log": context, "channel": channel},
        )


class JsonlChannelSink:
    """Thread-safe JSONL writer with one rotating file per channel.

    Each line holds ``timestamp``, ``channel``, ``message`` and ``context``.
    Write errors propagate so the channel manager can report them.
    """

    def __init__(
        self,
        directory: Path,
        max_file_size_mb: int = 100,
        max_file_size_bytes: int | None = None,
        max_files: int = 10,
    ):
        """Initialize the sink.

        Args:
            directory: Directory that holds the channel files
            max_file_size_mb: Size that triggers rotation (MB)
            max_file_size_bytes: Exact rotation size, overrides the MB value
            max_files: Rotated files to keep per channel, current file included
        """
        self.directory = Path(directory)
        self.max_file_size_bytes = max_file_size_bytes or max_file_size_mb * 1024 * 1024
        self.max_files = max_files
        self._handles: dict[str, TextIO] = {}
        self._sizes: dict[str, int] = {}
        self._lock = threading.Lock()

    def log_path(self, channel: str) -> Path:
        if not _CHANNEL_NAME.match(channel):
            raise ValueError(f"Channel name not usable as a file name: {channel!r}")
        return self.directory / f"{channel}.jsonl"

    def emit(self, channel: str, message: str, context: dict[str, Any]) -> None:
        line = (
            json.dumps(
                {
                    "timestamp": datetime.now(UTC).isoformat(),
                    "channel": channel,
                    "message": message,
                    "context": context,
                },
                default=str,
            )
            + "\n"
        )

        with self._lock:
            if self._sizes.get(channel, 0) >= self.max_file_size_bytes:
                self._rotate(channel)

            handle = self._handles.get(channel) or self._open(channel)
            handle.write(line)
            handle.flush()
            self._sizes[channel] += len(line.encode("utf-8"))

    def _open(self, channel: str) -> TextIO:
        """Open a channel file in append mode (must be called with lock held)."""
        path = self.log_path(channel)
        path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(path, "a", encoding="utf-8")
        self._handles[channel] = handle
        self._sizes[channel] = path.stat().st_size
        return handle

    def _rotate(self, channel: str) -> None:
        """Rename the current file aside (must be called with lock held)."""
        handle = self._handles.pop(channel, None)
        if handle:
            handle.close()

        path = self.log_path(channel)
        if path.exists():
            timestamp = datetime.now(UTC).strftime("%Y%m%d_%H%M%S_%f")
            rotated = path.with_name(f"{path.stem}_{timestamp}{path.suffix}")
            path.rename(rotated)
            logger.info(f"Rotated channel log to: {rotated}")

        self._sizes[channel] = 0
        self._cleanup_old_logs(path)

    def _cleanup_old_logs(self, path: Path) -> None:
        """Remove rotated files beyond the ``max_files`` limit."""
        rotated_files = sorted(
            path.parent.glob(f"{path.stem}_[0-9]*{path.suffix}"),
            key=lambda p: p.name,
            reverse=True,
        )
        for old_file in rotated_files[self.max_files - 1 :]:
            try:
                old_file.unlink()
                logger.debug(f"Removed old channel log: {old_file}")
            except OSError as e:
                logger.warning(f"Failed to remove old channel log {old_file}: {e}")

    def close(self) -> None:
        """Close every open channel file."""
        with self._lock:
            for handle in self._handles.values():
                handle.close()
            self._handles.clear()
