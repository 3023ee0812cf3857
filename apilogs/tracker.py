"""Correlation tracker.

Accumulates the entities touched while a call is handled so the completion
orchestrator can associate all of them in one write. Entries must be
cleared when a call is finalized, including on failure, or the tracker
grows for the life of the process.
"""

from __future__ import annotations

import threading
from typing import Any

from .records import EntityRef


class CorrelationTracker:
    """Thread-safe map of correlation id to an ordered set of entity refs.

    Every operation takes the same lock, so registrations made before
    ``entries_for`` or ``clear`` are always visible to them.
    """

    def __init__(self):
        self._entries: dict[str, dict[str, EntityRef]] = {}
        self._lock = threading.Lock()

    def open(self, correlation_id: str) -> None:
        """Start tracking a call with no entities yet."""
        with self._lock:
            self._entries.setdefault(correlation_id, {})

    def register(self, correlation_id: str, entity_type: str, entity_id: Any) -> EntityRef:
        """Track an entity under a correlation id. Re-registering is a no-op."""
        ref = EntityRef(entity_type, entity_id)
        with self._lock:
            entries = self._entries.setdefault(correlation_id, {})
            entries.setdefault(ref.key, ref)
        return ref

    def entries_for(self, correlation_id: str) -> list[EntityRef]:
        """Return tracked entities in registration order (empty if unknown)."""
        with self._lock:
            return list(self._entries.get(correlation_id, {}).values())

    def is_open(self, correlation_id: str) -> bool:
        with self._lock:
            return correlation_id in self._entries

    def correlation_ids(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear(self, correlation_id: str) -> None:
        with self._lock:
            self._entries.pop(correlation_id, None)

    def clear_all(self) -> None:
        with self._lock:
            self._entries = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
