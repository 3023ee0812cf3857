"""Entity type registry.

Associations store a logical entity type name (``"user"``, ``"order"``)
rather than a class path. Each type is registered at startup with a lookup
that reports which of a batch of ids still exist.
"""

from __future__ import annotations

import logging
import re
import sqlite3
from collections.abc import Callable, Iterable, Mapping, Sequence
from pathlib import Path
from typing import Any

from .exceptions import ConfigurationError, UnknownEntityTypeError

logger = logging.getLogger("apilogs.entities")

# Receives a batch of ids, returns the ones that exist
EntityLookup = Callable[[Sequence[str]], Iterable[Any]]

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Stay below SQLite's default bound-parameter limit
_LOOKUP_CHUNK_SIZE = 500


class EntityRegistry:
    """Maps logical entity type names to existence lookups."""

    def __init__(self, lookups: Mapping[str, EntityLookup] | None = None):
        self._lookups: dict[str, EntityLookup] = {}
        for entity_type, lookup in (lookups or {}).items():
            self.register(entity_type, lookup)

    def register(self, entity_type: str, lookup: EntityLookup) -> None:
        """Register the lookup for ``entity_type``.

        Raises:
            ConfigurationError: If the type name is empty or the lookup is
                not callable
        """
        if not entity_type or not isinstance(entity_type, str):
            raise ConfigurationError(f"Entity type must be a non-empty string, got {entity_type!r}")
        if not callable(lookup):
            raise ConfigurationError(f"Lookup for entity type '{entity_type}' is not callable")
        self._lookups[entity_type] = lookup

    @property
    def types(self) -> list[str]:
        return list(self._lookups)

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._lookups

    def find_existing(self, entity_type: str, ids: Sequence[str]) -> set[str]:
        """Return the subset of ``ids`` that still exist, as strings.

        Raises:
            UnknownEntityTypeError: If no lookup is registered for the type
        """
        lookup = self._lookups.get(entity_type)
        if lookup is None:
            raise UnknownEntityTypeError(entity_type)

        wanted = {str(entity_id) for entity_id in ids}
        return {str(found) for found in lookup(list(wanted))} & wanted


class TableEntityLookup:
    """Existence lookup against a table in a SQLite database."""

    def __init__(self, db_path: Path, table: str, key_column: str = "id"):
        for name in (table, key_column):
            if not _IDENTIFIER.match(name):
                raise ConfigurationError(f"Invalid SQL identifier: {name!r}")

        self.db_path = Path(db_path)
        self.table = table
        self.key_column = key_column

    def __call__(self, ids: Sequence[str]) -> list[Any]:
        found: list[Any] = []
        conn = sqlite3.connect(str(self.db_path))
        try:
            for start in range(0, len(ids), _LOOKUP_CHUNK_SIZE):
                chunk = list(ids[start : start + _LOOKUP_CHUNK_SIZE])
                placeholders = ", ".join("?" for _ in chunk)
                cursor = conn.execute(
                    f"SELECT {self.key_column} FROM {self.table} WHERE {self.key_column} IN ({placeholders})",
                    chunk,
                )
                found.extend(row[0] for row in cursor.fetchall())
        finally:
            conn.close()
        return found
