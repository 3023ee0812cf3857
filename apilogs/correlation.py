"""Correlation key handling and wildcard exclusion matching."""

from __future__ import annotations

import uuid
from collections.abc import Callable, Iterable, Mapping
from fnmatch import fnmatchcase

DEFAULT_CORRELATION_HEADER = "Idempotency-Key"


def matches_any(value: str, patterns: Iterable[str]) -> bool:
    """Check ``value`` against shell-style wildcard patterns (``api/*``, ``*.internal``)."""
    return any(fnmatchcase(value, pattern) for pattern in patterns)


class CorrelationKeySource:
    """Supplies the correlation id for a call.

    An id presented by the caller under ``header_name`` is used as-is. When
    none is presented a fresh one is generated, unless ``ensure`` is off, in
    which case the call has no correlation id and is not logged.
    """

    def __init__(
        self,
        header_name: str = DEFAULT_CORRELATION_HEADER,
        ensure: bool = True,
        id_factory: Callable[[], object] = uuid.uuid4,
    ):
        self.header_name = header_name
        self.ensure = ensure
        self.id_factory = id_factory

    def generate(self) -> str:
        return str(self.id_factory())

    def resolve(self, presented: str | None = None) -> str | None:
        """Return the presented id, a generated one, or None."""
        if presented:
            return presented
        if self.ensure:
            return self.generate()
        return None

    def from_headers(self, headers: Mapping[str, str]) -> str | None:
        """Find the correlation header in ``headers``, ignoring case."""
        wanted = self.header_name.lower()
        for name, value in headers.items():
            if name.lower() == wanted and value:
                return value
        return None
