"""Redactor strategies built on the path engine."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any, Protocol, runtime_checkable

from ..exceptions import ConfigurationError
from .engine import DEFAULT_REPLACEMENT, RedactionRule, redact


@runtime_checkable
class Redactor(Protocol):
    """Anything that can produce a redacted copy of a structure."""

    def redact(self, data: Any) -> Any:
        ...


class DotNotationRedactor:
    """Replace every value matched by a list of dot-notation paths.

    All paths share one replacement, which may be a literal or a callable
    ``(value, path, data) -> value``.
    """

    def __init__(self, paths: Iterable[str], replacement: Any = DEFAULT_REPLACEMENT):
        if isinstance(paths, str) or not isinstance(paths, Iterable):
            raise ConfigurationError(f"Redactor paths must be a list of strings, got {paths!r}")

        self.replacement = replacement
        self.rules = [RedactionRule(path, replacement) for path in paths]

    @property
    def paths(self) -> list[str]:
        return [rule.path for rule in self.rules]

    def redact(self, data: Any) -> Any:
        return redact(data, self.rules)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(paths={len(self.rules)})"
