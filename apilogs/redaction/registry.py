"""Redactor registry: turns configuration specs into redactor instances.

Specs are resolved once, when channels are configured, so a typo in a
channel definition fails at startup instead of on the first request.

Accepted spec forms:
    "common_headers"                                  # identifier
    {"type": "dot_notation", "paths": ["a.b"]}        # identifier + kwargs
    {"type": "pci", "replacement_strategy": "last_four"}
    RedactionRule("request.body.pin")                 # used as-is
    DotNotationRedactor([...])                        # used as-is
"""

from __future__ import annotations

import hashlib
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from ..exceptions import ConfigurationError
from .engine import RedactionRule, ReplacementFunc
from .patterns import ValuePatternRedactor
from .presets import CommonBodyFields, CommonHeaderFields, HipaaRedactor, PciRedactor, PiiRedactor
from .redactors import DotNotationRedactor, Redactor

RedactorFactory = Callable[..., Redactor]


def mask(value: Any, path: str, data: Any) -> str:
    """Replace with a fixed-width mask that hides the length too."""
    return "********"


def mask_length(value: Any, path: str, data: Any) -> str:
    """Replace with asterisks, revealing only the value's length."""
    return "*" * len(str(value))


def last_four(value: Any, path: str, data: Any) -> str:
    """Mask all but the last four characters."""
    text = str(value)
    if len(text) <= 4:
        return "*" * len(text)
    return "*" * (len(text) - 4) + text[-4:]


HASH_PREFIX = "sha256:"
HASH_LENGTH = 16


def hashed(value: Any, path: str, data: Any) -> str:
    """Replace with a short SHA-256 digest so equal values stay correlatable.

    Values that already look like a digest are kept, so redacting twice
    gives the same result as redacting once.
    """
    text = str(value)
    if text.startswith(HASH_PREFIX) and len(text) == len(HASH_PREFIX) + HASH_LENGTH:
        return text
    return HASH_PREFIX + hashlib.sha256(text.encode()).hexdigest()[:HASH_LENGTH]


REPLACEMENT_STRATEGIES: dict[str, ReplacementFunc] = {
    "mask": mask,
    "mask_length": mask_length,
    "last_four": last_four,
    "hash": hashed,
}


class RedactorRegistry:
    """Maps redactor identifiers to factories."""

    def __init__(self, factories: Mapping[str, RedactorFactory] | None = None):
        self._factories: dict[str, RedactorFactory] = dict(factories or {})

    def register(self, name: str, factory: RedactorFactory) -> None:
        """Register (or replace) a factory under ``name``."""
        if not name or not callable(factory):
            raise ConfigurationError(f"Invalid redactor registration for '{name}'")
        self._factories[name] = factory

    def names(self) -> list[str]:
        return sorted(self._factories)

    def __contains__(self, name: object) -> bool:
        return name in self._factories

    def create(self, spec: Any) -> RedactionRule | Redactor:
        """Resolve one spec into a rule or redactor.

        Raises:
            ConfigurationError: If the identifier is unknown or the
                arguments do not fit the factory
        """
        if isinstance(spec, RedactionRule):
            return spec

        if isinstance(spec, Redactor) and not isinstance(spec, type):
            return spec

        if isinstance(spec, str):
            return self._build(spec, {})

        if isinstance(spec, Mapping):
            options = dict(spec)
            name = options.pop("type", None)
            if not isinstance(name, str):
                raise ConfigurationError(f"Redactor spec is missing a 'type': {dict(spec)!r}")

            strategy = options.pop("replacement_strategy", None)
            if strategy is not None:
                if "replacement" in options:
                    raise ConfigurationError(
                        f"Redactor '{name}' sets both 'replacement' and 'replacement_strategy'"
                    )
                if strategy not in REPLACEMENT_STRATEGIES:
                    raise ConfigurationError(
                        f"Unknown replacement strategy '{strategy}'",
                        [f"available: {', '.join(sorted(REPLACEMENT_STRATEGIES))}"],
                    )
                options["replacement"] = REPLACEMENT_STRATEGIES[strategy]

            return self._build(name, options)

        raise ConfigurationError(f"Invalid redactor configuration: {spec!r}")

    def create_all(self, specs: Iterable[Any]) -> list[RedactionRule | Redactor]:
        return [self.create(spec) for spec in specs]

    def _build(self, name: str, options: dict[str, Any]) -> Redactor:
        factory = self._factories.get(name)
        if factory is None:
            raise ConfigurationError(
                f"Unknown redactor '{name}'",
                [f"available: {', '.join(self.names())}"],
            )
        try:
            return factory(**options)
        except TypeError as e:
            raise ConfigurationError(f"Invalid options for redactor '{name}': {e}")


def default_registry() -> RedactorRegistry:
    """Create a registry holding the built-in redactors."""
    return RedactorRegistry(
        {
            "dot_notation": DotNotationRedactor,
            "common_headers": CommonHeaderFields,
            "common_body": CommonBodyFields,
            "pii": PiiRedactor,
            "pci": PciRedactor,
            "hipaa": HipaaRedactor,
            "value_patterns": ValuePatternRedactor,
        }
    )
