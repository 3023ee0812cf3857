"""Dot-notation path redaction engine.

Paths address values in nested dict/list structures with dot-separated
segments. List items are addressed by their index (``items.0.name``).

Supported segment forms:
- ``key``: exact key or list index
- ``*``: every key (or index) at exactly one level
- ``**``: zero or more levels. Only the first ``**`` splits the pattern
  into a prefix and a suffix; any later wildcard segment in either side
  matches a single level.

Rules are applied one after another to a private deep copy of the input,
so the caller's data is never modified.
"""

from __future__ import annotations

import copy
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from ..exceptions import ConfigurationError

DEFAULT_REPLACEMENT = "[REDACTED]"

SINGLE_WILDCARD = "*"
DEEP_WILDCARD = "**"

# Replacement callables receive (current value, resolved path, full data)
ReplacementFunc = Callable[[Any, str, Any], Any]

_MISSING = object()


class PathKind:
    """How a rule's path is matched."""

    EXACT = "exact"
    WILDCARD = "wildcard"
    DEEP = "deep"


@dataclass(frozen=True)
class RedactionRule:
    """A single path pattern and the value that replaces its matches.

    Attributes:
        path: Dot-separated path pattern
        replacement: Literal value, or a callable invoked as
            ``replacement(value, path, data)``
    """

    path: str
    replacement: Any = DEFAULT_REPLACEMENT
    segments: tuple[str, ...] = field(init=False, repr=False, compare=False)
    kind: str = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        segments = parse_path(self.path)
        object.__setattr__(self, "segments", segments)

        if DEEP_WILDCARD in segments:
            kind = PathKind.DEEP
        elif SINGLE_WILDCARD in segments:
            kind = PathKind.WILDCARD
        else:
            kind = PathKind.EXACT
        object.__setattr__(self, "kind", kind)

    def resolve(self, value: Any, path: str, data: Any) -> Any:
        """Compute the replacement for a matched value."""
        if callable(self.replacement):
            return self.replacement(value, path, data)
        if isinstance(self.replacement, (dict, list)):
            return copy.deepcopy(self.replacement)
        return self.replacement


def parse_path(path: Any) -> tuple[str, ...]:
    """Split and validate a path pattern.

    Raises:
        ConfigurationError: If the pattern is not a non-empty dotted string
            or contains a partial wildcard segment such as ``pass*``
    """
    if not isinstance(path, str) or not path.strip():
        raise ConfigurationError(f"Redaction path must be a non-empty string, got {path!r}")

    segments = tuple(path.strip().split("."))
    errors = []
    for segment in segments:
        if not segment:
            errors.append(f"empty segment in '{path}'")
        elif "*" in segment and segment not in (SINGLE_WILDCARD, DEEP_WILDCARD):
            errors.append(f"wildcards must fill a whole segment, got '{segment}' in '{path}'")
    if errors:
        raise ConfigurationError("Invalid redaction path", errors)

    return segments


def coerce_rule(rule: Any) -> RedactionRule:
    """Accept a ``RedactionRule`` or a bare path string."""
    if isinstance(rule, RedactionRule):
        return rule
    if isinstance(rule, str):
        return RedactionRule(rule)
    raise ConfigurationError(f"Unsupported redaction rule: {rule!r}")


def redact(data: Any, rules: Iterable[RedactionRule | str]) -> Any:
    """Return a copy of ``data`` with every rule applied in order.

    Non-structured input (anything other than a dict or list) is returned
    unchanged. Missing paths are skipped silently.
    """
    rules = [coerce_rule(rule) for rule in rules]

    if not isinstance(data, (dict, list)):
        return data

    result = copy.deepcopy(data)
    for rule in rules:
        apply_rule(result, rule)
    return result


def apply_rule(data: dict | list, rule: RedactionRule) -> None:
    """Apply one rule to ``data`` in place."""
    if rule.kind == PathKind.EXACT:
        _redact_exact(data, rule)
    elif rule.kind == PathKind.WILDCARD:
        _redact_wildcard(data, data, rule.segments, [], rule)
    else:
        _redact_deep(data, rule)


# --- Structure access ---


def _child_key(node: Any, segment: str) -> Any:
    """Return the real key or index that ``segment`` names in ``node``."""
    if isinstance(node, dict):
        if segment in node:
            return segment
        for key in node:
            if str(key) == segment:
                return key
        return _MISSING

    if isinstance(node, list):
        if segment.isdigit() and int(segment) < len(node):
            return int(segment)
        return _MISSING

    return _MISSING


def _keys(node: Any) -> list:
    if isinstance(node, dict):
        return list(node.keys())
    if isinstance(node, list):
        return list(range(len(node)))
    return []


def _has_key(node: Any, key: Any) -> bool:
    if isinstance(node, dict):
        return key in node
    if isinstance(node, list):
        return isinstance(key, int) and 0 <= key < len(node)
    return False


def _join(keys: Iterable[Any]) -> str:
    return ".".join(str(key) for key in keys)


# --- Exact paths ---


def _redact_exact(data: dict | list, rule: RedactionRule) -> None:
    node = data
    for segment in rule.segments[:-1]:
        key = _child_key(node, segment)
        if key is _MISSING:
            return
        node = node[key]

    key = _child_key(node, rule.segments[-1])
    if key is _MISSING or node[key] is None:
        return
    node[key] = rule.resolve(node[key], rule.path, data)


# --- Single-level wildcards ---


def _redact_wildcard(
    data: dict | list,
    node: Any,
    segments: tuple[str, ...],
    trail: list[str],
    rule: RedactionRule,
) -> None:
    segment, rest = segments[0], segments[1:]

    if segment == SINGLE_WILDCARD:
        for key in _keys(node):
            path = trail + [str(key)]
            if rest:
                _redact_wildcard(data, node[key], rest, path, rule)
            else:
                node[key] = rule.resolve(node[key], _join(path), data)
        return

    key = _child_key(node, segment)
    if key is _MISSING:
        return

    path = trail + [segment]
    if rest:
        _redact_wildcard(data, node[key], rest, path, rule)
    elif node[key] is not None:
        node[key] = rule.resolve(node[key], _join(path), data)


# --- Deep wildcards ---


def _split_deep(segments: tuple[str, ...]) -> tuple[tuple[str, ...], tuple[str, ...]]:
    index = segments.index(DEEP_WILDCARD)
    return segments[:index], segments[index + 1 :]


def _walk(node: Any, trail: tuple = ()) -> Iterator[tuple]:
    """Yield the key path of every node below ``node``, depth-first."""
    for key in _keys(node):
        path = trail + (key,)
        yield path
        child = node[key]
        if isinstance(child, (dict, list)):
            yield from _walk(child, path)


def _segment_matches(pattern: str, segment: str) -> bool:
    return pattern in (SINGLE_WILDCARD, DEEP_WILDCARD) or pattern == segment


def deep_path_matches(path: Iterable[Any], prefix: tuple[str, ...], suffix: tuple[str, ...]) -> bool:
    """Check whether a key path starts with ``prefix`` and ends with ``suffix``.

    Prefix and suffix may not overlap: ``a.**.a`` does not match ``a``.
    """
    segments = [str(key) for key in path]
    if len(segments) < len(prefix) + len(suffix):
        return False

    head = segments[: len(prefix)]
    tail = segments[len(segments) - len(suffix) :]
    return all(_segment_matches(p, s) for p, s in zip(prefix, head)) and all(
        _segment_matches(p, s) for p, s in zip(suffix, tail)
    )


def _redact_deep(data: dict | list, rule: RedactionRule) -> None:
    prefix, suffix = _split_deep(rule.segments)
    matches = [path for path in _walk(data) if deep_path_matches(path, prefix, suffix)]

    for path in matches:
        node = data
        for key in path[:-1]:
            if not _has_key(node, key):
                break
            node = node[key]
        else:
            key = path[-1]
            # An ancestor replaced earlier in this pass hides the match
            if not _has_key(node, key) or node[key] is None:
                continue
            node[key] = rule.resolve(node[key], _join(path), data)
