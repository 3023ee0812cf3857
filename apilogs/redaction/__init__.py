"""Path-based redaction for API log records."""

from __future__ import annotations

from .engine import DEFAULT_REPLACEMENT, RedactionRule, apply_rule, parse_path, redact
from .patterns import SensitiveDataType, ValuePattern, ValuePatternRedactor
from .presets import CommonBodyFields, CommonHeaderFields, HipaaRedactor, PciRedactor, PiiRedactor
from .redactors import DotNotationRedactor, Redactor
from .registry import REPLACEMENT_STRATEGIES, RedactorRegistry, default_registry

__all__ = [
    # Engine
    "DEFAULT_REPLACEMENT",
    "RedactionRule",
    "apply_rule",
    "parse_path",
    "redact",
    # Redactors
    "Redactor",
    "DotNotationRedactor",
    "CommonHeaderFields",
    "CommonBodyFields",
    "PiiRedactor",
    "PciRedactor",
    "HipaaRedactor",
    "SensitiveDataType",
    "ValuePattern",
    "ValuePatternRedactor",
    # Registry
    "REPLACEMENT_STRATEGIES",
    "RedactorRegistry",
    "default_registry",
]
