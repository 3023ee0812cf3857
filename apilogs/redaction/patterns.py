"""Content-based redaction of secrets embedded in free-text values.

Path rules only help when the sensitive field name is known. This module
scans string values for recognisable secrets (API keys, bearer tokens, JWTs,
card numbers, email addresses) and masks just the matched text, leaving the
rest of the string intact.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from ..exceptions import ConfigurationError
from .engine import RedactionRule, redact


class SensitiveDataType(str, Enum):
    """Kinds of secrets the content scanner recognises."""

    API_KEY = "api_key"
    AUTH_TOKEN = "auth_token"
    JWT = "jwt"
    AWS_KEY = "aws_key"
    PRIVATE_KEY = "private_key"
    CREDIT_CARD = "credit_card"
    SSN = "ssn"
    EMAIL = "email"


@dataclass
class ValuePattern:
    """A pattern for detecting and masking sensitive text."""

    data_type: SensitiveDataType
    pattern: re.Pattern
    replacement: str = "[REDACTED]"
    description: str = ""


# Order matters: more specific patterns run first
DEFAULT_PATTERNS: list[ValuePattern] = [
    ValuePattern(
        SensitiveDataType.PRIVATE_KEY,
        re.compile(
            r"-----BEGIN (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY-----.*?"
            r"-----END (RSA |EC |DSA |OPENSSH |PGP )?PRIVATE KEY-----",
            re.DOTALL,
        ),
        "[REDACTED:PRIVATE_KEY]",
        "Private key block",
    ),
    ValuePattern(
        SensitiveDataType.JWT,
        re.compile(r"eyJ[a-zA-Z0-9_-]*\.eyJ[a-zA-Z0-9_-]*\.[a-zA-Z0-9_-]*"),
        "[REDACTED:JWT]",
        "JSON Web Token",
    ),
    ValuePattern(
        SensitiveDataType.AUTH_TOKEN,
        re.compile(r"[Bb]earer\s+[a-zA-Z0-9\-_\.=]+"),
        "Bearer [REDACTED]",
        "Bearer token",
    ),
    ValuePattern(
        SensitiveDataType.AUTH_TOKEN,
        re.compile(r"[Bb]asic\s+[a-zA-Z0-9=+/]{8,}"),
        "Basic [REDACTED]",
        "Basic auth credentials",
    ),
    ValuePattern(
        SensitiveDataType.API_KEY,
        re.compile(r"sk-(?:ant-)?[a-zA-Z0-9\-_]{20,}"),
        "[REDACTED:API_KEY]",
        "Secret API key (sk- prefix)",
    ),
    ValuePattern(
        SensitiveDataType.API_KEY,
        re.compile(r"gh[po]_[a-zA-Z0-9]{36}"),
        "[REDACTED:GITHUB_TOKEN]",
        "GitHub token",
    ),
    ValuePattern(
        SensitiveDataType.AWS_KEY,
        re.compile(r"AKIA[0-9A-Z]{16}"),
        "[REDACTED:AWS_ACCESS_KEY]",
        "AWS Access Key ID",
    ),
    ValuePattern(
        SensitiveDataType.SSN,
        re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
        "[REDACTED:SSN]",
        "US Social Security Number",
    ),
    ValuePattern(
        SensitiveDataType.CREDIT_CARD,
        re.compile(r"\b(?:\d{4}[-\s]?){3}\d{4}\b"),
        "[REDACTED:CREDIT_CARD]",
        "Credit card number",
    ),
    ValuePattern(
        SensitiveDataType.EMAIL,
        re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}"),
        "[REDACTED:EMAIL]",
        "Email address",
    ),
]


class ValuePatternRedactor:
    """Mask recognisable secrets inside string values.

    Args:
        types: Data types to scan for (all types by default). Accepts enum
            members or their string values.
        custom_patterns: Extra patterns appended after the built-in ones
        paths: Restrict scanning to these path patterns. The whole
            structure is scanned when omitted.
        preserve_suffix_length: Keep this many trailing characters of each
            match visible, e.g. the last four digits of a card
        max_depth: Nesting depth below which values are left alone
    """

    def __init__(
        self,
        types: Iterable[SensitiveDataType | str] | None = None,
        custom_patterns: Iterable[ValuePattern] | None = None,
        paths: Iterable[str] | None = None,
        preserve_suffix_length: int = 0,
        max_depth: int = 32,
    ):
        try:
            selected = set(SensitiveDataType) if types is None else {SensitiveDataType(t) for t in types}
        except ValueError as e:
            raise ConfigurationError(f"Unknown sensitive data type: {e}")

        self.types = selected
        self.preserve_suffix_length = preserve_suffix_length
        self.max_depth = max_depth
        self._patterns = [p for p in DEFAULT_PATTERNS if p.data_type in selected]
        self._patterns.extend(custom_patterns or [])
        self._rules = [RedactionRule(path, self._scrub_match) for path in paths] if paths else None

    def scrub_text(self, text: str) -> str:
        """Mask every recognised secret in a string."""
        if not text or not isinstance(text, str):
            return text

        result = text
        for pattern in self._patterns:
            if self.preserve_suffix_length > 0:

                def keep_suffix(match: re.Match, pattern: ValuePattern = pattern) -> str:
                    suffix = match.group(0)[-self.preserve_suffix_length :]
                    return f"{pattern.replacement}...{suffix}"

                result = pattern.pattern.sub(keep_suffix, result)
            else:
                result = pattern.pattern.sub(pattern.replacement, result)

        return result

    def scrub_value(self, value: Any, depth: int = 0) -> Any:
        """Return ``value`` with every nested string scrubbed."""
        if depth > self.max_depth:
            return value

        if isinstance(value, str):
            return self.scrub_text(value)

        if isinstance(value, dict):
            return {key: self.scrub_value(item, depth + 1) for key, item in value.items()}

        if isinstance(value, list):
            return [self.scrub_value(item, depth + 1) for item in value]

        return value

    def _scrub_match(self, value: Any, path: str, data: Any) -> Any:
        return self.scrub_value(value)

    def redact(self, data: Any) -> Any:
        if self._rules is not None:
            return redact(data, self._rules)
        return self.scrub_value(data)
