"""Redaction utilities for error text and traced payloads."""

from __future__ import annotations

import re
from typing import Any

REDACTED = "[REDACTED]"
# (pattern, replacement) pairs; group 1, when present, is kept as a prefix.
SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"\bEAA[A-Za-z0-9]{20,}\b"), REDACTED),
    (re.compile(r"\b(?:pk|sk)-lf-[A-Za-z0-9:_-]{8,}\b"), REDACTED),
    (re.compile(r"(?i)\b(authorization\s*:\s*bearer\s+)[A-Za-z0-9._:-]+"), r"\1" + REDACTED),
    (re.compile(r"(?i)\b(access[_-]?token\s*[=:]\s*)[\"']?[A-Za-z0-9._:-]{8,}[\"']?"), r"\1" + REDACTED),
    (re.compile(r"(?i)\b(api[-_ ]?key\s*[=:]\s*)[\"']?[A-Za-z0-9._:-]{8,}[\"']?"), r"\1" + REDACTED),
]
PHONE_PATTERN = re.compile(r"(?<!\w)\+?\d(?:[\s-]?\d){9,14}(?!\w)")


def redact_text(value: str) -> str:
    """Redact credentials and mask phone numbers in a text value."""
    redacted = value
    for pattern, replacement in SENSITIVE_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return PHONE_PATTERN.sub(_mask_phone, redacted)


def redact_mapping(value: Any) -> Any:
    """Recursively redact strings in nested dictionaries/lists."""
    if isinstance(value, str):
        return redact_text(value)
    if isinstance(value, dict):
        return {k: redact_mapping(v) for k, v in value.items()}
    if isinstance(value, list):
        return [redact_mapping(item) for item in value]
    return value


def _mask_phone(match: re.Match[str]) -> str:
    digits = re.sub(r"\D", "", match.group(0))
    return f"***{digits[-4:]}"
