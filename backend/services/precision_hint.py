"""
Precision hints: tokens in an address that pin a geocoding query down harder
than the full address text does.

Singapore postal codes are six digits and map to a single building, so the
default extractor looks for that. Other locales plug in their own pattern.
"""
from __future__ import annotations

import re
from typing import Optional, Protocol

from settings import settings


class PrecisionHintExtractor(Protocol):
    def extract(self, text: Optional[str]) -> Optional[str]:
        ...


class PostalCodeHintExtractor:
    """Return the first token matching a locale's postal-code pattern."""

    def __init__(self, pattern: str) -> None:
        self.pattern = re.compile(pattern)

    def extract(self, text: Optional[str]) -> Optional[str]:
        if not text:
            return None
        match = self.pattern.search(text)
        return match.group(0) if match else None


def default_hint_extractor() -> PostalCodeHintExtractor:
    return PostalCodeHintExtractor(settings.POSTAL_CODE_PATTERN)
