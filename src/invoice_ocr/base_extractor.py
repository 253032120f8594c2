"""
Shared helpers for label-driven extractors.
"""

import re
from typing import Any, Match, Optional, Pattern, Sequence, Tuple

from .models import ExtractionResult


class BaseExtractor:
    """Pattern matching and confidence scoring shared by the field extractors."""

    @staticmethod
    def try_patterns(text: str, patterns: Sequence[Pattern]) -> Optional[Tuple[Match, Pattern]]:
        for pattern in patterns:
            match = pattern.search(text)
            if match:
                return match, pattern
        return None

    @staticmethod
    def calculate_confidence(match: Match, text: str) -> float:
        """
        Score a match between 0.7 and 1.0.

        Points are added when the capture group is the whole match, when the
        match sits in the first 30% of the text, and when it is bounded by
        whitespace.
        """
        confidence = 0.7

        matched_text = match.group(0)
        captured_text = (match.group(1) if match.re.groups >= 1 else None) or ''

        if captured_text and len(captured_text) == len(matched_text.strip()):
            confidence += 0.1

        position = text.find(matched_text)
        if position < len(text) * 0.3:
            confidence += 0.1

        before = text[position - 1] if position > 0 else ''
        end = position + len(matched_text)
        after = text[end] if end < len(text) else ''
        if (not before or before.isspace()) and (not after or after.isspace()):
            confidence += 0.1

        return min(confidence, 1.0)

    @staticmethod
    def success(value: Any, confidence: float, source_text: str, pattern: Pattern) -> ExtractionResult:
        return ExtractionResult(
            value=value,
            confidence=confidence,
            source_text=source_text,
            matched_pattern=pattern.pattern,
        )

    @staticmethod
    def failure() -> ExtractionResult:
        return ExtractionResult()


def group_or_whole(match: Match) -> str:
    """First capture group when the pattern has one, otherwise the full match."""
    if match.re.groups >= 1 and match.group(1):
        return match.group(1)
    return match.group(0)


def collapse_whitespace(text: str) -> str:
    return re.sub(r'\s+', ' ', text).strip()
