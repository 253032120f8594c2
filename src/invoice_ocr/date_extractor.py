"""
Invoice and due date extraction.
"""

import logging
import re
from datetime import date
from typing import List, Optional, Pattern

from unidecode import unidecode

from .base_extractor import BaseExtractor
from .locales import FR_LOCALE, OcrLocale
from .models import ExtractionResult

logger = logging.getLogger(__name__)

DATE_TYPES = ('invoice', 'due', 'generic')

NUMERIC_DATE = re.compile(r'(\d{1,2})\s*[/\-.]\s*(\d{1,2})\s*[/\-.]\s*(\d{2,4})')

YEARS_BACK = 10
YEARS_AHEAD = 2


def _fold(text: str) -> str:
    return unidecode(text).lower()


def text_date_pattern(locale: OcrLocale) -> Pattern:
    """'12 mars 2025' style dates, built from the locale month names."""
    months = '|'.join(re.escape(_fold(month)) for month in locale.months)
    return re.compile(rf'(\d{{1,2}})(?:er)?\s+({months})\.?\s+(\d{{4}})', re.IGNORECASE)


def parse_date(raw: str, locale: OcrLocale = FR_LOCALE) -> Optional[date]:
    """
    Parse a day-first numeric date or a spelled-out one.

    Two-digit years below 50 are read as 20xx, the rest as 19xx.
    """
    folded = _fold(raw)

    match = text_date_pattern(locale).search(folded)
    if match:
        day = int(match.group(1))
        month = [_fold(m) for m in locale.months].index(match.group(2).lower()) + 1
        year = int(match.group(3))
    else:
        match = NUMERIC_DATE.search(folded)
        if not match:
            return None
        day, month, year = (int(group) for group in match.groups())

    if year < 100:
        year += 2000 if year < 50 else 1900

    try:
        return date(year, month, day)
    except ValueError:
        return None


class DateExtractor(BaseExtractor):
    """Find invoice and due dates, rejecting dates outside a plausible window."""

    def __init__(self, today: Optional[date] = None):
        self.today = today or date.today()

    def is_plausible(self, value: date) -> bool:
        earliest = date(self.today.year - YEARS_BACK, 1, 1)
        latest = date(self.today.year + YEARS_AHEAD, 12, 31)
        return earliest <= value <= latest

    def extract(self, text: str, locale: OcrLocale = FR_LOCALE, date_type: str = 'invoice') -> ExtractionResult:
        if date_type not in DATE_TYPES:
            raise ValueError(f"Unknown date type: {date_type}")

        if date_type != 'generic':
            patterns = locale.invoice_date if date_type == 'invoice' else locale.due_date
            for pattern in patterns:
                match = pattern.search(text)
                if not match or not match.group(1):
                    continue
                parsed = parse_date(match.group(1), locale)
                if parsed and self.is_plausible(parsed):
                    confidence = min(self.calculate_confidence(match, text) + 0.15, 1.0)
                    return self.success(parsed, confidence, match.group(0), pattern)

            if date_type == 'due':
                return self.failure()

        folded = _fold(text)
        for pattern in (text_date_pattern(locale), NUMERIC_DATE):
            for match in pattern.finditer(folded):
                parsed = parse_date(match.group(0), locale)
                if parsed and self.is_plausible(parsed):
                    confidence = self.calculate_confidence(match, folded) - 0.1
                    return self.success(parsed, confidence, match.group(0), pattern)

        logger.debug(f"No {date_type} date found")
        return self.failure()

    def extract_all(self, text: str, locale: OcrLocale = FR_LOCALE) -> List[date]:
        """Every plausible date in the text, in order, without duplicates."""
        found: List[date] = []
        for pattern in (NUMERIC_DATE, text_date_pattern(locale)):
            source = text if pattern is NUMERIC_DATE else _fold(text)
            for match in pattern.finditer(source):
                parsed = parse_date(match.group(0), locale)
                if parsed and self.is_plausible(parsed) and parsed not in found:
                    found.append(parsed)
        return found
