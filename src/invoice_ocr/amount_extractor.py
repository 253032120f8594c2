"""
Document-level amounts: totals, VAT and VAT rate detection.
"""

import logging
import re
from typing import List, Optional

from .base_extractor import BaseExtractor
from .locales import FR_LOCALE, OcrLocale
from .models import ExtractionResult, InvoiceTotals
from .patterns import parse_number

logger = logging.getLogger(__name__)

AMOUNT_TYPES = ('total_ht', 'total_ttc', 'vat', 'discount', 'net_to_pay')

KNOWN_VAT_RATES = (0.07, 0.1, 0.14, 0.2, 0.21, 0.19, 0.055)
VAT_RATE_TOLERANCE = 0.01

ANY_AMOUNT = re.compile(r'([\d\s]+[.,]\d{2})')


class AmountExtractor(BaseExtractor):
    """Find labeled totals in the document using the locale amount patterns."""

    def extract(self, text: str, locale: OcrLocale = FR_LOCALE, amount_type: str = 'total_ttc') -> ExtractionResult:
        if amount_type not in AMOUNT_TYPES:
            raise ValueError(f"Unknown amount type: {amount_type}")

        patterns = getattr(locale.amounts, amount_type)
        found = self.try_patterns(text, patterns)
        if not found or not found[0].group(1):
            return self.failure()

        match, pattern = found
        amount = parse_number(match.group(1))
        if amount <= 0:
            logger.debug(f"Ignoring non-positive {amount_type}: {match.group(0)!r}")
            return self.failure()

        return self.success(amount, self.calculate_confidence(match, text), match.group(0), pattern)

    @staticmethod
    def extract_all_amounts(text: str) -> List[float]:
        """Every decimal amount with two fraction digits, in document order."""
        amounts = (parse_number(raw) for raw in ANY_AMOUNT.findall(text))
        return [amount for amount in amounts if amount > 0]

    def extract_all_labeled(self, text: str, locale: OcrLocale = FR_LOCALE) -> InvoiceTotals:
        values = {name: self.extract(text, locale, name).value for name in AMOUNT_TYPES}
        return InvoiceTotals(
            total_ht=values['total_ht'],
            total_vat=values['vat'],
            total_ttc=values['total_ttc'],
            discount=values['discount'],
            net_to_pay=values['net_to_pay'],
        )

    @staticmethod
    def calculate_vat(total_ht: float, total_ttc: float) -> float:
        return max(0.0, total_ttc - total_ht)

    @staticmethod
    def detect_vat_rate(total_ht: float, vat: float) -> Optional[float]:
        """
        Guess the VAT rate from the amounts.

        Snaps to a known rate when within one point, otherwise returns the
        raw rate rounded to two decimals as long as it is plausible.
        """
        if total_ht <= 0:
            return None

        rate = vat / total_ht
        for known in KNOWN_VAT_RATES:
            if abs(rate - known) < VAT_RATE_TOLERANCE:
                return known

        if 0 < rate < 0.5:
            return round(rate, 2)
        return None
