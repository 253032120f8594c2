"""
Permissive line extraction used once every strict format has failed.

The results are low-confidence guesses that always need a human look, but a
guess that needs review is still better than no data at all.
"""

import logging
import re
from typing import List, Optional

from .models import ExtractionMethod, FieldConfidence, InvoiceLine
from .patterns import calculate_net_price, parse_number, parse_ocr_amount
from .strategies import Strategy, first_valid

logger = logging.getLogger(__name__)

LOOSE_CONFIDENCE = FieldConfidence(
    reference=0.4,
    designation=0.5,
    quantity=0.6,
    unit_price=0.6,
    total=0.5,
)

# Accepts OCR garbage (f ] } | ...) in the price column
LOOSE_EXTENDED = re.compile(
    r'^([a-z0-9\-\.]{2,})\s+(.+?)\s+(\d+(?:[\.,]\d+)?)\s+([\d\s\.,\]\[\}\{\)\|f]+)\s*([\d\.\s]*%?)?\s*([\d\s\.,]*)?',
    re.IGNORECASE)
LEADING_CODE = re.compile(r'^([A-Z0-9][-A-Z0-9./]{2,20})\s+', re.IGNORECASE)
QTY_TIMES_PRICE = re.compile(r'(\d+)\s*[xX×]\s*(\d+(?:[.,]\d+)?)')
NUMBER = re.compile(r'\d+(?:[.,]\d+)?')
PERCENT = re.compile(r'(\d+(?:[.,]\d+)?)\s*%')
REFERENCE_PREFIX = re.compile(r'^([A-Z0-9][-A-Z0-9.]{2,15})', re.IGNORECASE)


def _is_year(value: float) -> bool:
    return 2000 <= value <= 2100


def placeholder_designation(line_index: int) -> str:
    return f"Article (ligne {line_index + 1})"


class LooseFallbackExtractor:
    """Four heuristics, from a tolerant regex down to "any line with numbers"."""

    def __init__(self):
        self.strategies = (
            Strategy(ExtractionMethod.LOOSE_EXTENDED_OCR.value, self._try_extended_ocr_artifacts),
            Strategy(ExtractionMethod.LOOSE_CODE_AMOUNTS.value, self._try_code_with_amounts),
            Strategy(ExtractionMethod.LOOSE_QTY_PRICE.value, self._try_minimal_qty_price),
            Strategy(ExtractionMethod.LOOSE_MULTI_NUMBERS.value, self._try_multiple_numbers),
        )

    def extract(self, raw_text: str, line_index: int, default_vat_rate: float) -> Optional[InvoiceLine]:
        """
        Try the loose heuristics on one line.

        Returns:
            An InvoiceLine flagged for review, whose ``method`` names the
            heuristic that matched, or None.
        """
        trimmed = raw_text.strip()
        if len(trimmed) < 10:
            return None

        found = first_valid(self.strategies, trimmed, line_index, default_vat_rate)
        if found is None:
            return None
        return found[1]

    def _try_extended_ocr_artifacts(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        match = LOOSE_EXTENDED.match(line)
        if not match:
            return None

        reference = (match.group(1) or '').strip() or None
        designation = (match.group(2) or '').strip() or None
        quantity = parse_number(match.group(3) or '0')
        unit_price = parse_ocr_amount(match.group(4) or '0')

        discount_match = PERCENT.search(match.group(5) or '')
        discount_percent = parse_number(discount_match.group(1)) if discount_match else 0.0

        total = parse_ocr_amount(match.group(6) or '')
        if total <= 0 and quantity > 0 and unit_price > 0:
            total = quantity * calculate_net_price(unit_price, discount_percent)

        if not designation and not reference:
            return None
        if quantity <= 0 and unit_price <= 0:
            return None

        return self._create_loose_line(reference, designation, quantity, unit_price, discount_percent, total,
                                       line, line_index, vat_rate, ExtractionMethod.LOOSE_EXTENDED_OCR)

    def _try_code_with_amounts(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        code_match = LEADING_CODE.match(line)
        if not code_match:
            return None

        reference = code_match.group(1)
        rest = line[code_match.end():]

        numbers = self._extract_numbers(rest)
        if len(numbers) < 2:
            return None

        # Last number is the total, the one before it the price
        total = numbers[-1]
        quantity = 1.0
        unit_price = numbers[-2]

        if len(numbers) >= 3:
            first_number = numbers[0]
            if first_number <= 100 and first_number.is_integer():
                quantity = first_number

        first_digit = re.search(r'\d', rest)
        designation = rest[:first_digit.start()].strip() if first_digit and first_digit.start() > 0 else ''

        discount_match = PERCENT.search(rest)
        discount_percent = parse_number(discount_match.group(1)) if discount_match else 0.0

        return self._create_loose_line(reference, designation or f"Article {reference}", quantity, unit_price,
                                       discount_percent, total, line, line_index, vat_rate,
                                       ExtractionMethod.LOOSE_CODE_AMOUNTS)

    def _try_minimal_qty_price(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        match = QTY_TIMES_PRICE.search(line)
        if not match:
            return None

        quantity = float(int(match.group(1)))
        unit_price = parse_number(match.group(2))
        if quantity <= 0 or unit_price <= 0:
            return None

        return self._create_loose_line(None, placeholder_designation(line_index), quantity, unit_price, 0.0,
                                       quantity * unit_price, line, line_index, vat_rate,
                                       ExtractionMethod.LOOSE_QTY_PRICE)

    def _try_multiple_numbers(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        numbers = [n for n in self._extract_numbers(line) if not _is_year(n)]
        if len(numbers) < 2:
            return None

        total = numbers[-1]
        quantity = next((n for n in numbers if 0 < n <= 100 and n.is_integer()), 1.0)

        price_candidates = [n for n in numbers[:-1] if n > 10]
        unit_price = max(price_candidates) if price_candidates else total / quantity

        text_only = re.sub(r'[\d\s.,\-/\\%]+', ' ', line).strip()
        designation = text_only if len(text_only) >= 3 else placeholder_designation(line_index)

        ref_match = REFERENCE_PREFIX.match(line)
        reference = ref_match.group(1) if ref_match else None

        discount_match = PERCENT.search(line)
        discount_percent = parse_number(discount_match.group(1)) if discount_match else 0.0

        return self._create_loose_line(reference, designation, quantity, unit_price, discount_percent, total,
                                       line, line_index, vat_rate, ExtractionMethod.LOOSE_MULTI_NUMBERS)

    @staticmethod
    def _extract_numbers(text: str) -> List[float]:
        values = (parse_number(token) for token in NUMBER.findall(text))
        return [value for value in values if value > 0]

    @staticmethod
    def _create_loose_line(reference: Optional[str], designation: Optional[str], quantity: float,
                           unit_price: float, discount_percent: float, total: float, raw_text: str,
                           line_index: int, vat_rate: float, method: ExtractionMethod) -> InvoiceLine:
        confidence = FieldConfidence(
            reference=LOOSE_CONFIDENCE.reference if reference else 0.0,
            designation=(LOOSE_CONFIDENCE.designation
                         if designation and not designation.startswith('Article') else 0.3),
            quantity=LOOSE_CONFIDENCE.quantity if quantity > 0 else 0.0,
            unit_price=LOOSE_CONFIDENCE.unit_price if unit_price > 0 else 0.0,
            total=LOOSE_CONFIDENCE.total if total > 0 else 0.0,
        )

        return InvoiceLine(
            raw_text=raw_text,
            line_index=line_index,
            method=method,
            reference=reference,
            designation=designation,
            quantity=quantity if quantity > 0 else None,
            unit_price=unit_price if unit_price > 0 else None,
            discount_rate=discount_percent / 100 if discount_percent > 0 else None,
            total=total if total > 0 else None,
            vat_rate=vat_rate,
            confidence=confidence,
            needs_review=True,
        )
