"""
Moroccan business identifiers (ICE, IF, RC, CNSS, Patente) and invoice numbers.
"""

import logging
import re
from enum import Enum
from typing import Optional

from .base_extractor import BaseExtractor
from .locales import FR_LOCALE, OcrLocale
from .models import ExtractionResult, MoroccanIdentifiers

logger = logging.getLogger(__name__)


class IdentifierType(str, Enum):
    ICE = "ice"
    IF = "if"
    RC = "rc"
    CNSS = "cnss"
    PATENTE = "patente"


IDENTIFIER_PATTERNS = {
    IdentifierType.ICE: re.compile(r'ICE\s*[:]?\s*(\d{15})', re.IGNORECASE),
    IdentifierType.IF: re.compile(r'I\.?F\.?\s*[:]?\s*(\d{7,8})', re.IGNORECASE),
    IdentifierType.RC: re.compile(r'R\.?C\.?\s*[:]?\s*(\d{5,6})', re.IGNORECASE),
    IdentifierType.CNSS: re.compile(r'CNSS\s*[:]?\s*(\d{7,10})', re.IGNORECASE),
    IdentifierType.PATENTE: re.compile(r'(?:patente|TP)\s*[:]?\s*(\d{7,10})', re.IGNORECASE),
}

GENERIC_INVOICE_NUMBER = re.compile(r'(?:FA|FAC|INV|BL|BC|CMD)[- ]?(\d{4,})', re.IGNORECASE)


def is_valid_ice(ice: Optional[str]) -> bool:
    """An ICE is exactly 15 digits."""
    if not ice:
        return False
    return re.fullmatch(r'\d{15}', re.sub(r'\s', '', ice)) is not None


def is_valid_if(fiscal_id: Optional[str]) -> bool:
    if not fiscal_id:
        return False
    return re.fullmatch(r'\d{7,8}', re.sub(r'\s', '', fiscal_id)) is not None


class IdentifierExtractor(BaseExtractor):
    """Extract legal identifiers and the document number."""

    def extract(self, text: str, kind: IdentifierType = IdentifierType.ICE) -> ExtractionResult:
        pattern = IDENTIFIER_PATTERNS[kind]
        match = pattern.search(text)
        if not match:
            return self.failure()

        value = match.group(1)
        confidence = self.calculate_confidence(match, text)
        if not self._validate(value, kind):
            confidence -= 0.2

        return self.success(value, confidence, match.group(0), pattern)

    def extract_all_moroccan(self, text: str) -> MoroccanIdentifiers:
        return MoroccanIdentifiers(
            ice=self.extract(text, IdentifierType.ICE),
            fiscal_id=self.extract(text, IdentifierType.IF),
            trade_register=self.extract(text, IdentifierType.RC),
            cnss=self.extract(text, IdentifierType.CNSS),
            patente=self.extract(text, IdentifierType.PATENTE),
        )

    def extract_invoice_number(self, text: str, locale: OcrLocale = FR_LOCALE) -> ExtractionResult:
        """
        Find the invoice number.

        Tries the locale label patterns first, then the locale fallback shapes
        (e.g. ``FA2025001``), then a generic document prefix. Each step down
        costs confidence.
        """
        found = self.try_patterns(text, locale.invoice_number)
        if found and found[0].group(1):
            match, pattern = found
            return self.success(match.group(1).strip(), self.calculate_confidence(match, text),
                                match.group(0), pattern)

        found = self.try_patterns(text, locale.invoice_number_fallback)
        if found and found[0].group(1):
            match, pattern = found
            return self.success(match.group(1).strip(), self.calculate_confidence(match, text) - 0.1,
                                match.group(0), pattern)

        match = GENERIC_INVOICE_NUMBER.search(text)
        if match:
            return self.success(match.group(1).strip(), self.calculate_confidence(match, text) - 0.15,
                                match.group(0), GENERIC_INVOICE_NUMBER)

        logger.debug("No invoice number found")
        return self.failure()

    @staticmethod
    def _validate(value: str, kind: IdentifierType) -> bool:
        if kind == IdentifierType.ICE:
            return is_valid_ice(value)
        if kind == IdentifierType.IF:
            return is_valid_if(value)
        return len(value) > 0
