"""
Customer (billed party) extraction.
"""

import logging
import re
from dataclasses import replace
from typing import Optional

from .base_extractor import BaseExtractor
from .contact_extractor import ContactExtractor
from .entity_zone_detector import EntityZoneDetector
from .gazetteer import DEFAULT_GAZETTEER, CityGazetteer
from .locales import FR_LOCALE, OcrLocale
from .models import CustomerExtractionResult, EntitySource, ExtractionResult, InvoiceClient
from .patterns import DEFAULT_PATTERNS, PatternTable

logger = logging.getLogger(__name__)

BLOCK_MIN_CONFIDENCE = 0.6
LABELED_MIN_CONFIDENCE = 0.5
CODE_ONLY_CONFIDENCE = 0.5

_IS = re.IGNORECASE | re.DOTALL

# Label, then everything up to a blank line or the next identifying field
CUSTOMER_LABEL_PATTERNS = (
    (re.compile(r'factur[ée]\s*[àa]\s*[:：]?\s*(.+?)(?=\n{2}|\ndate|\nice|\ni\.?f|\Z)', _IS), 0.95),
    (re.compile(r'client\s*[:：]\s*(.+?)(?=\n{2}|\ndate|\nice|\Z)', _IS), 0.90),
    (re.compile(r'destinataire\s*[:：]\s*(.+?)(?=\n{2}|\ndate|\Z)', _IS), 0.90),
    (re.compile(r'livr[ée]\s*[àa]\s*[:：]?\s*(.+?)(?=\n{2}|\Z)', _IS), 0.85),
    (re.compile(r'bill(?:ed)?\s*to\s*[:：]?\s*(.+?)(?=\n{2}|\ndate|\Z)', _IS), 0.95),
    (re.compile(r'ship(?:ped)?\s*to\s*[:：]?\s*(.+?)(?=\n{2}|\Z)', _IS), 0.85),
)

CUSTOMER_ICE = re.compile(r'ice\s*(?:client)?\s*[:：]?\s*(\d{15})', re.IGNORECASE)
IDENTIFIER_LINE = re.compile(r'^(ice|i\.?f\.?|r\.?c\.?|tél|tel|code\s*client)', re.IGNORECASE)
COMPANY_INDICATOR = re.compile(r'(sarl|sa|sas|sasu|eurl|société|ste|ets|group|entreprise|centre|optique|optic)',
                               re.IGNORECASE)
UPPERCASE_NAME = re.compile(r'[A-ZÀ-Ü\s&.\-]+')


class CustomerExtractor(BaseExtractor):
    """
    Find who the invoice is billed to.

    Uses the customer block from the entity zone detector when it is
    trustworthy, then labeled sections ("Facturé à", "Bill to"...), and as a
    last resort a bare customer code.
    """

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS, gazetteer: CityGazetteer = DEFAULT_GAZETTEER):
        self.gazetteer = gazetteer
        self.contact_extractor = ContactExtractor(patterns, gazetteer)
        self.entity_zone_detector = EntityZoneDetector(patterns)

    def extract(self, text: str, locale: OcrLocale = FR_LOCALE) -> ExtractionResult:
        result = self.extract_customer(text, locale)
        if result.customer is None:
            return self.failure()
        return ExtractionResult(value=result.customer, confidence=result.confidence, source_text=text,
                                matched_pattern='customer-extraction')

    def extract_customer(self, text: str, locale: OcrLocale = FR_LOCALE,
                         vendor_name: Optional[str] = None) -> CustomerExtractionResult:
        blocks = self.entity_zone_detector.detect_entity_blocks(text)

        if blocks.customer and blocks.customer.confidence >= BLOCK_MIN_CONFIDENCE:
            customer = self._extract_from_block(blocks.customer.text, locale, vendor_name)
            if customer:
                customer_code = self.entity_zone_detector.extract_customer_code(text)
                return CustomerExtractionResult(
                    customer=replace(customer, customer_code=customer_code),
                    confidence=blocks.customer.confidence,
                    source=blocks.customer.source,
                    customer_code=customer_code,
                )

        labeled = self._extract_labeled_customer(text, locale)
        if labeled.customer and labeled.confidence >= LABELED_MIN_CONFIDENCE:
            return labeled

        customer_code = self.entity_zone_detector.extract_customer_code(text)
        if customer_code:
            return CustomerExtractionResult(
                customer=InvoiceClient(customer_code=customer_code),
                confidence=CODE_ONLY_CONFIDENCE,
                source=EntitySource.INFERRED,
                customer_code=customer_code,
            )

        logger.debug("No customer found")
        return CustomerExtractionResult()

    def _extract_labeled_customer(self, text: str, locale: OcrLocale) -> CustomerExtractionResult:
        for pattern, confidence in CUSTOMER_LABEL_PATTERNS:
            match = pattern.search(text)
            if not match or not match.group(1):
                continue

            customer = self._extract_from_block(match.group(1).strip(), locale)
            if customer:
                customer_code = self.entity_zone_detector.extract_customer_code(text)
                return CustomerExtractionResult(
                    customer=replace(customer, customer_code=customer_code),
                    confidence=confidence,
                    source=EntitySource.LABELED,
                    customer_code=customer_code,
                )

        return CustomerExtractionResult()

    def _extract_from_block(self, block_text: str, locale: OcrLocale,
                            vendor_name: Optional[str] = None) -> Optional[InvoiceClient]:
        name = self._extract_customer_name(block_text, locale, vendor_name)
        address = self.contact_extractor.extract_address(block_text, locale, name)
        phone = self.contact_extractor.extract_phone(block_text, locale)

        if not name and not address.value and not phone.value:
            return None

        ice_match = CUSTOMER_ICE.search(block_text)
        return InvoiceClient(
            name=name,
            billing_address=address.value,
            billing_address_details=address.components,
            ice=ice_match.group(1) if ice_match else None,
            phone=phone.value,
        )

    def _extract_customer_name(self, text: str, locale: OcrLocale,
                               vendor_name: Optional[str] = None) -> Optional[str]:
        lines = [line.strip() for line in text.split('\n') if line.strip()]

        for line in lines:
            if vendor_name and vendor_name.lower() in line.lower():
                continue
            if self.gazetteer.looks_like_address(line):
                continue
            if IDENTIFIER_LINE.match(line):
                continue
            if self._looks_like_company_name(line, locale):
                return line

        if lines and 3 <= len(lines[0]) <= 60:
            return lines[0]
        return None

    @staticmethod
    def _looks_like_company_name(line: str, locale: OcrLocale) -> bool:
        if not re.match(r'[A-ZÀ-Ü]', line):
            return False
        if len(line) < 3 or len(line) > 80:
            return False
        if len(re.findall(r'\d', line)) > len(line) * 0.3:
            return False

        words = line.lower().split()
        if all(word in locale.stop_words for word in words):
            return False

        if COMPANY_INDICATOR.search(line):
            return True
        if UPPERCASE_NAME.fullmatch(line) and len(line) >= 5:
            return True
        return len(words) >= 2
