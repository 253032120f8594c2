"""
Vendor / customer separation in the invoice header.

Explicit labels are trusted first, then a whitespace-gap dual-column
heuristic (left is the vendor, right the customer). Without bounding boxes
the column split is approximate. Legal identifiers found in the footer always
belong to the vendor.
"""

import logging
import re
from typing import List, Optional, Pattern, Sequence, Tuple

from .models import EntityBlock, EntityBlocks, EntitySource, VendorFooterInfo
from .patterns import DEFAULT_PATTERNS, PatternTable
from .zone_detector import ZoneDetector

logger = logging.getLogger(__name__)

_IM = re.IGNORECASE | re.MULTILINE

CUSTOMER_LABELS = (
    re.compile(r'^(?:factur[ée]\s*[àa]|client|destinataire|acheteur)\s*[:：]', _IM),
    re.compile(r'^(?:livr[ée]\s*[àa]|adresse\s*de\s*livraison)\s*[:：]', _IM),
    re.compile(r"^(?:pour|à\s*l['’]attention\s*de|att\.?)\s*[:：]?", _IM),
    re.compile(r'^(?:bill(?:ed)?\s*to|ship(?:ped)?\s*to|customer|buyer)\s*[:：]', _IM),
    re.compile(r'^(?:sold\s*to|deliver(?:ed)?\s*to)\s*[:：]', _IM),
)

VENDOR_LABELS = (
    re.compile(r'^(?:fournisseur|émetteur|vendeur|notre\s*société)\s*[:：]', _IM),
    re.compile(r'^(?:expéditeur|de\s*la\s*part\s*de)\s*[:：]', _IM),
    re.compile(r'^(?:vendor|supplier|seller|from)\s*[:：]', _IM),
)

CUSTOMER_CODE_PATTERNS = (
    re.compile(r'(?:code|n[°o]|ref\.?)\s*client\s*[:：]?\s*(\w+)', re.IGNORECASE),
    re.compile(r'client\s*(?:code|n[°o]|ref\.?)\s*[:：]?\s*(\w+)', re.IGNORECASE),
)

FOOTER_VENDOR_PATTERNS = {
    'ice': re.compile(r'ice\s*[:：]?\s*(\d{15})', re.IGNORECASE),
    'fiscal_id': re.compile(r'i\.?f\.?\s*[:：]?\s*(\d{7,8})', re.IGNORECASE),
    'trade_register': re.compile(r'r\.?c\.?\s*[:：]?\s*(\d{5,6})', re.IGNORECASE),
    'cnss': re.compile(r'cnss\s*[:：]?\s*(\d{7,10})', re.IGNORECASE),
    'patente': re.compile(r'patente\s*[:：]?\s*(\d{7,10})', re.IGNORECASE),
    'bank': re.compile(r'(?:banque|bank)\s*[:：]?\s*([A-Za-zÀ-ÿ\s]+?)(?=\s*[-–|]|\n|$)', re.IGNORECASE),
    'rib': re.compile(r'(?:rib|iban)\s*[:：]?\s*([\d\s]{20,35})', re.IGNORECASE),
    'capital_social': re.compile(r'capital\s*(?:social\s*)?(?:de\s*)?[\s:：]*([\d\s.,]+)\s*(?:dh|€|mad)',
                                 re.IGNORECASE),
    'legal_form': re.compile(r'^(sarl|sa|sas|sasu|eurl|ei|snc)\s+(?:au\s+)?capital', _IM),
}

DUAL_COLUMN = re.compile(r'^(.{10,}?)(?:\s{4,}|\t)(.{10,})$')

VENDOR_INDICATORS = (
    re.compile(r'ice\s*[:：]?\s*\d{15}', re.IGNORECASE),
    re.compile(r'(?:sarl|sa|sas|sasu|eurl)\s', re.IGNORECASE),
    re.compile(r'i\.?f\.?\s*[:：]', re.IGNORECASE),
)

BLOCK_STOP_PATTERNS = (
    re.compile(r'^(facture|devis|avoir|proforma|bl|bc)\s*n[°o]?\s*[:：]?', re.IGNORECASE),
    re.compile(r'^date\s*[:：]?', re.IGNORECASE),
    re.compile(r'^(ice|i\.?f\.?|r\.?c\.?|cnss|patente)\s*[:：]?', re.IGNORECASE),
    re.compile(r'^(tél|tel|phone|fax|email|@)', re.IGNORECASE),
    re.compile(r'code\s*client', re.IGNORECASE),
)

MAX_BLOCK_LINES = 5


def _matches_any(patterns, line: str) -> bool:
    return any(pattern.search(line) for pattern in patterns)


class EntityZoneDetector:
    """Split the header into vendor and customer blocks."""

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS):
        self.zone_detector = ZoneDetector(patterns)

    def detect_entity_blocks(self, text: str) -> EntityBlocks:
        zones = self.zone_detector.detect_zones(text)
        header_text = self.zone_detector.extract_header_zone(text)

        vendor, customer = self._find_labeled_blocks(header_text)
        vendor, customer = self._analyze_positional_layout(header_text, vendor, customer)
        vendor_footer = self._extract_vendor_footer_block(zones.footer_text)

        logger.debug(f"Entity blocks: vendor={vendor.source.value if vendor else None}, "
                     f"customer={customer.source.value if customer else None}, "
                     f"footer={'yes' if vendor_footer else 'no'}")

        return EntityBlocks(vendor=vendor, customer=customer, vendor_footer=vendor_footer)

    def extract_vendor_from_footer(self, footer_text: str) -> VendorFooterInfo:
        """Legal identifiers and bank details; confidence grows with every field found."""
        fields = {}
        for name, pattern in FOOTER_VENDOR_PATTERNS.items():
            match = pattern.search(footer_text)
            fields[name] = match.group(1).strip() if match else None

        found = sum(1 for value in fields.values() if value)
        return VendorFooterInfo(raw_text=footer_text, confidence=min(0.5 + found * 0.1, 0.95), **fields)

    @staticmethod
    def extract_customer_code(text: str) -> Optional[str]:
        for pattern in CUSTOMER_CODE_PATTERNS:
            match = pattern.search(text)
            if match and match.group(1):
                return match.group(1).strip()
        return None

    def _find_labeled_blocks(self, header_text: str) -> Tuple[Optional[EntityBlock], Optional[EntityBlock]]:
        lines = header_text.split('\n')
        vendor = None
        customer = None

        for i, line in enumerate(lines):
            for pattern in CUSTOMER_LABELS:
                if pattern.search(line):
                    block = self._extract_block_from_label(lines, i, pattern, EntitySource.LABELED, 0.95)
                    if block:
                        customer = block
                    break

            for pattern in VENDOR_LABELS:
                if pattern.search(line):
                    block = self._extract_block_from_label(lines, i, pattern, EntitySource.LABELED, 0.90)
                    if block:
                        vendor = block
                    break

        return vendor, customer

    def _extract_block_from_label(self, lines: Sequence[str], start_index: int, label: Pattern,
                                  source: EntitySource, confidence: float) -> Optional[EntityBlock]:
        collected: List[str] = []

        first_line = lines[start_index]
        label_match = label.search(first_line)
        if label_match:
            after_label = first_line[label_match.end():].strip()
            if after_label:
                collected.append(after_label)

        for line in lines[start_index + 1:start_index + 1 + MAX_BLOCK_LINES]:
            line = line.strip()
            if not line:
                continue
            if self.is_stop_line(line):
                break
            if _matches_any(CUSTOMER_LABELS, line) or _matches_any(VENDOR_LABELS, line):
                break
            collected.append(line)

        if not collected:
            return None

        return EntityBlock(
            text='\n'.join(collected),
            lines=tuple(collected),
            source=source,
            start_line=start_index,
            end_line=start_index + len(collected),
            confidence=confidence,
            matched_label=label.pattern,
        )

    @staticmethod
    def _analyze_positional_layout(header_text: str, vendor: Optional[EntityBlock],
                                   customer: Optional[EntityBlock]) -> Tuple[Optional[EntityBlock],
                                                                             Optional[EntityBlock]]:
        if vendor and customer:
            return vendor, customer

        left_lines = []
        right_lines = []
        for line in header_text.split('\n'):
            if not line.strip():
                continue
            dual = DUAL_COLUMN.match(line)
            if dual:
                left_lines.append(dual.group(1).strip())
                right_lines.append(dual.group(2).strip())
            else:
                left_lines.append(line.strip())

        if vendor is None and left_lines:
            left_text = '\n'.join(left_lines)
            has_vendor_indicators = _matches_any(VENDOR_INDICATORS, left_text)
            if has_vendor_indicators or len(left_lines) >= 2:
                vendor = EntityBlock(
                    text=left_text,
                    lines=tuple(left_lines),
                    source=EntitySource.HEADER_LEFT,
                    start_line=0,
                    end_line=len(left_lines),
                    confidence=0.85 if has_vendor_indicators else 0.70,
                )

        if customer is None and right_lines:
            customer = EntityBlock(
                text='\n'.join(right_lines),
                lines=tuple(right_lines),
                source=EntitySource.HEADER_RIGHT,
                start_line=0,
                end_line=len(right_lines),
                confidence=0.65,
            )

        return vendor, customer

    def _extract_vendor_footer_block(self, footer_text: str) -> Optional[VendorFooterInfo]:
        info = self.extract_vendor_from_footer(footer_text)
        if info.confidence < 0.6:
            return None
        return info

    @staticmethod
    def is_stop_line(line: str) -> bool:
        """Document numbers, dates, identifiers and contact lines end a labeled block."""
        return _matches_any(BLOCK_STOP_PATTERNS, line)
