"""
Invoice line-item extraction.

Every candidate line from the table zone goes through an ordered list of
parsers, from the most specific (barcode rows) to the most permissive (loose
fallback). A line that defeats them all is still returned as a placeholder
carrying its raw text, so the number of output lines always equals the
number of candidate lines.
"""

import logging
import re
from dataclasses import replace
from typing import List, Optional, Sequence, Tuple

from .fragment_merger import FragmentMerger
from .line_scorer import DEFAULT_NOISE_KEYWORDS, LineScorer, LineScorerConfig
from .loose_fallback import LooseFallbackExtractor, placeholder_designation
from .models import (
    CorruptionReason,
    ExtractionMethod,
    FieldConfidence,
    InvoiceLine,
    LineExtractionResult,
    LineExtractionStats,
)
from .multiline_detector import MultiLineDetector
from .patterns import (
    DEFAULT_PATTERNS,
    PatternTable,
    calculate_net_price,
    clean_ocr_text,
    parse_number,
    parse_ocr_amount,
)
from .strategies import Strategy, first_valid
from .supplier_templates import SupplierTemplate, extract_with_template
from .zone_detector import ZoneDetector

logger = logging.getLogger(__name__)

# Scores at or below this are clear rejections (total, header, noise, too short)
CANDIDATE_MIN_SCORE = -5

COMMON_VAT_RATES = (0.07, 0.1, 0.14, 0.2)

SYMBOL_START = re.compile(r'^[=\[\]{}|\\<>@#$%^&*]')
SYMBOL_CHARS = re.compile(r'[=\[\]{}|\\<>@#$%^&*()]')
BRACKET_ARTIFACTS = re.compile(r'[=\[\]{}|\\]')
GARBLED_DESIGNATION = re.compile(r'\.\d+\.[A-Z]+\.\d+', re.IGNORECASE)
CONCATENATED_DECIMALS = re.compile(r'\d{2,}\.\d{2}\.\d{2}')
GARBLED_START = re.compile(r'[a-z]{1,2}\s*\d{3,}', re.IGNORECASE)
SALVAGE_EAN = re.compile(r'^(\d{6,14})')
SALVAGE_REFERENCE = re.compile(r'^([A-Z0-9]{1,5}[-\s][A-Z0-9]+)', re.IGNORECASE)
DESIGNATION_REFERENCE = re.compile(r'^([A-Z0-9]{3,15})\s', re.IGNORECASE)


def calculate_field_confidence(reference: Optional[str], designation: Optional[str], quantity: float,
                               unit_price: float, total: float) -> FieldConfidence:
    if reference:
        reference_confidence = 0.9 if len(reference) >= 4 else 0.6
    else:
        reference_confidence = 0.0

    if designation:
        designation_confidence = 0.85 if len(designation) >= 3 else 0.5
    else:
        designation_confidence = 0.0

    if total > 0:
        total_confidence = 0.9
    elif quantity > 0 and unit_price > 0:
        total_confidence = 0.7
    else:
        total_confidence = 0.0

    return FieldConfidence(
        reference=reference_confidence,
        designation=designation_confidence,
        quantity=0.9 if quantity > 0 else 0.0,
        unit_price=0.9 if unit_price > 0 else 0.0,
        total=total_confidence,
    )


def is_valid_extraction(line: InvoiceLine) -> bool:
    """A usable line names something and carries at least one number."""
    if not line.designation and not line.reference:
        return False
    return not (line.quantity is None and line.unit_price is None and line.total is None)


def detect_suspicious_extraction(line: InvoiceLine) -> Optional[CorruptionReason]:
    """Reason a parsed line should not be trusted as-is, or None."""
    reference = line.reference or ''
    designation = line.designation or ''

    if reference and len(reference) <= 2 and not reference.isdigit():
        return CorruptionReason.SUSPICIOUS_REFERENCE

    if designation and SYMBOL_START.search(designation):
        return CorruptionReason.CORRUPTED_DESIGNATION

    if designation and len(SYMBOL_CHARS.findall(designation)) > 2:
        return CorruptionReason.TOO_MANY_SPECIAL_CHARS

    if reference and SYMBOL_CHARS.search(reference):
        return CorruptionReason.REFERENCE_OCR_ARTIFACTS

    if designation and GARBLED_DESIGNATION.search(designation):
        return CorruptionReason.GARBLED_DESIGNATION

    if BRACKET_ARTIFACTS.search(line.raw_text) and line.method != ExtractionMethod.BARCODE:
        return CorruptionReason.OCR_ARTIFACTS_IN_SOURCE

    return None


def mark_corruption_if_suspicious(line: InvoiceLine) -> InvoiceLine:
    reason = detect_suspicious_extraction(line)
    if reason is None:
        return line
    logger.debug(f"Line {line.line_index} flagged as {reason.value}: {line.raw_text!r}")
    return replace(line, needs_review=True, is_corrupted=True, corruption_reason=reason)


class LineItemExtractor:
    """
    Extract invoice lines from OCR text.

    The pipeline is: OCR cleanup, table zone, fragment merge, multi-line
    merge, scoring, then the strategy cascade on every candidate line.
    """

    def __init__(self, noise_keywords: Sequence[str] = DEFAULT_NOISE_KEYWORDS,
                 patterns: PatternTable = DEFAULT_PATTERNS, threshold: int = 3):
        self.patterns = patterns
        self.line_scorer = LineScorer(LineScorerConfig(threshold=threshold, noise_keywords=tuple(noise_keywords)),
                                      patterns)
        self.fragment_merger = FragmentMerger(patterns)
        self.zone_detector = ZoneDetector(patterns)
        self.multiline_detector = MultiLineDetector(patterns)
        self.loose_fallback = LooseFallbackExtractor()

        self.strategies = (
            Strategy(ExtractionMethod.BARCODE.value, self._try_barcode_format, is_valid_extraction),
            Strategy(ExtractionMethod.EXTENDED.value, self._try_extended_format, is_valid_extraction),
            Strategy(ExtractionMethod.WITH_DISCOUNT.value, self._try_with_discount_format, is_valid_extraction),
            Strategy(ExtractionMethod.FULL.value, self._try_full_format, is_valid_extraction),
            Strategy(ExtractionMethod.SIMPLE.value, self._try_simple_format, is_valid_extraction),
            Strategy(ExtractionMethod.FALLBACK.value, self._try_fallback_format, is_valid_extraction),
            Strategy('loose', self.loose_fallback.extract, is_valid_extraction),
        )

    def extract_lines(self, text: str, default_vat_rate: float = 0.2,
                      template: Optional[SupplierTemplate] = None) -> Tuple[InvoiceLine, ...]:
        return self.extract_lines_with_stats(text, default_vat_rate, template).lines

    def extract_lines_with_stats(self, text: str, default_vat_rate: float = 0.2,
                                 template: Optional[SupplierTemplate] = None) -> LineExtractionResult:
        """
        Extract every candidate line of the table zone.

        A supplier ``template``, when given, is tried on each line before the
        generic strategies.
        """
        cleaned_text = clean_ocr_text(text)

        table_lines = self.zone_detector.extract_table_lines(cleaned_text)
        fragment_merged = self.fragment_merger.merge(table_lines)
        multiline = self.multiline_detector.process(fragment_merged.lines)

        scored_lines = self.line_scorer.score_all_lines(multiline.lines)
        candidates = [scored for scored in scored_lines if scored.score > CANDIDATE_MIN_SCORE]

        if not candidates:
            logger.debug("No candidate lines in the table zone, scanning the full text")
            lines = self._extract_from_full_text(cleaned_text, default_vat_rate, template)
            return LineExtractionResult(lines=tuple(lines), stats=self._compute_stats(lines))

        lines = [self._extract_single_line(scored.line, scored.line_index, default_vat_rate, template)
                 for scored in candidates]
        stats = self._compute_stats(lines)

        logger.debug(f"Extracted {stats.extracted}/{stats.detected} lines "
                     f"({stats.partial} partial, {stats.failed} failed)")

        return LineExtractionResult(lines=tuple(lines), stats=stats)

    def _extract_single_line(self, line: str, line_index: int, default_vat_rate: float,
                             template: Optional[SupplierTemplate] = None) -> InvoiceLine:
        if template is not None:
            templated = extract_with_template(template, line, line_index)
            if templated is not None:
                return mark_corruption_if_suspicious(templated)

        found = first_valid(self.strategies, line, line_index, default_vat_rate)
        if found is not None:
            return mark_corruption_if_suspicious(found[1])
        return self._create_empty_line(line, line_index, default_vat_rate)

    @staticmethod
    def _compute_stats(lines: Sequence[InvoiceLine]) -> LineExtractionStats:
        extracted = partial = failed = 0
        for line in lines:
            if not line.needs_review:
                extracted += 1
            elif line.designation or line.reference:
                partial += 1
            else:
                failed += 1
        return LineExtractionStats(detected=len(lines), extracted=extracted, partial=partial, failed=failed)

    def _extract_from_full_text(self, text: str, default_vat_rate: float,
                                template: Optional[SupplierTemplate] = None) -> List[InvoiceLine]:
        lines = []
        line_index = 0
        for text_line in text.split('\n'):
            trimmed = text_line.strip()
            if len(trimmed) < 10:
                continue
            if self.patterns.is_total.search(trimmed):
                continue
            if self.patterns.is_header.search(trimmed) and not self.patterns.amount.search(trimmed):
                continue

            result = self._extract_single_line(trimmed, line_index, default_vat_rate, template)
            if result.designation or result.reference or result.quantity is not None:
                lines.append(result)
                line_index += 1
        return lines

    # Placeholder

    def _create_empty_line(self, raw_text: str, line_index: int, default_vat_rate: float) -> InvoiceLine:
        """Keep a line nothing could parse, salvaging a bare reference when one is visible."""
        reference = None
        designation = None

        match = SALVAGE_EAN.search(raw_text) or SALVAGE_REFERENCE.search(raw_text)
        if match:
            reference = match.group(1)
            designation = re.split(r'\s{2,}', raw_text[match.end():].strip())[0] or None

        reason = self._detect_corruption(raw_text, reference, designation)

        return InvoiceLine(
            raw_text=raw_text,
            line_index=line_index,
            method=ExtractionMethod.DETECTED_ONLY,
            reference=reference,
            designation=designation,
            vat_rate=default_vat_rate,
            needs_review=True,
            is_corrupted=reason is not None,
            corruption_reason=reason,
        )

    def _detect_corruption(self, raw_text: str, reference: Optional[str],
                           designation: Optional[str]) -> Optional[CorruptionReason]:
        amount_count = len(self.patterns.amount.findall(raw_text))
        has_amounts = amount_count > 0
        has_percentage = self.patterns.has_percentage.search(raw_text) is not None
        has_quantity = bool(self.patterns.quantity.search(raw_text) or self.patterns.leading_quantity.search(raw_text))

        has_ocr_artifacts = bool(
            BRACKET_ARTIFACTS.search(raw_text)
            or CONCATENATED_DECIMALS.search(raw_text)
            or GARBLED_START.search(raw_text[:10])
        )

        if (has_amounts or has_percentage) and has_quantity:
            if not reference and not designation:
                return CorruptionReason.OCR_UNREADABLE
            if has_ocr_artifacts:
                return CorruptionReason.OCR_ARTIFACTS
            if amount_count >= 2:
                return CorruptionReason.PARSING_FAILED

        if reference and len(reference) < 4 and has_amounts:
            return CorruptionReason.PARTIAL_REFERENCE

        if has_amounts and has_percentage and not reference and not designation:
            return CorruptionReason.STRUCTURE_UNRECOGNIZED

        return None

    # Strict formats

    def _try_barcode_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        """EAN + designation + qty + price + discount% + total."""
        if not self.patterns.ean_full.search(line):
            return None
        match = self.patterns.line_barcode.search(line)
        if not match:
            return None

        line_item = self._discounted_line(match, line, line_index, vat_rate, ExtractionMethod.BARCODE)
        if line_item is None:
            return None
        # A barcode row is only complete with all three amounts read
        total = parse_ocr_amount(match.group(6))
        if total <= 0:
            line_item = replace(line_item, needs_review=True)
        return line_item

    def _try_extended_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        """Same shape as a barcode row, tolerating OCR debris in the price."""
        match = self.patterns.line_extended.search(line)
        if not match:
            return None
        return self._discounted_line(match, line, line_index, vat_rate, ExtractionMethod.EXTENDED)

    def _try_with_discount_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        match = self.patterns.line_with_discount.search(line)
        if not match:
            return None
        return self._discounted_line(match, line, line_index, vat_rate, ExtractionMethod.WITH_DISCOUNT,
                                     clean=False)

    def _discounted_line(self, match, line: str, line_index: int, vat_rate: float,
                         method: ExtractionMethod, clean: bool = True) -> Optional[InvoiceLine]:
        numeric = parse_ocr_amount if clean else parse_number

        reference = match.group(1).strip()
        designation = match.group(2).strip()
        quantity = parse_number(match.group(3))
        unit_price = numeric(match.group(4))
        discount_percent = parse_number(match.group(5))
        total = numeric(match.group(6))

        if quantity <= 0 and unit_price <= 0:
            return None

        line_total = total if total > 0 else quantity * calculate_net_price(unit_price, discount_percent)

        return InvoiceLine(
            raw_text=line,
            line_index=line_index,
            method=method,
            reference=reference,
            designation=designation,
            quantity=quantity if quantity > 0 else None,
            unit_price=unit_price if unit_price > 0 else None,
            discount_rate=discount_percent / 100 if discount_percent > 0 else None,
            total=line_total if line_total > 0 else None,
            vat_rate=vat_rate,
            confidence=calculate_field_confidence(reference, designation, quantity, unit_price, total),
            needs_review=quantity <= 0 or unit_price <= 0,
        )

    def _try_full_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        """Description + qty + optional unit + price + total."""
        match = self.patterns.line_full.search(line)
        if not match:
            return None

        quantity = parse_number(match.group(2))
        unit_price = parse_number(match.group(4))
        total = parse_number(match.group(5))
        if quantity <= 0 and unit_price <= 0:
            return None

        description = match.group(1).strip()
        reference = None
        designation = description
        reference_match = DESIGNATION_REFERENCE.search(description)
        if reference_match:
            reference = reference_match.group(1).upper()
            designation = description[reference_match.end(1):].strip()

        line_total = total if total > 0 else quantity * unit_price
        unit = match.group(3)

        return InvoiceLine(
            raw_text=line,
            line_index=line_index,
            method=ExtractionMethod.FULL,
            reference=reference,
            designation=designation or None,
            quantity=quantity if quantity > 0 else None,
            unit=unit.lower() if unit else None,
            unit_price=unit_price if unit_price > 0 else None,
            total=line_total if line_total > 0 else None,
            vat_rate=vat_rate,
            confidence=calculate_field_confidence(reference, description, quantity, unit_price, total),
            needs_review=quantity <= 0 or unit_price <= 0,
        )

    def _try_simple_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        """A bare "qty x price" pair; the designation is synthesized."""
        match = self.patterns.line_simple.search(line)
        if not match:
            return None

        quantity = parse_number(match.group(1))
        unit_price = parse_number(match.group(2))
        if quantity <= 0 or unit_price <= 0:
            return None

        return InvoiceLine(
            raw_text=line,
            line_index=line_index,
            method=ExtractionMethod.SIMPLE,
            designation=placeholder_designation(line_index),
            quantity=quantity,
            unit_price=unit_price,
            total=quantity * unit_price,
            vat_rate=vat_rate,
            confidence=FieldConfidence(reference=0.0, designation=0.3, quantity=0.8, unit_price=0.8, total=0.7),
            needs_review=True,
        )

    def _try_fallback_format(self, line: str, line_index: int, vat_rate: float) -> Optional[InvoiceLine]:
        match = self.patterns.line_fallback.search(line)
        if not match:
            return None

        reference = match.group(1).strip()
        designation = match.group(2).strip()
        quantity = parse_number(match.group(3))
        unit_price = parse_ocr_amount(match.group(4))
        if quantity <= 0 and unit_price <= 0:
            return None

        return InvoiceLine(
            raw_text=line,
            line_index=line_index,
            method=ExtractionMethod.FALLBACK,
            reference=reference,
            designation=designation,
            quantity=quantity if quantity > 0 else None,
            unit_price=unit_price if unit_price > 0 else None,
            total=quantity * unit_price if quantity > 0 and unit_price > 0 else None,
            vat_rate=vat_rate,
            confidence=calculate_field_confidence(reference, designation, quantity, unit_price, 0),
            needs_review=True,
        )

    # Cross-checks

    @staticmethod
    def validate_against_total(lines: Sequence[InvoiceLine], expected_total_ht: float) -> Tuple[bool, float, float]:
        """
        Compare the sum of line totals with the document total.

        Returns:
            ``(is_valid, calculated_total, difference)``; the tolerance is 1%
            of the expected total, with a floor of 0.01.
        """
        calculated_total = sum(line.total or 0.0 for line in lines)
        difference = abs(calculated_total - expected_total_ht)
        tolerance = max(0.01, expected_total_ht * 0.01)
        return difference <= tolerance, calculated_total, difference

    @staticmethod
    def infer_vat_rate(total_ht: float, total_ttc: float) -> Optional[float]:
        """VAT rate implied by HT and TTC totals, snapped to the Moroccan rates when close."""
        if total_ht <= 0 or total_ttc <= total_ht:
            return None

        rate = (total_ttc - total_ht) / total_ht
        if not 0.05 <= rate <= 0.3:
            return None

        for common_rate in COMMON_VAT_RATES:
            if abs(rate - common_rate) < 0.02:
                return common_rate
        return round(rate, 2)
