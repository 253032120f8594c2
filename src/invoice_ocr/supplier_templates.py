"""
Line formats of known optical suppliers.

When the supplier of an invoice is recognised by name or ICE, its own line
regex is tried on every candidate line before the generic strategy cascade.
Template lines are trusted like barcode rows.
"""

import logging
import re
from dataclasses import dataclass, replace
from typing import Callable, Match, Optional, Pattern, Sequence, Tuple

from .models import ExtractionMethod, FieldConfidence, InvoiceLine
from .patterns import parse_number, parse_ocr_amount

logger = logging.getLogger(__name__)

TEMPLATE_CONFIDENCE = FieldConfidence(
    reference=0.95,
    designation=0.9,
    quantity=0.95,
    unit_price=0.95,
    total=0.95,
)

DISCOUNT_VALUE = re.compile(r'(\d+(?:[.,]\d+)?)')

PostProcess = Callable[[InvoiceLine, Match], InvoiceLine]


@dataclass(frozen=True)
class TemplateGroups:
    """Capture group of each field in a template line pattern; None when the format lacks it."""
    reference: Optional[int] = None
    designation: Optional[int] = None
    quantity: Optional[int] = None
    unit_price: Optional[int] = None
    discount: Optional[int] = None
    total: Optional[int] = None
    unit: Optional[int] = None


@dataclass(frozen=True)
class SupplierTemplate:
    template_id: str
    supplier_patterns: Tuple[Pattern, ...]
    line_pattern: Pattern
    groups: TemplateGroups
    ice_patterns: Tuple[Pattern, ...] = ()
    default_vat_rate: float = 0.2
    post_process: Optional[PostProcess] = None

    def matches(self, supplier_name: Optional[str], ice: Optional[str]) -> bool:
        if supplier_name and any(pattern.search(supplier_name) for pattern in self.supplier_patterns):
            return True
        return bool(ice and any(pattern.search(ice) for pattern in self.ice_patterns))


def prefix_designation(group: int) -> PostProcess:
    """Put a captured code or brand in front of the designation."""
    def post_process(line: InvoiceLine, match: Match) -> InvoiceLine:
        prefix = (match.group(group) or '').strip()
        if not prefix or not line.designation:
            return line
        return replace(line, designation=f"{prefix} {line.designation}")
    return post_process


def suffix_designation(group: int) -> PostProcess:
    """Append a captured color code to the designation."""
    def post_process(line: InvoiceLine, match: Match) -> InvoiceLine:
        suffix = (match.group(group) or '').strip()
        if not suffix or not line.designation:
            return line
        return replace(line, designation=f"{line.designation} {suffix}")
    return post_process


def _compile(*patterns: str) -> Tuple[Pattern, ...]:
    return tuple(re.compile(pattern, re.IGNORECASE) for pattern in patterns)


SUPPLIER_TEMPLATES: Tuple[SupplierTemplate, ...] = (
    # EAN + model code + description + qty + price + discount% + total
    SupplierTemplate(
        template_id='dk_distribution',
        supplier_patterns=_compile(r'DK\s*DISTRIBUTION', r'DK\s*OPTICAL'),
        line_pattern=re.compile(
            r'^(\d{8,14})\s+([A-Z0-9\-./]+)\s+(.+?)\s+(\d+(?:[.,]\d+)?)\s+([\d\s.,]+)\s+'
            r'(\d+(?:[.,]\d+)?)\s*%\s+([\d\s.,]+)$', re.IGNORECASE),
        groups=TemplateGroups(reference=1, designation=3, quantity=4, unit_price=5, discount=6, total=7),
        post_process=prefix_designation(2),
    ),
    # RB3025 001/58 AVIATOR LARGE 2 850.00 1700.00
    SupplierTemplate(
        template_id='luxottica',
        supplier_patterns=_compile(r'LUXOTTICA', r'SUNGLASS\s*HUT'),
        line_pattern=re.compile(
            r'^([A-Z]{2}\d{4}[A-Z]?)\s+(\d{3}/\d{2,3})\s+(.+?)\s+(\d+)\s+([\d.,]+)\s+([\d.,]+)$', re.IGNORECASE),
        groups=TemplateGroups(reference=1, designation=3, quantity=4, unit_price=5, total=6),
        post_process=suffix_designation(2),
    ),
    # SAFILO 0298/G/S.807.55 CARRERA 1 1010.00 15% 858.50
    SupplierTemplate(
        template_id='safilo',
        supplier_patterns=_compile(r'SAFILO'),
        line_pattern=re.compile(
            r'^([A-Z\-]+)\s+(\d{4}/[A-Z]/[A-Z]\.\d{3}(?:\.\d{2})?)\s+(.+?)\s+(\d+)\s+([\d.,]+)\s+'
            r'(?:([\d.,]+)\s*%\s+)?([\d\s.,]+)$', re.IGNORECASE),
        groups=TemplateGroups(reference=2, designation=3, quantity=4, unit_price=5, discount=6, total=7),
        post_process=prefix_designation(1),
    ),
    # Lenses
    SupplierTemplate(
        template_id='essilor',
        supplier_patterns=_compile(r'ESSILOR', r'BBGR'),
        line_pattern=re.compile(r'^([A-Z0-9]{6,10})\s+(.+?)\s+(\d+)\s+([\d\s.,]+)\s+([\d\s.,]+)$', re.IGNORECASE),
        groups=TemplateGroups(reference=1, designation=2, quantity=3, unit_price=4, total=5),
    ),
    SupplierTemplate(
        template_id='hoya',
        supplier_patterns=_compile(r'HOYA'),
        line_pattern=re.compile(r'^([A-Z0-9\-]{5,15})\s+(.+?)\s+(\d+)\s+([\d.,]+)\s+([\d.,]+)$', re.IGNORECASE),
        groups=TemplateGroups(reference=1, designation=2, quantity=3, unit_price=4, total=5),
    ),
)


def find_supplier_template(supplier_name: Optional[str], ice: Optional[str] = None,
                           templates: Sequence[SupplierTemplate] = SUPPLIER_TEMPLATES) -> Optional[SupplierTemplate]:
    """First template whose supplier patterns match the name or whose ICE patterns match the ICE."""
    if not supplier_name and not ice:
        return None

    for template in templates:
        if template.matches(supplier_name, ice):
            logger.debug(f"Supplier '{supplier_name}' (ICE {ice}) uses template '{template.template_id}'")
            return template
    return None


def _group(match: Match, index: Optional[int]) -> Optional[str]:
    if not index:
        return None
    value = match.group(index)
    return value.strip() if value else None


def extract_with_template(template: SupplierTemplate, line: str, line_index: int) -> Optional[InvoiceLine]:
    """
    Parse one line with a supplier's own format.

    Returns:
        The line at template confidence, or None when the line does not
        follow the format or carries neither a name nor an amount.
    """
    match = template.line_pattern.search(line.strip())
    if not match:
        return None

    groups = template.groups
    reference = _group(match, groups.reference)
    designation = _group(match, groups.designation)
    quantity = parse_number(_group(match, groups.quantity) or '') if groups.quantity else 1.0
    unit_price = parse_ocr_amount(_group(match, groups.unit_price) or '')
    total = parse_ocr_amount(_group(match, groups.total) or '')
    unit = _group(match, groups.unit)

    discount_rate = None
    discount_match = DISCOUNT_VALUE.search(_group(match, groups.discount) or '')
    if discount_match:
        discount_percent = parse_number(discount_match.group(1))
        discount_rate = discount_percent / 100 if discount_percent > 0 else None

    if not designation and not reference:
        return None
    if quantity <= 0 and unit_price <= 0 and total <= 0:
        return None

    if total <= 0 and quantity > 0 and unit_price > 0:
        total = quantity * unit_price * (1 - (discount_rate or 0.0))

    result = InvoiceLine(
        raw_text=line,
        line_index=line_index,
        method=ExtractionMethod.TEMPLATE,
        reference=reference,
        designation=designation,
        quantity=quantity if quantity > 0 else None,
        unit=unit,
        unit_price=unit_price if unit_price > 0 else None,
        discount_rate=discount_rate,
        total=total if total > 0 else None,
        vat_rate=template.default_vat_rate,
        confidence=TEMPLATE_CONFIDENCE,
        needs_review=False,
    )

    if template.post_process is not None:
        result = template.post_process(result, match)
    return result
