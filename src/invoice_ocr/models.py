"""
Data models for the Invoice OCR Parser.

Every record is a frozen dataclass built fresh for each document. Updates go
through ``dataclasses.replace`` so nothing is ever mutated after
construction.
"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional, Tuple


class ExtractionMethod(str, Enum):
    """Strategy that produced an invoice line."""
    BARCODE = "barcode"
    EXTENDED = "extended"
    WITH_DISCOUNT = "with_discount"
    FULL = "full"
    SIMPLE = "simple"
    FALLBACK = "fallback"
    DETECTED_ONLY = "detected_only"
    LOOSE_EXTENDED_OCR = "loose_extended_ocr"
    LOOSE_CODE_AMOUNTS = "loose_code_amounts"
    LOOSE_QTY_PRICE = "loose_qty_price"
    LOOSE_MULTI_NUMBERS = "loose_multi_numbers"
    TEMPLATE = "template"


class CorruptionReason(str, Enum):
    """Why a line should not be trusted without a human look."""
    SUSPICIOUS_REFERENCE = "suspicious_reference"
    CORRUPTED_DESIGNATION = "corrupted_designation"
    TOO_MANY_SPECIAL_CHARS = "too_many_special_chars"
    REFERENCE_OCR_ARTIFACTS = "reference_ocr_artifacts"
    GARBLED_DESIGNATION = "garbled_designation"
    OCR_ARTIFACTS_IN_SOURCE = "ocr_artifacts_in_source"
    OCR_UNREADABLE = "ocr_unreadable"
    OCR_ARTIFACTS = "ocr_artifacts"
    PARSING_FAILED = "parsing_failed"
    PARTIAL_REFERENCE = "partial_reference"
    STRUCTURE_UNRECOGNIZED = "structure_unrecognized"


class EntitySource(str, Enum):
    """Where an entity block was found."""
    LABELED = "labeled"
    HEADER_LEFT = "header_left"
    HEADER_RIGHT = "header_right"
    FOOTER = "footer"
    INFERRED = "inferred"


class SuggestionKind(str, Enum):
    MISSING_LINE = "missing_line"
    PRICE_ERROR = "price_error"
    QUANTITY_ERROR = "quantity_error"
    TOTAL_MISMATCH = "total_mismatch"


@dataclass(frozen=True)
class FieldConfidence:
    """Independent trust scores (0-1), one per structured line field."""
    reference: float = 0.0
    designation: float = 0.0
    quantity: float = 0.0
    unit_price: float = 0.0
    total: float = 0.0


@dataclass(frozen=True)
class InvoiceLine:
    """A single product line of a supplier invoice."""
    raw_text: str
    line_index: int
    method: ExtractionMethod
    reference: Optional[str] = None
    designation: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    unit_price: Optional[float] = None
    discount_rate: Optional[float] = None
    total: Optional[float] = None
    vat_rate: Optional[float] = None
    confidence: FieldConfidence = field(default_factory=FieldConfidence)
    needs_review: bool = False
    is_corrupted: bool = False
    corruption_reason: Optional[CorruptionReason] = None


@dataclass(frozen=True)
class LineExtractionStats:
    detected: int = 0
    extracted: int = 0
    partial: int = 0
    failed: int = 0


@dataclass(frozen=True)
class LineExtractionResult:
    lines: Tuple[InvoiceLine, ...]
    stats: LineExtractionStats


@dataclass(frozen=True)
class DocumentZones:
    """Line-index boundaries of the header, table and footer regions."""
    header_end: int
    table_start: int
    table_end: int
    footer_start: int
    header_text: str
    table_text: str
    footer_text: str


@dataclass(frozen=True)
class LineScore:
    line: str
    line_index: int
    score: int
    criteria: Tuple[str, ...]
    is_product_line: bool


@dataclass(frozen=True)
class MergeResult:
    lines: Tuple[str, ...]
    merge_count: int
    merged_indices: Tuple[int, ...]


@dataclass(frozen=True)
class MultiLineGroup:
    """Physical lines judged to form one logical product record."""
    lines: Tuple[str, ...]
    indices: Tuple[int, ...]
    merged: str
    confidence: float


@dataclass(frozen=True)
class MultiLineResult:
    lines: Tuple[str, ...]
    merged_groups: Tuple[MultiLineGroup, ...]
    original_count: int
    final_count: int


@dataclass(frozen=True)
class ExtractionResult:
    """A single extracted value with its provenance."""
    value: Any = None
    confidence: float = 0.0
    source_text: Optional[str] = None
    matched_pattern: Optional[str] = None


@dataclass(frozen=True)
class AddressComponents:
    street: Optional[str] = None
    street_line2: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None


@dataclass(frozen=True)
class AddressResult:
    value: Optional[str] = None
    confidence: float = 0.0
    source_text: Optional[str] = None
    matched_pattern: Optional[str] = None
    street: Optional[str] = None
    street_line2: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None

    @property
    def components(self) -> AddressComponents:
        return AddressComponents(
            street=self.street,
            street_line2=self.street_line2,
            city=self.city,
            country=self.country,
            postal_code=self.postal_code,
        )


@dataclass(frozen=True)
class PhoneResult:
    value: Optional[str] = None
    confidence: float = 0.0
    source_text: Optional[str] = None
    matched_pattern: Optional[str] = None
    country: Optional[str] = None
    is_valid: bool = False


@dataclass(frozen=True)
class ContactInfo:
    name: ExtractionResult
    address: AddressResult
    phone: PhoneResult
    email: ExtractionResult


@dataclass(frozen=True)
class EntityBlock:
    """A contiguous header region attributed to the vendor or the customer."""
    text: str
    lines: Tuple[str, ...]
    source: EntitySource
    start_line: int
    end_line: int
    confidence: float
    matched_label: Optional[str] = None


@dataclass(frozen=True)
class VendorFooterInfo:
    """Legal and banking identifiers printed in the document footer."""
    raw_text: str
    confidence: float
    ice: Optional[str] = None
    fiscal_id: Optional[str] = None
    trade_register: Optional[str] = None
    cnss: Optional[str] = None
    patente: Optional[str] = None
    bank: Optional[str] = None
    rib: Optional[str] = None
    capital_social: Optional[str] = None
    legal_form: Optional[str] = None


@dataclass(frozen=True)
class EntityBlocks:
    vendor: Optional[EntityBlock] = None
    customer: Optional[EntityBlock] = None
    vendor_footer: Optional[VendorFooterInfo] = None


@dataclass(frozen=True)
class MoroccanIdentifiers:
    ice: ExtractionResult = field(default_factory=ExtractionResult)
    fiscal_id: ExtractionResult = field(default_factory=ExtractionResult)
    trade_register: ExtractionResult = field(default_factory=ExtractionResult)
    cnss: ExtractionResult = field(default_factory=ExtractionResult)
    patente: ExtractionResult = field(default_factory=ExtractionResult)


@dataclass(frozen=True)
class InvoiceTotals:
    total_ht: Optional[float] = None
    total_vat: Optional[float] = None
    total_ttc: Optional[float] = None
    discount: Optional[float] = None
    net_to_pay: Optional[float] = None


@dataclass(frozen=True)
class Suggestion:
    kind: SuggestionKind
    message: str
    line_index: Optional[int] = None
    suggested_value: Optional[float] = None


@dataclass(frozen=True)
class TotalsValidationDetails:
    valid_lines: int
    missing_totals: int
    calculated_totals: int
    estimated_missing_lines: int


@dataclass(frozen=True)
class TotalsValidationResult:
    is_valid: bool
    calculated_total_ht: float
    expected_total_ht: float
    difference: float
    percentage_diff: float
    details: TotalsValidationDetails
    warnings: Tuple[str, ...] = ()
    suggestions: Tuple[Suggestion, ...] = ()


@dataclass(frozen=True)
class VatValidationResult:
    is_valid: bool
    calculated_vat: float
    expected_vat: float
    warnings: Tuple[str, ...] = ()


@dataclass(frozen=True)
class InvoiceClient:
    name: Optional[str] = None
    billing_address: Optional[str] = None
    billing_address_details: AddressComponents = field(default_factory=AddressComponents)
    customer_code: Optional[str] = None
    ice: Optional[str] = None
    phone: Optional[str] = None


@dataclass(frozen=True)
class CustomerExtractionResult:
    customer: Optional[InvoiceClient] = None
    confidence: float = 0.0
    source: Optional[EntitySource] = None
    customer_code: Optional[str] = None


@dataclass(frozen=True)
class InvoiceSupplier:
    name: Optional[str] = None
    address: Optional[str] = None
    address_details: AddressComponents = field(default_factory=AddressComponents)
    phone: Optional[str] = None
    email: Optional[str] = None
    ice: Optional[str] = None
    fiscal_id: Optional[str] = None
    trade_register: Optional[str] = None
    cnss: Optional[str] = None
    patente: Optional[str] = None
    bank: Optional[str] = None
    rib: Optional[str] = None


@dataclass(frozen=True)
class SupplierInvoice:
    """Everything recovered from one supplier invoice."""
    invoice_number: Optional[str]
    invoice_date: Optional[date]
    due_date: Optional[date]
    currency: str
    supplier: InvoiceSupplier
    client: Optional[InvoiceClient]
    lines: Tuple[InvoiceLine, ...]
    stats: LineExtractionStats
    totals: InvoiceTotals
    totals_validation: Optional[TotalsValidationResult] = None
    vat_validation: Optional[VatValidationResult] = None
