"""
Top-level supplier invoice parser.

Runs every extractor over the document text and assembles a single
SupplierInvoice, with the totals cross-checked against the lines.
"""

import logging
from datetime import date
from typing import Optional, Sequence

from .amount_extractor import AmountExtractor
from .contact_extractor import ContactExtractor
from .customer_extractor import CustomerExtractor
from .date_extractor import DateExtractor
from .entity_zone_detector import EntityZoneDetector
from .gazetteer import DEFAULT_GAZETTEER, CityGazetteer
from .identifiers import IdentifierExtractor
from .line_item_extractor import LineItemExtractor
from .locales import FR_LOCALE, OcrLocale
from .models import InvoiceSupplier, InvoiceTotals, SupplierInvoice, VendorFooterInfo
from .patterns import DEFAULT_PATTERNS, PatternTable, detect_currency
from .supplier_templates import SUPPLIER_TEMPLATES, SupplierTemplate, find_supplier_template
from .totals_validator import TotalsValidator, TotalsValidatorConfig

logger = logging.getLogger(__name__)


class InvoiceParser:
    """Main parser for OCR'd supplier invoices."""

    def __init__(self, locale: OcrLocale = FR_LOCALE, default_vat_rate: float = 0.2, threshold: int = 3,
                 patterns: PatternTable = DEFAULT_PATTERNS, gazetteer: CityGazetteer = DEFAULT_GAZETTEER,
                 validator_config: TotalsValidatorConfig = TotalsValidatorConfig(),
                 today: Optional[date] = None,
                 templates: Sequence[SupplierTemplate] = SUPPLIER_TEMPLATES):
        self.locale = locale
        self.templates = templates
        self.default_vat_rate = default_vat_rate
        self.patterns = patterns

        self.line_extractor = LineItemExtractor(locale.noise_keywords, patterns, threshold)
        self.contact_extractor = ContactExtractor(patterns, gazetteer)
        self.customer_extractor = CustomerExtractor(patterns, gazetteer)
        self.entity_zone_detector = EntityZoneDetector(patterns)
        self.identifier_extractor = IdentifierExtractor()
        self.amount_extractor = AmountExtractor()
        self.date_extractor = DateExtractor(today)
        self.totals_validator = TotalsValidator(validator_config)

    def parse(self, text: Optional[str]) -> SupplierInvoice:
        """
        Parse invoice text into a SupplierInvoice.

        Args:
            text: OCR or PDF text of a single invoice

        Returns:
            The structured invoice; fields that could not be found are None

        Raises:
            ValueError: If text is None
        """
        if text is None:
            raise ValueError("Invoice text is required")

        totals = self._extract_totals(text)
        vat_rate = self._line_vat_rate(totals)

        supplier = self._extract_supplier(text)
        template = find_supplier_template(supplier.name, supplier.ice, self.templates)
        if template is not None:
            logger.info(f"Using the {template.template_id} line format for supplier {supplier.name}")

        result = self.line_extractor.extract_lines_with_stats(text, vat_rate, template)
        customer = self.customer_extractor.extract_customer(text, self.locale, supplier.name)

        totals_validation = None
        vat_validation = None
        if totals.total_ht:
            totals_validation = self.totals_validator.validate(result.lines, totals)
        if totals.total_vat:
            vat_validation = self.totals_validator.validate_vat(result.lines, totals)

        invoice = SupplierInvoice(
            invoice_number=self.identifier_extractor.extract_invoice_number(text, self.locale).value,
            invoice_date=self.date_extractor.extract(text, self.locale, 'invoice').value,
            due_date=self.date_extractor.extract(text, self.locale, 'due').value,
            currency=detect_currency(text, patterns=self.patterns),
            supplier=supplier,
            client=customer.customer,
            lines=result.lines,
            stats=result.stats,
            totals=totals,
            totals_validation=totals_validation,
            vat_validation=vat_validation,
        )

        logger.info(f"Parsed invoice {invoice.invoice_number or '(no number)'}: "
                    f"{result.stats.extracted}/{result.stats.detected} lines extracted, "
                    f"{result.stats.partial} partial, {result.stats.failed} failed")
        if totals_validation and not totals_validation.is_valid:
            logger.info(f"Line totals differ from the invoice total by {totals_validation.difference:.2f}")

        return invoice

    def _extract_totals(self, text: str) -> InvoiceTotals:
        totals = self.amount_extractor.extract_all_labeled(text, self.locale)

        if totals.total_vat is None and totals.total_ht and totals.total_ttc:
            vat = self.amount_extractor.calculate_vat(totals.total_ht, totals.total_ttc)
            logger.debug(f"VAT not printed, inferred {vat:.2f} from HT and TTC")
            return InvoiceTotals(
                total_ht=totals.total_ht,
                total_vat=vat,
                total_ttc=totals.total_ttc,
                discount=totals.discount,
                net_to_pay=totals.net_to_pay,
            )
        return totals

    def _line_vat_rate(self, totals: InvoiceTotals) -> float:
        if totals.total_ht and totals.total_ttc:
            inferred = self.line_extractor.infer_vat_rate(totals.total_ht, totals.total_ttc)
            if inferred is not None:
                return inferred
        return self.default_vat_rate

    def _extract_supplier(self, text: str) -> InvoiceSupplier:
        contact = self.contact_extractor.extract_all_detailed(text, self.locale)
        identifiers = self.identifier_extractor.extract_all_moroccan(text)

        blocks = self.entity_zone_detector.detect_entity_blocks(text)
        footer = blocks.vendor_footer or VendorFooterInfo(raw_text='', confidence=0.0)

        return InvoiceSupplier(
            name=contact.name.value,
            address=contact.address.value,
            address_details=contact.address.components,
            phone=contact.phone.value,
            email=contact.email.value,
            ice=footer.ice or identifiers.ice.value,
            fiscal_id=footer.fiscal_id or identifiers.fiscal_id.value,
            trade_register=footer.trade_register or identifiers.trade_register.value,
            cnss=footer.cnss or identifiers.cnss.value,
            patente=footer.patente or identifiers.patente.value,
            bank=footer.bank,
            rib=footer.rib,
        )
