"""
Invoice OCR Parser

Extracts structured line items, parties and totals from OCR'd supplier
invoices (Moroccan and French optical retail).
"""

__version__ = "1.0.0"
__author__ = "Vendra Intern Coding Challenge"
__email__ = "mmandapa@ucsc.edu"

from .invoice_parser import InvoiceParser
from .line_item_extractor import LineItemExtractor
from .contact_extractor import ContactExtractor
from .entity_zone_detector import EntityZoneDetector
from .totals_validator import TotalsValidator, TotalsValidatorConfig
from .locales import FR_LOCALE, EN_LOCALE, get_locale
from .supplier_templates import SUPPLIER_TEMPLATES, SupplierTemplate, find_supplier_template

__all__ = [
    "InvoiceParser",
    "LineItemExtractor",
    "ContactExtractor",
    "EntityZoneDetector",
    "TotalsValidator",
    "TotalsValidatorConfig",
    "FR_LOCALE",
    "EN_LOCALE",
    "get_locale",
    "SUPPLIER_TEMPLATES",
    "SupplierTemplate",
    "find_supplier_template",
]
