"""
Compiled pattern table and numeric helpers shared by every extractor.

The table is built once at import time and never mutated afterwards, so a
single instance can be handed to any number of concurrent extractions.
"""

import logging
import math
import re
from dataclasses import dataclass
from typing import Iterable, Pattern

from babel.numbers import parse_decimal, NumberFormatError

logger = logging.getLogger(__name__)

_I = re.IGNORECASE
_IS = re.IGNORECASE | re.DOTALL


@dataclass(frozen=True)
class PatternTable:
    """Read-only collection of the regular expressions used by the pipeline."""

    # Line shape
    ean_full: Pattern = re.compile(r'^\d{8,14}\s')
    ean_truncated: Pattern = re.compile(r'^\d{6,13}\s+[A-Z]', _I)
    ref_dash: Pattern = re.compile(r'^[A-Z0-9]{1,5}[-\s][A-Z0-9]{2,}', _I)
    ref_numeric: Pattern = re.compile(r'^[A-Z]{2,4}\d{3,}', _I)
    index_numeric: Pattern = re.compile(r'^[\d#]{1,3}[.)\]\s]')
    has_percentage: Pattern = re.compile(r'\d+[.,]?\d*\s*%')
    amount: Pattern = re.compile(r'\d{2,}[.,]\d{2}')
    quantity: Pattern = re.compile(r'\s[1-9]\d{0,2}\s')
    leading_quantity: Pattern = re.compile(r'^\d{1,3}\s')
    multi_column: Pattern = re.compile(r'\s{2,}|\t')

    # Line classification
    # Abbreviations are word-bounded: LIGHT, PRICE or HOTEL are product words
    is_total: Pattern = re.compile(
        r'\b(?:total|sous-total|montant|net\s*[àa]\s*payer|reporter|tva\b|h\.?t\b\.?|t\.?t\.?c\b\.?)', _I)
    is_header: Pattern = re.compile(
        r'\b(?:facture|date|client|fournisseur|adresse|ice\b|i\.?f\b\.?|r\.?c\b\.?|tél|tel(?:ephone)?\b|'
        r'page\b|n°)', _I)
    is_date: Pattern = re.compile(r'^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}')

    # Moroccan phones
    phone_ma_labeled: Pattern = re.compile(
        r'(?:tél(?:éphone)?|tel|phone|fax|gsm|mobile)\s*[.:]\s*((?:0|\+212)\s*[25678][\d\s.\-()]{7,12})', _I)
    phone_ma_intl: Pattern = re.compile(r'(\+212\s*[25678][\d\s.\-]{7,12})')
    phone_ma_separated: Pattern = re.compile(r'(0[25678]\d{2}[\s.\-]?\d{2}[\s.\-]?\d{2}[\s.\-]?\d{2})')
    phone_ma_compact: Pattern = re.compile(r'(0[25678]\d{8})')

    # French phones
    phone_fr_labeled: Pattern = re.compile(
        r'(?:tél(?:éphone)?|tel|phone|fax)\s*[.:]\s*((?:0|\+33)\s*[1-9][\d\s.\-()]{8,12})', _I)
    phone_fr_intl: Pattern = re.compile(r'(\+33\s*[1-9][\d\s.\-]{8,12})')
    phone_fr_separated: Pattern = re.compile(r'(0[1-9]\s*\d{2}\s*\d{2}\s*\d{2}\s*\d{2})')
    phone_fr_compact: Pattern = re.compile(r'(0[1-9]\d{8})')

    # International phones
    phone_intl_e164: Pattern = re.compile(r'(\+\d{1,3}[\d\s.\-]{8,15})')
    phone_intl_labeled: Pattern = re.compile(r'(?:tel|phone|fax)\s*[.:]\s*([\d\s.\-+()]{10,20})', _I)
    phone_generic: Pattern = re.compile(r'(\d[\d\s.\-()]{8,18}\d)')

    # Phone validation
    valid_phone_ma: Pattern = re.compile(r'^0[25678]\d{8}$')
    valid_phone_fr: Pattern = re.compile(r'^0[1-9]\d{8}$')
    valid_phone_intl: Pattern = re.compile(r'^\+?\d{10,15}$')

    # Labeled addresses
    address_labeled: Pattern = re.compile(
        r'adresse\s*[:\s]+(.+?)(?=\n.*?(?:tél|tel|ice|i\.?f|email|@)|$)', _IS)
    address_siege: Pattern = re.compile(
        r'siège\s*(?:social)?\s*[:\s]+(.+?)(?=\n.*?(?:tél|tel|ice)|$)', _IS)
    address_domicilie: Pattern = re.compile(
        r'domicilié\s*[àa]?\s*[:\s]*(.+?)(?=\n.*?(?:tél|tel)|$)', _IS)

    street_keywords: Pattern = re.compile(
        r'(?:rue|avenue|av\.|av|boulevard|bd|blvd|allée|impasse|passage|place|chemin|route|voie|lot|'
        r'lotissement|résidence|immeuble|imm|quartier|zone|zi|galerie|centre|angle|'
        r'n°\s*(?![:\s]*\d)|numéro\s*(?![:\s]*\d))\s+[^\n]{5,60}', _I)
    city_country: Pattern = re.compile(r'[A-ZÀ-Ü]{3,}\s*[-,]\s*[A-ZÀ-Ü]{3,}', _I)
    postal_code: Pattern = re.compile(r'\b(\d{5})\b')
    numbered_street: Pattern = re.compile(
        r'^\d+[\s,].*(?:rue|avenue|av\.|boulevard|bd|place|chemin|route|allée|impasse|voie)', _I)
    location_keywords: Pattern = re.compile(
        r"^(?:galerie|centre\s+commercial|cc\s|zone\s+industrielle|zi\s|zac\s|zone\s+d['’]activit[ée]s?|"
        r"r[ée]sidence|immeuble|imm\s|quartier|lotissement|parc\s+d['’]activit[ée]s?|business\s+park|"
        r"shopping\s+center|mall|espace\s+commercial)", _I)
    location_full: Pattern = re.compile(
        r"^((?:galerie|centre\s+commercial|cc|zone\s+industrielle|zi|zac|zone\s+d['’]activit[ée]s?|"
        r"r[ée]sidence|immeuble|imm|quartier|lotissement|parc\s+d['’]activit[ée]s?|business\s+park|"
        r"shopping\s+center|mall|espace\s+commercial)"
        r"(?:\s+(?:marchande?|industriel(?:le)?|commercial(?:e)?))?\s+[A-ZÀ-Ü][A-Za-zÀ-ü\s\-']*)", _I)

    email: Pattern = re.compile(r'[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}')

    # Zones
    header_stop: Pattern = re.compile(
        r'^(ice|i\.?f\.?|r\.?c\.?|tél|tel|phone|fax|email|@|code\s*client|n°?\s*facture|date)', _I)
    table_header: Pattern = re.compile(
        r'\b(désignation|description|article|référence|qté|quantité|prix)\b|\bp\.?u\.?\b', _I)
    footer_start: Pattern = re.compile(r'^total\s|reporter|net\s*[àa]\s*payer|sous-total', _I)

    # Line-item extraction
    line_barcode: Pattern = re.compile(
        r'^(\d{8,14})\s+(.+?)\s+(\d+(?:[.,]\d+)?)\s+([\d\s.,]+)\s+(\d+(?:[.,]\d+)?)\s*%?\s+([\d\s.,]+)$')
    line_extended: Pattern = re.compile(
        r'^([a-z0-9\-\.]+)\s+(.+?)\s+(\d+(?:[\.,]\d+)?)\s+([\d\s\.,\]\[\}\{\)\|f]+)\s+([\d\.\s]+)%?\s+([\d\s\.,]+)', _I)
    line_with_discount: Pattern = re.compile(
        r'^([A-Z0-9][-A-Z0-9]{2,20})\s+(.{5,60}?)\s+(\d+(?:[.,]\d+)?)\s+([\d\s.,]+)\s+(\d+(?:[.,]\d+)?)\s*%\s+([\d\s.,]+)', _I)
    line_full: Pattern = re.compile(
        r'^(.{3,60}?)\s+(\d+(?:[.,]\d+)?)\s*(pcs?|kg|unité|unit|box|carton|lot)?\s+(\d+(?:[.,]\d+)?)\s+(\d+(?:[.,]\d+)?)', _I)
    line_simple: Pattern = re.compile(r'(\d+(?:[.,]\d+)?)\s*[xX×]\s*(\d+(?:[.,]\d+)?)')
    line_fallback: Pattern = re.compile(r'^([a-z0-9\-\.]{4,})\s+(.+?)\s+(\d+(?:[\.,]\d+)?)\s+([\d\s\.,]+)$', _I)

    percentage: Pattern = re.compile(r'(\d+(?:[.,]\d+)?)\s*%')
    currency_code: Pattern = re.compile(r'\b(EUR|USD|GBP|MAD|DH|CHF|CAD|AUD|JPY)\b', _I)
    currency_symbol: Pattern = re.compile(r'[€$£¥]')


DEFAULT_PATTERNS = PatternTable()

CURRENCY_SYMBOLS = {
    '€': 'EUR',
    '$': 'USD',
    '£': 'GBP',
    '¥': 'JPY',
}

_LEADING_NUMBER = re.compile(r'^[+-]?(?:\d+(?:\.\d*)?|\.\d+)')


def _canonical_number(cleaned: str) -> str:
    """Rewrite a separator-ambiguous number with a single dot decimal."""
    last_comma = cleaned.rfind(',')
    last_dot = cleaned.rfind('.')
    if last_comma > last_dot:
        return cleaned.replace('.', '').replace(',', '.', 1)
    if last_dot > last_comma:
        return cleaned.replace(',', '')
    return cleaned


def _fallback_parse_number(cleaned: str) -> float:
    match = _LEADING_NUMBER.match(_canonical_number(cleaned))
    if not match:
        return 0.0
    return float(match.group(0))


def parse_number(value: str) -> float:
    """
    Parse a French or English formatted number.

    The separator that appears last is the decimal one, so "1 010,00",
    "1.010,00", "1,010.00" and "1010.00" all give 1010.0. Unparseable input
    gives 0.0.
    """
    if not value:
        return 0.0

    cleaned = re.sub(r'\s', '', value)
    if not cleaned:
        return 0.0

    # de_DE reads ',' as the decimal separator and '.' as grouping
    locale = 'de_DE' if cleaned.rfind(',') > cleaned.rfind('.') else 'en_US'

    try:
        number = float(parse_decimal(cleaned, locale=locale))
    except NumberFormatError:
        logger.debug(f"Babel could not parse '{value}', using leading numeric prefix")
        number = _fallback_parse_number(cleaned)

    if not math.isfinite(number):
        return 0.0
    return number


def clean_numeric(value: str) -> str:
    """Normalize commas to dots and drop everything but digits and dots."""
    if not value:
        return ''
    return re.sub(r'[^\d.]', '', value.replace(',', '.'))


_AMOUNT_DEBRIS = re.compile(r'[\]\[}{)|f]')


def parse_ocr_amount(value: str) -> float:
    """Parse an amount captured with OCR debris around it ("1010.00}", "1.010,00|")."""
    if not value:
        return 0.0
    return parse_number(_AMOUNT_DEBRIS.sub('', value))


_OCR_LINE_RULES = (
    (re.compile(r'[îìíï]'), '1'),
    (re.compile(r'[ôòóö]'), '0'),
    (re.compile(r'[ûùúü]'), 'u'),
    (re.compile(r'(\d)[}\]|)]+'), r'\1'),
    (re.compile(r'[}\]|)]+(\d)'), r'\1'),
    (re.compile(r'\s+(?:[|}\])\[{(]+\s+)+'), ' '),
    (re.compile(r'\s+'), ' '),
)


def clean_ocr_text(text: str) -> str:
    """Fix common OCR glyph confusions line by line."""
    cleaned_lines = []
    for line in text.split('\n'):
        for pattern, replacement in _OCR_LINE_RULES:
            line = pattern.sub(replacement, line)
        cleaned_lines.append(line.strip())
    return '\n'.join(cleaned_lines)


def calculate_net_price(unit_price: float, discount_percent: float) -> float:
    return unit_price * (1 - discount_percent / 100)


def detect_currency(text: str, default_currency: str = 'MAD',
                    patterns: PatternTable = DEFAULT_PATTERNS) -> str:
    """Detect the document currency from ISO codes first, then symbols."""
    code_match = patterns.currency_code.search(text)
    if code_match:
        code = code_match.group(1).upper()
        return 'MAD' if code == 'DH' else code

    symbol_match = patterns.currency_symbol.search(text)
    if symbol_match:
        return CURRENCY_SYMBOLS.get(symbol_match.group(0), default_currency)

    return default_currency


def starts_with_barcode(line: str) -> bool:
    return re.match(r'\d{8,14}', line.strip()) is not None


def is_noise_line(line: str, noise_keywords: Iterable[str]) -> bool:
    """True for blank lines and lines carrying a noise keyword but no product code."""
    trimmed = line.strip()
    if not trimmed:
        return True

    if starts_with_barcode(trimmed):
        return False
    if re.match(r'[A-Z0-9][-A-Z0-9]{3,}', trimmed):
        return False

    lower_line = trimmed.lower()
    return any(keyword.lower() in lower_line for keyword in noise_keywords)


def count_amounts(line: str, patterns: PatternTable = DEFAULT_PATTERNS) -> int:
    return len(patterns.amount.findall(line))
