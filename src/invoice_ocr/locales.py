"""
Per-language label patterns, stop words and noise keywords.
"""

import re
from dataclasses import dataclass
from typing import Pattern, Tuple


def _compile(*patterns: str, flags: int = re.IGNORECASE) -> Tuple[Pattern, ...]:
    return tuple(re.compile(p, flags) for p in patterns)


@dataclass(frozen=True)
class AmountPatterns:
    total_ht: Tuple[Pattern, ...]
    total_ttc: Tuple[Pattern, ...]
    vat: Tuple[Pattern, ...]
    discount: Tuple[Pattern, ...]
    net_to_pay: Tuple[Pattern, ...]


@dataclass(frozen=True)
class SupplierPatterns:
    name: Tuple[Pattern, ...]
    address: Tuple[Pattern, ...]
    phone: Tuple[Pattern, ...]


@dataclass(frozen=True)
class OcrLocale:
    """Language-specific patterns used by the extractors."""
    code: str
    months: Tuple[str, ...]
    invoice_number: Tuple[Pattern, ...]
    invoice_date: Tuple[Pattern, ...]
    due_date: Tuple[Pattern, ...]
    amounts: AmountPatterns
    supplier: SupplierPatterns
    stop_words: Tuple[str, ...]
    noise_keywords: Tuple[str, ...]
    invoice_number_fallback: Tuple[Pattern, ...]


FR_LOCALE = OcrLocale(
    code='fr',
    months=(
        'janvier', 'février', 'mars', 'avril', 'mai', 'juin',
        'juillet', 'août', 'septembre', 'octobre', 'novembre', 'décembre',
    ),
    invoice_number=_compile(
        r'(?:facture|ref|fc)\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
        r'n°?\s*facture\s*[:]?\s*([A-Z0-9\-/]+)',
        r'bon\s*de\s*livraison\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
        r'ref(?:érence)?\s*[:]?\s*([A-Z0-9\-/]+)',
        r'bl\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
    ),
    invoice_date=_compile(
        r'(?:date|du|le|facture\s*du)\s*:?\s*(\d{1,2}\s*[\/\-\.]\s*\d{1,2}\s*[\/\-\.]\s*\d{2,4})',
        r'date\s*(?:de\s*)?(?:la\s*)?facture[:\s]*(.{10,25})',
        r"date\s*d['’]?émission[:\s]*(.{10,25})",
        r'facturé\s*le[:\s]*(.{10,25})',
        r'le[,\s]+(\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4})',
    ),
    due_date=_compile(
        r"(?:date\s*d['’]?)?échéance[:\s]*(.{10,25})",
        r'date\s*limite\s*(?:de\s*)?paiement[:\s]*(.{10,25})',
        r'à\s*payer\s*avant\s*le[:\s]*(.{10,25})',
        r'payable\s*(?:avant\s*)?le[:\s]*(.{10,25})',
    ),
    amounts=AmountPatterns(
        total_ht=_compile(
            r'total\s*[àa]\s*reporter\s*[:\s]*([\d\s.,]+)',
            r'total\s*(?:hors\s*taxes?|h\.?t\.?)[:\s]*([\d\s.,]+)',
            r'montant\s*h\.?t\.?[:\s]*([\d\s.,]+)',
            r'sous[- ]?total\s*h\.?t\.?[:\s]*([\d\s.,]+)',
            r'h\.?t\.?\s*[:]?\s*([\d\s.,]+)\s*(?:dh|mad|€|eur)',
            r'report\s*[:\s]*([\d\s.,]+)',
        ),
        total_ttc=_compile(
            r'total\s*(?:toutes\s*taxes\s*comprises?|t\.?t\.?c\.?)[:\s]*([\d\s.,]+)',
            r'montant\s*t\.?t\.?c\.?[:\s]*([\d\s.,]+)',
            r'total\s*général[:\s]*([\d\s.,]+)',
            r'net\s*[àa]\s*payer\s*t\.?t\.?c\.?[:\s]*([\d\s.,]+)',
            r't\.?t\.?c\.?\s*[:]?\s*([\d\s.,]+)\s*(?:dh|mad|€|eur)',
        ),
        vat=_compile(
            r'(?:tva|t\.v\.a\.?)\s*(?:\(?\s*\d+\s*%?\s*\)?)?[:\s]*([\d\s.,]+)',
            r'taxe\s*(?:sur\s*la\s*valeur\s*ajoutée)?[:\s]*([\d\s.,]+)',
            r'montant\s*(?:de\s*la\s*)?tva[:\s]*([\d\s.,]+)',
        ),
        discount=_compile(
            r'remise[:\s]*([\d\s.,]+)',
            r'réduction[:\s]*([\d\s.,]+)',
            r'rabais[:\s]*([\d\s.,]+)',
            r'escompte[:\s]*([\d\s.,]+)',
        ),
        net_to_pay=_compile(
            r'net\s*[àa]\s*payer[:\s]*([\d\s.,]+)',
            r'montant\s*[àa]\s*payer[:\s]*([\d\s.,]+)',
            r'reste\s*[àa]\s*payer[:\s]*([\d\s.,]+)',
            r'solde\s*[àa]\s*payer[:\s]*([\d\s.,]+)',
        ),
    ),
    supplier=SupplierPatterns(
        name=_compile(
            r'(?:société|sarl|sa|sas|sasu|eurl|ei|snc)\s+([A-ZÀ-Ü][A-Za-zÀ-ü\s&.-]{2,50})',
            r'(?:raison\s*sociale|fournisseur)[:\s]*([A-ZÀ-Ü][A-Za-zÀ-ü\s&.-]{2,50})',
            r'([A-ZÀ-Ü][A-Za-zÀ-ü\s&.-]{2,40})\s+(?:SARL|SA|SAS|SASU|EURL|EI|SNC)',
        ) + _compile(
            r'^.*(?:DISTRIBUTION|SOCIETE|OPTICAL|VISION|LUNETTES|EYEWEAR|OPTIQUE).*$',
            flags=re.IGNORECASE | re.MULTILINE,
        ),
        address=_compile(
            r'adresse[:\s]*(.+?)(?:\n|tél|tel|phone|fax|ice|if|rc|email)',
            r'(?:siège\s*social|domicilié)[:\s]*(.+?)(?:\n|tél|tel)',
        ),
        phone=_compile(
            r'(?:tél(?:éphone)?|tel|phone|gsm|mobile|fax)\s*[.:]?\s*([\d\s.+()-]{10,20})',
            r'(?:fixe|portable)\s*[.:]?\s*([\d\s.+()-]{10,20})',
        ),
    ),
    stop_words=(
        'le', 'la', 'les', 'de', 'du', 'des', 'un', 'une', 'et', 'ou', 'à',
        'au', 'aux', 'en', 'pour', 'par', 'sur', 'avec', 'sans', 'sous',
        'entre', 'vers', 'chez', 'dans', 'page', 'total', 'montant',
    ),
    noise_keywords=(
        'total a reporter',
        'total à reporter',
        'net à payer',
        'net a payer',
        'arrêtée la présente',
        'arretee la presente',
        'somme toutes taxes',
    ),
    invoice_number_fallback=_compile(
        r'(FA\d{6,}[A-Za-z0-9]*)',
        r'(BL\d{6,}[A-Za-z0-9]*)',
        r'(FC\d{6,}[A-Za-z0-9]*)',
        r'([A-Z]{2,3}\d{4,})',
        flags=0,
    ),
)


EN_LOCALE = OcrLocale(
    code='en',
    months=(
        'january', 'february', 'march', 'april', 'may', 'june',
        'july', 'august', 'september', 'october', 'november', 'december',
    ),
    invoice_number=_compile(
        r'(?:invoice|inv|ref)\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
        r'inv(?:oice)?\s*no\.?\s*[:]?\s*([A-Z0-9\-/]+)',
        r'bill\s*(?:of\s*sale)?\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
        r'ref(?:erence)?\s*[:]?\s*([A-Z0-9\-/]+)',
        r'order\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
        r'po\s*(?:n°|no|n\.|n0|n|#)?\s*[:.]?\s*([A-Za-z0-9\-\/]+)',
    ),
    invoice_date=_compile(
        r'(?:date|dated)\s*:?\s*(\d{1,2}\s*[\/\-\.]\s*\d{1,2}\s*[\/\-\.]\s*\d{2,4})',
        r'invoice\s*date[:\s]*(.{10,25})',
        r'date\s*(?:of\s*)?issue[:\s]*(.{10,25})',
        r'billed\s*(?:on)?[:\s]*(.{10,25})',
        r'dated?[:\s]*(.{10,25})',
    ),
    due_date=_compile(
        r'due\s*date[:\s]*(.{10,25})',
        r'payment\s*due[:\s]*(.{10,25})',
        r'pay(?:able)?\s*by[:\s]*(.{10,25})',
        r'terms?[:\s]*(.{10,25})',
    ),
    amounts=AmountPatterns(
        total_ht=_compile(
            r'sub\s*total[:\s]*([\d\s.,]+)',
            r'total\s*(?:excl(?:uding)?\.?\s*(?:tax|vat))[:\s]*([\d\s.,]+)',
            r'net\s*(?:amount|total)[:\s]*([\d\s.,]+)',
            r'amount\s*(?:before|excl\.?)\s*(?:tax|vat)[:\s]*([\d\s.,]+)',
        ),
        total_ttc=_compile(
            r'(?:grand\s*)?total[:\s]*([\d\s.,]+)',
            r'total\s*(?:incl(?:uding)?\.?\s*(?:tax|vat))[:\s]*([\d\s.,]+)',
            r'amount\s*(?:due|payable)[:\s]*([\d\s.,]+)',
            r'balance\s*due[:\s]*([\d\s.,]+)',
        ),
        vat=_compile(
            r'(?:vat|tax)\s*(?:\(?\s*\d+\s*%?\s*\)?)?[:\s]*([\d\s.,]+)',
            r'sales\s*tax[:\s]*([\d\s.,]+)',
            r'(?:vat|tax)\s*amount[:\s]*([\d\s.,]+)',
        ),
        discount=_compile(
            r'discount[:\s]*([\d\s.,]+)',
            r'rebate[:\s]*([\d\s.,]+)',
            r'reduction[:\s]*([\d\s.,]+)',
            r'savings?[:\s]*([\d\s.,]+)',
        ),
        net_to_pay=_compile(
            r'(?:net\s*)?(?:amount\s*)?(?:to\s*)?pay[:\s]*([\d\s.,]+)',
            r'balance\s*(?:due|owing)[:\s]*([\d\s.,]+)',
            r'(?:please\s*)?pay\s*(?:this\s*amount)?[:\s]*([\d\s.,]+)',
        ),
    ),
    supplier=SupplierPatterns(
        name=_compile(
            r'(?:company|corp(?:oration)?|inc|ltd|llc|plc)\s*[:]?\s*([A-Z][A-Za-z\s&.-]{2,50})',
            r'(?:from|vendor|supplier|seller)[:\s]*([A-Z][A-Za-z\s&.-]{2,50})',
            r'(?:bill(?:ed)?\s*(?:from|by))[:\s]*([A-Z][A-Za-z\s&.-]{2,50})',
        ) + _compile(
            r'^.*(?:DISTRIBUTION|COMPANY|OPTICAL|VISION|EYEWEAR|OPTICS|SUPPLIES).*$',
            flags=re.IGNORECASE | re.MULTILINE,
        ),
        address=_compile(
            r'address[:\s]*(.+?)(?:\n|tel|phone|fax|email|tax)',
            r'(?:located|headquartered)\s*(?:at)?[:\s]*(.+?)(?:\n|tel|phone)',
        ),
        phone=_compile(
            r'(?:tel(?:ephone)?|phone|mobile|cell|fax)\s*[.:]?\s*([\d\s.+()-]{10,20})',
            r'(?:call|contact)\s*[.:]?\s*([\d\s.+()-]{10,20})',
        ),
    ),
    stop_words=(
        'the', 'a', 'an', 'of', 'to', 'and', 'or', 'in', 'on', 'at', 'for',
        'by', 'with', 'from', 'as', 'is', 'are', 'was', 'be', 'page', 'total',
        'amount', 'this', 'that',
    ),
    noise_keywords=(
        'total to carry forward',
        'carry forward total',
        'balance forward',
        'net amount to pay',
        'total all taxes included',
    ),
    invoice_number_fallback=_compile(
        r'(INV\d{6,}[A-Za-z0-9]*)',
        r'(PO\d{6,}[A-Za-z0-9]*)',
        r'(SO\d{6,}[A-Za-z0-9]*)',
        r'([A-Z]{2,3}\d{4,})',
        flags=0,
    ),
)

LOCALES = {
    'fr': FR_LOCALE,
    'en': EN_LOCALE,
}


def get_locale(code: str) -> OcrLocale:
    """Look up a locale by its code, defaulting to French."""
    return LOCALES.get(code.lower(), FR_LOCALE)
