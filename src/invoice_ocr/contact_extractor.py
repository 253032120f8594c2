"""
Supplier contact extraction: name, address, phone and email.

Addresses are decomposed into street, secondary location (``street_line2``),
city, postal code and country. Phones are validated and formatted against the
numbering plan of the detected country (Morocco by default).
"""

import logging
import re
from functools import partial
from typing import Dict, List, Optional, Sequence, Tuple

from .base_extractor import BaseExtractor, collapse_whitespace, group_or_whole
from .gazetteer import DEFAULT_GAZETTEER, CityGazetteer, country_name
from .locales import FR_LOCALE, OcrLocale
from .models import AddressResult, ContactInfo, ExtractionResult, PhoneResult
from .patterns import DEFAULT_PATTERNS, PatternTable
from .strategies import Strategy, first_valid
from .zone_detector import ZoneDetector

logger = logging.getLogger(__name__)

DOCUMENT_ADDRESS_PATTERNS = (
    # FACTURE N° : 20250388 GALERIE...
    re.compile(r'(?:facture|devis|avoir|proforma)\s*(?:n[°o]?\s*)?:?\s*\d+\s+(.+)', re.IGNORECASE),
    # BL N° 12345 GALERIE...
    re.compile(r'(?:bl|bc|br)\s*(?:n[°o]?\s*)?:?\s*\d+\s+(.+)', re.IGNORECASE),
    # N° : 20250388 GALERIE...
    re.compile(r'n[°o]\s*:?\s*\d+\s+(.+)', re.IGNORECASE),
)

DOCUMENT_WORDS = re.compile(r'facture|n[°o]\s*:|bl\s*n|bc\s*n|devis|avoir|proforma', re.IGNORECASE)
NON_ADDRESS_PREFIX = re.compile(r'^(date|ice|i\.?f|r\.?c|tél|tel|fax|email|client|code)', re.IGNORECASE)
NUMBERS_ONLY = re.compile(r'^[\d\s.,/\-]+$')
CAPITALIZED_WORDS = re.compile(r"[A-ZÀ-Ü][A-Za-zÀ-ü\s\d,.\-°']{2,}")
LEADING_NUMBER = re.compile(r'^\d+[\s,]')
STREET_WORDS = re.compile(r'rue|avenue|av\.|boulevard|bd|place|chemin|route|allée|impasse|voie', re.IGNORECASE)
PHONE_SEPARATORS = re.compile(r'[\s.\-()]')
PHONE_PAIRS = re.compile(r'(\d{2})(\d{2})(\d{2})(\d{2})(\d{2})')
DATE_ONLY = re.compile(r'^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}$')
ADDRESS_SEPARATORS = re.compile(r'[,\n]|\s+-\s+')
POSTAL_CODE_ONLY = re.compile(r'\d{4,5}')

# Words that mark a company line in optical supply invoices
SUPPLIER_KEYWORDS = (
    'DISTRIBUTION', 'SOCIETE', 'SOCIÉTÉ', 'OPTICAL', 'OPTIQUE', 'VISION', 'LUNETTES', 'EYEWEAR',
    'OPTIC', 'OPTIK', 'VERRE', 'LENTILLE', 'LENS', 'MONTURE', 'FRAME',
    'LUXOTTICA', 'ESSILOR', 'SAFILO', 'HOYA', 'ZEISS', 'BBGR', 'RODENSTOCK',
)
LEGAL_FORMS = re.compile(
    r'\b(?:SARL|SA|SAS|SASU|EURL|EI|SNC|STE|SOCIÉTÉ|SOCIETE|ETS|ETABLISSEMENT)\b', re.IGNORECASE)
NAME_PREFIX = re.compile(r'^(?:STE|SOCIETE|SOCIÉTÉ)\s+', re.IGNORECASE)
# Brands printed next to the supplier name on sponsored letterheads
NAME_SPONSORS = re.compile(r'\s+(?:CHARMANT|SEIKO|IKKS|ESPRIT|ELLE|MINAMOTO|FESTINA)\b.*', re.IGNORECASE)

LABELED_ADDRESS_FLOOR = 0.7
POSITIONAL_ADDRESS_FLOOR = 0.5
CITY_ADDRESS_FLOOR = 0.5
DOCUMENT_LINE_ADDRESS_FLOOR = 0.5
KEYWORD_ADDRESS_FLOOR = 0.4


def _address_floor(floor: float):
    return lambda result: result.confidence >= floor


def _is_valid_phone(result: PhoneResult) -> bool:
    return result.is_valid


def clean_phone(phone: str) -> str:
    return PHONE_SEPARATORS.sub('', phone)


def clean_address(address: str) -> str:
    return re.sub(r'[:\s]+$', '', re.sub(r'^[:\s]+', '', collapse_whitespace(address))).strip()


def clean_supplier_name(name: str) -> str:
    """'STE ATLAS LUNETIERS SEIKO' -> 'ATLAS LUNETIERS'."""
    cleaned = NAME_PREFIX.sub('', name.strip())
    cleaned = re.sub(r'[;:,.]+$', '', cleaned).strip()
    cleaned = NAME_SPONSORS.sub('', cleaned).strip()
    return cleaned or name.strip()


def detect_country_from_phone(phone: str) -> str:
    for prefix, code in (('212', 'MA'), ('33', 'FR'), ('32', 'BE'), ('34', 'ES')):
        if phone.startswith('+' + prefix) or phone.startswith(prefix):
            return code
    if phone.startswith('0'):
        if re.match(r'0[25678]', phone):
            return 'MA'
        if re.match(r'0[1-9]', phone):
            return 'FR'
    return 'INTL'


class ContactExtractor(BaseExtractor):
    """Recover the supplier's name, address, phone and email from the document header."""

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS, gazetteer: CityGazetteer = DEFAULT_GAZETTEER):
        self.patterns = patterns
        self.gazetteer = gazetteer
        self.zone_detector = ZoneDetector(patterns)

    def extract(self, text: str, locale: OcrLocale = FR_LOCALE) -> ExtractionResult:
        return self.extract_name(text, locale)

    # Name

    def extract_name(self, text: str, locale: OcrLocale = FR_LOCALE) -> ExtractionResult:
        found = self.try_patterns(text, locale.supplier.name)
        if found:
            match, pattern = found
            return self.success(group_or_whole(match).strip(), self.calculate_confidence(match, text),
                                match.group(0), pattern)

        header_lines = [line for line in self.zone_detector.extract_header_zone(text).split('\n')
                        if len(line.strip()) >= 5 and not self._is_noise(line, locale)]

        # Trade keywords outrank legal forms, which outrank position
        for line in header_lines:
            upper_line = line.upper()
            if any(keyword in upper_line for keyword in SUPPLIER_KEYWORDS):
                return self._fallback_name(line, 0.65, 'fallback-keywords')

        for line in header_lines:
            if LEGAL_FORMS.search(line):
                return self._fallback_name(line, 0.6, 'fallback-legal-form')

        for line in text.split('\n'):
            if len(line.strip()) > 3 and self._looks_like_company_name(line, locale):
                return ExtractionResult(
                    value=line.strip(),
                    confidence=0.5,
                    source_text=line,
                    matched_pattern='fallback-first-line',
                )

        return self.failure()

    @staticmethod
    def _fallback_name(line: str, confidence: float, matched_pattern: str) -> ExtractionResult:
        return ExtractionResult(
            value=clean_supplier_name(line),
            confidence=confidence,
            source_text=line,
            matched_pattern=matched_pattern,
        )

    def _is_noise(self, line: str, locale: OcrLocale) -> bool:
        trimmed = line.strip()
        if self.patterns.header_stop.match(trimmed) or self.gazetteer.is_document_line(trimmed):
            return True
        lower_line = trimmed.lower()
        return any(keyword in lower_line for keyword in locale.noise_keywords)

    def _looks_like_company_name(self, line: str, locale: OcrLocale) -> bool:
        trimmed = line.strip()

        if not re.match(r'[A-ZÀ-Ü]', trimmed):
            return False
        if len(trimmed) < 3 or len(trimmed) > 60:
            return False

        digit_count = len(re.findall(r'\d', trimmed))
        if digit_count > len(trimmed) * 0.3:
            return False

        words = trimmed.lower().split()
        if all(word in locale.stop_words for word in words):
            return False

        if DATE_ONLY.match(trimmed) or re.fullmatch(r'[\d\s.,]+', trimmed):
            return False

        return True

    # Address

    def extract_address(self, text: str, locale: OcrLocale = FR_LOCALE,
                        supplier_name: Optional[str] = None) -> AddressResult:
        """
        Extract the supplier address from the header zone.

        Strategies, each accepted only above its own confidence floor:

        1. an explicit label ("Adresse:", "Siège social:", "Domicilié à:");
        2. the lines following the supplier name;
        3. a gazetteer city, walking upwards for street lines;
        4. an address appended to a document number line;
        5. street keywords.
        """
        header_text = self.zone_detector.extract_header_zone(text)

        strategies = (
            Strategy('labeled', partial(self._extract_labeled_address, locale=locale),
                     _address_floor(LABELED_ADDRESS_FLOOR)),
            Strategy('positional', partial(self._extract_positional_address, supplier_name=supplier_name),
                     _address_floor(POSITIONAL_ADDRESS_FLOOR)),
            Strategy('city-detection', self._extract_address_by_city, _address_floor(CITY_ADDRESS_FLOOR)),
            Strategy('document-line-extraction', self._extract_address_from_document_lines,
                     _address_floor(DOCUMENT_LINE_ADDRESS_FLOOR)),
            Strategy('street-keywords', self._extract_address_by_keywords, _address_floor(KEYWORD_ADDRESS_FLOOR)),
        )

        found = first_valid(strategies, header_text)
        if found is None:
            return AddressResult()
        return found[1]

    def _extract_labeled_address(self, text: str, locale: OcrLocale) -> Optional[AddressResult]:
        patterns = (
            self.patterns.address_labeled,
            self.patterns.address_siege,
            self.patterns.address_domicilie,
        ) + tuple(locale.supplier.address)

        for pattern in patterns:
            match = pattern.search(text)
            if match and match.group(1):
                address = clean_address(match.group(1))
                return self._with_components(AddressResult(
                    value=address,
                    confidence=0.85,
                    source_text=match.group(0),
                    matched_pattern=pattern.pattern,
                ), address)
        return None

    def _extract_positional_address(self, text: str, supplier_name: Optional[str]) -> Optional[AddressResult]:
        if not supplier_name:
            return None

        lines = text.split('\n')
        name_index = next((i for i, line in enumerate(lines) if supplier_name.lower() in line.lower()), None)
        if name_index is None:
            return None

        collected = []
        for line in lines[name_index + 1:name_index + 6]:
            line = line.strip()
            if not line:
                continue
            if self.gazetteer.is_stop_line(line):
                break
            if self.gazetteer.looks_like_address(line) or self._looks_like_street_line(line):
                collected.append(line)

        if not collected:
            return None

        city_index = next((i for i, line in enumerate(collected) if self.gazetteer.find_city(line)), None)
        if city_index is not None:
            street_lines = collected[:city_index]
            city_line = collected[city_index]
        else:
            street_lines = collected[:-1]
            city_line = collected[-1]

        street, street_line2 = self.dispatch_address_lines(street_lines)
        city = self.gazetteer.find_city(city_line)

        return AddressResult(
            value=', '.join(collected),
            confidence=min(0.6 + len(collected) * 0.1, 1.0),
            source_text='\n'.join(collected),
            matched_pattern='positional',
            street=street or (street_lines[0] if street_lines else None),
            street_line2=street_line2,
            city=city.city if city else None,
            country=country_name(city.country) if city else None,
            postal_code=self._extract_postal_code(city_line),
        )

    def _extract_address_by_city(self, text: str) -> Optional[AddressResult]:
        lines = text.split('\n')

        for i, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line or self.gazetteer.is_stop_line(line):
                continue
            # Document lines can mention a city without being an address
            if not self.gazetteer.looks_like_address(line):
                continue

            city = self.gazetteer.find_city(line)
            if not city:
                continue

            collected: List[str] = []
            for j in range(i - 1, max(0, i - 4) - 1, -1):
                previous = lines[j].strip()
                if not previous:
                    continue

                if self.gazetteer.is_stop_line(previous) or not self._looks_like_street_line(previous):
                    salvaged = self._extract_address_part_from_document_line(previous)
                    if salvaged:
                        collected.insert(0, salvaged)
                    break

                collected.insert(0, previous)

            street, street_line2 = self.dispatch_address_lines(collected)
            address_lines = [part for part in (street, street_line2) if part] + [line]

            return AddressResult(
                value=', '.join(address_lines),
                confidence=city.confidence,
                source_text='\n'.join(address_lines),
                matched_pattern='city-detection',
                street=street,
                street_line2=street_line2,
                city=city.city,
                country=country_name(city.country),
                postal_code=self._extract_postal_code(line),
            )

        return None

    def _extract_address_from_document_lines(self, text: str) -> Optional[AddressResult]:
        """Handle "FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE" style lines."""
        lines = text.split('\n')

        for i, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue

            address_part = self._extract_address_part_from_document_line(line)
            if not address_part:
                continue

            next_line = lines[i + 1].strip() if i + 1 < len(lines) else ''
            city = self.gazetteer.find_city(next_line) or self.gazetteer.find_city(address_part)
            if not city:
                continue

            address_lines = [address_part]
            if next_line and self.gazetteer.looks_like_address(next_line):
                address_lines.append(next_line)

            country = self.gazetteer.find_country(address_part)
            country_label = country.country if country else country_name(city.country)
            street, street_line2 = self.dispatch_address_lines(
                self._street_parts(address_part, city.city, country_label))

            return AddressResult(
                value=', '.join(address_lines),
                confidence=0.7,
                source_text='\n'.join(address_lines),
                matched_pattern='document-line-extraction',
                street=street,
                street_line2=street_line2,
                city=city.city,
                country=country_name(city.country),
                postal_code=self._extract_postal_code(next_line or address_part),
            )

        return None

    def _extract_address_by_keywords(self, text: str) -> Optional[AddressResult]:
        match = self.patterns.street_keywords.search(text)
        if not match:
            return None

        address = match.group(0).strip()
        if not self.gazetteer.looks_like_address(address):
            return None

        return self._with_components(AddressResult(
            value=address,
            confidence=0.5,
            source_text=match.group(0),
            matched_pattern='street-keywords',
        ), address)

    def _extract_address_part_from_document_line(self, line: str) -> Optional[str]:
        """'FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE' -> 'GALERIE MARCHANDE MARJANE'."""
        for pattern in DOCUMENT_ADDRESS_PATTERNS:
            match = pattern.search(line)
            if not match or not match.group(1):
                continue

            candidate = match.group(1).strip()
            if len(candidate) >= 5 and (
                self.is_location(candidate)
                or self.gazetteer.looks_like_address(candidate)
                or self._looks_like_street_line(candidate)
            ):
                return candidate
        return None

    def dispatch_address_lines(self, lines: Sequence[str]) -> Tuple[Optional[str], Optional[str]]:
        """
        Split address lines into ``(street, street_line2)``.

        A numbered street always wins the street slot. Without one, the first
        named location (gallery, residence, industrial zone...) takes it, and
        failing that the first line does. Everything else is joined into
        street_line2.
        """
        numbered_street = None
        locations = []
        others = []

        for line in lines:
            if self.is_numbered_street(line):
                numbered_street = line
            elif self.is_location(line):
                locations.append(line)
            elif line:
                others.append(line)

        if numbered_street:
            complement = locations + others
        elif locations:
            numbered_street, complement = locations[0], locations[1:] + others
        elif others:
            numbered_street, complement = others[0], others[1:]
        else:
            return None, None

        return numbered_street, ', '.join(complement) if complement else None

    def is_numbered_street(self, line: str) -> bool:
        trimmed = line.strip()
        if self.patterns.numbered_street.search(trimmed):
            return True
        return bool(LEADING_NUMBER.match(trimmed) and STREET_WORDS.search(trimmed))

    def is_location(self, line: str) -> bool:
        trimmed = line.strip()
        return bool(self.patterns.location_keywords.search(trimmed) or self.patterns.location_full.search(trimmed))

    def _looks_like_street_line(self, line: str) -> bool:
        """More permissive than ``looks_like_address``: also accepts bare location names."""
        trimmed = line.strip()

        if len(trimmed) < 3 or len(trimmed) > 80:
            return False
        if self.gazetteer.is_stop_line(line):
            return False
        if DOCUMENT_WORDS.search(trimmed) or NON_ADDRESS_PREFIX.match(trimmed):
            return False
        if NUMBERS_ONLY.match(trimmed):
            return False

        if self.gazetteer.looks_like_address(line):
            return True
        if self.patterns.location_keywords.search(trimmed):
            return True
        # "GALERIE MARCHANDE MARJANE"
        if CAPITALIZED_WORDS.fullmatch(trimmed) and len(trimmed.split()) >= 2:
            return True
        # "Lot 45"
        return LEADING_NUMBER.match(trimmed) is not None

    def _with_components(self, result: AddressResult, address: str) -> AddressResult:
        city = self.gazetteer.find_city(address)
        country = self.gazetteer.find_country(address)
        country_label = country.country if country else (country_name(city.country) if city else None)

        address_parts = self._street_parts(address, city.city if city else None, country_label)
        street, street_line2 = self.dispatch_address_lines(address_parts)

        return AddressResult(
            value=result.value,
            confidence=result.confidence,
            source_text=result.source_text,
            matched_pattern=result.matched_pattern,
            street=street,
            street_line2=street_line2,
            city=city.city if city else None,
            country=country_label,
            postal_code=self._extract_postal_code(address),
        )

    @staticmethod
    def _street_parts(address: str, city: Optional[str], country: Optional[str]) -> List[str]:
        """'GALERIE MARJANE, CASABLANCA - MAROC' -> ['GALERIE MARJANE']."""
        parts = []
        for part in ADDRESS_SEPARATORS.split(address):
            for locality in (city, country):
                if locality:
                    part = re.sub(re.escape(locality), '', part, flags=re.IGNORECASE)
            part = part.strip(' -,')
            if part and not POSTAL_CODE_ONLY.fullmatch(part):
                parts.append(part)
        return parts

    def _extract_postal_code(self, text: str) -> Optional[str]:
        match = self.patterns.postal_code.search(text)
        return match.group(1) if match else None

    # Phone

    def extract_phone(self, text: str, locale: OcrLocale = FR_LOCALE,
                      preferred_country: Optional[str] = None) -> PhoneResult:
        """
        Extract the supplier phone number from the header zone.

        Tries country-labeled patterns (0.9), the locale's phone patterns,
        international E.164 numbers (0.75), then any digit run (0.5). A
        candidate is only accepted once it validates for its country.
        """
        header_text = self.zone_detector.extract_header_zone(text)
        country = preferred_country or self._detect_country_from_text(header_text) or 'MA'

        strategies = (
            Strategy('labeled', partial(self._extract_labeled_phone, country=country),
                     lambda result: result.is_valid and result.confidence >= 0.8),
            Strategy('locale', partial(self._extract_locale_phone, locale=locale, country=country), _is_valid_phone),
            Strategy('international', self._extract_international_phone, _is_valid_phone),
            Strategy('generic', partial(self._extract_generic_phone, country=country), _is_valid_phone),
        )

        found = first_valid(strategies, header_text)
        if found is None:
            return PhoneResult()
        return found[1]

    def _extract_labeled_phone(self, text: str, country: str) -> Optional[PhoneResult]:
        for pattern in self._phone_patterns_for_country(country):
            match = pattern.search(text)
            if not match:
                continue
            validated = self.validate_and_format_phone(clean_phone(group_or_whole(match)), country)
            if validated.is_valid:
                return PhoneResult(value=validated.value, confidence=0.9, source_text=match.group(0),
                                   matched_pattern=pattern.pattern, country=validated.country, is_valid=True)
        return None

    def _extract_locale_phone(self, text: str, locale: OcrLocale, country: str) -> Optional[PhoneResult]:
        found = self.try_patterns(text, locale.supplier.phone)
        if not found:
            return None

        match, pattern = found
        validated = self.validate_and_format_phone(clean_phone(group_or_whole(match)), country)
        if not validated.is_valid:
            return None
        return PhoneResult(value=validated.value, confidence=self.calculate_confidence(match, text),
                           source_text=match.group(0), matched_pattern=pattern.pattern,
                           country=validated.country, is_valid=True)

    def _extract_international_phone(self, text: str) -> Optional[PhoneResult]:
        for pattern in (self.patterns.phone_intl_e164, self.patterns.phone_intl_labeled):
            match = pattern.search(text)
            if not match:
                continue
            phone = clean_phone(group_or_whole(match))
            validated = self.validate_and_format_phone(phone, detect_country_from_phone(phone))
            if validated.is_valid:
                return PhoneResult(value=validated.value, confidence=0.75, source_text=match.group(0),
                                   matched_pattern=pattern.pattern, country=validated.country, is_valid=True)
        return None

    def _extract_generic_phone(self, text: str, country: str) -> Optional[PhoneResult]:
        for match in self.patterns.phone_generic.finditer(text):
            validated = self.validate_and_format_phone(clean_phone(match.group(1)), country)
            if validated.is_valid:
                return PhoneResult(value=validated.value, confidence=0.5, source_text=match.group(0),
                                   matched_pattern='generic', country=validated.country, is_valid=True)
        return None

    def validate_and_format_phone(self, phone: str, country: str) -> PhoneResult:
        """
        Validate a phone number against a country's numbering plan.

        Moroccan and French numbers are normalized to the domestic ``0``
        prefix and formatted in pairs ("05 22 12 34 56"). Other numbers are
        accepted as 10 to 15 bare digits.
        """
        cleaned = clean_phone(phone)

        if country in ('MA', 'FR'):
            dial_code = '212' if country == 'MA' else '33'
            valid_pattern = self.patterns.valid_phone_ma if country == 'MA' else self.patterns.valid_phone_fr
            normalized = re.sub(rf'^\+?{dial_code}', '0', cleaned)
            if valid_pattern.match(normalized):
                return PhoneResult(value=PHONE_PAIRS.sub(r'\1 \2 \3 \4 \5', normalized), country=country,
                                   is_valid=True)
            return PhoneResult(country=country)

        if self.patterns.valid_phone_intl.match(cleaned):
            return PhoneResult(value=cleaned, country='INTL', is_valid=True)
        return PhoneResult(country='INTL')

    def _phone_patterns_for_country(self, country: str):
        p = self.patterns
        if country == 'MA':
            return p.phone_ma_labeled, p.phone_ma_intl, p.phone_ma_separated, p.phone_ma_compact
        if country == 'FR':
            return p.phone_fr_labeled, p.phone_fr_intl, p.phone_fr_separated, p.phone_fr_compact
        return p.phone_intl_e164, p.phone_intl_labeled

    def _detect_country_from_text(self, text: str) -> Optional[str]:
        country = self.gazetteer.find_country(text)
        if country:
            return country.country_code
        city = self.gazetteer.find_city(text)
        return city.country if city else None

    # Email

    def extract_email(self, text: str) -> ExtractionResult:
        match = self.patterns.email.search(text)
        if not match:
            return self.failure()
        return self.success(match.group(0).lower(), self.calculate_confidence(match, text),
                            match.group(0), self.patterns.email)

    # All

    def extract_all_detailed(self, text: str, locale: OcrLocale = FR_LOCALE) -> ContactInfo:
        name = self.extract_name(text, locale)
        return ContactInfo(
            name=name,
            address=self.extract_address(text, locale, name.value),
            phone=self.extract_phone(text, locale),
            email=self.extract_email(text),
        )

    def extract_all(self, text: str, locale: OcrLocale = FR_LOCALE) -> Dict[str, Optional[str]]:
        """Plain values only: name, address, phone and email."""
        contact = self.extract_all_detailed(text, locale)
        return {
            'name': contact.name.value,
            'address': contact.address.value,
            'phone': contact.phone.value,
            'email': contact.email.value,
        }
