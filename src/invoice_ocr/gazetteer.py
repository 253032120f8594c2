"""
City, country and street-keyword lookup for address detection.

Lookups fold accents with Unidecode so that OCR output such as "FES" or
"Meknes" still resolves, and fall back to a one-edit Levenshtein match for
long city names that OCR slightly misspelled.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

import Levenshtein
from unidecode import unidecode

logger = logging.getLogger(__name__)

MOROCCAN_CITIES = frozenset([
    'casablanca', 'rabat', 'marrakech', 'fes', 'fès', 'tanger', 'tangier',
    'agadir', 'meknes', 'meknès', 'oujda', 'kenitra', 'kénitra', 'tetouan',
    'tétouan', 'safi', 'mohammedia', 'el jadida', 'beni mellal', 'béni mellal',
    'nador', 'taza', 'settat', 'berrechid', 'khemisset', 'khémisset',
    'khouribga', 'sale', 'salé', 'temara', 'témara',
    'inezgane', 'ouarzazate', 'essaouira', 'laayoune', 'laâyoune', 'dakhla',
    'errachidia', 'guelmim', 'taroudant', 'larache', 'ksar el kebir',
    'fnideq', 'berkane', 'taourirt', 'fquih ben salah', 'youssoufia',
    'sidi kacem', 'sidi slimane', 'midelt', 'azrou', 'ifrane',
    # Industrial zones
    'ain sebaa', 'sidi maarouf', 'bouskoura', 'nouaceur', 'had soualem',
])

FRENCH_CITIES = frozenset([
    'paris', 'marseille', 'lyon', 'toulouse', 'nice', 'nantes', 'strasbourg',
    'montpellier', 'bordeaux', 'lille', 'rennes', 'reims', 'le havre',
    'saint-étienne', 'saint-etienne', 'toulon', 'grenoble', 'dijon', 'angers',
    'nîmes', 'nimes', 'villeurbanne', 'le mans', 'aix-en-provence',
    'clermont-ferrand', 'brest', 'tours', 'limoges', 'amiens', 'perpignan',
    'metz', 'besançon', 'besancon', 'orléans', 'orleans', 'mulhouse', 'rouen',
    'caen', 'nancy', 'argenteuil', 'montreuil', 'saint-denis',
])

BELGIAN_CITIES = frozenset([
    'bruxelles', 'brussels', 'anvers', 'antwerp', 'gand', 'ghent', 'charleroi',
    'liège', 'liege', 'bruges', 'brugge', 'namur', 'leuven', 'louvain', 'mons',
])

SPANISH_CITIES = frozenset([
    'madrid', 'barcelona', 'valencia', 'sevilla', 'seville', 'zaragoza',
    'málaga', 'malaga', 'murcia', 'palma', 'bilbao', 'alicante', 'córdoba',
    'cordoba', 'valladolid', 'vigo', 'gijón', 'gijon',
])

MULTI_WORD_CITIES = (
    'el jadida', 'beni mellal', 'béni mellal', 'ksar el kebir',
    'fquih ben salah', 'sidi kacem', 'sidi slimane', 'sidi maarouf',
    'ain sebaa', 'had soualem', 'saint-étienne', 'saint-etienne',
    'le havre', 'le mans', 'aix-en-provence', 'clermont-ferrand',
    'saint-denis',
)

# Order matters: the first keyword found in the text wins
COUNTRY_KEYWORDS = (
    ('maroc', 'MA'), ('morocco', 'MA'),
    ('france', 'FR'),
    ('belgique', 'BE'), ('belgium', 'BE'),
    ('espagne', 'ES'), ('spain', 'ES'), ('españa', 'ES'),
    ('suisse', 'CH'), ('switzerland', 'CH'), ('schweiz', 'CH'),
    ('allemagne', 'DE'), ('germany', 'DE'), ('deutschland', 'DE'),
    ('italie', 'IT'), ('italy', 'IT'), ('italia', 'IT'),
    ('pays-bas', 'NL'), ('netherlands', 'NL'), ('nederland', 'NL'),
    ('portugal', 'PT'),
    ('royaume-uni', 'GB'), ('united kingdom', 'GB'), ('uk', 'GB'),
)

STREET_KEYWORDS = (
    'rue', 'avenue', 'av.', 'av', 'boulevard', 'bd', 'blvd', 'allée', 'impasse',
    'passage', 'place', 'chemin', 'route', 'voie',
    'lot', 'lotissement', 'résidence', 'immeuble', 'imm', 'quartier', 'zone',
    'zone industrielle', 'zi', 'galerie', 'centre', 'angle', 'n°', 'numéro',
    'calle', 'avenida', 'paseo', 'plaza',
)

_DOCUMENT_LINE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'facture\s*(n[°o]?|pro|avoir)?',
    r'\bn[°o]?\s*:?\s*\d{4,}',
    r'\b(bl|bc|br)\s*(n[°o]?)?',
    r'bon\s*(de\s*)?(livraison|commande|réception)',
    r'devis\s*(n[°o]?)?',
    r'avoir\s*(n[°o]?)?',
    r'proforma',
    r'\w+\s+n[°o]?\s*:?\s*\d{4,}',
))

_STOP_LINE_PATTERNS = tuple(re.compile(p, re.IGNORECASE) for p in (
    r'^(ice|i\.?f\.?|r\.?c\.?|cnss|patente|tp)\s*[.:]',
    r'^(siret|siren|tva\s*intra|n°?\s*tva)\s*[.:]',
    r'siret\s*[.:]\s*\d',
    r'^(tél|tel|phone|fax|email|@|gsm|mobile)\s*[.:]',
    r'^(code\s*client|n°?\s*facture|date|bl\s*n)',
    r'facture\s*(n[°o]?|pro|avoir)?',
    r'^(bl|bc|br|devis|avoir|proforma)\s*(n[°o]?)?',
    r'bon\s*(de\s*)?(livraison|commande)',
    r'^\d{8,14}\s',
    r'^\d{1,2}[/\-.]\d{1,2}[/\-.]\d{2,4}',
))

_CITY_COUNTRY = re.compile(r'[A-ZÀ-Ü]{3,}\s*[-,]\s*[A-ZÀ-Ü]{3,}', re.IGNORECASE)
_POSTAL_CODE = re.compile(r'\b\d{5}\b')
_TOKEN_SPLIT = re.compile(r'[\s,\-;.]+')

FUZZY_MIN_LENGTH = 7


@dataclass(frozen=True)
class CityMatch:
    city: str
    country: str
    confidence: float


@dataclass(frozen=True)
class CountryMatch:
    country: str
    country_code: str
    confidence: float


def capitalize_place(text: str) -> str:
    """'saint-étienne' -> 'Saint Étienne'."""
    return ' '.join(word[:1].upper() + word[1:].lower() for word in re.split(r'[\s-]', text))


class CityGazetteer:
    """Read-only gazetteer. Build once and share between extractions."""

    def __init__(self):
        self._countries: Tuple[Tuple[str, frozenset, float], ...] = (
            ('MA', MOROCCAN_CITIES, 0.9),
            ('FR', FRENCH_CITIES, 0.9),
            ('BE', BELGIAN_CITIES, 0.85),
            ('ES', SPANISH_CITIES, 0.85),
        )
        self._folded: Tuple[Tuple[str, frozenset, float], ...] = tuple(
            (code, frozenset(unidecode(city) for city in cities), confidence)
            for code, cities, confidence in self._countries
        )
        self._fuzzy_candidates: Tuple[Tuple[str, str, float], ...] = tuple(
            (unidecode(city), code, confidence)
            for code, cities, confidence in self._countries
            for city in sorted(cities)
            if len(city) >= FUZZY_MIN_LENGTH
        )

    def find_city(self, text: str) -> Optional[CityMatch]:
        """Find the first known city in ``text``. Multi-word names are tried first."""
        tokens = self._extract_tokens(text.lower())

        for token in tokens:
            match = self._lookup(token)
            if match:
                return match

        return self._fuzzy_lookup(tokens)

    def find_country(self, text: str) -> Optional[CountryMatch]:
        lower_text = text.lower()
        for keyword, code in COUNTRY_KEYWORDS:
            if keyword in lower_text:
                return CountryMatch(country=capitalize_place(keyword), country_code=code, confidence=0.95)
        return None

    def looks_like_address(self, line: str) -> bool:
        lower_line = line.lower()
        trimmed = line.strip()

        if len(trimmed) < 5 or len(trimmed) > 100:
            return False

        # Document identifiers are never addresses, even next to a city name
        if self.is_document_line(lower_line):
            return False

        if self.find_city(line) or self.find_country(line):
            return True

        if any(keyword in lower_line for keyword in STREET_KEYWORDS):
            return True

        if _POSTAL_CODE.search(trimmed):
            return True

        return _CITY_COUNTRY.search(trimmed) is not None

    def is_document_line(self, line: str) -> bool:
        lower_line = line.lower()
        return any(pattern.search(lower_line) for pattern in _DOCUMENT_LINE_PATTERNS)

    def is_stop_line(self, line: str) -> bool:
        """Identifier, contact, document-number, barcode or date lines end an address block."""
        lower_line = line.lower().strip()
        return any(pattern.search(lower_line) for pattern in _STOP_LINE_PATTERNS)

    def _lookup(self, token: str) -> Optional[CityMatch]:
        for code, cities, confidence in self._countries:
            if token in cities:
                return CityMatch(city=capitalize_place(token), country=code, confidence=confidence)

        folded = unidecode(token)
        for code, cities, confidence in self._folded:
            if folded in cities:
                return CityMatch(city=capitalize_place(token), country=code, confidence=confidence)
        return None

    def _fuzzy_lookup(self, tokens: List[str]) -> Optional[CityMatch]:
        for token in tokens:
            if len(token) < FUZZY_MIN_LENGTH:
                continue
            folded = unidecode(token)
            for city, code, confidence in self._fuzzy_candidates:
                if Levenshtein.distance(folded, city) <= 1:
                    logger.debug(f"Fuzzy city match: '{token}' -> '{city}'")
                    return CityMatch(city=capitalize_place(city), country=code, confidence=confidence)
        return None

    @staticmethod
    def _extract_tokens(lower_text: str) -> List[str]:
        tokens = [city for city in MULTI_WORD_CITIES if city in lower_text]
        folded_text = unidecode(lower_text)
        tokens.extend(
            city for city in MULTI_WORD_CITIES
            if city not in tokens and unidecode(city) in folded_text
        )
        tokens.extend(word for word in _TOKEN_SPLIT.split(lower_text) if len(word) >= 3)
        return tokens


COUNTRY_NAMES = {
    'MA': 'Maroc',
    'FR': 'France',
    'BE': 'Belgique',
    'ES': 'Espagne',
    'CH': 'Suisse',
    'DE': 'Allemagne',
    'IT': 'Italie',
}


def country_name(code: str) -> str:
    return COUNTRY_NAMES.get(code, code)


DEFAULT_GAZETTEER = CityGazetteer()
