#!/usr/bin/env python3
"""
Tests for supplier contact extraction and the city gazetteer.

Addresses on Moroccan invoices are often glued to the invoice number line
by OCR ("FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE, CASABLANCA"),
so several cases below check that document numbers never leak into them.
"""

import unittest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from invoice_ocr.contact_extractor import ContactExtractor, clean_supplier_name
from invoice_ocr.gazetteer import DEFAULT_GAZETTEER
from invoice_ocr.locales import FR_LOCALE


class TestCityGazetteer(unittest.TestCase):
    """Test cases for the CityGazetteer."""

    def setUp(self):
        self.gazetteer = DEFAULT_GAZETTEER

    def test_document_lines_are_not_addresses(self):
        lines = [
            'FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE, CASABLANCA - MAROC',
            'Facture N°2025-001 Casablanca',
            'FACTURE PRO N° 12345',
            'N° : 20250388 Casablanca',
            'BL N° 12345 Rabat',
            'BC N°2025/001',
            'Bon de livraison 12345',
        ]

        for line in lines:
            with self.subTest(line=line):
                self.assertFalse(self.gazetteer.looks_like_address(line))

    def test_address_lines(self):
        lines = [
            '123 Boulevard Mohammed V',
            'Casablanca - Maroc',
            'Zone Industrielle Ain Sebaa',
            '15 Rue Ibn Tofail, Rabat',
            '75008 Paris',
            'Lot 45, Quartier Industriel',
        ]

        for line in lines:
            with self.subTest(line=line):
                self.assertTrue(self.gazetteer.looks_like_address(line))

    def test_stop_lines(self):
        lines = [
            'FACTURE N° : 20250388',
            'Facture Pro N° 123',
            'Facture Avoir N° 456',
            'ICE: 001234567000089',
            'I.F.: 12345678',
            'R.C.: 12345',
        ]

        for line in lines:
            with self.subTest(line=line):
                self.assertTrue(self.gazetteer.is_stop_line(line))

        self.assertFalse(self.gazetteer.is_stop_line('GALERIE MARCHANDE MARJANE'))

    def test_identifier_line_is_a_stop_but_not_a_document_line(self):
        self.assertTrue(self.gazetteer.is_stop_line('ICE: 001234567000089'))
        self.assertFalse(self.gazetteer.is_document_line('ICE: 001234567000089'))

    def test_find_city(self):
        test_cases = [
            ('casablanca', 'Casablanca', 'MA'),
            ('Zone Industrielle Ain Sebaa', 'Ain Sebaa', 'MA'),
            ('75011 Paris', 'Paris', 'FR'),
            ('CASABLANKA - MAROC', 'Casablanca', 'MA'),
        ]

        for text, city, country in test_cases:
            with self.subTest(text=text):
                match = self.gazetteer.find_city(text)
                self.assertEqual(match.city, city)
                self.assertEqual(match.country, country)

        self.assertIsNone(self.gazetteer.find_city('Monture optique'))

    def test_find_country(self):
        match = self.gazetteer.find_country('Rabat - Maroc')

        self.assertEqual(match.country, 'Maroc')
        self.assertEqual(match.country_code, 'MA')


class TestAddressExtraction(unittest.TestCase):
    """Test cases for ContactExtractor.extract_address."""

    def setUp(self):
        self.extractor = ContactExtractor()

    def test_invoice_number_is_not_an_address(self):
        text = """OPTICA VISION SARL
FACTURE N° : 20250388
ICE: 001234567000089
Date: 15/01/2025"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')
        self.assertIsNone(result.value)

    def test_address_appended_to_invoice_number_line(self):
        text = """OPTICA VISION SARL
FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE, CASABLANCA - MAROC
ICE: 001234567000089
Date: 15/01/2025"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')

        self.assertTrue(result.value)
        self.assertEqual(result.city, 'Casablanca')
        self.assertNotIn('FACTURE', result.value)
        self.assertNotIn('20250388', result.value)

    def test_document_line_street_excludes_city_and_country(self):
        lines = [
            'FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE, CASABLANCA - MAROC',
            'FACTURE N° : 20250388 GALERIE MARCHANDE MARJANE CASABLANCA',
        ]

        for line in lines:
            with self.subTest(line=line):
                text = f"OPTICA VISION SARL\n{line}\nICE: 001234567000089"
                result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')

                self.assertEqual(result.matched_pattern, 'document-line-extraction')
                self.assertEqual(result.street, 'GALERIE MARCHANDE MARJANE')
                self.assertIsNone(result.street_line2)
                self.assertEqual(result.country, 'Maroc')

    def test_positional_confidence_is_capped(self):
        text = """OPTICA VISION SARL
GALERIE MARCHANDE MARJANE
Immeuble Nour
Quartier Palmier
123 Boulevard Mohammed V
CASABLANCA - MAROC
ICE: 001234567000089"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')

        self.assertEqual(result.matched_pattern, 'positional')
        self.assertEqual(result.confidence, 1.0)
        self.assertEqual(result.street, '123 Boulevard Mohammed V')
        self.assertEqual(result.city, 'Casablanca')

    def test_address_on_separate_lines(self):
        text = """OPTICA VISION SARL
123 Boulevard Mohammed V
Casablanca - Maroc
ICE: 001234567000089
Tél: 05 22 12 34 56

FACTURE N° : 20250388"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')

        self.assertEqual(result.city, 'Casablanca')
        self.assertIn('Boulevard Mohammed V', result.value)

    def test_labeled_address(self):
        text = """LENS DISTRIBUTION
Adresse: 45 Rue Ibn Tofail, Rabat
ICE: 003456789000023
Tél: 05 37 65 43 21"""

        result = self.extractor.extract_address(text, FR_LOCALE)

        self.assertIn('Ibn Tofail', result.value)
        self.assertEqual(result.city, 'Rabat')

    def test_multi_word_city(self):
        text = """OPTIQUE SERVICES
Zone Industrielle Ain Sebaa
Lot 45, Casablanca
ICE: 002345678000012

BL N° 12345"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTIQUE SERVICES')

        self.assertTrue(result.value)
        self.assertEqual(result.city, 'Ain Sebaa')

    def test_head_office_label(self):
        text = """ESSILOR MAROC
Siège social: Zone Industrielle Bouskoura
Casablanca - Maroc

Livré à: OPTICA VISION
Galerie Marjane, Casablanca

FACTURE N°: 2025-0099"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'ESSILOR MAROC')

        self.assertTrue(result.value)
        self.assertEqual(result.city, 'Bouskoura')

    def test_street_on_line_above_city(self):
        text = """FOURNISSEUR OPTIQUE SARL
45 Avenue Hassan II
Rabat, Maroc
ICE: 002345678000012"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'FOURNISSEUR OPTIQUE SARL')

        self.assertEqual(result.city, 'Rabat')
        self.assertEqual(result.street, '45 Avenue Hassan II')

    def test_location_alone_takes_the_street_slot(self):
        text = """OPTICA DISTRIBUTION
GALERIE MARCHANDE MARJANE
CASABLANCA - MAROC
ICE: 001234567000089"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA DISTRIBUTION')

        self.assertEqual(result.city, 'Casablanca')
        self.assertEqual(result.street, 'GALERIE MARCHANDE MARJANE')
        self.assertIsNone(result.street_line2)

    def test_numbered_street_pushes_location_to_line2(self):
        text = """OPTICA VISION SARL
GALERIE MARCHANDE MARJANE
123 Boulevard Mohammed V
CASABLANCA - MAROC
ICE: 001234567000089"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTICA VISION SARL')

        self.assertEqual(result.city, 'Casablanca')
        self.assertEqual(result.street, '123 Boulevard Mohammed V')
        self.assertEqual(result.street_line2, 'GALERIE MARCHANDE MARJANE')

    def test_french_commercial_zone(self):
        text = """OPTIQUE FRANCE SAS
ZAC des Entrepreneurs
15 Avenue de la République
75011 Paris
SIRET: 123 456 789 00012"""

        result = self.extractor.extract_address(text, FR_LOCALE, 'OPTIQUE FRANCE SAS')

        self.assertEqual(result.city, 'Paris')
        self.assertEqual(result.postal_code, '75011')
        self.assertEqual(result.street, '15 Avenue de la République')
        self.assertEqual(result.street_line2, 'ZAC des Entrepreneurs')

    def test_dispatch_address_lines(self):
        test_cases = [
            (["GALERIE MARCHANDE MARJANE", "123 Boulevard Mohammed V"],
             ("123 Boulevard Mohammed V", "GALERIE MARCHANDE MARJANE")),
            (["GALERIE MARCHANDE MARJANE"], ("GALERIE MARCHANDE MARJANE", None)),
            (["Niveau 2", "Bureau 5"], ("Niveau 2", "Bureau 5")),
            ([], (None, None)),
        ]

        for lines, expected in test_cases:
            with self.subTest(lines=lines):
                self.assertEqual(self.extractor.dispatch_address_lines(lines), expected)


class TestNamePhoneEmail(unittest.TestCase):
    """Test cases for the remaining ContactExtractor fields."""

    def setUp(self):
        self.extractor = ContactExtractor()

    def test_name_before_legal_form(self):
        result = self.extractor.extract_name("OPTICA VISION SARL\n123 Boulevard Mohammed V")
        self.assertEqual(result.value, "OPTICA VISION")

    def test_name_falls_back_to_first_line(self):
        result = self.extractor.extract_name("Lunetterie Atlas\n12 Rue Allal Ben Abdellah\nRabat")

        self.assertEqual(result.value, "Lunetterie Atlas")
        self.assertEqual(result.confidence, 0.5)
        self.assertEqual(result.matched_pattern, 'fallback-first-line')

    def test_name_ranked_by_trade_keyword(self):
        result = self.extractor.extract_name("Bienvenue\nESSILOR MAROC\n45 Rue Ibn Tofail")

        self.assertEqual(result.value, "ESSILOR MAROC")
        self.assertEqual(result.confidence, 0.65)
        self.assertEqual(result.matched_pattern, 'fallback-keywords')

    def test_name_ranked_by_legal_form(self):
        result = self.extractor.extract_name("Bienvenue\nSTE ATLAS LUNETIERS SEIKO\nRabat")

        self.assertEqual(result.value, "ATLAS LUNETIERS")
        self.assertEqual(result.confidence, 0.6)
        self.assertEqual(result.matched_pattern, 'fallback-legal-form')

    def test_clean_supplier_name(self):
        test_cases = [
            ("STE ATLAS LUNETIERS", "ATLAS LUNETIERS"),
            ("SOCIETE NOUR OPTIC.", "NOUR OPTIC"),
            ("OPTIC PLUS CHARMANT IKKS", "OPTIC PLUS"),
            ("STE", "STE"),
        ]

        for raw, expected in test_cases:
            with self.subTest(raw=raw):
                self.assertEqual(clean_supplier_name(raw), expected)

    def test_validate_and_format_phone(self):
        test_cases = [
            ("0522123456", "MA", "05 22 12 34 56"),
            ("+212522123456", "MA", "05 22 12 34 56"),
            ("+212 5 22 12 34 56", "MA", "05 22 12 34 56"),
            ("0142685300", "FR", "01 42 68 53 00"),
            ("+49 30 1234567", "DE", "+49301234567"),
        ]

        for phone, country, expected in test_cases:
            with self.subTest(phone=phone):
                result = self.extractor.validate_and_format_phone(phone, country)
                self.assertTrue(result.is_valid)
                self.assertEqual(result.value, expected)

        invalid = self.extractor.validate_and_format_phone("12345", "MA")
        self.assertFalse(invalid.is_valid)
        self.assertIsNone(invalid.value)

    def test_extract_labeled_moroccan_phone(self):
        result = self.extractor.extract_phone("ACME\nTél: 05 22 12 34 56")

        self.assertEqual(result.value, "05 22 12 34 56")
        self.assertEqual(result.country, "MA")
        self.assertEqual(result.confidence, 0.9)

    def test_extract_french_phone_from_country(self):
        text = "OPTIQUE FRANCE SAS\n75011 Paris - France\nTél: 01 42 68 53 00"

        result = self.extractor.extract_phone(text)

        self.assertEqual(result.value, "01 42 68 53 00")
        self.assertEqual(result.country, "FR")

    def test_extract_email_is_lowercased(self):
        result = self.extractor.extract_email("Contact: Info@Optica-Vision.MA")
        self.assertEqual(result.value, "info@optica-vision.ma")

        self.assertIsNone(self.extractor.extract_email("Pas de courriel").value)

    def test_extract_all(self):
        text = """OPTICA VISION SARL
123 Boulevard Mohammed V
CASABLANCA - MAROC
Tél: 05 22 12 34 56
Email: contact@opticavision.ma"""

        result = self.extractor.extract_all(text)

        self.assertEqual(set(result), {'name', 'address', 'phone', 'email'})
        self.assertEqual(result['name'], "OPTICA VISION")
        self.assertEqual(result['phone'], "05 22 12 34 56")
        self.assertEqual(result['email'], "contact@opticavision.ma")
        self.assertIn("123 Boulevard Mohammed V", result['address'])


if __name__ == '__main__':
    unittest.main()
