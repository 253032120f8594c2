#!/usr/bin/env python3
"""
Tests for the document-level field extractors: amounts, dates and identifiers.
"""

import unittest
from datetime import date

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from invoice_ocr.amount_extractor import AmountExtractor
from invoice_ocr.date_extractor import DateExtractor, parse_date
from invoice_ocr.identifiers import IdentifierExtractor, is_valid_ice, is_valid_if


TOTALS_TEXT = """Total HT : 2 575,50
TVA 20% : 515,10
Total TTC : 3 090,60"""


class TestAmountExtractor(unittest.TestCase):
    """Test cases for the AmountExtractor."""

    def setUp(self):
        self.extractor = AmountExtractor()

    def test_extract_all_labeled(self):
        totals = self.extractor.extract_all_labeled(TOTALS_TEXT)

        self.assertAlmostEqual(totals.total_ht, 2575.5)
        self.assertAlmostEqual(totals.total_vat, 515.1)
        self.assertAlmostEqual(totals.total_ttc, 3090.6)
        self.assertIsNone(totals.discount)
        self.assertIsNone(totals.net_to_pay)

    def test_unknown_amount_type(self):
        with self.assertRaises(ValueError):
            self.extractor.extract(TOTALS_TEXT, amount_type='shipping')

    def test_extract_all_amounts(self):
        self.assertEqual(self.extractor.extract_all_amounts("Prix 1 010,00 et 858,50"), [1010.0, 858.5])

    def test_detect_vat_rate(self):
        test_cases = [
            ((1000.0, 200.0), 0.2),
            ((1000.0, 55.0), 0.055),
            ((1000.0, 0.0), None),
            ((0.0, 10.0), None),
        ]

        for (total_ht, vat), expected in test_cases:
            with self.subTest(total_ht=total_ht, vat=vat):
                self.assertEqual(AmountExtractor.detect_vat_rate(total_ht, vat), expected)

    def test_calculate_vat(self):
        self.assertAlmostEqual(AmountExtractor.calculate_vat(1000.0, 1200.0), 200.0)
        self.assertEqual(AmountExtractor.calculate_vat(1200.0, 1000.0), 0.0)


class TestDateExtractor(unittest.TestCase):
    """Test cases for the DateExtractor."""

    def setUp(self):
        self.extractor = DateExtractor(today=date(2025, 6, 1))

    def test_labeled_invoice_date(self):
        result = self.extractor.extract("FACTURE N° 12\nDate : 15/03/2025")
        self.assertEqual(result.value, date(2025, 3, 15))

    def test_spelled_out_date(self):
        result = self.extractor.extract("Casablanca, le 3 mars 2025")
        self.assertEqual(result.value, date(2025, 3, 3))

    def test_due_date(self):
        result = self.extractor.extract("Échéance : 15/04/2025", date_type='due')
        self.assertEqual(result.value, date(2025, 4, 15))

    def test_implausible_date_is_rejected(self):
        result = self.extractor.extract("Date : 15/03/1990")
        self.assertIsNone(result.value)

    def test_unknown_date_type(self):
        with self.assertRaises(ValueError):
            self.extractor.extract("Date : 15/03/2025", date_type='delivery')

    def test_parse_date(self):
        test_cases = [
            ("15/03/25", date(2025, 3, 15)),
            ("15-03-2025", date(2025, 3, 15)),
            ("1er février 2025", date(2025, 2, 1)),
            ("31/02/2025", None),
            ("pas de date", None),
        ]

        for raw, expected in test_cases:
            with self.subTest(raw=raw):
                self.assertEqual(parse_date(raw), expected)


class TestIdentifierExtractor(unittest.TestCase):
    """Test cases for the IdentifierExtractor."""

    def setUp(self):
        self.extractor = IdentifierExtractor()

    def test_extract_all_moroccan(self):
        text = "ICE : 001234567000089\nIF : 12345678\nRC : 54321\nCNSS : 1234567\nPatente : 12345678"

        identifiers = self.extractor.extract_all_moroccan(text)

        self.assertEqual(identifiers.ice.value, "001234567000089")
        self.assertEqual(identifiers.fiscal_id.value, "12345678")
        self.assertEqual(identifiers.trade_register.value, "54321")
        self.assertEqual(identifiers.cnss.value, "1234567")
        self.assertEqual(identifiers.patente.value, "12345678")

    def test_invoice_number(self):
        result = self.extractor.extract_invoice_number("FACTURE N° : FA2025001")
        self.assertEqual(result.value, "FA2025001")

    def test_invoice_number_fallback_shape(self):
        result = self.extractor.extract_invoice_number("Document FA2025001 du 12/01/2025")
        self.assertEqual(result.value, "FA2025001")

    def test_validators(self):
        self.assertTrue(is_valid_ice("001 234 567 000 089"))
        self.assertFalse(is_valid_ice("12345"))
        self.assertFalse(is_valid_ice(None))
        self.assertTrue(is_valid_if("1234567"))
        self.assertFalse(is_valid_if("123"))


if __name__ == '__main__':
    unittest.main()
