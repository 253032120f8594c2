#!/usr/bin/env python3
"""
Tests for the TotalsValidator.
"""

import unittest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from invoice_ocr.models import ExtractionMethod, InvoiceLine, InvoiceTotals, SuggestionKind
from invoice_ocr.totals_validator import TotalsValidator, TotalsValidatorConfig, computed_line_total


def make_line(index, total=None, quantity=None, unit_price=None, discount_rate=None, vat_rate=None):
    return InvoiceLine(
        raw_text='',
        line_index=index,
        method=ExtractionMethod.FULL,
        total=total,
        quantity=quantity,
        unit_price=unit_price,
        discount_rate=discount_rate,
        vat_rate=vat_rate,
    )


def make_lines(totals):
    return [make_line(i, total=total) for i, total in enumerate(totals)]


class TestTotalsValidator(unittest.TestCase):
    """Test cases for the TotalsValidator."""

    def setUp(self):
        self.validator = TotalsValidator()

    def test_small_gap_within_tolerance(self):
        result = self.validator.validate(make_lines([1000.0, 1000.0, 575.5]), InvoiceTotals(total_ht=2600.0))

        self.assertTrue(result.is_valid)
        self.assertAlmostEqual(result.calculated_total_ht, 2575.5)
        self.assertAlmostEqual(result.difference, 24.5)
        self.assertAlmostEqual(result.percentage_diff, 0.94)

    def test_missing_line_detected_with_strict_tolerance(self):
        validator = TotalsValidator(TotalsValidatorConfig(tolerance_percent=0.5))

        result = validator.validate(make_lines([1000.0, 1000.0, 575.5]), InvoiceTotals(total_ht=2600.0))

        self.assertFalse(result.is_valid)
        self.assertEqual(result.details.estimated_missing_lines, 1)
        kinds = [suggestion.kind for suggestion in result.suggestions]
        self.assertIn(SuggestionKind.MISSING_LINE, kinds)

    def test_over_extraction_suggests_price_error(self):
        result = self.validator.validate(make_lines([1000.0, 1000.0]), InvoiceTotals(total_ht=1500.0))

        self.assertFalse(result.is_valid)
        self.assertEqual(result.details.estimated_missing_lines, 0)
        kinds = [suggestion.kind for suggestion in result.suggestions]
        self.assertIn(SuggestionKind.PRICE_ERROR, kinds)
        self.assertTrue(any(warning.startswith("Écart important") for warning in result.warnings))

    def test_total_rebuilt_from_quantity_and_price(self):
        lines = [make_line(0, quantity=2.0, unit_price=100.0, discount_rate=0.1)]

        result = self.validator.validate(lines, InvoiceTotals(total_ht=180.0))

        self.assertTrue(result.is_valid)
        self.assertEqual(result.details.calculated_totals, 1)
        self.assertEqual(result.details.valid_lines, 0)
        suggestion = result.suggestions[0]
        self.assertEqual(suggestion.kind, SuggestionKind.TOTAL_MISMATCH)
        self.assertEqual(suggestion.line_index, 0)
        self.assertAlmostEqual(suggestion.suggested_value, 180.0)

    def test_line_without_any_amount(self):
        result = self.validator.validate([make_line(0)], InvoiceTotals())

        self.assertEqual(result.details.missing_totals, 1)
        self.assertIn("Ligne 1: Impossible de calculer le total (données manquantes)", result.warnings)
        self.assertIn("1 ligne(s) sans total extractible", result.warnings)

    def test_outlier_line(self):
        lines = make_lines([100.0] * 10 + [10000.0])

        result = self.validator.validate(lines, InvoiceTotals(total_ht=11000.0))

        self.assertTrue(result.is_valid)
        outliers = [s for s in result.suggestions if s.kind == SuggestionKind.PRICE_ERROR]
        self.assertEqual([s.line_index for s in outliers], [10])

    def test_line_arithmetic_mismatch(self):
        lines = [
            make_line(0, total=150.0, quantity=2.0, unit_price=100.0),
            make_line(1, total=100.0, quantity=1.0, unit_price=100.0),
        ]

        result = self.validator.validate(lines, InvoiceTotals(total_ht=250.0))

        mismatches = [s for s in result.suggestions if s.kind == SuggestionKind.TOTAL_MISMATCH]
        self.assertEqual(len(mismatches), 1)
        self.assertEqual(mismatches[0].line_index, 0)
        self.assertAlmostEqual(mismatches[0].suggested_value, 200.0)

    def test_empty_invoice(self):
        result = self.validator.validate([], InvoiceTotals())

        self.assertTrue(result.is_valid)
        self.assertEqual(result.calculated_total_ht, 0.0)
        self.assertEqual(result.suggestions, ())

    def test_validate_vat_per_rate(self):
        lines = [make_line(0, total=1000.0, vat_rate=0.2), make_line(1, total=500.0, vat_rate=0.1)]

        result = self.validator.validate_vat(lines, InvoiceTotals(total_vat=250.0))
        self.assertTrue(result.is_valid)
        self.assertAlmostEqual(result.calculated_vat, 250.0)

        result = self.validator.validate_vat(lines, InvoiceTotals(total_vat=300.0))
        self.assertFalse(result.is_valid)
        self.assertTrue(result.warnings[-1].startswith("Écart TVA"))

    def test_quick_validate(self):
        lines = [make_line(0, total=1000.0), make_line(1, quantity=2.0, unit_price=100.0)]

        self.assertTrue(self.validator.quick_validate(lines, 1200.0))
        self.assertFalse(self.validator.quick_validate(lines, 1300.0))

    def test_computed_line_total(self):
        self.assertAlmostEqual(computed_line_total(make_line(0, quantity=1.0, unit_price=1010.0,
                                                             discount_rate=0.15)), 858.5)
        self.assertIsNone(computed_line_total(make_line(0, quantity=1.0)))


if __name__ == '__main__':
    unittest.main()
