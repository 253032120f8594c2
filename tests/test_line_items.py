#!/usr/bin/env python3
"""
Tests for line scoring and line-item extraction.

The OCR samples come from real optical supplier invoices (SAFILO, CARRERA
frames) including their usual OCR damage.
"""

import unittest

# Add src to path for imports
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from invoice_ocr.line_item_extractor import LineItemExtractor, detect_suspicious_extraction
from invoice_ocr.line_scorer import LineScorer, LineScorerConfig
from invoice_ocr.loose_fallback import LooseFallbackExtractor
from invoice_ocr.models import CorruptionReason, ExtractionMethod, InvoiceLine
from invoice_ocr.patterns import parse_number


SAFILO_TEXT = """
Désignation   Qté   P.U.   Remise   Total
197737121563 SAFILO 7A086 54.19 GREY 1 1010.00 15% 858.50
pe = ce 0286.5G.53.18 1 1010,00 15% 858,50
197737121563 SAFILO 7A086 54.19 BLACK 1 1010.00 15% 858.50
Total HT: 2575.50
"""

BARCODE_LINE = "197737121563 SAFILO 7A086 54.19 GREY 1 1010.00 15% 858.50"


class TestLineScorer(unittest.TestCase):
    """Test cases for the LineScorer."""

    def setUp(self):
        self.scorer = LineScorer()

    def test_barcode_line_is_a_product(self):
        score = self.scorer.score_line(BARCODE_LINE, 0, [BARCODE_LINE])

        self.assertTrue(score.is_product_line)
        self.assertEqual(score.score, 3)
        self.assertEqual(score.criteria, ('EAN_FULL',))

    def test_product_words_are_not_totals_or_headers(self):
        line = "197737121563 RAYBAN LIGHT GREY 1 1010.00 15% 858.50"

        score = self.scorer.score_line(line, 0, [line])

        self.assertTrue(score.is_product_line)
        self.assertEqual(score.score, 3)
        self.assertEqual(score.criteria, ('EAN_FULL',))

    def test_rejections(self):
        test_cases = [
            ("short", 'TOO_SHORT'),
            ("Total HT : 2575.50", 'IS_TOTAL'),
            ("Facture N° 2025 client", 'IS_HEADER'),
            ("arretee la presente a la somme de mille", 'NOISE_KEYWORD'),
        ]

        for line, reason in test_cases:
            with self.subTest(line=line):
                score = self.scorer.score_line(line, 0, [line])
                self.assertEqual(score.score, -10)
                self.assertEqual(score.criteria, (reason,))
                self.assertFalse(score.is_product_line)

    def test_plain_text_scores_zero(self):
        score = self.scorer.score_line("Livraison express offerte", 0, ["Livraison express offerte"])

        self.assertEqual(score.score, 0)
        self.assertFalse(score.is_product_line)

    def test_higher_threshold_collects_more_criteria(self):
        scorer = LineScorer(LineScorerConfig(threshold=5))

        score = scorer.score_line(BARCODE_LINE, 0, [BARCODE_LINE])

        self.assertTrue(score.is_product_line)
        self.assertEqual(score.criteria, ('EAN_FULL', 'HAS_PERCENTAGE', 'HAS_MULTIPLE_AMOUNTS'))

    def test_score_lines_keeps_products_only(self):
        lines = [BARCODE_LINE, "Total HT : 2575.50", "", "BS-24713 CARRERA 1 500.00 500.00"]

        products = self.scorer.score_lines(lines)

        self.assertEqual([score.line_index for score in products], [0, 3])

    def test_quick_count(self):
        lines = [BARCODE_LINE, "BS-24713 CARRERA 1 500.00 500.00", "Remise 10% sur 2575.50"]
        self.assertEqual(self.scorer.quick_count(lines), 2)


class TestLineItemExtractor(unittest.TestCase):
    """Test cases for the LineItemExtractor."""

    def setUp(self):
        self.extractor = LineItemExtractor()

    def test_corrupted_line_is_kept_and_flagged(self):
        result = self.extractor.extract_lines_with_stats(SAFILO_TEXT, 0.2)

        self.assertEqual(len(result.lines), 3)

        corrupted = [line for line in result.lines if line.is_corrupted]
        self.assertEqual(len(corrupted), 1)
        self.assertTrue(corrupted[0].needs_review)
        self.assertIsNotNone(corrupted[0].corruption_reason)
        self.assertIn("pe = ce", corrupted[0].raw_text)

        self.assertEqual(result.stats.detected, 3)
        self.assertEqual(result.stats.extracted, 2)
        self.assertEqual(result.stats.partial, 1)
        self.assertEqual(result.stats.failed, 0)

    def test_barcode_line_fields(self):
        line = self.extractor.extract_lines(SAFILO_TEXT)[0]

        self.assertEqual(line.method, ExtractionMethod.BARCODE)
        self.assertEqual(line.reference, "197737121563")
        self.assertEqual(line.designation, "SAFILO 7A086 54.19 GREY")
        self.assertEqual(line.quantity, 1.0)
        self.assertEqual(line.unit_price, 1010.0)
        self.assertAlmostEqual(line.discount_rate, 0.15)
        self.assertAlmostEqual(line.total, 858.5)
        self.assertEqual(line.vat_rate, 0.2)
        self.assertFalse(line.needs_review)

    def test_grouped_french_amount(self):
        line = self.extractor._extract_single_line("197737121563 RAYBAN 1 1.010,00 15% 858,50", 0, 0.2)

        self.assertEqual(line.method, ExtractionMethod.BARCODE)
        self.assertEqual(line.unit_price, 1010.0)
        self.assertAlmostEqual(line.total, 858.5)

    def test_product_words_do_not_drop_lines(self):
        text = """Désignation Qté P.U. Remise Total
197737121563 RAYBAN LIGHT GREY 1 1010.00 15% 858.50
197737121564 SAFILO NIGHT BLUE 1 1010.00 15% 858.50
197737121565 SAFILO 7A086 BLACK 1 1010.00 15% 858.50"""

        lines = self.extractor.extract_lines(text)

        self.assertEqual([line.designation for line in lines],
                         ["RAYBAN LIGHT GREY", "SAFILO NIGHT BLUE", "SAFILO 7A086 BLACK"])

    def test_each_format(self):
        # (line, method, reference, designation, quantity, unit_price, discount_rate, total)
        test_cases = [
            (BARCODE_LINE, ExtractionMethod.BARCODE,
             "197737121563", "SAFILO 7A086 54.19 GREY", 1.0, 1010.0, 0.15, 858.5),
            ("BS-24713 CARRERA 1 1010.00 15% 858.50", ExtractionMethod.EXTENDED,
             "BS-24713", "CARRERA", 1.0, 1010.0, 0.15, 858.5),
            ("BS-24713 CARRERA 1 1000.00 15,5 % 845.00", ExtractionMethod.WITH_DISCOUNT,
             "BS-24713", "CARRERA", 1.0, 1000.0, 0.155, 845.0),
            ("CH0298 MONTURE ACETATE 2 pcs 500.00 1000.00", ExtractionMethod.FULL,
             "CH0298", "MONTURE ACETATE", 2.0, 500.0, None, 1000.0),
            ("Verres progressifs 2 x 450,00", ExtractionMethod.SIMPLE,
             None, "Article (ligne 1)", 2.0, 450.0, None, 900.0),
            ("CH-0298 ETUI RIGIDE 3 45,00", ExtractionMethod.FALLBACK,
             "CH-0298", "ETUI RIGIDE", 3.0, 45.0, None, 135.0),
            ("ABC MONTURE 2 450,00", ExtractionMethod.LOOSE_EXTENDED_OCR,
             "ABC", "MONTURE", 2.0, 450.0, None, 900.0),
        ]

        for raw, method, reference, designation, quantity, unit_price, discount_rate, total in test_cases:
            with self.subTest(method=method.value):
                line = self.extractor._extract_single_line(raw, 0, 0.2)

                self.assertEqual(line.method, method)
                self.assertEqual(line.reference, reference)
                self.assertEqual(line.designation, designation)
                self.assertEqual(line.quantity, quantity)
                self.assertAlmostEqual(line.unit_price, unit_price)
                if discount_rate is None:
                    self.assertIsNone(line.discount_rate)
                else:
                    self.assertAlmostEqual(line.discount_rate, discount_rate)
                self.assertAlmostEqual(line.total, total)
                self.assertFalse(line.is_corrupted)

    def test_unit_is_kept(self):
        line = self.extractor._extract_single_line("CH0298 MONTURE ACETATE 2 pcs 500.00 1000.00", 0, 0.2)
        self.assertEqual(line.unit, "pcs")

    def test_total_is_printed_or_computed(self):
        raw_lines = [
            BARCODE_LINE,
            "197737121563 SAFILO 7A086 GREY 2 1000.00 15% 0.00",
            "BS-24713 CARRERA 1 1000.00 15,5 % 845.00",
            "CH0298 MONTURE ACETATE 2 pcs 500.00 1000.00",
            "Verres progressifs 2 x 450,00",
            "CH-0298 ETUI RIGIDE 3 45,00",
        ]

        for raw in raw_lines:
            with self.subTest(raw=raw):
                line = self.extractor._extract_single_line(raw, 0, 0.2)

                printed = parse_number(raw.split()[-1])
                computed = line.quantity * line.unit_price * (1 - (line.discount_rate or 0.0))
                self.assertTrue(abs(line.total - printed) < 0.01 or abs(line.total - computed) < 0.01)

    def test_missing_barcode_total_is_computed_and_reviewed(self):
        line = self.extractor._extract_single_line("197737121563 SAFILO 7A086 GREY 2 1000.00 15% 0.00", 0, 0.2)

        self.assertEqual(line.method, ExtractionMethod.BARCODE)
        self.assertAlmostEqual(line.total, 1700.0)
        self.assertTrue(line.needs_review)

    def test_rows_without_header_or_total(self):
        text = ("197737121563 SAFILO 7A086 54.19 GREY 1 1010.00 15% 858.50\n"
                "pe = ce 0286.5G.53.18 1 1010,00 15% 858,50\n"
                "197737121563 SAFILO 7A086 54.19 BLACK 1 1010.00 15% 858.50")

        lines = self.extractor.extract_lines(text)

        self.assertEqual([line.method for line in lines],
                         [ExtractionMethod.BARCODE, ExtractionMethod.EXTENDED, ExtractionMethod.BARCODE])
        self.assertEqual(lines[1].reference, "pe")
        self.assertEqual(lines[1].corruption_reason, CorruptionReason.SUSPICIOUS_REFERENCE)
        self.assertEqual(lines[1].unit_price, 1010.0)
        self.assertAlmostEqual(lines[1].total, 858.5)
        self.assertTrue(lines[1].needs_review)

    def test_suspicious_short_reference(self):
        text = """
Désignation   Qté   P.U.   Total
BS-24713 CARRERA 1234 1 500.00 500.00
pe TEST PRODUCT 1 450,00 15% 382,50
"""
        result = self.extractor.extract_lines_with_stats(text, 0.2)

        suspicious = [line for line in result.lines if line.raw_text.startswith("pe ")]
        self.assertEqual(len(suspicious), 1)
        self.assertTrue(suspicious[0].is_corrupted)
        self.assertEqual(suspicious[0].corruption_reason, CorruptionReason.SUSPICIOUS_REFERENCE)

    def test_reference_lines_are_not_corrupted(self):
        text = """
Désignation   Qté   P.U.   Total
BS-24713 CARRERA MODEL ABC 1 500.00 500.00
CH-HER-0298 SAFILO XYZ 2 300.00 600.00
"""
        lines = self.extractor.extract_lines(text)

        self.assertEqual(len(lines), 2)
        for line in lines:
            with self.subTest(line=line.raw_text):
                self.assertFalse(line.is_corrupted)
                self.assertIsNotNone(line.total)

    def test_unparseable_line_becomes_placeholder(self):
        line = self.extractor._extract_single_line("197737121563 ??? ###", 4, 0.2)

        self.assertEqual(line.method, ExtractionMethod.DETECTED_ONLY)
        self.assertEqual(line.reference, "197737121563")
        self.assertEqual(line.raw_text, "197737121563 ??? ###")
        self.assertEqual(line.line_index, 4)
        self.assertTrue(line.needs_review)
        self.assertFalse(line.is_corrupted)

    def test_unreadable_placeholder(self):
        line = self.extractor._create_empty_line("?? 1 450.00 15%", 2, 0.2)

        self.assertEqual(line.method, ExtractionMethod.DETECTED_ONLY)
        self.assertIsNone(line.reference)
        self.assertTrue(line.is_corrupted)
        self.assertEqual(line.corruption_reason, CorruptionReason.OCR_UNREADABLE)

    def test_placeholder_corruption_reasons(self):
        test_cases = [
            ("?? 1 450.00 15%", None, None, CorruptionReason.OCR_UNREADABLE),
            ("AB [x] 1 450.00 500.00", "AB", "[x]", CorruptionReason.OCR_ARTIFACTS),
            ("MONTURE ?? 1 450.00 500.00", None, "MONTURE", CorruptionReason.PARSING_FAILED),
            ("AB 450.00", "AB", None, CorruptionReason.PARTIAL_REFERENCE),
            ("??? 450.00 15%", None, None, CorruptionReason.STRUCTURE_UNRECOGNIZED),
            ("Livraison offerte", None, "Livraison offerte", None),
        ]

        for raw, reference, designation, expected in test_cases:
            with self.subTest(raw=raw):
                self.assertEqual(self.extractor._detect_corruption(raw, reference, designation), expected)

    def test_detect_suspicious_extraction(self):
        test_cases = [
            (InvoiceLine(raw_text="x", line_index=0, method=ExtractionMethod.FULL, reference="pe"),
             CorruptionReason.SUSPICIOUS_REFERENCE),
            (InvoiceLine(raw_text="x", line_index=0, method=ExtractionMethod.FULL, designation="= MONTURE"),
             CorruptionReason.CORRUPTED_DESIGNATION),
            (InvoiceLine(raw_text="x", line_index=0, method=ExtractionMethod.FULL, designation="MONTURE {A} (B)"),
             CorruptionReason.TOO_MANY_SPECIAL_CHARS),
            (InvoiceLine(raw_text="x", line_index=0, method=ExtractionMethod.FULL, reference="AB|123",
                         designation="MONTURE"),
             CorruptionReason.REFERENCE_OCR_ARTIFACTS),
            (InvoiceLine(raw_text="x", line_index=0, method=ExtractionMethod.FULL, designation="MONT.0286.G.53"),
             CorruptionReason.GARBLED_DESIGNATION),
            (InvoiceLine(raw_text="AB-123 [x] 1 100.00", line_index=0, method=ExtractionMethod.FULL,
                         reference="AB-123", designation="MONTURE"),
             CorruptionReason.OCR_ARTIFACTS_IN_SOURCE),
            (InvoiceLine(raw_text="AB-123 MONTURE", line_index=0, method=ExtractionMethod.FULL,
                         reference="AB-123", designation="MONTURE"),
             None),
        ]

        for line, expected in test_cases:
            with self.subTest(line=line):
                self.assertEqual(detect_suspicious_extraction(line), expected)

    def test_validate_against_total(self):
        lines = self.extractor.extract_lines(SAFILO_TEXT)

        is_valid, calculated, difference = LineItemExtractor.validate_against_total(lines, 2575.5)
        self.assertTrue(is_valid)
        self.assertAlmostEqual(calculated, 2575.5)
        self.assertAlmostEqual(difference, 0.0)

        is_valid, _, _ = LineItemExtractor.validate_against_total(lines, 3000.0)
        self.assertFalse(is_valid)

    def test_infer_vat_rate(self):
        test_cases = [
            ((1000.0, 1200.0), 0.2),
            ((1000.0, 1190.0), 0.2),
            ((1000.0, 1070.0), 0.07),
            ((1000.0, 1000.0), None),
            ((1000.0, 1500.0), None),
            ((0.0, 100.0), None),
        ]

        for (total_ht, total_ttc), expected in test_cases:
            with self.subTest(total_ht=total_ht, total_ttc=total_ttc):
                self.assertEqual(LineItemExtractor.infer_vat_rate(total_ht, total_ttc), expected)


class TestLooseFallback(unittest.TestCase):
    """Test cases for the LooseFallbackExtractor."""

    def setUp(self):
        self.extractor = LooseFallbackExtractor()

    def test_short_line_is_ignored(self):
        self.assertIsNone(self.extractor.extract("1 x 2", 0, 0.2))

    def test_quantity_times_price(self):
        line = self.extractor.extract("- verres progressifs 2 x 450,00", 0, 0.2)

        self.assertEqual(line.method, ExtractionMethod.LOOSE_QTY_PRICE)
        self.assertEqual(line.quantity, 2.0)
        self.assertEqual(line.unit_price, 450.0)
        self.assertEqual(line.total, 900.0)
        self.assertEqual(line.designation, "Article (ligne 1)")
        self.assertEqual(line.confidence.designation, 0.3)
        self.assertTrue(line.needs_review)

    def test_multiple_numbers_skip_years(self):
        line = self.extractor.extract("** lot de 3 etuis 2024 45,00 135,00", 2, 0.2)

        self.assertEqual(line.method, ExtractionMethod.LOOSE_MULTI_NUMBERS)
        self.assertEqual(line.quantity, 3.0)
        self.assertEqual(line.unit_price, 45.0)
        self.assertEqual(line.total, 135.0)
        self.assertEqual(line.designation, "** lot de etuis")
        self.assertIsNone(line.reference)

    def test_code_with_amounts(self):
        line = self.extractor.extract("REF-001/B monture ecaille 500,00 450,00", 0, 0.2)

        self.assertEqual(line.method, ExtractionMethod.LOOSE_CODE_AMOUNTS)
        self.assertEqual(line.reference, "REF-001/B")
        self.assertEqual(line.designation, "monture ecaille")
        self.assertEqual(line.quantity, 1.0)
        self.assertEqual(line.unit_price, 500.0)
        self.assertEqual(line.total, 450.0)


if __name__ == '__main__':
    unittest.main()
