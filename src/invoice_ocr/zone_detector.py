"""
Split an invoice into header, table and footer regions.
"""

import logging
import math
from typing import List, Optional

from .models import DocumentZones
from .patterns import DEFAULT_PATTERNS, PatternTable

logger = logging.getLogger(__name__)

HEADER_FALLBACK_RATIO = 0.15
FOOTER_FALLBACK_RATIO = 0.85


class ZoneDetector:
    """Locate the product table using column headers, barcodes and total keywords."""

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS):
        self.patterns = patterns

    def detect_zones(self, text: str) -> DocumentZones:
        lines = text.split('\n')
        total_lines = len(lines)

        header_end, table_start = self._find_table_start(lines)
        if table_start is None:
            header_end = math.floor(total_lines * HEADER_FALLBACK_RATIO)
            table_start = header_end + 1
            logger.debug(f"No table start marker, using first {header_end + 1} line(s) as header")

        table_end, footer_start = self._find_footer_start(lines, table_start)
        if footer_start is None:
            footer_start = math.floor(total_lines * FOOTER_FALLBACK_RATIO)
            # Never push clear product rows into the footer
            while footer_start < total_lines and self._is_product_row(lines[footer_start].strip()):
                footer_start += 1
            table_end = footer_start - 1

        table_start = max(0, min(table_start, total_lines - 1))
        table_end = max(table_start, min(table_end, total_lines - 1))
        footer_start = max(table_end + 1, min(footer_start, total_lines))

        return DocumentZones(
            header_end=header_end,
            table_start=table_start,
            table_end=table_end,
            footer_start=footer_start,
            header_text='\n'.join(lines[:header_end + 1]),
            table_text='\n'.join(lines[table_start:table_end + 1]),
            footer_text='\n'.join(lines[footer_start:]),
        )

    def extract_header_zone(self, text: str) -> str:
        """Lines before the first barcode, coded amount line or column header row."""
        header_lines = []
        for raw_line in text.split('\n'):
            line = raw_line.strip()
            if self._is_product_row(line) or self.patterns.table_header.search(line):
                break
            header_lines.append(raw_line)
        return '\n'.join(header_lines)

    def extract_table_lines(self, text: str) -> List[str]:
        zones = self.detect_zones(text)
        lines = text.split('\n')[zones.table_start:zones.table_end + 1]
        return [line.strip() for line in lines if line.strip()]

    def extract_footer_zone(self, text: str) -> str:
        return self.detect_zones(text).footer_text

    @staticmethod
    def is_in_table_zone(line_index: int, zones: DocumentZones) -> bool:
        return zones.table_start <= line_index <= zones.table_end

    def _is_product_row(self, line: str) -> bool:
        if self.patterns.ean_full.search(line):
            return True
        return bool(self.patterns.ref_dash.search(line) and self.patterns.amount.search(line))

    def _find_table_start(self, lines: List[str]):
        """Return ``(header_end, table_start)``; table_start is None when no marker is found."""
        for i, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue

            if self.patterns.table_header.search(line):
                return i, i + 1

            if self._is_product_row(line):
                return max(0, i - 1), i

        return 0, None

    def _find_footer_start(self, lines: List[str], table_start: int):
        """Return ``(table_end, footer_start)``; footer_start is None when nothing marks it."""
        total_lines = len(lines)

        for i in range(table_start, total_lines):
            line = lines[i].strip()
            if not line:
                continue

            if self.patterns.footer_start.search(line):
                return i - 1, i

            # A run of lines without amounts, closed by a total keyword
            window = lines[i:min(i + 4, total_lines)]
            no_amount_count = sum(1 for candidate in window if not self.patterns.amount.search(candidate))
            if no_amount_count >= 3 and i > table_start + 5:
                for j in range(i, min(i + 5, total_lines)):
                    if self.patterns.footer_start.search(lines[j]):
                        return i - 1, j

        return total_lines - 1, None
