"""
Rejoin product lines that OCR split across two physical lines.
"""

import logging
import re
from typing import List, Optional, Sequence

from .models import MergeResult
from .patterns import DEFAULT_PATTERNS, PatternTable

logger = logging.getLogger(__name__)


class FragmentMerger:
    """Single left-to-right pass joining a truncated line with its continuation."""

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS):
        self.patterns = patterns

    def merge(self, lines: Sequence[str]) -> MergeResult:
        merged: List[str] = []
        merged_indices: List[int] = []
        merge_count = 0

        i = 0
        while i < len(lines):
            current = lines[i].strip()
            following = lines[i + 1].strip() if i + 1 < len(lines) else ''

            if self.is_truncated_line(current) and self.is_fragment(following):
                merged.append(f"{current} {following}")
                merged_indices.extend((i, i + 1))
                merge_count += 1
                i += 2
            else:
                merged.append(lines[i])
                i += 1

        if merge_count:
            logger.debug(f"Merged {merge_count} OCR fragment(s)")

        return MergeResult(lines=tuple(merged), merge_count=merge_count, merged_indices=tuple(merged_indices))

    def is_truncated_line(self, line: str) -> bool:
        """A barcode or reference line that stops before its amounts."""
        if not line or len(line) < 10:
            return False

        trimmed = line.strip()
        amount_count = len(self.patterns.amount.findall(trimmed))

        if self.patterns.ean_full.search(trimmed) and amount_count < 2:
            last_word = trimmed.split()[-1]
            if len(last_word) < 4 or re.search(r'[^a-z0-9]$', last_word, re.IGNORECASE):
                return True

        if self.patterns.ref_dash.search(trimmed):
            if amount_count < 1 and not self.patterns.has_percentage.search(trimmed):
                return True

        if re.search(r'[.\-/]$', trimmed) and len(trimmed) > 20:
            if self.patterns.ean_full.search(trimmed) or self.patterns.ref_dash.search(trimmed):
                return True

        return False

    def is_fragment(self, line: str) -> bool:
        """A continuation line: never a new product start, always carrying amounts."""
        if not line or len(line) < 5:
            return False

        trimmed = line.strip()
        has_amount = self.patterns.amount.search(trimmed) is not None

        if re.match(r'[-./]', trimmed) and has_amount:
            return True

        if self.patterns.ean_full.search(trimmed) or self.patterns.ref_dash.search(trimmed):
            return False

        if re.match(r'[a-z]', trimmed) and len(self.patterns.amount.findall(trimmed)) >= 2:
            return True

        return bool(self.patterns.leading_quantity.search(trimmed) and has_amount)

    def reconstruct_line(self, fragments: Sequence[str]) -> Optional[str]:
        """Join a truncated first fragment with the continuation fragments that follow it."""
        valid = [fragment for fragment in fragments if fragment and fragment.strip()]
        if len(valid) < 2 or not self.is_truncated_line(valid[0]):
            return None

        merged = valid[0].strip()
        for fragment in valid[1:]:
            fragment = fragment.strip()
            if not self.is_fragment(fragment):
                break
            merged += ' ' + fragment
        return merged
