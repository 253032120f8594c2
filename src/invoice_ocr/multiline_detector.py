"""
Merge product records that are spread over several physical lines.

Two layouts are recognised:

* an identifier line (barcode or reference) whose amounts arrive on one of
  the next three lines;
* a free-text description, optionally continued, closed by a line holding
  only amounts.
"""

import logging
import re
from typing import List, Optional, Sequence, Set

from .models import MultiLineGroup, MultiLineResult
from .patterns import DEFAULT_PATTERNS, PatternTable

logger = logging.getLogger(__name__)

MAX_LOOK_AHEAD = 3


class MultiLineDetector:

    def __init__(self, patterns: PatternTable = DEFAULT_PATTERNS, max_look_ahead: int = MAX_LOOK_AHEAD):
        self.patterns = patterns
        self.max_look_ahead = max_look_ahead

    def process(self, lines: Sequence[str]) -> MultiLineResult:
        result: List[str] = []
        groups: List[MultiLineGroup] = []
        processed: Set[int] = set()

        i = 0
        while i < len(lines):
            if i in processed:
                i += 1
                continue

            if not lines[i].strip():
                result.append(lines[i])
                i += 1
                continue

            group = self._detect_group(lines, i)
            if group and len(group.lines) > 1:
                result.append(group.merged)
                groups.append(group)
                processed.update(group.indices)
                i = max(group.indices) + 1
            else:
                result.append(lines[i])
                i += 1

        if groups:
            logger.debug(f"Merged {len(groups)} multi-line record(s), {len(lines)} -> {len(result)} lines")

        return MultiLineResult(
            lines=tuple(result),
            merged_groups=tuple(groups),
            original_count=len(lines),
            final_count=len(result),
        )

    def _detect_group(self, lines: Sequence[str], start: int) -> Optional[MultiLineGroup]:
        start_line = lines[start].strip()
        if not start_line:
            return None

        if self._starts_with_identifier(start_line) and not self._has_amounts(start_line):
            return self._merge_from_identifier(lines, start)

        if self._looks_like_description(start_line) and not self._has_amounts(start_line):
            return self._merge_description_with_amounts(lines, start)

        return None

    def _merge_from_identifier(self, lines: Sequence[str], start: int) -> Optional[MultiLineGroup]:
        group_lines = [lines[start].strip()]
        indices = [start]
        found_amounts = False
        confidence = 0.5

        for j in range(1, self.max_look_ahead + 1):
            if start + j >= len(lines):
                break
            next_line = lines[start + j].strip()
            if not next_line:
                continue

            if self._starts_with_identifier(next_line) and self._has_amounts(next_line):
                break
            if self.patterns.is_total.search(next_line) or self.patterns.is_header.search(next_line):
                break

            group_lines.append(next_line)
            indices.append(start + j)

            if self._has_amounts(next_line):
                found_amounts = True
                confidence += 0.3
                if self.patterns.has_percentage.search(next_line):
                    confidence += 0.1
                break

            if re.match(r'[a-z]', next_line) or self._looks_like_continuation(next_line):
                confidence += 0.1

        if not found_amounts or len(group_lines) < 2:
            return None

        return self._group(group_lines, indices, confidence)

    def _merge_description_with_amounts(self, lines: Sequence[str], start: int) -> Optional[MultiLineGroup]:
        group_lines = [lines[start].strip()]
        indices = [start]
        confidence = 0.4

        for j in range(1, self.max_look_ahead + 1):
            if start + j >= len(lines):
                break
            next_line = lines[start + j].strip()
            if not next_line:
                continue

            if self._starts_with_identifier(next_line) and self._has_amounts(next_line):
                break
            if self.patterns.is_total.search(next_line):
                break

            if self._looks_like_amounts_only(next_line):
                group_lines.append(next_line)
                indices.append(start + j)
                return self._group(group_lines, indices, confidence + 0.4)

            if not self._looks_like_continuation(next_line):
                break
            group_lines.append(next_line)
            indices.append(start + j)
            confidence += 0.1

        return None

    @staticmethod
    def _group(group_lines: List[str], indices: List[int], confidence: float) -> MultiLineGroup:
        return MultiLineGroup(
            lines=tuple(group_lines),
            indices=tuple(indices),
            merged=' '.join(group_lines),
            confidence=min(confidence, 1.0),
        )

    def _starts_with_identifier(self, line: str) -> bool:
        return bool(
            self.patterns.ean_full.search(line)
            or self.patterns.ref_dash.search(line)
            or self.patterns.ref_numeric.search(line)
        )

    def _has_amounts(self, line: str) -> bool:
        return self.patterns.amount.search(line) is not None

    def _looks_like_description(self, line: str) -> bool:
        text_only = re.sub(r'[\d\s.,\-/\\%]+', '', line).strip()
        if len(text_only) < 5:
            return False
        return not (self.patterns.is_total.search(line) or self.patterns.is_header.search(line))

    def _looks_like_amounts_only(self, line: str) -> bool:
        if len(self.patterns.amount.findall(line)) < 2:
            return False
        numeric_length = len(''.join(re.findall(r'[\d.,\s%]+', line)))
        return numeric_length / len(line) > 0.6

    @staticmethod
    def _looks_like_continuation(line: str) -> bool:
        if re.match(r'[a-z]', line) or re.match(r'[-./]', line):
            return True
        if len(line) < 20 and re.search(r'\b(\d{3}|[A-Z]{2,3})\b', line):
            return True
        return re.fullmatch(r'[A-Z0-9./\-\s]{3,15}', line) is not None
