"""
Heuristic scoring of candidate product lines.
"""

import logging
from dataclasses import dataclass
from typing import List, Sequence, Tuple

from .locales import FR_LOCALE
from .models import LineScore
from .patterns import DEFAULT_PATTERNS, PatternTable

logger = logging.getLogger(__name__)

REJECTED_SCORE = -10

DEFAULT_NOISE_KEYWORDS = FR_LOCALE.noise_keywords


@dataclass(frozen=True)
class LineScorerConfig:
    threshold: int = 3
    noise_keywords: Tuple[str, ...] = DEFAULT_NOISE_KEYWORDS


class LineScorer:
    """
    Score each line for how much it looks like a product row.

    Every non-blank line gets a score, including rejected ones, so the caller
    can decide what to keep. Scoring stops as soon as the threshold is reached.
    """

    def __init__(self, config: LineScorerConfig = LineScorerConfig(),
                 patterns: PatternTable = DEFAULT_PATTERNS):
        self.config = config
        self.patterns = patterns

    def score_lines(self, lines: Sequence[str]) -> List[LineScore]:
        return [result for result in self.score_all_lines(lines) if result.is_product_line]

    def score_all_lines(self, lines: Sequence[str]) -> List[LineScore]:
        results = []
        for i, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue
            results.append(self.score_line(line, i, lines))
        return results

    def score_line(self, line: str, line_index: int, all_lines: Sequence[str]) -> LineScore:
        p = self.patterns
        threshold = self.config.threshold
        score = 0
        criteria: List[str] = []

        def done(product: bool) -> LineScore:
            return LineScore(line=line, line_index=line_index, score=score,
                             criteria=tuple(criteria), is_product_line=product)

        rejection = self._rejection(line)
        if rejection:
            return LineScore(line=line, line_index=line_index, score=REJECTED_SCORE,
                             criteria=(rejection,), is_product_line=False)

        # Identifiers
        if p.ean_full.search(line):
            score += 3
            criteria.append('EAN_FULL')
            if score >= threshold:
                return done(True)
        elif p.ean_truncated.search(line):
            score += 2
            criteria.append('EAN_TRUNCATED')
        elif p.ref_dash.search(line):
            score += 3
            criteria.append('REF_DASH')
            if score >= threshold:
                return done(True)
        elif p.ref_numeric.search(line):
            score += 3
            criteria.append('REF_NUMERIC')
            if score >= threshold:
                return done(True)
        elif p.index_numeric.search(line):
            score += 1
            criteria.append('INDEX_NUMERIC')

        # Numeric data
        if p.has_percentage.search(line):
            score += 1
            criteria.append('HAS_PERCENTAGE')
            if score >= threshold:
                return done(True)

        amount_count = len(p.amount.findall(line))
        if amount_count >= 2:
            score += 2
            criteria.append('HAS_MULTIPLE_AMOUNTS')
            if score >= threshold:
                return done(True)
        elif amount_count == 1:
            score += 1
            criteria.append('HAS_AMOUNT')

        if p.quantity.search(line) or p.leading_quantity.search(line):
            score += 1
            criteria.append('HAS_QUANTITY')
            if score >= threshold:
                return done(True)

        # Layout
        columns = [column for column in p.multi_column.split(line) if column.strip()]
        if len(columns) >= 4:
            score += 2
            criteria.append('MULTI_COLUMN_4+')
        elif len(columns) >= 3:
            score += 1
            criteria.append('MULTI_COLUMN_3')

        # Context
        previous_line = all_lines[line_index - 1] if line_index > 0 else ''
        next_line = all_lines[line_index + 1] if line_index + 1 < len(all_lines) else ''
        if p.ean_full.search(previous_line) or p.ean_full.search(next_line):
            score += 1
            criteria.append('ADJACENT_PRODUCT')

        return done(score >= threshold)

    def quick_count(self, lines: Sequence[str]) -> int:
        """Cheap estimate of the number of product lines."""
        p = self.patterns
        count = 0
        for raw_line in lines:
            line = raw_line.strip()
            if len(line) < 10:
                continue
            if p.ean_full.search(line):
                count += 1
            elif p.ref_dash.search(line) and p.amount.search(line):
                count += 1
            elif (len(p.amount.findall(line)) >= 2 and p.has_percentage.search(line)
                  and not p.is_total.search(line)):
                count += 1
        return count

    def _rejection(self, line: str):
        if len(line) < 10:
            return 'TOO_SHORT'
        if self.patterns.is_total.search(line):
            return 'IS_TOTAL'
        if self.patterns.is_header.search(line) and not self.patterns.amount.search(line):
            return 'IS_HEADER'
        lower_line = line.lower()
        if any(keyword.lower() in lower_line for keyword in self.config.noise_keywords):
            return 'NOISE_KEYWORD'
        return None
