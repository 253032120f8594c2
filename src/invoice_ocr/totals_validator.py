"""
Cross-check of extracted lines against the invoice totals.

Messages are in French since they are shown as-is to the people reviewing
the invoices.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import (
    InvoiceLine, InvoiceTotals, Suggestion, SuggestionKind, TotalsValidationDetails,
    TotalsValidationResult, VatValidationResult,
)

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = 0.2
OVER_EXTRACTION_RATIO = 1.1
OUTLIER_Z_SCORE = 3
LINE_MISMATCH_RATIO = 0.05
VAT_TOLERANCE_RATIO = 0.02


@dataclass(frozen=True)
class TotalsValidatorConfig:
    tolerance_percent: float = 1
    absolute_tolerance: float = 1.0
    average_line_value: float = 500
    max_allowed_diff_percent: float = 5


def computed_line_total(line: InvoiceLine) -> Optional[float]:
    """quantity x unit price x (1 - discount), or None when a factor is missing."""
    if line.quantity is None or line.unit_price is None:
        return None
    return line.quantity * line.unit_price * (1 - (line.discount_rate or 0))


class TotalsValidator:
    """Detect missing lines, duplicated lines and price errors from the totals."""

    def __init__(self, config: TotalsValidatorConfig = TotalsValidatorConfig()):
        self.config = config

    def validate(self, lines: Sequence[InvoiceLine], totals: InvoiceTotals) -> TotalsValidationResult:
        warnings: List[str] = []
        suggestions: List[Suggestion] = []

        valid_lines = 0
        missing_totals = 0
        calculated_totals = 0
        calculated_total_ht = 0.0

        for i, line in enumerate(lines):
            if line.total is not None and line.total > 0:
                calculated_total_ht += line.total
                valid_lines += 1
                continue

            computed = computed_line_total(line)
            if computed is None:
                missing_totals += 1
                warnings.append(f"Ligne {i + 1}: Impossible de calculer le total (données manquantes)")
                continue

            calculated_total_ht += computed
            calculated_totals += 1
            suggestions.append(Suggestion(
                kind=SuggestionKind.TOTAL_MISMATCH,
                message=f"Ligne {i + 1}: Total calculé ({computed:.2f}) à partir de qté × prix",
                line_index=i,
                suggested_value=computed,
            ))

        expected_total_ht = totals.total_ht or 0.0
        difference = abs(calculated_total_ht - expected_total_ht)
        percentage_diff = difference / expected_total_ht * 100 if expected_total_ht > 0 else 0.0

        is_valid = (percentage_diff <= self.config.tolerance_percent
                    or difference <= self.config.absolute_tolerance)

        estimated_missing_lines = 0
        if not is_valid and calculated_total_ht < expected_total_ht:
            gap = expected_total_ht - calculated_total_ht
            estimated_missing_lines = math.ceil(gap / self.config.average_line_value)
            warnings.append(f"Différence de {difference:.2f} DH - environ {estimated_missing_lines} "
                            f"ligne(s) potentiellement manquante(s)")
            suggestions.append(Suggestion(
                kind=SuggestionKind.MISSING_LINE,
                message=f"Vérifier le document: {estimated_missing_lines} ligne(s) estimée(s) manquante(s) "
                        f"pour un total de {gap:.2f} DH",
            ))

        if calculated_total_ht > expected_total_ht * OVER_EXTRACTION_RATIO:
            warnings.append(f"Total calculé ({calculated_total_ht:.2f}) supérieur au total facture "
                            f"({expected_total_ht:.2f}) - vérifier les lignes dupliquées")
            suggestions.append(Suggestion(
                kind=SuggestionKind.PRICE_ERROR,
                message="Vérifier les lignes pour détecter des doublons ou erreurs de prix",
            ))

        self._detect_line_anomalies(lines, suggestions, warnings)

        if missing_totals > 0:
            warnings.append(f"{missing_totals} ligne(s) sans total extractible")
        if percentage_diff > self.config.max_allowed_diff_percent:
            warnings.append(f"Écart important ({percentage_diff:.1f}%) entre total calculé et total facture")

        logger.debug(f"Totals check: calculated={calculated_total_ht:.2f} expected={expected_total_ht:.2f} "
                     f"valid={is_valid}")

        return TotalsValidationResult(
            is_valid=is_valid,
            calculated_total_ht=round(calculated_total_ht, 2),
            expected_total_ht=expected_total_ht,
            difference=round(difference, 2),
            percentage_diff=round(percentage_diff, 2),
            details=TotalsValidationDetails(
                valid_lines=valid_lines,
                missing_totals=missing_totals,
                calculated_totals=calculated_totals,
                estimated_missing_lines=estimated_missing_lines,
            ),
            warnings=tuple(warnings),
            suggestions=tuple(suggestions),
        )

    def validate_vat(self, lines: Sequence[InvoiceLine], totals: InvoiceTotals) -> VatValidationResult:
        """Rebuild the VAT per rate from the line totals and compare it with the reported VAT."""
        warnings: List[str] = []

        vat_by_rate: Dict[float, float] = {}
        for line in lines:
            rate = line.vat_rate if line.vat_rate is not None else DEFAULT_VAT_RATE
            vat_by_rate[rate] = vat_by_rate.get(rate, 0.0) + (line.total or 0.0) * rate

        calculated_vat = 0.0
        for rate, vat in vat_by_rate.items():
            calculated_vat += vat
            if vat > 0:
                warnings.append(f"TVA {rate * 100:.0f}% sur {vat / rate:.2f} DH = {vat:.2f} DH")

        expected_vat = totals.total_vat or 0.0
        difference = abs(calculated_vat - expected_vat)
        is_valid = (difference <= self.config.absolute_tolerance
                    or (expected_vat > 0 and difference / expected_vat <= VAT_TOLERANCE_RATIO))

        if not is_valid:
            warnings.append(f"Écart TVA: calculée {calculated_vat:.2f} vs facture {expected_vat:.2f}")

        return VatValidationResult(
            is_valid=is_valid,
            calculated_vat=round(calculated_vat, 2),
            expected_vat=expected_vat,
            warnings=tuple(warnings),
        )

    def quick_validate(self, lines: Sequence[InvoiceLine], expected_total_ht: float) -> bool:
        calculated = 0.0
        for line in lines:
            if line.total is not None:
                calculated += line.total
            else:
                calculated += computed_line_total(line) or 0.0

        tolerance = max(self.config.absolute_tolerance,
                        expected_total_ht * self.config.tolerance_percent / 100)
        return abs(calculated - expected_total_ht) <= tolerance

    @staticmethod
    def _detect_line_anomalies(lines: Sequence[InvoiceLine], suggestions: List[Suggestion],
                               warnings: List[str]) -> None:
        positive_totals = np.array([line.total for line in lines if line.total is not None and line.total > 0])
        if len(positive_totals) < 2:
            return

        mean = float(np.mean(positive_totals))
        std = float(np.std(positive_totals))

        for i, line in enumerate(lines):
            total = line.total

            if total is not None and total > 0 and std > 0:
                z_score = (total - mean) / std
                if abs(z_score) > OUTLIER_Z_SCORE:
                    warnings.append(f"Ligne {i + 1}: Montant inhabituel ({total:.2f} DH) - vérifier l'extraction")
                    suggestions.append(Suggestion(
                        kind=SuggestionKind.PRICE_ERROR,
                        message=f"Ligne {i + 1}: Total {total:.2f} DH semble anormal (moyenne: {mean:.2f} DH)",
                        line_index=i,
                    ))

            expected = computed_line_total(line)
            if expected is not None and total:
                line_diff = abs(expected - total)
                if line_diff > 1 and line_diff / total > LINE_MISMATCH_RATIO:
                    suggestions.append(Suggestion(
                        kind=SuggestionKind.TOTAL_MISMATCH,
                        message=f"Ligne {i + 1}: Total ({total:.2f}) ≠ qté × prix ({expected:.2f})",
                        line_index=i,
                        suggested_value=expected,
                    ))
