#!/usr/bin/env python3
"""
Invoice OCR Parser CLI
Extracts structured data from OCR'd supplier invoices.
"""

import argparse
import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .document_reader import DocumentReader
from .invoice_parser import InvoiceParser
from .locales import LOCALES, get_locale
from .models import SupplierInvoice

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

console = Console()


def setup_parser():
    """Set up command line argument parser."""
    parser = argparse.ArgumentParser(
        description="Invoice OCR Parser - Supplier invoice extraction from OCR text",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  invoice-ocr parse facture.txt                      # Parse and print JSON
  invoice-ocr parse facture.pdf -o result.json       # Parse and save to file
  invoice-ocr summary facture.txt                    # Show a review table
  invoice-ocr parse facture.txt --locale en -v       # English labels, debug logging
        """
    )

    parser.add_argument(
        'command',
        choices=['parse', 'summary'],
        help='Command to execute'
    )

    parser.add_argument(
        'path',
        help='Path to a .txt OCR output or a .pdf with a text layer'
    )

    parser.add_argument(
        '--locale',
        choices=sorted(LOCALES),
        default='fr',
        help='Label language of the invoice (default: fr)'
    )

    parser.add_argument(
        '--vat-rate',
        type=float,
        default=0.2,
        help='VAT rate applied to lines when it cannot be inferred (default: 0.2)'
    )

    parser.add_argument(
        '--threshold',
        type=int,
        default=3,
        help='Minimum score for a line to count as a product line (default: 3)'
    )

    parser.add_argument(
        '-o', '--output',
        help='Output file path (default: print to console)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='store_true',
        help='Enable verbose logging'
    )

    return parser


def invoice_to_json(invoice: SupplierInvoice) -> str:
    return json.dumps(asdict(invoice), indent=2, ensure_ascii=False, default=str)


def print_summary(invoice: SupplierInvoice):
    """Review view: header panel, one row per line, then the totals check."""
    supplier = invoice.supplier
    client_name = invoice.client.name if invoice.client else None

    console.print(Panel.fit(
        f"[bold blue]{supplier.name or 'Fournisseur inconnu'}[/bold blue]\n"
        f"Facture: {invoice.invoice_number or '-'}  Date: {invoice.invoice_date or '-'}  "
        f"Devise: {invoice.currency}\n"
        f"Client: {client_name or '-'}",
        border_style="blue"
    ))

    table = Table(title=f"Lignes ({invoice.stats.extracted}/{invoice.stats.detected} extraites)")
    table.add_column("#", justify="right")
    table.add_column("Référence")
    table.add_column("Désignation")
    table.add_column("Qté", justify="right")
    table.add_column("P.U.", justify="right")
    table.add_column("Total", justify="right")
    table.add_column("Méthode")
    table.add_column("Statut")

    for i, line in enumerate(invoice.lines, 1):
        if line.is_corrupted:
            status = f"[red]{line.corruption_reason.value}[/red]"
        elif line.needs_review:
            status = "[yellow]à vérifier[/yellow]"
        else:
            status = "[green]ok[/green]"

        table.add_row(
            str(i),
            line.reference or "",
            line.designation or "",
            _fmt(line.quantity),
            _fmt(line.unit_price),
            _fmt(line.total),
            line.method.value,
            status,
        )

    console.print(table)

    validation = invoice.totals_validation
    if validation is None:
        console.print("[dim]Pas de total HT trouvé, contrôle des totaux ignoré[/dim]")
        return

    color = "green" if validation.is_valid else "red"
    console.print(f"[{color}]Total HT calculé {validation.calculated_total_ht:.2f} / "
                  f"facture {validation.expected_total_ht:.2f} "
                  f"(écart {validation.percentage_diff:.2f}%)[/{color}]")
    for warning in validation.warnings:
        console.print(f"[yellow]- {warning}[/yellow]")


def _fmt(value: Optional[float]) -> str:
    return f"{value:.2f}" if value is not None else ""


def run(command: str, path: str, locale_code: str = 'fr', vat_rate: float = 0.2, threshold: int = 3,
        output: Optional[str] = None, verbose: bool = False) -> SupplierInvoice:
    """Read, parse and report one invoice."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        text = DocumentReader().read(path)
        parser = InvoiceParser(locale=get_locale(locale_code), default_vat_rate=vat_rate, threshold=threshold)
        invoice = parser.parse(text)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Parsing failed: {e}")
        sys.exit(1)

    if output:
        with open(output, 'w', encoding='utf-8') as f:
            f.write(invoice_to_json(invoice))
        logger.info(f"Results saved to: {output}")

    if command == 'summary':
        print_summary(invoice)
    elif not output:
        print(invoice_to_json(invoice))

    return invoice


def main():
    """Main CLI entry point."""
    parser = setup_parser()
    args = parser.parse_args()

    run(args.command, args.path, args.locale, args.vat_rate, args.threshold, args.output, args.verbose)


if __name__ == '__main__':
    main()
