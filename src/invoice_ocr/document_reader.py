"""
Text input for the parser: the text layer of a PDF, or a plain OCR dump.
"""

import logging
from pathlib import Path
from typing import Union

import pdfplumber

logger = logging.getLogger(__name__)

TEXT_SUFFIXES = ('.txt', '.text')
PDF_SUFFIXES = ('.pdf',)


class DocumentReader:
    """Load invoice text from a file."""

    def read(self, path: Union[str, Path]) -> str:
        """
        Read the text of an invoice document.

        Args:
            path: A ``.pdf`` with a text layer or a ``.txt`` OCR output

        Returns:
            The document text, pages separated by newlines

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file type is not supported
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"File not found: {path}")

        suffix = path.suffix.lower()
        if suffix in TEXT_SUFFIXES:
            return self._read_text(path)
        if suffix in PDF_SUFFIXES:
            return self._read_pdf(path)

        raise ValueError(f"Unsupported file type: {suffix or '(none)'}")

    @staticmethod
    def _read_text(path: Path) -> str:
        text = path.read_text(encoding='utf-8', errors='replace')
        logger.info(f"Read {len(text)} characters from {path.name}")
        return text

    @staticmethod
    def _read_pdf(path: Path) -> str:
        try:
            with pdfplumber.open(path) as pdf:
                pages = []
                for page in pdf.pages:
                    page_text = page.extract_text()
                    if not page_text:
                        page_text = page.extract_text(layout=True, x_tolerance=3, y_tolerance=3)
                    if page_text:
                        pages.append(page_text)
        except Exception as e:
            logger.error(f"pdfplumber extraction failed for {path.name}: {e}")
            raise

        text = '\n'.join(pages)
        if not text.strip():
            logger.warning(f"No text layer found in {path.name}; run OCR first")
        else:
            logger.info(f"Extracted {len(text)} characters from {len(pages)} page(s) of {path.name}")
        return text
