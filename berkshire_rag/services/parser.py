# =============================================================================
# Document Source — PDF Letters via Docling
# =============================================================================
#
# Enumerates the shareholder letters in a directory and yields each one's
# text page by page, in page order. The rest of the pipeline only sees the
# DocumentSource protocol; Docling types never leave this module.
#
# Text is rebuilt per page from Docling's reading-order items: every item
# carries provenance with its page number, so items are bucketed by page
# and joined with newlines. Tables are exported as markdown.
#
# Failure semantics:
#   - missing directory → exists() is False (reported by the Ingestor)
#   - unreadable/corrupt PDF → DocumentReadError for that file only
# =============================================================================

from __future__ import annotations

import logging
from collections import defaultdict
from pathlib import Path
from typing import Protocol

from docling.datamodel.base_models import InputFormat
from docling.datamodel.pipeline_options import PdfPipelineOptions
from docling.document_converter import DocumentConverter, PdfFormatOption
from docling_core.types.doc.labels import DocItemLabel

from berkshire_rag.errors import DocumentReadError

logger = logging.getLogger(__name__)

# Labels whose text belongs in the extracted page text
_TEXT_LABELS = {
    DocItemLabel.TITLE,
    DocItemLabel.SECTION_HEADER,
    DocItemLabel.TEXT,
    DocItemLabel.LIST_ITEM,
    DocItemLabel.CAPTION,
    DocItemLabel.FOOTNOTE,
}


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class DocumentSource(Protocol):
    """Where the Ingestor reads documents from."""

    @property
    def location(self) -> str:
        """Human-readable location, used in result messages."""
        ...

    def exists(self) -> bool:
        ...

    def list_documents(self) -> list[str]:
        """Document identifiers in a deterministic order."""
        ...

    def read_pages(self, document: str) -> list[str]:
        """
        Page texts of one document, first page first.

        Raises:
            DocumentReadError: If the document cannot be read.
        """
        ...


# ---------------------------------------------------------------------------
# Docling Converter — Lazy Singleton
# ---------------------------------------------------------------------------
# Initialization loads layout models into memory; one converter is reused
# for every letter.
# ---------------------------------------------------------------------------

_converter: DocumentConverter | None = None


def _get_converter() -> DocumentConverter:
    """Lazily initialize and cache the Docling DocumentConverter."""
    global _converter
    if _converter is None:
        logger.info(
            "Initializing Docling DocumentConverter "
            "(first use, may take a few seconds)..."
        )

        # The letters are born-digital PDFs, so OCR stays off.
        pipeline_options = PdfPipelineOptions()
        pipeline_options.do_table_structure = True
        pipeline_options.do_ocr = False

        _converter = DocumentConverter(
            format_options={
                InputFormat.PDF: PdfFormatOption(
                    pipeline_options=pipeline_options,
                ),
            }
        )
        logger.info("Docling DocumentConverter initialized")
    return _converter


# ---------------------------------------------------------------------------
# Implementation: directory of PDFs
# ---------------------------------------------------------------------------


class PdfDirectorySource:
    """All `*.pdf` files directly inside one directory, sorted by name."""

    def __init__(self, directory: str | Path) -> None:
        self._directory = Path(directory)

    @property
    def location(self) -> str:
        return str(self._directory)

    def exists(self) -> bool:
        return self._directory.is_dir()

    def list_documents(self) -> list[str]:
        return sorted(
            path.name
            for path in self._directory.iterdir()
            if path.is_file() and path.suffix.lower() == ".pdf"
        )

    def read_pages(self, document: str) -> list[str]:
        path = self._directory / document
        logger.info("Extracting text: %s", path.name)

        # Conversion and the walk over the converted items both fail on
        # malformed files
        try:
            result = _get_converter().convert(str(path))
            pages = extract_page_texts(result.document)
        except Exception as exc:
            raise DocumentReadError(document, str(exc)) from exc

        logger.info("Extracted '%s': %d pages", path.name, len(pages))
        return pages


# ---------------------------------------------------------------------------
# Internal Helpers
# ---------------------------------------------------------------------------


def extract_page_texts(document: object) -> list[str]:
    """
    Rebuild per-page text from a DoclingDocument.

    Pages are returned for 1..max(page_no); a page with no text items
    becomes "" so page order is preserved. Items without provenance
    are attached to the first page.
    """
    by_page: dict[int, list[str]] = defaultdict(list)

    for item, _level in document.iterate_items():
        page_no = 1
        if getattr(item, "prov", None):
            page_no = item.prov[0].page_no or 1

        label = getattr(item, "label", None)
        if label == DocItemLabel.TABLE:
            text = _table_to_markdown(item)
        elif label in _TEXT_LABELS:
            text = getattr(item, "text", "").strip()
        else:
            continue

        if text:
            by_page[page_no].append(text)

    if not by_page:
        return []
    return ["\n".join(by_page.get(n, [])) for n in range(1, max(by_page) + 1)]


def _table_to_markdown(table_item: object) -> str:
    """
    Convert a Docling TableItem to a markdown-formatted string.

    Falls back to the item's plain text when the dataframe export fails.
    """
    try:
        if hasattr(table_item, "export_to_dataframe"):
            df = table_item.export_to_dataframe()
            return df.to_markdown(index=False)
    except Exception as exc:
        logger.warning("Table export to DataFrame failed: %s", exc)

    text = getattr(table_item, "text", "")
    return text.strip() if text else ""
