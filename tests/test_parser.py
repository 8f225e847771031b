# =============================================================================
# Unit Tests — PDF Directory Source
# =============================================================================
#
# Docling is never run: page extraction is tested on stand-in items and
# conversion failures are simulated by patching the converter.
# =============================================================================

from __future__ import annotations

from dataclasses import dataclass, field
from unittest.mock import MagicMock, patch

import pytest
from docling_core.types.doc.labels import DocItemLabel

from berkshire_rag.errors import DocumentReadError
from berkshire_rag.services.parser import PdfDirectorySource, extract_page_texts


@dataclass
class _Prov:
    page_no: int


@dataclass
class _Item:
    label: DocItemLabel
    text: str = ""
    prov: list[_Prov] = field(default_factory=list)


class _Document:
    def __init__(self, items):
        self._items = items

    def iterate_items(self):
        return [(item, 0) for item in self._items]


class TestExtractPageTexts:
    def test_items_grouped_by_page_in_order(self):
        doc = _Document([
            _Item(DocItemLabel.TITLE, "To the Shareholders", [_Prov(1)]),
            _Item(DocItemLabel.TEXT, "Our gain in net worth...", [_Prov(1)]),
            _Item(DocItemLabel.TEXT, "Insurance float...", [_Prov(2)]),
        ])
        assert extract_page_texts(doc) == [
            "To the Shareholders\nOur gain in net worth...",
            "Insurance float...",
        ]

    def test_empty_page_kept_as_empty_string(self):
        doc = _Document([
            _Item(DocItemLabel.TEXT, "one", [_Prov(1)]),
            _Item(DocItemLabel.TEXT, "three", [_Prov(3)]),
        ])
        assert extract_page_texts(doc) == ["one", "", "three"]

    def test_non_text_labels_ignored(self):
        doc = _Document([
            _Item(DocItemLabel.PAGE_HEADER, "Berkshire Hathaway Inc.", [_Prov(1)]),
            _Item(DocItemLabel.TEXT, "Body", [_Prov(1)]),
        ])
        assert extract_page_texts(doc) == ["Body"]

    def test_item_without_provenance_goes_to_first_page(self):
        doc = _Document([_Item(DocItemLabel.TEXT, "Orphan")])
        assert extract_page_texts(doc) == ["Orphan"]

    def test_document_without_text(self):
        assert extract_page_texts(_Document([])) == []

    def test_table_exported_as_markdown(self):
        table = MagicMock()
        table.label = DocItemLabel.TABLE
        table.prov = [_Prov(1)]
        table.export_to_dataframe.return_value.to_markdown.return_value = "| a | b |"
        assert extract_page_texts(_Document([table])) == ["| a | b |"]


class TestPdfDirectorySource:
    def test_missing_directory(self, tmp_path):
        source = PdfDirectorySource(tmp_path / "nope")
        assert source.exists() is False
        assert source.location == str(tmp_path / "nope")

    def test_lists_pdfs_sorted(self, tmp_path):
        for name in ["1999.pdf", "1977.PDF", "notes.txt", "1985.pdf"]:
            (tmp_path / name).write_bytes(b"%PDF-1.4")
        (tmp_path / "sub.pdf").mkdir()

        source = PdfDirectorySource(tmp_path)
        assert source.exists() is True
        assert source.list_documents() == ["1977.PDF", "1985.pdf", "1999.pdf"]

    def test_conversion_failure_raises_document_read_error(self, tmp_path):
        (tmp_path / "bad.pdf").write_bytes(b"not a pdf")
        converter = MagicMock()
        converter.convert.side_effect = RuntimeError("PDF parse error")

        with patch("berkshire_rag.services.parser._get_converter", return_value=converter):
            with pytest.raises(DocumentReadError) as exc_info:
                PdfDirectorySource(tmp_path).read_pages("bad.pdf")

        assert exc_info.value.document == "bad.pdf"
        assert "PDF parse error" in str(exc_info.value)

    def test_read_pages_uses_converted_document(self, tmp_path):
        converter = MagicMock()
        converter.convert.return_value.document = _Document([
            _Item(DocItemLabel.TEXT, "Page one", [_Prov(1)]),
        ])

        with patch("berkshire_rag.services.parser._get_converter", return_value=converter):
            pages = PdfDirectorySource(tmp_path).read_pages("1965.pdf")

        assert pages == ["Page one"]
        converter.convert.assert_called_once_with(str(tmp_path / "1965.pdf"))

    def test_extraction_failure_raises_document_read_error(self, tmp_path):
        document = MagicMock()
        document.iterate_items.side_effect = KeyError("missing page ref")
        converter = MagicMock()
        converter.convert.return_value.document = document

        with patch("berkshire_rag.services.parser._get_converter", return_value=converter):
            with pytest.raises(DocumentReadError) as exc_info:
                PdfDirectorySource(tmp_path).read_pages("1970.pdf")

        assert exc_info.value.document == "1970.pdf"
