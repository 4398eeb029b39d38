"""Tests for PDF export."""

from datetime import date

import pytest

from cashflow.ledger.views import compute_ledger_view
from cashflow.models import Book, SearchFilters
from cashflow.services.export import ExportError, export_book_pdf, export_filename


class TestExportFilename:
    """Tests for download names."""

    def test_whitespace_becomes_underscores(self):
        """Test the filename pattern."""
        name = export_filename("Petty  Cash Book", today=date(2024, 4, 30))
        assert name == "transactions-Petty_Cash_Book-2024-04-30.pdf"


class TestExportBookPdf:
    """Tests for the rendered document."""

    def test_renders_pdf(self, sample_transactions):
        """Test that a non-empty view produces a PDF."""
        book = Book(name="Main Cashbook", transactions=tuple(sample_transactions))
        view = compute_ledger_view(book.transactions)

        document = export_book_pdf(book, view, locale="en_US", currency="USD", today=date(2024, 2, 1))
        assert document.content.startswith(b"%PDF")
        assert document.filename == "transactions-Main_Cashbook-2024-02-01.pdf"
        assert document.size_bytes == len(document.content)

    def test_filtered_view(self, sample_transactions):
        """Test exporting only what the filter shows."""
        book = Book(name="Cash", transactions=tuple(sample_transactions))
        view = compute_ledger_view(book.transactions, SearchFilters(text="coffee"))
        document = export_book_pdf(book, view)
        assert document.content.startswith(b"%PDF")

    def test_right_to_left_locale(self, sample_transactions):
        """Test that an RTL locale still renders."""
        book = Book(name="Cash", transactions=tuple(sample_transactions))
        view = compute_ledger_view(book.transactions, locale="ar_EG")
        document = export_book_pdf(book, view, locale="ar_EG", currency="EGP")
        assert document.content.startswith(b"%PDF")

    def test_empty_view_rejected(self, sample_transactions):
        """Test that there must be something to export."""
        book = Book(name="Cash", transactions=tuple(sample_transactions))
        view = compute_ledger_view(book.transactions, SearchFilters(text="nothing matches"))
        with pytest.raises(ExportError):
            export_book_pdf(book, view)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
