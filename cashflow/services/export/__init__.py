"""PDF export package."""

from cashflow.services.export.pdf_export import (
    ExportError,
    PdfDocument,
    export_book_pdf,
    export_filename,
)

__all__ = [
    "ExportError",
    "PdfDocument",
    "export_book_pdf",
    "export_filename",
]
