"""
PDF Export

Renders one book's (possibly filtered) transactions as a printable
statement using ReportLab. Amounts in the totals block use Babel
currency formatting for the configured locale.

Layout:
    Transactions for <book>
    From: <first date>  To: <last date>
    Total In / Total Out / Net Balance
    Date | Description | Cash In | Cash Out     (oldest first)
"""

import io
import re
from datetime import date
from decimal import Decimal
from typing import Optional

import structlog
from babel.dates import format_date
from babel.numbers import format_currency
from pydantic import BaseModel
from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from cashflow.ledger.views import resolve_locale
from cashflow.models.ledger import Book, LedgerView


logger = structlog.get_logger(__name__)

HEADER_BACKGROUND = colors.HexColor("#2563EB")


class ExportError(Exception):
    """Nothing to export, or the document could not be built."""
    pass


class PdfDocument(BaseModel):
    """A rendered PDF ready for download."""

    filename: str
    content: bytes

    @property
    def size_bytes(self) -> int:
        return len(self.content)


def export_filename(book_name: str, today: Optional[date] = None) -> str:
    """transactions-<book name with underscores>-<YYYY-MM-DD>.pdf"""
    today = today or date.today()
    safe_name = re.sub(r"\s+", "_", book_name.strip())
    return f"transactions-{safe_name}-{today.isoformat()}.pdf"


def _format_plain(amount: Decimal) -> str:
    return f"{amount:,.2f}"


def export_book_pdf(
    book: Book,
    view: LedgerView,
    locale: Optional[str] = None,
    currency: str = "USD",
    rtl: Optional[bool] = None,
    today: Optional[date] = None,
) -> PdfDocument:
    """
    Build the PDF statement for a book.

    Args:
        book: The book being exported (for title and filename)
        view: The ledger view to render; its chronological entries are used
        locale: Babel locale for dates and currency
        currency: ISO 4217 code for the totals block
        rtl: Right-to-left layout; derived from the locale when None
        today: Export date for the filename

    Raises:
        ExportError: If the view has no transactions
    """
    if view.is_empty:
        raise ExportError("There are no transactions to export")

    resolved = resolve_locale(locale)
    if rtl is None:
        rtl = resolved.text_direction == "rtl"
    alignment = TA_RIGHT if rtl else TA_LEFT

    styles = getSampleStyleSheet()
    title_style = ParagraphStyle("ExportTitle", parent=styles["Title"], alignment=alignment)
    body_style = ParagraphStyle("ExportBody", parent=styles["Normal"], alignment=alignment)
    cell_style = ParagraphStyle(
        "ExportCell", parent=styles["Normal"], fontSize=9, leading=11, alignment=alignment
    )

    def fmt_date(value: date) -> str:
        return format_date(value, format="medium", locale=resolved)

    def fmt_money(amount: Decimal) -> str:
        return format_currency(amount, currency, locale=resolved)

    entries = view.chronological
    first_date = entries[0].transaction.date
    last_date = entries[-1].transaction.date
    summary = view.summary

    story = [
        Paragraph(f"Transactions for {book.name}", title_style),
        Paragraph(f"From: {fmt_date(first_date)}  To: {fmt_date(last_date)}", body_style),
        Spacer(1, 4 * mm),
        Paragraph(f"Total In: {fmt_money(summary.total_income)}", body_style),
        Paragraph(f"Total Out: {fmt_money(summary.total_expense)}", body_style),
        Paragraph(f"Net Balance: {fmt_money(summary.net_balance)}", body_style),
        Spacer(1, 6 * mm),
    ]

    rows = [["Date", "Description", "Cash In", "Cash Out"]]
    for entry in entries:
        tx = entry.transaction
        amount = _format_plain(tx.amount)
        rows.append([
            fmt_date(tx.date),
            Paragraph(tx.description or "-", cell_style),
            amount if tx.is_income else "-",
            "-" if tx.is_income else amount,
        ])

    text_align = "RIGHT" if rtl else "LEFT"
    table = Table(rows, colWidths=[30 * mm, 80 * mm, 30 * mm, 30 * mm], repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), HEADER_BACKGROUND),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.grey),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("ALIGN", (0, 0), (1, -1), text_align),
        ("ALIGN", (2, 0), (-1, -1), "RIGHT"),
    ]))
    story.append(table)

    buffer = io.BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        title=f"Transactions for {book.name}",
        leftMargin=15 * mm,
        rightMargin=15 * mm,
    )
    try:
        doc.build(story)
    except Exception as e:
        logger.error("pdf_export_failed", book_id=str(book.id), error=str(e))
        raise ExportError(f"Could not build the PDF: {e}") from e

    document = PdfDocument(
        filename=export_filename(book.name, today),
        content=buffer.getvalue(),
    )
    logger.info(
        "pdf_exported",
        book_id=str(book.id),
        rows=len(entries),
        size_bytes=document.size_bytes,
    )
    return document
