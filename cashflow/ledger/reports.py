"""
Dashboard and Report Aggregation

The dashboard shows one card per book plus business-wide totals.
The reports page picks a period (and optionally one book) and hands
the matching transactions to the AI summarizer.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from cashflow.ledger.views import apply_filters, summarize
from cashflow.models.ledger import (
    Business,
    LedgerSummary,
    SearchFilters,
    Transaction,
)


class BookSummary(BaseModel):
    """One dashboard card."""
    model_config = ConfigDict(frozen=True)

    book_id: UUID
    name: str
    transaction_count: int = Field(ge=0)
    summary: LedgerSummary
    last_activity: Optional[date] = None


class BusinessDashboard(BaseModel):
    """All cards for a business and the grand totals."""
    model_config = ConfigDict(frozen=True)

    business_id: UUID
    name: str
    books: tuple[BookSummary, ...] = ()
    totals: LedgerSummary = Field(default_factory=LedgerSummary)
    member_count: int = Field(default=0, ge=0)


def summarize_business(business: Business) -> BusinessDashboard:
    """Per-book totals and business-wide totals."""
    cards = []
    for book in business.books:
        cards.append(BookSummary(
            book_id=book.id,
            name=book.name,
            transaction_count=len(book.transactions),
            summary=summarize(book.transactions),
            last_activity=max((tx.date for tx in book.transactions), default=None),
        ))

    return BusinessDashboard(
        business_id=business.id,
        name=business.name,
        books=tuple(cards),
        totals=summarize(tx for book in business.books for tx in book.transactions),
        member_count=len(business.team),
    )


def collect_transactions(
    business: Business,
    book_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> list[Transaction]:
    """
    Transactions of one book (or all books) inside a date range.

    Both bounds are inclusive and optional. Result is chronological.
    """
    books = [b for b in business.books if book_id is None or b.id == book_id]
    period = SearchFilters(start_date=start_date, end_date=end_date)
    selected = [
        tx for book in books for tx in apply_filters(book.transactions, period)
    ]
    return sorted(selected, key=lambda tx: tx.date)
