"""
Ledger Derived Views

DESIGN DECISION: Everything here is a pure function of its inputs.
Running balances, date groups and totals are recomputed on every read
and never stored, so they can never drift from the transactions.

Pipeline for one book:
    transactions -> filter -> stable sort by date -> running balance
                 -> reverse (newest first) -> group by formatted date
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from babel import Locale, UnknownLocaleError
from babel.dates import format_date

from cashflow.models.ledger import (
    LedgerEntry,
    LedgerSummary,
    LedgerView,
    SearchFilters,
    Transaction,
    TransactionGroup,
    TransactionType,
)


DEFAULT_LOCALE = "en_US"


def resolve_locale(locale: Optional[str]) -> Locale:
    """Parse en_US / en-US / ar, falling back to the default locale."""
    if not locale:
        return Locale.parse(DEFAULT_LOCALE)
    try:
        return Locale.parse(locale.replace("-", "_"))
    except (UnknownLocaleError, ValueError):
        return Locale.parse(DEFAULT_LOCALE)


# =============================================================================
# FILTERS
# =============================================================================

def matches_filters(tx: Transaction, filters: Optional[SearchFilters]) -> bool:
    """
    Check one transaction against a filter.

    Every present field must match; absent fields are ignored.
    Date bounds are whole days: start at 00:00:00, end at 23:59:59.
    """
    if filters is None:
        return True

    if filters.text is not None and filters.text.lower() not in tx.description.lower():
        return False
    if filters.type is not None and tx.type != filters.type:
        return False
    if filters.min_amount is not None and tx.amount < filters.min_amount:
        return False
    if filters.max_amount is not None and tx.amount > filters.max_amount:
        return False
    if filters.start_date is not None and tx.date < filters.start_date:
        return False
    if filters.end_date is not None and tx.date > filters.end_date:
        return False

    return True


def apply_filters(
    transactions: Iterable[Transaction],
    filters: Optional[SearchFilters],
) -> list[Transaction]:
    """Keep the transactions that pass; original order is preserved."""
    return [tx for tx in transactions if matches_filters(tx, filters)]


# =============================================================================
# BALANCES, TOTALS, GROUPS
# =============================================================================

def sort_chronologically(transactions: Iterable[Transaction]) -> list[Transaction]:
    """Ascending by date. sorted() is stable, so same-day entries keep list order."""
    return sorted(transactions, key=lambda tx: tx.date)


def running_balances(transactions: Sequence[Transaction]) -> list[LedgerEntry]:
    """
    Annotate already-sorted transactions with the balance after each one.

    balance[i] = balance[i-1] + signed amount, starting from zero.
    """
    balance = Decimal("0")
    entries = []
    for tx in transactions:
        balance += tx.signed_amount
        entries.append(LedgerEntry(transaction=tx, balance=balance))
    return entries


def summarize(transactions: Iterable[Transaction]) -> LedgerSummary:
    """Income and expense totals."""
    total_income = Decimal("0")
    total_expense = Decimal("0")
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            total_income += tx.amount
        else:
            total_expense += tx.amount
    return LedgerSummary(total_income=total_income, total_expense=total_expense)


def group_by_date(
    entries: Sequence[LedgerEntry],
    locale: Optional[str] = None,
) -> list[TransactionGroup]:
    """
    Group entries by their formatted date label.

    Groups appear in first-seen order of the given sequence, and entries
    keep their relative order inside a group.
    """
    resolved = resolve_locale(locale)
    buckets: dict[str, list[LedgerEntry]] = {}
    first_dates: dict[str, date] = {}
    for entry in entries:
        # Year, full month name, day: "January 1, 2024" in en_US
        label = format_date(entry.transaction.date, format="long", locale=resolved)
        if label not in buckets:
            buckets[label] = []
            first_dates[label] = entry.transaction.date
        buckets[label].append(entry)

    return [
        TransactionGroup(label=label, date=first_dates[label], entries=tuple(items))
        for label, items in buckets.items()
    ]


def compute_ledger_view(
    transactions: Sequence[Transaction],
    filters: Optional[SearchFilters] = None,
    locale: Optional[str] = None,
) -> LedgerView:
    """
    Build the full transactions-page view for one book.

    Args:
        transactions: The book's transactions, in insertion order
        filters: Optional search filter; None shows everything
        locale: Locale for group labels (e.g. 'en_US', 'ar_EG')

    Returns:
        LedgerView with chronological entries, newest-first date groups,
        totals over the filtered set and filtered/total counts.
    """
    filtered = apply_filters(transactions, filters)
    chronological = running_balances(sort_chronologically(filtered))
    newest_first = list(reversed(chronological))

    return LedgerView(
        chronological=tuple(chronological),
        groups=tuple(group_by_date(newest_first, locale)),
        summary=summarize(filtered),
        filtered_count=len(filtered),
        total_count=len(transactions),
    )
