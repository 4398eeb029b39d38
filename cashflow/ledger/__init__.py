"""Ledger logic: pure commands and derived views."""

from cashflow.ledger.commands import (
    ALL_BUSINESSES,
    LedgerError,
    NotAuthenticatedError,
    NotFoundError,
    TeamInvariantError,
    check_team_invariants,
)
from cashflow.ledger.reports import (
    BookSummary,
    BusinessDashboard,
    collect_transactions,
    summarize_business,
)
from cashflow.ledger.views import (
    apply_filters,
    compute_ledger_view,
    matches_filters,
    resolve_locale,
)

__all__ = [
    "ALL_BUSINESSES",
    "BookSummary",
    "BusinessDashboard",
    "LedgerError",
    "NotAuthenticatedError",
    "NotFoundError",
    "TeamInvariantError",
    "apply_filters",
    "check_team_invariants",
    "collect_transactions",
    "compute_ledger_view",
    "matches_filters",
    "resolve_locale",
    "summarize_business",
]
