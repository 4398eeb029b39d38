"""
Data Models Package

This package contains all Pydantic models used in Cashflow.
All data flowing through the system must conform to these schemas.
"""

from cashflow.models.ledger import (
    BOOK_VIEWS,
    AppState,
    AppView,
    Book,
    Business,
    Dialog,
    LedgerEntry,
    LedgerSummary,
    LedgerView,
    Role,
    SearchFilters,
    TeamMember,
    Transaction,
    TransactionDraft,
    TransactionGroup,
    TransactionType,
    User,
    utcnow,
)
from cashflow.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BOOK_VIEWS",
    "AppState",
    "AppView",
    "Book",
    "Business",
    "Dialog",
    "LedgerEntry",
    "LedgerSummary",
    "LedgerView",
    "Role",
    "SearchFilters",
    "TeamMember",
    "Transaction",
    "TransactionDraft",
    "TransactionGroup",
    "TransactionType",
    "User",
    "utcnow",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
