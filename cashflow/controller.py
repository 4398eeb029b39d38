"""
Application Controller for Cashflow

This module ties together all the components:
1. Ledger commands (pure state transitions)
2. Snapshot persistence
3. Audit logging
4. The AI assist agent

DESIGN DECISION: The controller enforces the boundaries:
- State is replaced in ONE assignment per command, never edited
- Every command is persisted as a full snapshot
- Every ledger mutation is audited
- A failed save is logged, never raised; the session keeps working

Ledger rules live in cashflow.ledger.commands. This module only
sequences them with storage and logging.
"""

from datetime import date
from typing import Iterable, Optional, Union
from uuid import UUID

import structlog

from cashflow.agents import AssistAgent, GenerationFailure
from cashflow.audit import AuditLogger, configure_logging, create_correlation_id
from cashflow.config import get_settings
from cashflow.ledger import commands
from cashflow.ledger.reports import BusinessDashboard, collect_transactions, summarize_business
from cashflow.ledger.views import compute_ledger_view
from cashflow.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from cashflow.models.ledger import (
    AppState,
    AppView,
    Book,
    Business,
    Dialog,
    LedgerView,
    Role,
    SearchFilters,
    TeamMember,
    Transaction,
    TransactionDraft,
    User,
)
from cashflow.services.export import PdfDocument, export_book_pdf
from cashflow.services.importer import CsvImportError, ImportResult, parse_transactions_csv
from cashflow.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    SnapshotStore,
    StorageError,
)


logger = structlog.get_logger(__name__)


class LedgerController:
    """
    Owns the single AppState of a session.

    Flow for every command:
    1. Apply → pure function from cashflow.ledger.commands
    2. Swap  → self._state = new_state
    3. Save  → full snapshot; failures are logged and swallowed
    4. Audit → one event describing the mutation
    """

    def __init__(
        self,
        snapshot_store: Optional[SnapshotStore] = None,
        audit_logger: Optional[AuditLogger] = None,
        assist_agent: Optional[AssistAgent] = None,
        locale: str = "en_US",
        currency: str = "USD",
        max_import_rows: int = 5000,
    ):
        self._snapshots = snapshot_store or SnapshotStore(InMemoryKeyValueStore())
        self._audit_logger = audit_logger or AuditLogger()
        # Built on first use so a missing API key only affects AI features
        self._assist_agent = assist_agent
        self.locale = locale
        self.currency = currency
        self.max_import_rows = max_import_rows

        self._state = self._snapshots.load()
        # Search filters per book; session only, never persisted
        self._filters: dict[UUID, SearchFilters] = {}

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> AppState:
        return self._state

    @property
    def active_business(self) -> Optional[Business]:
        return self._state.active_business

    @property
    def active_book(self) -> Optional[Book]:
        return self._state.active_book

    @property
    def current_user(self) -> Optional[User]:
        return self._state.current_user

    @property
    def audit_logger(self) -> AuditLogger:
        return self._audit_logger

    @property
    def assist(self) -> AssistAgent:
        """
        The AI assist agent.

        Raises:
            ConfigurationError: If no Gemini API key is configured
        """
        if self._assist_agent is None:
            self._assist_agent = AssistAgent()
        return self._assist_agent

    def _actor_id(self) -> Optional[UUID]:
        user = self._state.current_user
        return user.id if user else None

    def _commit(self, new_state: AppState, event: Optional[AuditEvent] = None) -> None:
        """Swap in the new state, persist it, then audit."""
        self._state = new_state

        try:
            self._snapshots.save(new_state)
        except StorageError as e:
            logger.error("snapshot_save_failed", error=str(e))
            self._audit_logger.log(AuditEventBuilder.snapshot_save_failed(str(e)))

        if event is not None:
            self._audit_logger.log(event)

    def _entity_event(
        self,
        event_type: AuditEventType,
        entity_type: str,
        entity_id: Optional[UUID],
        description: str,
        details: Optional[dict] = None,
    ) -> AuditEvent:
        return AuditEventBuilder.entity_event(
            event_type=event_type,
            entity_type=entity_type,
            entity_id=entity_id,
            description=description,
            actor_id=self._actor_id(),
            details=details,
        )

    # =========================================================================
    # SESSION
    # =========================================================================

    def signup(self, full_name: str, email: str) -> User:
        new_state, user = commands.signup(self._state, full_name, email)
        self._commit(new_state, AuditEventBuilder.entity_event(
            AuditEventType.USER_SIGNED_UP, "user", user.id,
            f"User signed up: {user.email}", actor_id=user.id,
        ))
        return user

    def login(self, email: str) -> User:
        new_state, user = commands.login(self._state, email)
        self._commit(new_state, AuditEventBuilder.entity_event(
            AuditEventType.USER_LOGGED_IN, "user", user.id,
            f"User logged in: {user.email}", actor_id=user.id,
        ))
        return user

    def logout(self) -> None:
        actor_id = self._actor_id()
        self._filters.clear()
        self._commit(commands.logout(self._state), AuditEventBuilder.entity_event(
            AuditEventType.USER_LOGGED_OUT, "user", actor_id,
            "User logged out", actor_id=actor_id,
        ))

    # =========================================================================
    # NAVIGATION
    # =========================================================================

    def select_view(self, view: AppView) -> None:
        self._commit(commands.select_view(self._state, view))

    def select_business(self, business_id: UUID) -> None:
        self._commit(commands.select_business(self._state, business_id))

    def open_book(self, book_id: UUID) -> None:
        self._commit(commands.open_book(self._state, book_id))

    def open_dialog(self, dialog: Dialog) -> None:
        self._commit(commands.open_dialog(self._state, dialog))

    def close_dialog(self) -> None:
        self._commit(commands.close_dialog(self._state))

    # =========================================================================
    # BUSINESSES & BOOKS
    # =========================================================================

    def create_business(self, name: str) -> Business:
        new_state, business = commands.create_business(self._state, name)
        self._commit(new_state, self._entity_event(
            AuditEventType.BUSINESS_CREATED, "business", business.id,
            f"Business created: {business.name}",
        ))
        return business

    def update_business(self, business_id: UUID, name: str) -> None:
        new_state = commands.update_business(self._state, business_id, name)
        self._commit(new_state, self._entity_event(
            AuditEventType.BUSINESS_UPDATED, "business", business_id,
            f"Business renamed: {name}",
        ))

    def delete_business(self, business_id: UUID) -> None:
        business = self._state.find_business(business_id)
        new_state = commands.delete_business(self._state, business_id)
        self._commit(new_state, self._entity_event(
            AuditEventType.BUSINESS_DELETED, "business", business_id,
            f"Business deleted: {business.name}",
            details={
                "books": len(business.books),
                "transactions": business.transaction_count,
            },
        ))

    def create_book(self, name: str) -> Book:
        new_state, book = commands.create_book(self._state, name)
        self._commit(new_state, self._entity_event(
            AuditEventType.BOOK_CREATED, "book", book.id,
            f"Book created: {book.name}",
            details={"business_id": str(self._state.active_business_id)},
        ))
        return book

    def update_book(self, book_id: UUID, name: str) -> None:
        new_state = commands.update_book(self._state, book_id, name)
        self._commit(new_state, self._entity_event(
            AuditEventType.BOOK_UPDATED, "book", book_id, f"Book renamed: {name}",
        ))

    def delete_book(self, book_id: UUID) -> None:
        new_state = commands.delete_book(self._state, book_id)
        self._commit(new_state, self._entity_event(
            AuditEventType.BOOK_DELETED, "book", book_id, "Book deleted",
        ))

    # =========================================================================
    # TRANSACTIONS
    # =========================================================================

    def create_transaction(self, book_id: UUID, draft: TransactionDraft) -> Transaction:
        new_state, tx = commands.create_transaction(self._state, book_id, draft)
        self._commit(new_state, self._entity_event(
            AuditEventType.TRANSACTION_CREATED, "transaction", tx.id,
            f"{tx.type.value.capitalize()} of {tx.amount} recorded",
            details={"book_id": str(book_id)},
        ))
        return tx

    def update_transaction(
        self,
        book_id: UUID,
        transaction_id: UUID,
        draft: TransactionDraft,
    ) -> None:
        new_state = commands.update_transaction(self._state, book_id, transaction_id, draft)
        self._commit(new_state, self._entity_event(
            AuditEventType.TRANSACTION_UPDATED, "transaction", transaction_id,
            "Transaction updated",
            details={"book_id": str(book_id)},
        ))

    def delete_transaction(self, book_id: UUID, transaction_id: UUID) -> None:
        new_state = commands.delete_transaction(self._state, book_id, transaction_id)
        self._commit(new_state, self._entity_event(
            AuditEventType.TRANSACTION_DELETED, "transaction", transaction_id,
            "Transaction deleted",
            details={"book_id": str(book_id)},
        ))

    def import_transactions(
        self,
        book_id: UUID,
        drafts: Iterable[TransactionDraft],
        correlation_id: Optional[UUID] = None,
    ) -> tuple[Transaction, ...]:
        """Append all drafts in one state transition."""
        new_state, imported = commands.import_transactions(self._state, book_id, drafts)
        self._commit(new_state, AuditEventBuilder.transactions_imported(
            book_id=book_id,
            count=len(imported),
            actor_id=self._actor_id(),
            correlation_id=correlation_id,
        ))
        return imported

    def import_csv(self, book_id: UUID, text: str) -> ImportResult:
        """
        Parse a CSV upload and import every readable row.

        Rows that fail are returned in ImportResult.issues and skipped.

        Raises:
            CsvImportError: If the file as a whole cannot be read
        """
        correlation_id = create_correlation_id()
        try:
            result = parse_transactions_csv(text, max_rows=self.max_import_rows)
        except CsvImportError as e:
            self._audit_logger.log_error(
                error_type="csv_import",
                error_message=str(e),
                details={"book_id": str(book_id)},
                correlation_id=correlation_id,
            )
            raise

        if result.drafts:
            self.import_transactions(book_id, result.drafts, correlation_id=correlation_id)
        return result

    # =========================================================================
    # TEAM
    # =========================================================================

    def invite_member(
        self,
        business_id: Union[UUID, str],
        email: str,
        role: Role = Role.MEMBER,
    ) -> TeamMember:
        new_state, member = commands.invite_member(self._state, business_id, email, role)
        if new_state.businesses == self._state.businesses:
            # Already on every target team
            self._commit(new_state)
            return member
        self._commit(new_state, self._entity_event(
            AuditEventType.MEMBER_INVITED, "member", member.id,
            f"Invited {member.email} as {member.role.value}",
            details={"business_id": str(business_id)},
        ))
        return member

    def update_member_role(self, member_id: UUID, role: Role) -> None:
        new_state = commands.update_member_role(self._state, member_id, role)
        self._commit(new_state, self._entity_event(
            AuditEventType.MEMBER_ROLE_UPDATED, "member", member_id,
            f"Role changed to {role.value}",
        ))

    def remove_member(self, member_id: UUID) -> None:
        new_state = commands.remove_member(self._state, member_id)
        self._commit(new_state, self._entity_event(
            AuditEventType.MEMBER_REMOVED, "member", member_id, "Member removed",
        ))

    def transfer_ownership(self, business_id: UUID, email: str) -> TeamMember:
        business = self._state.find_business(business_id)
        previous_owner = business.owner if business else None
        new_state, new_owner = commands.transfer_ownership(self._state, business_id, email)
        self._commit(new_state, AuditEventBuilder.ownership_transferred(
            business_id=business_id,
            previous_owner_email=previous_owner.email if previous_owner else None,
            new_owner_email=new_owner.email,
            actor_id=self._actor_id(),
        ))
        return new_owner

    # =========================================================================
    # READS
    # =========================================================================

    def ledger_view(self, filters: Optional[SearchFilters] = None) -> LedgerView:
        """Derived view of the active book; empty when no book is open."""
        book = self._state.active_book
        if book is None:
            return LedgerView()
        return compute_ledger_view(book.transactions, filters, self.locale)

    @property
    def search_filters(self) -> SearchFilters:
        """Filters last applied to the active book."""
        book_id = self._state.active_book_id
        if book_id is None:
            return SearchFilters()
        return self._filters.get(book_id, SearchFilters())

    def set_search_filters(self, filters: Optional[SearchFilters]) -> None:
        """Remember filters for the active book only."""
        book_id = self._state.active_book_id
        if book_id is None:
            return
        if filters is None or filters.is_empty:
            self._filters.pop(book_id, None)
        else:
            self._filters[book_id] = filters

    def dashboard(self) -> Optional[BusinessDashboard]:
        business = self._state.active_business
        if business is None:
            return None
        return summarize_business(business)

    def export_pdf(self, filters: Optional[SearchFilters] = None) -> PdfDocument:
        """
        PDF of the active book with the given filters applied.

        Raises:
            ExportError: If there is nothing to export
        """
        book = self._state.active_book
        if book is None:
            raise commands.NotFoundError("No book is open")
        view = compute_ledger_view(book.transactions, filters, self.locale)
        return export_book_pdf(book, view, locale=self.locale, currency=self.currency)

    def recent_activity(self, limit: int = 20) -> list[AuditEvent]:
        return self._audit_logger.recent_events(limit)

    # =========================================================================
    # AI ASSIST
    # =========================================================================

    async def search(self, query: str, today: Optional[date] = None) -> SearchFilters:
        """Natural-language search; never fails, falls back to plain text."""
        filters = await self.assist.parse_search_query(query, today=today)
        self._audit_logger.log_entity_event(
            AuditEventType.SEARCH_PARSED, "query", None,
            "Search query parsed",
            actor_id=self._actor_id(),
            details={"query": query, "active_filters": filters.active_filter_count},
        )
        return filters

    async def summarize_period(
        self,
        book_id: Optional[UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> str:
        """
        AI summary of the active business (or one book) over a period.

        Raises:
            NotFoundError: If no business is active
            GenerationFailure: If the model call fails
        """
        business = self._state.active_business
        if business is None:
            raise commands.NotFoundError("No business is selected")

        transactions = collect_transactions(business, book_id, start_date, end_date)
        try:
            summary = await self.assist.summarize_transactions(transactions)
        except GenerationFailure as e:
            self._audit_logger.log_external_service_error(service="gemini", error_message=str(e))
            raise

        self._audit_logger.log_entity_event(
            AuditEventType.SUMMARY_GENERATED, "business", business.id,
            "Financial summary generated",
            actor_id=self._actor_id(),
            details={"transactions": len(transactions)},
        )
        return summary

    async def expand_description(self, note: str) -> str:
        """
        Raises:
            GenerationFailure: If the model call fails
        """
        try:
            return await self.assist.expand_description(note)
        except GenerationFailure as e:
            self._audit_logger.log_external_service_error(service="gemini", error_message=str(e))
            raise


def create_app_components(use_file_storage: bool = True) -> LedgerController:
    """
    Factory function to create the application controller.

    Args:
        use_file_storage: Persist to the JSON snapshot file from settings.
                          Set to False for an in-memory session.
    """
    settings = get_settings()
    app_settings = settings.app
    configure_logging(debug=app_settings.debug_mode)

    if use_file_storage:
        store = JsonFileKeyValueStore(settings.storage.snapshot_path)
    else:
        store = InMemoryKeyValueStore()

    return LedgerController(
        snapshot_store=SnapshotStore(store),
        audit_logger=AuditLogger(),
        locale=app_settings.locale,
        currency=app_settings.currency,
        max_import_rows=app_settings.max_import_rows,
    )
