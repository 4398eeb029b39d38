"""
Integration tests for LedgerController.

Storage is in memory and the Gemini model is a mock.
"""

import asyncio
from datetime import date
from decimal import Decimal
from typing import Optional

import pytest

from cashflow.audit import AuditLogger
from cashflow.config import ConfigurationError
from cashflow.controller import LedgerController, create_app_components
from cashflow.agents import GenerationFailure
from cashflow.ledger import NotFoundError
from cashflow.models import AppView, AuditEventType, Role, SearchFilters, TransactionType
from cashflow.services import CsvImportError, ExportError
from cashflow.services.storage import (
    InMemoryKeyValueStore,
    KeyValueStore,
    SnapshotStore,
    StorageError,
)

from conftest import make_draft, respond_with


class FailingStore(KeyValueStore):
    """Reads fine, every write fails."""

    def __init__(self):
        self.writes = 0

    def get(self, key: str) -> Optional[str]:
        return None

    def set(self, key: str, value: str) -> None:
        self.writes += 1
        raise StorageError("disk full")

    def remove(self, key: str) -> None:
        raise StorageError("disk full")

    def clear(self) -> None:
        raise StorageError("disk full")


@pytest.fixture
def signed_in(controller):
    controller.signup("Alice", "alice@example.com")
    return controller


@pytest.fixture
def with_book(signed_in):
    book = signed_in.create_book("Main Cashbook")
    signed_in.open_book(book.id)
    return signed_in, book


class TestPersistence:
    """Tests that every command is saved."""

    def test_state_survives_new_controller(self, kv_store, with_book):
        """Test reloading from the same store."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "10", date(2024, 1, 1)))

        reloaded = LedgerController(snapshot_store=SnapshotStore(kv_store))
        assert reloaded.state.is_authenticated
        assert reloaded.state.businesses == controller.state.businesses

    def test_deleted_business_leaves_snapshot(self, kv_store, with_book):
        """Test that cascade deletion reaches storage."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "10", date(2024, 1, 1)))
        controller.delete_business(controller.state.active_business_id)

        reloaded = LedgerController(snapshot_store=SnapshotStore(kv_store))
        assert reloaded.state.businesses == ()
        assert book.name not in (kv_store.get("businesses") or "")

    def test_write_failure_is_swallowed(self):
        """Test that a failed save keeps the session working."""
        store = FailingStore()
        logger = AuditLogger()
        controller = LedgerController(snapshot_store=SnapshotStore(store), audit_logger=logger)

        controller.signup("Alice", "alice@example.com")
        book = controller.create_book("Cash")

        assert store.writes > 0
        assert controller.state.active_business.find_book(book.id) == book
        types = [e.event_type for e in logger.recent_events()]
        assert AuditEventType.SNAPSHOT_SAVE_FAILED in types
        assert AuditEventType.BOOK_CREATED in types


class TestCommands:
    """Tests that controller commands apply ledger rules."""

    def test_every_mutation_is_audited(self, with_book):
        """Test audit events for a transaction lifecycle."""
        controller, book = with_book
        tx = controller.create_transaction(book.id, make_draft("expense", "4", date(2024, 1, 2)))
        controller.update_transaction(book.id, tx.id, make_draft("expense", "5", date(2024, 1, 2)))
        controller.delete_transaction(book.id, tx.id)

        types = [e.event_type for e in controller.recent_activity()]
        assert types[:3] == [
            AuditEventType.TRANSACTION_DELETED,
            AuditEventType.TRANSACTION_UPDATED,
            AuditEventType.TRANSACTION_CREATED,
        ]

    def test_ledger_view_of_open_book(self, with_book):
        """Test the derived view for the active book."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "100", date(2024, 1, 1)))
        controller.create_transaction(book.id, make_draft("expense", "40", date(2024, 1, 2)))

        view = controller.ledger_view()
        assert view.balances == [Decimal("100"), Decimal("60")]
        filtered = controller.ledger_view(SearchFilters(type=TransactionType.EXPENSE))
        assert filtered.filtered_count == 1

    def test_ledger_view_without_book(self, signed_in):
        """Test that no open book gives an empty view."""
        assert signed_in.ledger_view().is_empty

    def test_delete_book_returns_to_dashboard(self, with_book):
        """Test the navigation policy after deleting a book."""
        controller, book = with_book
        controller.delete_book(book.id)
        assert controller.active_book is None
        assert controller.state.active_view == AppView.DASHBOARD

    def test_transfer_ownership_audits_both_owners(self, signed_in):
        """Test the ownership audit event."""
        business_id = signed_in.state.active_business_id
        signed_in.transfer_ownership(business_id, "bob@example.com")

        business = signed_in.active_business
        assert business.owner.email == "bob@example.com"
        event = signed_in.recent_activity(1)[0]
        assert event.event_type == AuditEventType.OWNERSHIP_TRANSFERRED
        assert event.details["previous_owner"] == "alice@example.com"

    def test_team_commands(self, signed_in):
        """Test invite, role change and removal through the controller."""
        member = signed_in.invite_member(signed_in.state.active_business_id, "bob@example.com")
        signed_in.update_member_role(member.id, Role.MANAGER)
        assert signed_in.active_business.find_member(member.id).role == Role.MANAGER
        signed_in.remove_member(member.id)
        assert signed_in.active_business.find_member(member.id) is None

    def test_reinvite_is_not_audited(self, signed_in):
        """Test that inviting a current member records no second invite."""
        business_id = signed_in.state.active_business_id
        first = signed_in.invite_member(business_id, "bob@example.com")
        second = signed_in.invite_member(business_id, "bob@example.com")

        assert second.id == first.id
        assert len(signed_in.active_business.team) == 2
        invites = [
            e for e in signed_in.recent_activity()
            if e.event_type == AuditEventType.MEMBER_INVITED
        ]
        assert len(invites) == 1

    def test_search_filters_are_per_book(self, with_book):
        """Test that a search in one book does not follow into another."""
        controller, first = with_book
        second = controller.create_book("Petty Cash")
        controller.set_search_filters(SearchFilters(text="coffee"))

        controller.open_book(second.id)
        assert controller.search_filters.is_empty

        controller.open_book(first.id)
        assert controller.search_filters.text == "coffee"

        controller.set_search_filters(None)
        assert controller.search_filters.is_empty

    def test_logout_forgets_search_filters(self, with_book):
        """Test that filters do not survive the session."""
        controller, book = with_book
        controller.set_search_filters(SearchFilters(text="rent"))
        controller.logout()
        controller.login("alice@example.com")
        controller.open_book(book.id)
        assert controller.search_filters.is_empty

    def test_dashboard(self, with_book):
        """Test business totals on the dashboard."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "30", date(2024, 1, 1)))
        dashboard = controller.dashboard()
        assert dashboard.totals.net_balance == Decimal("30")
        assert dashboard.books[0].transaction_count == 1

    def test_logout_keeps_data(self, with_book):
        """Test that logout only ends the session."""
        controller, _ = with_book
        controller.logout()
        assert not controller.state.is_authenticated
        assert len(controller.state.businesses) == 1


class TestImportExport:
    """Tests for CSV import and PDF export through the controller."""

    def test_import_csv(self, with_book):
        """Test that readable rows are appended and bad rows reported."""
        controller, book = with_book
        text = (
            "Date,Description,Type,Amount\n"
            "2024-01-01,Sale,income,100\n"
            "2024-01-02,Rent,expense,\"1,200.00\"\n"
            "someday,Broken,income,5\n"
        )
        result = controller.import_csv(book.id, text)

        assert len(result.drafts) == 2
        assert [issue.row for issue in result.issues] == [4]
        assert len(controller.active_book.transactions) == 2
        assert controller.recent_activity(1)[0].event_type == AuditEventType.TRANSACTIONS_IMPORTED

    def test_import_rejects_bad_header(self, with_book):
        """Test that a file without the needed columns is refused and logged."""
        controller, book = with_book
        with pytest.raises(CsvImportError):
            controller.import_csv(book.id, "foo,bar\n1,2\n")
        assert controller.recent_activity(1)[0].event_type == AuditEventType.SYSTEM_ERROR
        assert controller.active_book.transactions == ()

    def test_export_pdf(self, with_book):
        """Test exporting the open book."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "10", date(2024, 1, 1)))
        document = controller.export_pdf()
        assert document.content.startswith(b"%PDF")
        assert document.filename.startswith("transactions-Main_Cashbook-")

    def test_export_empty_book(self, with_book):
        """Test that an empty book cannot be exported."""
        controller, _ = with_book
        with pytest.raises(ExportError):
            controller.export_pdf()


class TestAssist:
    """Tests for AI pass-throughs."""

    def test_summary_of_empty_period_skips_model(self, with_book, fake_model):
        """Test that nothing is sent when there is nothing to analyze."""
        controller, _ = with_book
        summary = asyncio.run(controller.summarize_period())
        assert "no transactions" in summary
        fake_model.generate_content_async.assert_not_called()

    def test_summary_uses_period(self, with_book, fake_model):
        """Test that only transactions in range are sent."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "10", date(2024, 1, 1), "January sale"))
        controller.create_transaction(book.id, make_draft("income", "20", date(2024, 3, 1), "March sale"))
        respond_with(fake_model, "# Financial Summary\nAll good.")

        summary = asyncio.run(
            controller.summarize_period(start_date=date(2024, 2, 1), end_date=date(2024, 3, 31))
        )
        prompt = fake_model.generate_content_async.call_args.args[0]
        assert summary.startswith("# Financial Summary")
        assert "March sale" in prompt
        assert "January sale" not in prompt

    def test_summary_failure_is_logged(self, with_book, fake_model):
        """Test that generation failures reach the caller and the audit log."""
        controller, book = with_book
        controller.create_transaction(book.id, make_draft("income", "10", date(2024, 1, 1)))
        fake_model.generate_content_async.side_effect = RuntimeError("quota exceeded")

        with pytest.raises(GenerationFailure):
            asyncio.run(controller.summarize_period())
        assert controller.recent_activity(1)[0].event_type == AuditEventType.EXTERNAL_SERVICE_ERROR

    def test_summary_requires_business(self, controller):
        """Test the report without a selected business."""
        with pytest.raises(NotFoundError):
            asyncio.run(controller.summarize_period())

    def test_search_falls_back(self, signed_in, fake_model):
        """Test that search never fails."""
        fake_model.generate_content_async.side_effect = RuntimeError("offline")
        filters = asyncio.run(signed_in.search("coffee last week"))
        assert filters == SearchFilters(text="coffee last week")

    def test_missing_api_key(self, monkeypatch, tmp_path):
        """Test that AI features report a missing key."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        monkeypatch.delenv("API_KEY", raising=False)
        monkeypatch.chdir(tmp_path)
        controller = LedgerController(snapshot_store=SnapshotStore(InMemoryKeyValueStore()))
        with pytest.raises(ConfigurationError):
            controller.assist


class TestFactory:
    """Tests for create_app_components."""

    def test_in_memory_components(self, monkeypatch, tmp_path):
        """Test building a throwaway controller."""
        monkeypatch.chdir(tmp_path)
        controller = create_app_components(use_file_storage=False)
        assert isinstance(controller, LedgerController)
        assert not controller.state.is_authenticated

    def test_file_components_use_settings(self, monkeypatch, tmp_path):
        """Test that the snapshot path comes from the environment."""
        path = tmp_path / "data" / "state.json"
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("CASHFLOW_STORAGE_SNAPSHOT_PATH", str(path))
        monkeypatch.setenv("CASHFLOW_CURRENCY", "eur")

        controller = create_app_components()
        controller.signup("Alice", "alice@example.com")
        assert path.exists()
        assert controller.currency == "EUR"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
