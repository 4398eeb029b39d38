"""Shared fixtures. No fixture touches the network."""

from datetime import date, datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from cashflow.agents import AssistAgent
from cashflow.audit import AuditLogger
from cashflow.config import GeminiSettings
from cashflow.controller import LedgerController
from cashflow.ledger import commands
from cashflow.models import (
    AppState,
    Transaction,
    TransactionDraft,
    TransactionType,
)
from cashflow.services.storage import InMemoryKeyValueStore, SnapshotStore


FIXED_NOW = datetime(2024, 1, 10, 12, 0, tzinfo=timezone.utc)


def make_draft(tx_type: str, amount: str, day: date, description: str = "") -> TransactionDraft:
    return TransactionDraft(
        type=TransactionType(tx_type),
        amount=Decimal(amount),
        description=description,
        date=day,
    )


def make_transaction(tx_type: str, amount: str, day: date, description: str = "") -> Transaction:
    return Transaction(
        type=TransactionType(tx_type),
        amount=Decimal(amount),
        description=description,
        date=day,
    )


@pytest.fixture
def sample_transactions() -> list[Transaction]:
    """Income 100, expense 40, income 10 on three consecutive days."""
    return [
        make_transaction("income", "100", date(2024, 1, 1), "Client payment"),
        make_transaction("expense", "40", date(2024, 1, 2), "Office coffee"),
        make_transaction("income", "10", date(2024, 1, 3), "Refund"),
    ]


@pytest.fixture
def signed_in_state() -> AppState:
    """Alice signed up; her business is active and has no books."""
    state, _ = commands.signup(AppState(), "Alice", "alice@example.com")
    return state


@pytest.fixture
def state_with_book(signed_in_state):
    """(state, book) with one empty book in Alice's business."""
    return commands.create_book(signed_in_state, "Main Cashbook")


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def gemini_settings() -> GeminiSettings:
    return GeminiSettings(api_key="test-key")


@pytest.fixture
def fake_model() -> MagicMock:
    """Stands in for genai.GenerativeModel."""
    model = MagicMock()
    model.generate_content_async = AsyncMock()
    return model


def respond_with(model: MagicMock, text: str) -> None:
    response = MagicMock()
    response.text = text
    model.generate_content_async.return_value = response


@pytest.fixture
def assist_agent(gemini_settings, fake_model) -> AssistAgent:
    return AssistAgent(settings=gemini_settings, model=fake_model)


@pytest.fixture
def controller(kv_store, assist_agent) -> LedgerController:
    return LedgerController(
        snapshot_store=SnapshotStore(kv_store),
        audit_logger=AuditLogger(),
        assist_agent=assist_agent,
    )
