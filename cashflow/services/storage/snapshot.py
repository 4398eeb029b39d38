"""
Snapshot Persistence

Maps the application state onto a handful of keys in a KeyValueStore:

    isAuthenticated   "true" when a session is open
    currentUser       the signed-in User as JSON
    businesses        the whole business tree as JSON
    activeBusinessId  the selected business

DESIGN DECISION: The full tree is written on every save.
There is no diffing and no write-ahead log. A crash between a
command and its save loses that one command, nothing more.

Malformed stored data is never partially trusted: if any key fails
to parse or validate, the whole store is cleared and the app starts
from an empty state.
"""

from typing import Optional
from uuid import UUID

import structlog
from pydantic import TypeAdapter, ValidationError

from cashflow.models.ledger import AppState, Business, User
from cashflow.services.storage.interface import (
    KeyValueStore,
    PersistenceCorruption,
    StorageError,
)


KEY_AUTHENTICATED = "isAuthenticated"
KEY_CURRENT_USER = "currentUser"
KEY_BUSINESSES = "businesses"
KEY_ACTIVE_BUSINESS = "activeBusinessId"

_businesses_adapter = TypeAdapter(tuple[Business, ...])

logger = structlog.get_logger(__name__)


class SnapshotStore:
    """Loads and saves AppState snapshots through a KeyValueStore."""

    def __init__(self, store: KeyValueStore):
        self._store = store

    @property
    def store(self) -> KeyValueStore:
        return self._store

    def _read_state(self) -> AppState:
        """
        Parse every persisted key.

        Raises:
            PersistenceCorruption: If any stored value is malformed
            StorageError: If the store cannot be read
        """
        raw_businesses = self._store.get(KEY_BUSINESSES)
        raw_user = self._store.get(KEY_CURRENT_USER)
        raw_active = self._store.get(KEY_ACTIVE_BUSINESS)
        authenticated = self._store.get(KEY_AUTHENTICATED) == "true"

        try:
            businesses = (
                _businesses_adapter.validate_json(raw_businesses)
                if raw_businesses else ()
            )
            user = User.model_validate_json(raw_user) if raw_user else None
            active_id = UUID(raw_active) if raw_active else None
        except (ValidationError, ValueError) as e:
            raise PersistenceCorruption(f"Stored snapshot is malformed: {e}")

        if not authenticated or user is None:
            # Business data outlives the session; identity does not
            return AppState(businesses=businesses)

        active: Optional[Business] = None
        if active_id is not None:
            active = next((b for b in businesses if b.id == active_id), None)
        if active is None and businesses:
            active = businesses[0]

        return AppState(
            is_authenticated=True,
            current_user=user,
            businesses=businesses,
            active_business_id=active.id if active else None,
        )

    def load(self) -> AppState:
        """
        Load the persisted state.

        Never raises: corrupted data is discarded and an unreadable
        store yields an empty state for this session.
        """
        try:
            state = self._read_state()
        except PersistenceCorruption as e:
            logger.warning("snapshot_discarded", error=str(e))
            try:
                self._store.clear()
            except StorageError as clear_error:
                logger.error("snapshot_clear_failed", error=str(clear_error))
            return AppState()
        except StorageError as e:
            logger.error("snapshot_load_failed", error=str(e))
            return AppState()

        logger.info(
            "snapshot_loaded",
            authenticated=state.is_authenticated,
            business_count=len(state.businesses),
        )
        return state

    def save(self, state: AppState) -> None:
        """
        Persist the full snapshot.

        Raises:
            StorageError: If any key cannot be written
        """
        self._store.set(
            KEY_BUSINESSES,
            _businesses_adapter.dump_json(state.businesses).decode("utf-8"),
        )

        if state.active_business_id is not None:
            self._store.set(KEY_ACTIVE_BUSINESS, str(state.active_business_id))
        else:
            self._store.remove(KEY_ACTIVE_BUSINESS)

        if state.is_authenticated and state.current_user is not None:
            self._store.set(KEY_CURRENT_USER, state.current_user.model_dump_json())
            self._store.set(KEY_AUTHENTICATED, "true")
        else:
            self._store.remove(KEY_CURRENT_USER)
            self._store.remove(KEY_AUTHENTICATED)
