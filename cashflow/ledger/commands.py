"""
Ledger Commands

Every mutation of the application state is a pure function:

    new_state = command(old_state, *args)

Commands never touch storage or logging. The controller applies them,
swaps the state, persists it and writes the audit event. This keeps
every rule below testable with plain values.

Commands that create something return (new_state, created_entity).

CRITICAL TEAM RULE: a business team always has exactly one Owner.
check_team_invariants() runs after every command that edits a team.
"""

from datetime import datetime
from typing import Iterable, Optional, Union
from uuid import UUID, uuid4

from cashflow.models.ledger import (
    BOOK_VIEWS,
    AppState,
    AppView,
    Book,
    Business,
    Dialog,
    Role,
    TeamMember,
    Transaction,
    TransactionDraft,
    User,
    utcnow,
)


# Invite target meaning "every business in the tree"
ALL_BUSINESSES = "__ALL_BUSINESSES__"


class LedgerError(Exception):
    """Base exception for rejected ledger commands."""
    pass


class NotAuthenticatedError(LedgerError):
    """The command needs a signed-in user."""
    pass


class NotFoundError(LedgerError):
    """A referenced business, book, transaction or member does not exist."""
    pass


class TeamInvariantError(LedgerError):
    """The command would leave a team without exactly one Owner."""
    pass


# =============================================================================
# LOOKUP HELPERS
# =============================================================================

def _require_user(state: AppState) -> User:
    if not state.is_authenticated or state.current_user is None:
        raise NotAuthenticatedError("Sign in first")
    return state.current_user


def _require_business(state: AppState, business_id: Optional[UUID] = None) -> Business:
    """The given business, or the active one when no id is passed."""
    target_id = business_id or state.active_business_id
    if target_id is None:
        raise NotFoundError("No business selected")
    business = state.find_business(target_id)
    if business is None:
        raise NotFoundError(f"Business not found: {target_id}")
    return business


def _require_book(business: Business, book_id: UUID) -> Book:
    book = business.find_book(book_id)
    if book is None:
        raise NotFoundError(f"Book not found: {book_id}")
    return book


def _require_member(business: Business, member_id: UUID) -> TeamMember:
    member = business.find_member(member_id)
    if member is None:
        raise NotFoundError(f"Team member not found: {member_id}")
    return member


def check_team_invariants(business: Business) -> None:
    """
    Raise TeamInvariantError unless the team is non-empty
    and has exactly one Owner.
    """
    if not business.team:
        raise TeamInvariantError(f"Business '{business.name}' has no team members")
    owner_count = len(business.owners)
    if owner_count != 1:
        raise TeamInvariantError(
            f"Business '{business.name}' must have exactly one Owner, found {owner_count}"
        )


def _new_business(name: str, owner: User) -> Business:
    business = Business(
        name=name,
        team=(TeamMember.from_user(owner, Role.OWNER),),
    )
    check_team_invariants(business)
    return business


# =============================================================================
# SESSION
# =============================================================================

def signup(state: AppState, full_name: str, email: str) -> tuple[AppState, User]:
    """
    Mock signup: create a user and a fresh business they own.

    No credential is checked. Existing businesses are kept; the
    new one becomes active.
    """
    user = User(name=full_name, email=email)
    business = _new_business(f"{user.name}'s Business", user)

    new_state = AppState(
        is_authenticated=True,
        current_user=user,
        businesses=state.businesses + (business,),
        active_business_id=business.id,
    )
    return new_state, user


def login(state: AppState, email: str) -> tuple[AppState, User]:
    """
    Mock login: no password, the email is trusted.

    - No businesses at all: create a starter business owned by the user
    - Email on some team: activate the first such business and reuse
      that membership's id and name
    - Otherwise: activate the first business
    """
    email = email.strip()
    member_business: Optional[Business] = None
    member: Optional[TeamMember] = None
    for business in state.businesses:
        member = business.find_member_by_email(email)
        if member is not None:
            member_business = business
            break

    if member is not None:
        user = User(id=member.id, name=member.name, email=member.email)
    else:
        user = User(name=User.name_from_email(email), email=email)

    businesses = state.businesses
    if not businesses:
        starter = _new_business(f"{user.name}'s Business", user)
        businesses = (starter,)
        active = starter
    else:
        active = member_business or businesses[0]

    new_state = AppState(
        is_authenticated=True,
        current_user=user,
        businesses=businesses,
        active_business_id=active.id,
    )
    return new_state, user


def logout(state: AppState) -> AppState:
    """Close the session. Business data stays in the tree."""
    return AppState(businesses=state.businesses)


# =============================================================================
# NAVIGATION
# =============================================================================

def select_view(state: AppState, view: AppView) -> AppState:
    """Switch screens. Leaving the book screens clears the active book."""
    update: dict = {"active_view": view}
    if view not in BOOK_VIEWS:
        update["active_book_id"] = None
    return state.model_copy(update=update)


def select_business(state: AppState, business_id: UUID) -> AppState:
    business = _require_business(state, business_id)
    return state.model_copy(update={
        "active_business_id": business.id,
        "active_book_id": None,
        "active_view": AppView.DASHBOARD,
    })


def open_book(state: AppState, book_id: UUID) -> AppState:
    """Select a book of the active business and show its transactions."""
    book = _require_book(_require_business(state), book_id)
    return state.model_copy(update={
        "active_book_id": book.id,
        "active_view": AppView.TRANSACTIONS,
    })


def open_dialog(state: AppState, dialog: Dialog) -> AppState:
    return state.model_copy(update={"dialog": dialog})


def close_dialog(state: AppState) -> AppState:
    return state.model_copy(update={"dialog": None})


# =============================================================================
# BUSINESSES
# =============================================================================

def create_business(state: AppState, name: str) -> tuple[AppState, Business]:
    """Create a business owned by the current user and make it active."""
    user = _require_user(state)
    business = _new_business(name, user)
    new_state = state.model_copy(update={
        "businesses": state.businesses + (business,),
        "active_business_id": business.id,
        "active_book_id": None,
        "active_view": AppView.DASHBOARD,
        "dialog": None,
    })
    return new_state, business


def update_business(state: AppState, business_id: UUID, name: str) -> AppState:
    business = _require_business(state, business_id)
    renamed = Business(**{**business.model_dump(), "name": name})
    return state.replace_business(renamed).model_copy(update={"dialog": None})


def delete_business(state: AppState, business_id: UUID) -> AppState:
    """
    Delete a business with all of its books and transactions.

    If it was active, the first remaining business becomes active,
    or nothing is selected when none remain.
    """
    business = _require_business(state, business_id)
    remaining = tuple(b for b in state.businesses if b.id != business.id)

    update: dict = {"businesses": remaining, "dialog": None}
    if state.active_business_id == business.id:
        update["active_business_id"] = remaining[0].id if remaining else None
        update["active_book_id"] = None
        update["active_view"] = AppView.DASHBOARD
    return state.model_copy(update=update)


# =============================================================================
# BOOKS
# =============================================================================

def create_book(state: AppState, name: str) -> tuple[AppState, Book]:
    """Add an empty book to the active business."""
    business = _require_business(state)
    book = Book(name=name)
    updated = business.model_copy(update={"books": business.books + (book,)})
    new_state = state.replace_business(updated).model_copy(update={"dialog": None})
    return new_state, book


def update_book(state: AppState, book_id: UUID, name: str) -> AppState:
    business = _require_business(state)
    book = _require_book(business, book_id)
    renamed = Book(**{**book.model_dump(), "name": name})
    return state.replace_business(business.replace_book(renamed)).model_copy(
        update={"dialog": None}
    )


def delete_book(state: AppState, book_id: UUID) -> AppState:
    """Delete a book and its transactions, then go back to the dashboard."""
    business = _require_business(state)
    _require_book(business, book_id)
    updated = business.model_copy(update={
        "books": tuple(b for b in business.books if b.id != book_id),
    })
    return state.replace_business(updated).model_copy(update={
        "active_book_id": None,
        "active_view": AppView.DASHBOARD,
        "dialog": None,
    })


# =============================================================================
# TRANSACTIONS
# =============================================================================

def _with_transactions(
    state: AppState,
    business: Business,
    book: Book,
    transactions: tuple[Transaction, ...],
) -> AppState:
    updated_book = book.model_copy(update={"transactions": transactions})
    return state.replace_business(business.replace_book(updated_book)).model_copy(
        update={"dialog": None}
    )


def create_transaction(
    state: AppState,
    book_id: UUID,
    draft: TransactionDraft,
    now: Optional[datetime] = None,
) -> tuple[AppState, Transaction]:
    """Append a transaction authored by the current user."""
    user = _require_user(state)
    business = _require_business(state)
    book = _require_book(business, book_id)

    tx = Transaction.from_draft(draft, user, entry_timestamp=now)
    new_state = _with_transactions(state, business, book, book.transactions + (tx,))
    return new_state, tx


def update_transaction(
    state: AppState,
    book_id: UUID,
    transaction_id: UUID,
    draft: TransactionDraft,
) -> AppState:
    """Edit a transaction in place. Id and authorship are kept."""
    business = _require_business(state)
    book = _require_book(business, book_id)
    if book.find_transaction(transaction_id) is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    transactions = tuple(
        tx.with_draft(draft) if tx.id == transaction_id else tx
        for tx in book.transactions
    )
    return _with_transactions(state, business, book, transactions)


def delete_transaction(state: AppState, book_id: UUID, transaction_id: UUID) -> AppState:
    business = _require_business(state)
    book = _require_book(business, book_id)
    if book.find_transaction(transaction_id) is None:
        raise NotFoundError(f"Transaction not found: {transaction_id}")

    transactions = tuple(tx for tx in book.transactions if tx.id != transaction_id)
    return _with_transactions(state, business, book, transactions)


def import_transactions(
    state: AppState,
    book_id: UUID,
    drafts: Iterable[TransactionDraft],
    now: Optional[datetime] = None,
) -> tuple[AppState, tuple[Transaction, ...]]:
    """
    Append many transactions in ONE state transition.

    Each gets its own uuid4, so ids cannot collide however fast
    the import runs. All share the same entry timestamp.
    """
    user = _require_user(state)
    business = _require_business(state)
    book = _require_book(business, book_id)

    stamp = now or utcnow()
    imported = tuple(Transaction.from_draft(d, user, entry_timestamp=stamp) for d in drafts)
    new_state = _with_transactions(state, business, book, book.transactions + imported)
    return new_state, imported


# =============================================================================
# TEAM
# =============================================================================

def _replace_team(
    state: AppState,
    business: Business,
    team: tuple[TeamMember, ...],
) -> AppState:
    updated = business.model_copy(update={"team": team})
    check_team_invariants(updated)
    return state.replace_business(updated)


def invite_member(
    state: AppState,
    business_id: Union[UUID, str],
    email: str,
    role: Role = Role.MEMBER,
) -> tuple[AppState, TeamMember]:
    """
    Add a member to one business, or to every business with ALL_BUSINESSES.

    Businesses where the email is already on the team are left alone.
    When every target already has the email, the existing member of the
    first target is returned and no team changes.
    Ownership cannot be granted by invite; use transfer_ownership.
    """
    _require_user(state)
    if role == Role.OWNER:
        raise TeamInvariantError("Cannot invite an Owner; transfer ownership instead")

    if business_id == ALL_BUSINESSES:
        targets = [b.id for b in state.businesses]
    else:
        targets = [_require_business(state, business_id).id]

    email = email.strip()
    member = TeamMember(name=User.name_from_email(email), email=email, role=role)

    new_state = state
    existing = None
    added = False
    for target_id in targets:
        business = new_state.find_business(target_id)
        found = business.find_member_by_email(email)
        if found is not None:
            existing = existing or found
            continue
        new_state = _replace_team(new_state, business, business.team + (member,))
        added = True

    if not added and existing is not None:
        member = existing
    return new_state.model_copy(update={"dialog": None}), member


def update_member_role(
    state: AppState,
    member_id: UUID,
    role: Role,
    business_id: Optional[UUID] = None,
) -> AppState:
    """Switch a member between Manager and Member."""
    business = _require_business(state, business_id)
    member = _require_member(business, member_id)
    if role == Role.OWNER:
        raise TeamInvariantError("Use transfer_ownership to make someone Owner")
    if member.role == Role.OWNER:
        raise TeamInvariantError("The Owner's role changes only through an ownership transfer")

    team = tuple(
        m.model_copy(update={"role": role}) if m.id == member_id else m
        for m in business.team
    )
    return _replace_team(state, business, team)


def remove_member(
    state: AppState,
    member_id: UUID,
    business_id: Optional[UUID] = None,
) -> AppState:
    """Remove a member. The Owner must transfer ownership before leaving."""
    business = _require_business(state, business_id)
    member = _require_member(business, member_id)
    if member.role == Role.OWNER:
        raise TeamInvariantError("Cannot remove the Owner; transfer ownership first")

    team = tuple(m for m in business.team if m.id != member_id)
    return _replace_team(state, business, team).model_copy(update={"dialog": None})


def transfer_ownership(
    state: AppState,
    business_id: UUID,
    email: str,
) -> tuple[AppState, TeamMember]:
    """
    Make the member with this email the Owner.

    - Existing member: promoted to Owner
    - Unknown email: added as a new Owner member
    In both cases the previous Owner becomes a Manager, so exactly one
    Owner remains and the team grows by at most one.
    """
    _require_user(state)
    business = _require_business(state, business_id)
    email = email.strip()
    target = business.find_member_by_email(email)

    if target is not None and target.role == Role.OWNER:
        return state.model_copy(update={"dialog": None}), target

    def demote(member: TeamMember) -> TeamMember:
        if member.role == Role.OWNER:
            return member.model_copy(update={"role": Role.MANAGER})
        return member

    if target is not None:
        new_owner = target.model_copy(update={"role": Role.OWNER})
        team = tuple(
            new_owner if m.id == target.id else demote(m)
            for m in business.team
        )
    else:
        new_owner = TeamMember(
            id=uuid4(),
            name=User.name_from_email(email),
            email=email,
            role=Role.OWNER,
        )
        team = tuple(demote(m) for m in business.team) + (new_owner,)

    new_state = _replace_team(state, business, team).model_copy(update={"dialog": None})
    return new_state, new_owner
