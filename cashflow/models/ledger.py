"""
Core Data Models for Cashflow

These models define the entity tree: Business -> Book -> Transaction,
plus the team that collaborates on each business.

DESIGN DECISION: Every model is frozen and every collection is a tuple.
A command never edits the tree in place; it builds a new tree with
model_copy(update=...). The previous tree stays valid, so readers
holding it never see a half-applied change.

Derived values (running balance, totals) are NOT stored here.
They live in the view models at the bottom and are recomputed on read.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    """Timezone-aware current time, used for entry timestamps."""
    return datetime.now(timezone.utc)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class Role(str, Enum):
    """
    Team roles within a business.

    INVARIANT: every business has exactly one OWNER.
    Ownership only moves through an explicit transfer.
    """
    OWNER = "Owner"
    MANAGER = "Manager"
    MEMBER = "Member"


class TransactionType(str, Enum):
    """
    Cash-flow direction.

    DESIGN DECISION: amounts are never negative.
    The type alone decides whether money comes in or goes out.
    """
    INCOME = "income"
    EXPENSE = "expense"


class AppView(str, Enum):
    """Screens the controller can route to."""
    DASHBOARD = "dashboard"
    TRANSACTIONS = "transactions"
    BOOK_SETTINGS = "book-settings"
    USERS = "users"
    REPORTS = "reports"
    SETTINGS = "settings"


# Views that keep the active book selected
BOOK_VIEWS = frozenset({AppView.TRANSACTIONS, AppView.BOOK_SETTINGS})


class Dialog(str, Enum):
    """The modal dialog currently open, if any."""
    CREATE_BUSINESS = "create_business"
    EDIT_BUSINESS = "edit_business"
    CREATE_BOOK = "create_book"
    EDIT_BOOK = "edit_book"
    CREATE_TRANSACTION = "create_transaction"
    EDIT_TRANSACTION = "edit_transaction"
    INVITE_MEMBER = "invite_member"
    TRANSFER_OWNERSHIP = "transfer_ownership"
    UPLOAD_TRANSACTIONS = "upload_transactions"
    CONFIRM_DELETE = "confirm_delete"


# =============================================================================
# IDENTITY & TEAM
# =============================================================================

class User(BaseModel):
    """
    The signed-in identity.

    Login is mocked: there is no password, only a name and email.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)

    @field_validator('email')
    @classmethod
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValueError(f"Not an email address: {v}")
        return v

    @staticmethod
    def name_from_email(email: str) -> str:
        """Mock display name: the local part of the address."""
        return email.split("@")[0] or email


class TeamMember(BaseModel):
    """A user's membership in one business team."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=3, max_length=320)
    role: Role = Role.MEMBER

    @classmethod
    def from_user(cls, user: User, role: Role) -> "TeamMember":
        return cls(id=user.id, name=user.name, email=user.email, role=role)

    def has_email(self, email: str) -> bool:
        return self.email.lower() == email.strip().lower()


# =============================================================================
# LEDGER TREE
# =============================================================================

class TransactionDraft(BaseModel):
    """
    The user-editable part of a transaction.

    Create, edit and import all start from a draft. Identity and
    authorship are stamped on by the ledger commands, never by the user.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Non-negative amount; direction comes from type"
    )
    description: str = Field(default="", max_length=500)
    date: date


class Transaction(BaseModel):
    """
    A single income or expense entry in a book.

    The id never changes once created. Everything else can be edited.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    type: TransactionType
    amount: Decimal = Field(..., ge=0, decimal_places=2)
    description: str = Field(default="", max_length=500)
    date: date

    # Authorship
    creator_id: Optional[UUID] = None
    creator_name: Optional[str] = None
    entry_timestamp: Optional[datetime] = None

    @property
    def is_income(self) -> bool:
        return self.type == TransactionType.INCOME

    @property
    def signed_amount(self) -> Decimal:
        """Effect on the running balance."""
        return self.amount if self.is_income else -self.amount

    @classmethod
    def from_draft(
        cls,
        draft: TransactionDraft,
        creator: User,
        entry_timestamp: Optional[datetime] = None,
    ) -> "Transaction":
        return cls(
            type=draft.type,
            amount=draft.amount,
            description=draft.description,
            date=draft.date,
            creator_id=creator.id,
            creator_name=creator.name,
            entry_timestamp=entry_timestamp or utcnow(),
        )

    def with_draft(self, draft: TransactionDraft) -> "Transaction":
        """Apply an edit, keeping id and authorship."""
        return self.model_copy(update={
            "type": draft.type,
            "amount": draft.amount,
            "description": draft.description,
            "date": draft.date,
        })


class Book(BaseModel):
    """A named ledger of transactions, owned by exactly one business."""
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    transactions: tuple[Transaction, ...] = ()

    def find_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        for tx in self.transactions:
            if tx.id == transaction_id:
                return tx
        return None


class Business(BaseModel):
    """
    Top-level tenant: owns books and a team.

    Deleting a business deletes everything underneath it.
    """
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    name: str = Field(..., min_length=1, max_length=200)
    books: tuple[Book, ...] = ()
    team: tuple[TeamMember, ...] = ()

    @property
    def owners(self) -> list[TeamMember]:
        return [m for m in self.team if m.role == Role.OWNER]

    @property
    def owner(self) -> Optional[TeamMember]:
        owners = self.owners
        return owners[0] if owners else None

    @property
    def transaction_count(self) -> int:
        return sum(len(book.transactions) for book in self.books)

    def find_book(self, book_id: UUID) -> Optional[Book]:
        for book in self.books:
            if book.id == book_id:
                return book
        return None

    def find_member(self, member_id: UUID) -> Optional[TeamMember]:
        for member in self.team:
            if member.id == member_id:
                return member
        return None

    def find_member_by_email(self, email: str) -> Optional[TeamMember]:
        for member in self.team:
            if member.has_email(email):
                return member
        return None

    def replace_book(self, book: Book) -> "Business":
        return self.model_copy(update={
            "books": tuple(book if b.id == book.id else b for b in self.books),
        })


# =============================================================================
# SEARCH FILTERS
# =============================================================================

class SearchFilters(BaseModel):
    """
    Structured filter applied to a book's transactions.

    Produced either by the user directly or by the AI query parser.
    Serialized with camelCase aliases (startDate, minAmount, ...) because
    that is the schema the language model is asked to fill.

    Every field is optional. A transaction passes only if it matches
    ALL fields that are present.
    """
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    text: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    type: Optional[TransactionType] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None

    @field_validator('text')
    @classmethod
    def blank_text_is_absent(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def active_filter_count(self) -> int:
        return sum(
            1 for value in self.model_dump().values() if value is not None
        )

    @property
    def is_empty(self) -> bool:
        return self.active_filter_count == 0


# =============================================================================
# DERIVED VIEW MODELS (never persisted)
# =============================================================================

class LedgerEntry(BaseModel):
    """A transaction annotated with the running balance after it."""
    model_config = ConfigDict(frozen=True)

    transaction: Transaction
    balance: Decimal


class TransactionGroup(BaseModel):
    """Entries sharing one calendar date, labelled for display."""
    model_config = ConfigDict(frozen=True)

    label: str
    date: date
    entries: tuple[LedgerEntry, ...]


class LedgerSummary(BaseModel):
    """Totals over the filtered transaction set."""
    model_config = ConfigDict(frozen=True)

    total_income: Decimal = Decimal("0")
    total_expense: Decimal = Decimal("0")

    @property
    def net_balance(self) -> Decimal:
        return self.total_income - self.total_expense


class LedgerView(BaseModel):
    """
    Everything a transactions page needs for one book.

    chronological: oldest first, as walked for the running balance
    groups: newest date first, for display
    """
    model_config = ConfigDict(frozen=True)

    chronological: tuple[LedgerEntry, ...] = ()
    groups: tuple[TransactionGroup, ...] = ()
    summary: LedgerSummary = Field(default_factory=LedgerSummary)
    filtered_count: int = Field(default=0, ge=0)
    total_count: int = Field(default=0, ge=0)

    @property
    def balances(self) -> list[Decimal]:
        """Running balances in chronological order."""
        return [entry.balance for entry in self.chronological]

    @property
    def is_empty(self) -> bool:
        return self.filtered_count == 0


# =============================================================================
# APPLICATION STATE
# =============================================================================

class AppState(BaseModel):
    """
    The whole application state: entity tree plus selection cursors.

    The controller holds exactly one of these and swaps it
    atomically after every command.
    """
    model_config = ConfigDict(frozen=True)

    is_authenticated: bool = False
    current_user: Optional[User] = None
    businesses: tuple[Business, ...] = ()

    # Cursors
    active_business_id: Optional[UUID] = None
    active_book_id: Optional[UUID] = None
    active_view: AppView = AppView.DASHBOARD
    dialog: Optional[Dialog] = None

    def find_business(self, business_id: UUID) -> Optional[Business]:
        for business in self.businesses:
            if business.id == business_id:
                return business
        return None

    @property
    def active_business(self) -> Optional[Business]:
        if self.active_business_id is None:
            return None
        return self.find_business(self.active_business_id)

    @property
    def active_book(self) -> Optional[Book]:
        business = self.active_business
        if business is None or self.active_book_id is None:
            return None
        return business.find_book(self.active_book_id)

    def replace_business(self, business: Business) -> "AppState":
        return self.model_copy(update={
            "businesses": tuple(
                business if b.id == business.id else b for b in self.businesses
            ),
        })
