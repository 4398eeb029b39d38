"""
CSV Transaction Import

Turns an uploaded spreadsheet export into TransactionDrafts that the
controller appends to a book in one step.

Accepted layouts (header names are case-insensitive):

    date, description, type, amount
    date, description, cash in, cash out

DESIGN DECISION: Import NEVER silently fixes data.
A row that cannot be read is reported as an ImportIssue and skipped;
the user sees exactly which rows were left out and why.
"""

import csv
import io
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from cashflow.models.ledger import TransactionDraft, TransactionType


DATE_FORMATS = ("%Y-%m-%d", "%d/%m/%Y", "%Y/%m/%d", "%d-%m-%Y")

_HEADER_ALIASES = {
    "date": "date",
    "description": "description",
    "details": "description",
    "note": "description",
    "type": "type",
    "amount": "amount",
    "cash in": "cash_in",
    "cash_in": "cash_in",
    "income": "cash_in",
    "cash out": "cash_out",
    "cash_out": "cash_out",
    "expense": "cash_out",
}

_TYPE_ALIASES = {
    "income": TransactionType.INCOME,
    "in": TransactionType.INCOME,
    "credit": TransactionType.INCOME,
    "expense": TransactionType.EXPENSE,
    "out": TransactionType.EXPENSE,
    "debit": TransactionType.EXPENSE,
}


class CsvImportError(Exception):
    """The file as a whole cannot be imported."""
    pass


class ImportIssue(BaseModel):
    """A single row that was skipped."""

    row: int = Field(..., ge=1, description="1-based line number in the file")
    message: str


class ImportResult(BaseModel):
    """Parsed drafts plus everything that was skipped."""

    drafts: list[TransactionDraft] = Field(default_factory=list)
    issues: list[ImportIssue] = Field(default_factory=list)

    @property
    def has_issues(self) -> bool:
        return bool(self.issues)


def parse_date(value: str) -> date:
    value = value.strip()
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unrecognized date: '{value}'")


def parse_amount(value: str) -> Optional[Decimal]:
    """'1,234.50' -> Decimal('1234.50'); blank or '-' -> None."""
    cleaned = value.strip().replace(",", "").replace(" ", "")
    if cleaned in ("", "-"):
        return None
    try:
        parsed = Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"Unrecognized amount: '{value}'")
    # NaN and Infinity parse as Decimals but are not amounts
    if not parsed.is_finite():
        raise ValueError(f"Unrecognized amount: '{value}'")
    return parsed.quantize(Decimal("0.01"))


def _normalize_headers(fieldnames: list[str]) -> dict[str, str]:
    """Map canonical column name -> header as written in the file."""
    columns = {}
    for name in fieldnames:
        canonical = _HEADER_ALIASES.get(name.strip().lower())
        if canonical and canonical not in columns:
            columns[canonical] = name
    return columns


def _row_to_draft(row: dict, columns: dict[str, str]) -> TransactionDraft:
    def cell(column: str) -> str:
        header = columns.get(column)
        return (row.get(header) or "") if header else ""

    tx_date = parse_date(cell("date"))
    description = cell("description").strip()

    if "amount" in columns:
        amount = parse_amount(cell("amount"))
        if amount is None:
            raise ValueError("Amount is empty")
        raw_type = cell("type").strip().lower()
        if raw_type:
            tx_type = _TYPE_ALIASES.get(raw_type)
            if tx_type is None:
                raise ValueError(f"Unknown type: '{raw_type}'")
        else:
            # No type column: the sign carries the direction
            tx_type = TransactionType.EXPENSE if amount < 0 else TransactionType.INCOME
        amount = abs(amount)
    else:
        cash_in = parse_amount(cell("cash_in"))
        cash_out = parse_amount(cell("cash_out"))
        if cash_in is not None and cash_out is not None:
            raise ValueError("Both cash in and cash out are filled")
        if cash_in is not None:
            tx_type, amount = TransactionType.INCOME, cash_in
        elif cash_out is not None:
            tx_type, amount = TransactionType.EXPENSE, cash_out
        else:
            raise ValueError("Neither cash in nor cash out is filled")

    return TransactionDraft(
        type=tx_type,
        amount=amount,
        description=description,
        date=tx_date,
    )


def parse_transactions_csv(text: str, max_rows: int = 5000) -> ImportResult:
    """
    Parse CSV text into transaction drafts.

    Raises:
        CsvImportError: If the header is missing required columns
                        or the file has more than max_rows data rows
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise CsvImportError("The file is empty")

    columns = _normalize_headers(reader.fieldnames)
    if "date" not in columns:
        raise CsvImportError("Missing a 'date' column")
    if "amount" not in columns and not ({"cash_in", "cash_out"} & columns.keys()):
        raise CsvImportError("Need an 'amount' column or 'cash in' / 'cash out' columns")

    result = ImportResult()
    for index, row in enumerate(reader):
        line = index + 2  # header is line 1
        if index >= max_rows:
            raise CsvImportError(f"Too many rows; the limit is {max_rows}")
        if not any((value or "").strip() for value in row.values() if isinstance(value, str)):
            continue
        try:
            result.drafts.append(_row_to_draft(row, columns))
        except (ValueError, ValidationError) as e:
            result.issues.append(ImportIssue(row=line, message=str(e)))

    return result
