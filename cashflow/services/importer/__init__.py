"""CSV import package."""

from cashflow.services.importer.csv_importer import (
    CsvImportError,
    ImportIssue,
    ImportResult,
    parse_transactions_csv,
)

__all__ = [
    "CsvImportError",
    "ImportIssue",
    "ImportResult",
    "parse_transactions_csv",
]
