"""Services package."""

from cashflow.services.export import (
    ExportError,
    PdfDocument,
    export_book_pdf,
)
from cashflow.services.importer import (
    CsvImportError,
    ImportIssue,
    ImportResult,
    parse_transactions_csv,
)
from cashflow.services.storage import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    PersistenceCorruption,
    SnapshotStore,
    StorageError,
)

__all__ = [
    # Export
    "ExportError",
    "PdfDocument",
    "export_book_pdf",
    # Import
    "CsvImportError",
    "ImportIssue",
    "ImportResult",
    "parse_transactions_csv",
    # Storage
    "InMemoryKeyValueStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "PersistenceCorruption",
    "SnapshotStore",
    "StorageError",
]
