"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract key-value interface for persistence.
This allows us to:
1. Swap the local JSON file for another backend later
2. Use in-memory storage for testing
3. Keep the snapshot format decoupled from where bytes live

The interface is intentionally tiny - string keys, string values,
the same shape as browser local storage.
"""

from abc import ABC, abstractmethod
from typing import Optional


class KeyValueStore(ABC):
    """
    Abstract interface for a durable key-value substrate.

    Values are opaque strings (the snapshot layer stores JSON in them).
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a value.

        Returns:
            The stored string, or None if the key is missing

        Raises:
            PersistenceCorruption: If the backing data is unreadable
            StorageError: If the backend cannot be read at all
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key. Missing keys are ignored."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Delete every key."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class PersistenceCorruption(StorageError):
    """Stored data exists but cannot be parsed or validated."""
    pass
