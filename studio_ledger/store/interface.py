"""
Abstract Persistence Interface

DESIGN DECISION: We define an abstract interface for remote persistence.
This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory fakes for testing
3. Keep the ledger and conversion logic decoupled from storage

The interface is intentionally generic - one list/insert/update/delete
surface keyed by collection name and record id. The in-memory EntityStore
is the working copy; this is where it is loaded from and written back to.
"""

from abc import ABC, abstractmethod
from uuid import UUID

from pydantic import BaseModel

from studio_ledger.models.audit import AuditEvent


class PersistenceGateway(ABC):
    """
    Abstract interface for remote record storage.

    Any backend (Google Sheets, PostgreSQL, etc.) must implement these methods.
    Records cross this boundary as pydantic models on the way in and as
    plain dicts on the way out; the EntityStore re-validates them on load.
    """

    @abstractmethod
    async def list_records(self, collection: str) -> list[dict]:
        """
        List every record of a collection.

        Args:
            collection: Collection name (e.g. 'projects')

        Returns:
            Raw record payloads in storage order

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def insert_record(self, collection: str, record: BaseModel) -> bool:
        """
        Insert a new record.

        Raises:
            DuplicateError: If a record with the same id exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def update_record(self, collection: str, record: BaseModel) -> bool:
        """
        Replace an existing record.

        Raises:
            NotFoundError: If no record has this id
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_record(self, collection: str, record_id: str) -> bool:
        """
        Delete a record by id.

        Raises:
            NotFoundError: If no record has this id
            StorageError: If the write fails
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one lead conversion).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage or catalog."""

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection}: no record with id {record_id!r}")
        self.collection = collection
        self.record_id = record_id


class DuplicateError(StorageError):
    """
    Attempted to insert a record whose id already exists.

    Ids are generated, so this is a programming error, not a user error.
    """

    def __init__(self, collection: str, record_id: str):
        super().__init__(f"{collection}: id {record_id!r} already present")
        self.collection = collection
        self.record_id = record_id


class BackendUnavailableError(StorageError):
    """Could not connect to storage backend."""
    pass
