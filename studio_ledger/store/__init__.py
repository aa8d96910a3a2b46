"""
Storage Package

The in-memory EntityStore is the working copy of every collection.
The PersistenceGateway is where it is loaded from and written back to;
Google Sheets is the current backend, but it is designed to be swappable.
"""

from studio_ledger.store.interface import (
    AuditStorageInterface,
    BackendUnavailableError,
    DuplicateError,
    NotFoundError,
    PersistenceGateway,
    StorageError,
)
from studio_ledger.store.entity_store import (
    COLLECTION_MODELS,
    ChangeOperation,
    ChangeSet,
    ChangeStep,
    Collection,
    EntityStore,
)
from studio_ledger.store.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsGateway,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PersistenceGateway",
    # Exceptions
    "BackendUnavailableError",
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory store
    "COLLECTION_MODELS",
    "ChangeOperation",
    "ChangeSet",
    "ChangeStep",
    "Collection",
    "EntityStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsGateway",
]
