#Marks store as a package.
#Re-exports the DocumentStore contract and the in-memory implementation so the
#order core can do `from store import DocumentStore, where`.

from .base import (
    MAX_BATCH_WRITES,
    ORDERS,
    POSITIONS,
    USERS,
    BatchLimitError,
    DocumentNotFoundError,
    DocumentSnapshot,
    DocumentStore,
    FieldFilter,
    StoreError,
    StoreUnavailableError,
    Subscription,
    Transaction,
    TransactionConflictError,
    WriteBatch,
    where,
)
from .memory import InMemoryDocumentStore

__all__ = [
    "MAX_BATCH_WRITES",
    "ORDERS",
    "POSITIONS",
    "USERS",
    "BatchLimitError",
    "DocumentNotFoundError",
    "DocumentSnapshot",
    "DocumentStore",
    "FieldFilter",
    "InMemoryDocumentStore",
    "StoreError",
    "StoreUnavailableError",
    "Subscription",
    "Transaction",
    "TransactionConflictError",
    "WriteBatch",
    "where",
]
