"""
Purpose: Contract for the document store the order core runs against.
What it does:
- Defines the snapshot / filter / transaction / batch / subscription shapes
- Defines the store error taxonomy (transient vs. missing vs. conflict)

Rule: No order rules here. The order core only talks to a DocumentStore.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import (
    Any,
    AsyncIterator,
    Awaitable,
    Callable,
    Dict,
    List,
    Optional,
    Protocol,
    Sequence,
    TypeVar,
)

T = TypeVar("T")

ORDERS = "orders"
POSITIONS = "positions"
USERS = "users"

# Hard limit of the backing store for a single write batch.
MAX_BATCH_WRITES = 500


class StoreError(Exception):
    """Base class for every failure raised by a document store."""
    pass


class StoreUnavailableError(StoreError):
    """Transient I/O failure: the store (or the network to it) is not reachable."""
    pass


class DocumentNotFoundError(StoreError):
    """Raised by update() when the target document does not exist."""
    pass


class TransactionConflictError(StoreError):
    """Raised when a transaction could not commit within its retry budget."""
    pass


class BatchLimitError(StoreError):
    """Raised when a write batch grows past MAX_BATCH_WRITES."""
    pass


@dataclass(frozen=True)
class DocumentSnapshot:
    """
    A point-in-time copy of one document.
    `data` is None when the document does not exist.
    """
    collection: str
    id: str
    data: Optional[Dict[str, Any]]
    version: int = 0

    @property
    def exists(self) -> bool:
        return self.data is not None

    def get(self, field: str, default: Any = None) -> Any:
        if self.data is None:
            return default
        return self.data.get(field, default)


@dataclass(frozen=True)
class FieldFilter:
    field: str
    op: str
    value: Any

    def matches(self, data: Dict[str, Any]) -> bool:
        if self.field not in data:
            return False
        current = data[self.field]

        if self.op == "==":
            return current == self.value
        if self.op == "in":
            return current in self.value

        # range comparisons never match across incompatible types
        try:
            if self.op == "<":
                return current < self.value
            if self.op == "<=":
                return current <= self.value
            if self.op == ">":
                return current > self.value
            if self.op == ">=":
                return current >= self.value
        except TypeError:
            return False

        raise ValueError(f"Unsupported filter operator: {self.op}")


def where(field: str, op: str, value: Any) -> FieldFilter:
    return FieldFilter(field=field, op=op, value=value)


class Transaction(Protocol):
    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...


class WriteBatch(Protocol):
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def __len__(self) -> int: ...

    async def commit(self) -> None: ...


class Subscription(Protocol):
    """
    Lazy stream of snapshot events for one document or one query.
    A closed subscription cannot be reopened; open a new one instead.
    """

    def __aiter__(self) -> AsyncIterator[Any]: ...

    async def __anext__(self) -> Any: ...

    @property
    def closed(self) -> bool: ...

    async def poll(self, timeout: Optional[float]) -> List[Any]: ...

    def close(self) -> None: ...


class DocumentStore(Protocol):
    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot: ...

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None: ...

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None: ...

    async def delete(self, collection: str, doc_id: str) -> None: ...

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]: ...

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T: ...

    def batch(self) -> WriteBatch: ...

    def listen(self, collection: str, doc_id: str) -> Subscription: ...

    def listen_query(self, collection: str, filters: Sequence[FieldFilter] = ()) -> Subscription: ...
