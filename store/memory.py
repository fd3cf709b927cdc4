"""
Purpose: In-process DocumentStore used by tests, scripts and local runs.
What it does:
- Keeps documents per (collection, id) with a version number per document
- Runs transactions optimistically: read versions are checked at commit and
  the transaction function is re-run on conflict (like the managed store)
- Pushes snapshot events to document and query subscriptions after each commit
- Yields to the event loop on every call so concurrent clients interleave

Rule: Semantics only. No order rules live here.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar

from .base import (
    MAX_BATCH_WRITES,
    BatchLimitError,
    DocumentNotFoundError,
    DocumentSnapshot,
    FieldFilter,
    StoreError,
    StoreUnavailableError,
    TransactionConflictError,
)

T = TypeVar("T")
Key = Tuple[str, str]
Write = Tuple[str, Key, Optional[Dict[str, Any]]]

logger = logging.getLogger(__name__)

_CLOSED = object()


class QueueSubscription:
    """
    Snapshot stream backed by an asyncio.Queue.
    Events are DocumentSnapshot (document listeners) or List[DocumentSnapshot]
    (query listeners).
    """

    def __init__(self, on_close: Callable[["QueueSubscription"], None]):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._on_close = on_close
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def push(self, event: Any) -> None:
        if not self._closed:
            self._queue.put_nowait(event)

    def __aiter__(self) -> "QueueSubscription":
        return self

    async def __anext__(self) -> Any:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        event = await self._queue.get()
        if event is _CLOSED:
            raise StopAsyncIteration
        return event

    async def poll(self, timeout: Optional[float]) -> List[Any]:
        """
        Wait up to `timeout` seconds for at least one event, then drain
        whatever else is already queued. Returns [] on timeout.
        """
        if self._closed and self._queue.empty():
            return []

        try:
            first = await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return []

        events = []
        pending = [first]
        while not self._queue.empty():
            pending.append(self._queue.get_nowait())

        for event in pending:
            if event is _CLOSED:
                break
            events.append(event)
        return events

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(_CLOSED)
        self._on_close(self)


class InMemoryTransaction:
    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self.reads: Dict[Key, int] = {}
        self.writes: List[Write] = []

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        snapshot = await self._store.get(collection, doc_id)
        self.reads.setdefault((collection, doc_id), snapshot.version)
        return snapshot

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self.writes.append(("set", (collection, doc_id), data))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.writes.append(("update", (collection, doc_id), fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self.writes.append(("delete", (collection, doc_id), None))


class InMemoryWriteBatch:
    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._writes: List[Write] = []
        self._committed = False

    def _add(self, write: Write) -> None:
        if self._committed:
            raise StoreError("Write batch already committed.")
        if len(self._writes) >= MAX_BATCH_WRITES:
            raise BatchLimitError(f"A write batch holds at most {MAX_BATCH_WRITES} operations.")
        self._writes.append(write)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        self._add(("set", (collection, doc_id), data))

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self._add(("update", (collection, doc_id), fields))

    def delete(self, collection: str, doc_id: str) -> None:
        self._add(("delete", (collection, doc_id), None))

    def __len__(self) -> int:
        return len(self._writes)

    async def commit(self) -> None:
        if self._committed:
            raise StoreError("Write batch already committed.")
        await self._store._io()
        self._store._apply(self._writes)
        self._committed = True


class InMemoryDocumentStore:
    """
    Dict-backed document store.

    Set `available = False` to make every call fail with StoreUnavailableError,
    which is how tests model a dropped connection.
    """

    def __init__(self, *, max_attempts: int = 5):
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.available = True

        self._docs: Dict[Key, Dict[str, Any]] = {}
        self._versions: Dict[Key, int] = {}
        self._clock = 0

        self._doc_listeners: Dict[Key, List[QueueSubscription]] = {}
        self._query_listeners: List[Tuple[str, Tuple[FieldFilter, ...], QueueSubscription]] = []

    # --- internals ---

    async def _io(self) -> None:
        if not self.available:
            raise StoreUnavailableError("Document store is unavailable.")
        # every round trip is a suspension point
        await asyncio.sleep(0)

    def _snapshot(self, key: Key) -> DocumentSnapshot:
        data = self._docs.get(key)
        return DocumentSnapshot(
            collection=key[0],
            id=key[1],
            data=copy.deepcopy(data) if data is not None else None,
            version=self._versions.get(key, 0),
        )

    def _select(
        self,
        collection: str,
        filters: Sequence[FieldFilter],
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        keys = [
            key for key, data in self._docs.items()
            if key[0] == collection and all(f.matches(data) for f in filters)
        ]
        snapshots = [self._snapshot(key) for key in keys]

        if order_by is not None:
            # documents without the ordering field are left out, like the managed store does
            snapshots = [s for s in snapshots if s.data.get(order_by) is not None]
            snapshots.sort(key=lambda s: s.data[order_by], reverse=descending)

        if limit is not None:
            snapshots = snapshots[:limit]
        return snapshots

    def _apply(self, writes: Sequence[Write]) -> None:
        """
        Validates and applies a group of writes. Nothing awaits in here, so the
        whole group lands atomically with respect to other coroutines.
        """
        staged: Dict[Key, Optional[Dict[str, Any]]] = {}
        for op, key, data in writes:
            current = staged[key] if key in staged else self._docs.get(key)
            if op == "set":
                staged[key] = copy.deepcopy(data)
            elif op == "update":
                if current is None:
                    raise DocumentNotFoundError(f"{key[0]}/{key[1]} does not exist.")
                merged = dict(current)
                merged.update(copy.deepcopy(data))
                staged[key] = merged
            elif op == "delete":
                staged[key] = None
            else:
                raise StoreError(f"Unknown write operation: {op}")

        for key, data in staged.items():
            self._clock += 1
            self._versions[key] = self._clock
            if data is None:
                self._docs.pop(key, None)
            else:
                self._docs[key] = data

        self._notify(staged.keys())

    def _notify(self, keys) -> None:
        touched_collections = set()
        for key in keys:
            touched_collections.add(key[0])
            for subscription in list(self._doc_listeners.get(key, [])):
                subscription.push(self._snapshot(key))

        for collection, filters, subscription in list(self._query_listeners):
            if collection in touched_collections:
                subscription.push(self._select(collection, filters))

    def _drop_doc_listener(self, key: Key, subscription: QueueSubscription) -> None:
        listeners = self._doc_listeners.get(key, [])
        if subscription in listeners:
            listeners.remove(subscription)

    def _drop_query_listener(self, subscription: QueueSubscription) -> None:
        self._query_listeners = [
            entry for entry in self._query_listeners if entry[2] is not subscription
        ]

    # --- Public API ---

    async def get(self, collection: str, doc_id: str) -> DocumentSnapshot:
        await self._io()
        return self._snapshot((collection, doc_id))

    async def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        await self._io()
        self._apply([("set", (collection, doc_id), data)])

    async def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        await self._io()
        self._apply([("update", (collection, doc_id), fields)])

    async def delete(self, collection: str, doc_id: str) -> None:
        await self._io()
        self._apply([("delete", (collection, doc_id), None)])

    async def query(
        self,
        collection: str,
        filters: Sequence[FieldFilter] = (),
        *,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[DocumentSnapshot]:
        await self._io()
        return self._select(collection, filters, order_by, descending, limit)

    async def run_transaction(self, fn: Callable[[InMemoryTransaction], Awaitable[T]]) -> T:
        for attempt in range(1, self.max_attempts + 1):
            tx = InMemoryTransaction(self)
            result = await fn(tx)

            await self._io()
            stale = [
                key for key, version in tx.reads.items()
                if self._versions.get(key, 0) != version
            ]
            if not stale:
                if tx.writes:
                    self._apply(tx.writes)
                return result

            logger.debug(
                "Transaction conflict on %s (attempt %d/%d), retrying",
                ["/".join(key) for key in stale], attempt, self.max_attempts,
            )

        raise TransactionConflictError(
            f"Transaction did not commit after {self.max_attempts} attempts."
        )

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    def listen(self, collection: str, doc_id: str) -> QueueSubscription:
        if not self.available:
            raise StoreUnavailableError("Document store is unavailable.")
        key = (collection, doc_id)
        subscription = QueueSubscription(lambda sub: self._drop_doc_listener(key, sub))
        self._doc_listeners.setdefault(key, []).append(subscription)
        subscription.push(self._snapshot(key))
        return subscription

    def listen_query(self, collection: str, filters: Sequence[FieldFilter] = ()) -> QueueSubscription:
        if not self.available:
            raise StoreUnavailableError("Document store is unavailable.")
        frozen_filters = tuple(filters)
        subscription = QueueSubscription(self._drop_query_listener)
        self._query_listeners.append((collection, frozen_filters, subscription))
        subscription.push(self._select(collection, frozen_filters))
        return subscription
