# StudentNetwork/server/studentnet/db/memory.py

import copy
import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

from bson import ObjectId

from studentnet.core.exceptions import StoreError, WriteError
from studentnet.db.store import (
    ArrayRemove,
    ArrayUnion,
    BatchOp,
    DeleteOp,
    Document,
    DocumentStore,
    ErrorCallback,
    Increment,
    OrderBy,
    Predicate,
    PutOp,
    SERVER_TIMESTAMP,
    SnapshotCallback,
    Unsubscribe,
    UpdateOp,
)

logger = logging.getLogger(__name__)

_MISSING = object()


@dataclass
class _Record:
    seq: int
    data: Dict[str, Any]


@dataclass
class _Listener:
    collection: str
    predicates: Sequence[Predicate]
    order_by: Sequence[OrderBy]
    on_change: SnapshotCallback
    on_error: Optional[ErrorCallback]
    last: Optional[List[tuple]] = None
    active: bool = True


@dataclass
class _Failure:
    op: str
    collection: Optional[str]
    remaining: int


# --- Field path helpers ---
def get_path(data: Dict[str, Any], path: str, default: Any = None) -> Any:
    current: Any = data
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def _set_path(data: Dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value


def _resolve_timestamps(value: Any, now: datetime) -> Any:
    if value is SERVER_TIMESTAMP:
        return now
    if isinstance(value, dict):
        return {k: _resolve_timestamps(v, now) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_timestamps(v, now) for v in value]
    return value


def apply_field_ops(data: Dict[str, Any], field_ops: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Returns a new dict with the operators applied; `data` is left untouched."""
    result = copy.deepcopy(data)
    for path, op in field_ops.items():
        current = get_path(result, path, _MISSING)
        if isinstance(op, Increment):
            base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
            _set_path(result, path, base + op.amount)
        elif isinstance(op, ArrayUnion):
            items = list(current) if isinstance(current, list) else []
            for value in op.values:
                if value not in items:
                    items.append(value)
            _set_path(result, path, items)
        elif isinstance(op, ArrayRemove):
            items = list(current) if isinstance(current, list) else []
            _set_path(result, path, [v for v in items if v not in op.values])
        else:
            _set_path(result, path, copy.deepcopy(_resolve_timestamps(op, now)))
    return result


def matches(data: Dict[str, Any], predicates: Sequence[Predicate]) -> bool:
    for predicate in predicates:
        value = get_path(data, predicate.field, _MISSING)
        if predicate.op == "==":
            if value is _MISSING or value != predicate.value:
                return False
        elif predicate.op == "!=":
            if value is not _MISSING and value == predicate.value:
                return False
        elif predicate.op == "array-contains":
            if not isinstance(value, list) or predicate.value not in value:
                return False
        elif predicate.op == "in":
            if value is _MISSING or value not in predicate.value:
                return False
        else:
            raise ValueError(f"Unsupported predicate operator: {predicate.op}")
    return True


def _sort_key(field_name: str):
    def key(item):
        value = get_path(item[1].data, field_name)
        return (value is not None, value)
    return key


class MemoryDocumentStore(DocumentStore):
    """
    In-process DocumentStore.

    Server timestamps are strictly increasing, batches are staged on a copy
    and committed only when every operation succeeded, and subscribers are
    called synchronously after each commit that changes their result set.
    `fail_on` injects store failures for tests.
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, _Record]] = {}
        self._listeners: List[_Listener] = []
        self._failures: List[_Failure] = []
        self._next_seq = 0
        self._last_ts: Optional[datetime] = None
        self.op_counts: Counter = Counter()

    # --- Failure injection ---
    def fail_on(self, op: str, collection: Optional[str] = None, call_number: int = 1) -> None:
        """
        Make the `call_number`-th future `op` ("get", "query", "put", "update",
        "delete") on `collection` (any collection when None) fail. Operations
        inside a batch are counted one by one.
        """
        if call_number < 1:
            raise ValueError("call_number starts at 1")
        self._failures.append(_Failure(op=op, collection=collection, remaining=call_number))

    def _check_failure(self, op: str, collection: str) -> None:
        self.op_counts[(op, collection)] += 1
        for failure in list(self._failures):
            if failure.op != op or (failure.collection is not None and failure.collection != collection):
                continue
            failure.remaining -= 1
            if failure.remaining == 0:
                self._failures.remove(failure)
                logger.warning(f"Injected failure for {op} on '{collection}'")
                error_cls = StoreError if op in ("get", "query") else WriteError
                raise error_cls(f"Injected {op} failure on '{collection}'", operation=op, collection=collection)

    # --- Clock / ids ---
    def _server_now(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_ts is not None and now <= self._last_ts:
            now = self._last_ts + timedelta(microseconds=1)
        self._last_ts = now
        return now

    def new_id(self) -> str:
        return str(ObjectId())

    # --- Reads ---
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        self._check_failure("get", collection)
        record = self._collections.get(collection, {}).get(doc_id)
        if record is None:
            return None
        return Document(id=doc_id, data=copy.deepcopy(record.data))

    def _select(self, collections, collection, predicates, order_by, limit=None) -> List[Document]:
        items = [
            (doc_id, record)
            for doc_id, record in collections.get(collection, {}).items()
            if matches(record.data, predicates)
        ]
        items.sort(key=lambda item: item[1].seq)
        for order in reversed(list(order_by)):
            items.sort(key=_sort_key(order.field), reverse=order.direction == "desc")
        if limit is not None:
            items = items[:limit]
        return [Document(id=doc_id, data=copy.deepcopy(record.data)) for doc_id, record in items]

    async def query(self, collection, predicates=(), order_by=(), limit=None) -> List[Document]:
        self._check_failure("query", collection)
        return self._select(self._collections, collection, predicates, order_by, limit)

    # --- Writes ---
    def _apply(self, staged: Dict[str, Dict[str, _Record]], op: BatchOp, now: datetime) -> None:
        docs = staged.setdefault(op.collection, {})
        if isinstance(op, PutOp):
            self._check_failure("put", op.collection)
            existing = docs.get(op.doc_id)
            seq = existing.seq if existing is not None else self._take_seq()
            docs[op.doc_id] = _Record(seq=seq, data=copy.deepcopy(_resolve_timestamps(op.fields, now)))
        elif isinstance(op, UpdateOp):
            self._check_failure("update", op.collection)
            existing = docs.get(op.doc_id)
            if existing is None:
                raise WriteError(
                    f"Cannot update missing document '{op.collection}/{op.doc_id}'",
                    operation="update", collection=op.collection,
                )
            docs[op.doc_id] = _Record(seq=existing.seq, data=apply_field_ops(existing.data, op.field_ops, now))
        elif isinstance(op, DeleteOp):
            self._check_failure("delete", op.collection)
            docs.pop(op.doc_id, None)
        else:
            raise TypeError(f"Unknown batch operation: {op!r}")

    def _take_seq(self) -> int:
        self._next_seq += 1
        return self._next_seq

    def _commit(self, operations: Sequence[BatchOp]) -> None:
        now = self._server_now()
        staged = {name: dict(docs) for name, docs in self._collections.items()}
        for op in operations:
            self._apply(staged, op, now)
        self._collections = staged
        self._notify({op.collection for op in operations})

    async def put(self, collection, doc_id, fields) -> None:
        self._commit([PutOp(collection, doc_id, fields)])

    async def update(self, collection, doc_id, field_ops) -> None:
        self._commit([UpdateOp(collection, doc_id, field_ops)])

    async def delete(self, collection, doc_id) -> None:
        self._commit([DeleteOp(collection, doc_id)])

    async def batch(self, operations: Sequence[BatchOp]) -> None:
        if not operations:
            return
        self._commit(list(operations))

    # --- Subscriptions ---
    def _deliver(self, listener: _Listener) -> None:
        docs = self._select(self._collections, listener.collection, listener.predicates, listener.order_by)
        fingerprint = [(d.id, d.data) for d in docs]
        if fingerprint == listener.last:
            return
        listener.last = fingerprint
        try:
            listener.on_change(docs)
        except Exception as e:
            logger.error(f"Subscriber on '{listener.collection}' raised: {e}", exc_info=True)
            if listener.on_error is not None:
                listener.on_error(e)

    def _notify(self, collections: set) -> None:
        for listener in list(self._listeners):
            if listener.active and listener.collection in collections:
                self._deliver(listener)

    async def subscribe(self, collection, predicates, order_by, on_change, on_error=None) -> Unsubscribe:
        self._check_failure("query", collection)
        listener = _Listener(
            collection=collection,
            predicates=tuple(predicates),
            order_by=tuple(order_by),
            on_change=on_change,
            on_error=on_error,
        )
        self._listeners.append(listener)
        self._deliver(listener)

        def unsubscribe() -> None:
            listener.active = False
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def drop_subscriptions(self, collection: str) -> int:
        """
        Ends every subscription on `collection` the way a lost change stream
        would: each gets a StoreError through its on_error and no more snapshots.
        """
        dropped = [entry for entry in self._listeners if entry.active and entry.collection == collection]
        for listener in dropped:
            listener.active = False
            self._listeners.remove(listener)
        for listener in dropped:
            if listener.on_error is not None:
                listener.on_error(StoreError(
                    f"Subscription on '{collection}' lost", operation="subscribe", collection=collection
                ))
        logger.warning(f"Dropped {len(dropped)} subscriptions on '{collection}'")
        return len(dropped)

    @property
    def listener_count(self) -> int:
        return len(self._listeners)
