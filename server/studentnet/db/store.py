# StudentNetwork/server/studentnet/db/store.py

"""
Document store interface used by every service.

The services never talk to a driver directly: they describe reads as
(collection, predicates, order_by) and writes as field operations, and a
backend (MongoDB via Motor, or the in-process MemoryDocumentStore) executes
them. This keeps the social-graph logic testable without a live database.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Tuple, Union


class _ServerTimestamp:
    """Sentinel: the backend replaces it with its own current time on write."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


# --- Field-level update operators ---
@dataclass(frozen=True)
class ArrayUnion:
    values: Tuple[Any, ...]

    def __init__(self, *values: Any):
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class ArrayRemove:
    values: Tuple[Any, ...]

    def __init__(self, *values: Any):
        object.__setattr__(self, "values", tuple(values))


@dataclass(frozen=True)
class Increment:
    amount: Union[int, float] = 1


# --- Queries ---
PredicateOp = Literal["==", "!=", "array-contains", "in"]
Direction = Literal["asc", "desc"]
ASC: Direction = "asc"
DESC: Direction = "desc"


@dataclass(frozen=True)
class Predicate:
    field: str
    op: PredicateOp
    value: Any


def where(field_name: str, op: PredicateOp, value: Any) -> Predicate:
    return Predicate(field_name, op, value)


@dataclass(frozen=True)
class OrderBy:
    field: str
    direction: Direction = ASC


@dataclass
class Document:
    id: str
    data: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Data with the id folded in, ready for model validation."""
        return {**self.data, "id": self.id}


# --- Batch operations ---
@dataclass
class PutOp:
    collection: str
    doc_id: str
    fields: Dict[str, Any]


@dataclass
class UpdateOp:
    collection: str
    doc_id: str
    field_ops: Dict[str, Any]


@dataclass
class DeleteOp:
    collection: str
    doc_id: str


BatchOp = Union[PutOp, UpdateOp, DeleteOp]
SnapshotCallback = Callable[[List[Document]], None]
ErrorCallback = Callable[[Exception], None]
Unsubscribe = Callable[[], None]


@dataclass
class Query:
    """A reusable read description, shared by one-shot and live reads."""
    collection: str
    predicates: Sequence[Predicate] = field(default_factory=tuple)
    order_by: Sequence[OrderBy] = field(default_factory=tuple)
    limit: Optional[int] = None


class DocumentStore(ABC):
    """
    Generic real-time document store.

    Write methods raise WriteError, read methods raise StoreError; both are
    propagated unmodified by the services.
    """

    @abstractmethod
    def new_id(self) -> str:
        """Fresh, insertion-ordered document id."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Returns the document or None when it does not exist."""

    @abstractmethod
    async def put(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Create-or-replace."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, field_ops: Dict[str, Any]) -> None:
        """Applies field operations to an existing document (WriteError if missing)."""

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        ...

    @abstractmethod
    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Sequence[OrderBy] = (),
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    @abstractmethod
    async def subscribe(
        self,
        collection: str,
        predicates: Sequence[Predicate],
        order_by: Sequence[OrderBy],
        on_change: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        """
        Standing query. `on_change` receives the full ordered result set,
        first immediately and then every time it changes. Calling the
        returned function stops delivery.
        """

    @abstractmethod
    async def batch(self, operations: Sequence[BatchOp]) -> None:
        """Applies every operation atomically, or none of them (WriteError)."""

    async def run(self, query: Query) -> List[Document]:
        return await self.query(query.collection, query.predicates, query.order_by, query.limit)

    async def watch(
        self,
        query: Query,
        on_change: SnapshotCallback,
        on_error: Optional[ErrorCallback] = None,
    ) -> Unsubscribe:
        return await self.subscribe(query.collection, query.predicates, query.order_by, on_change, on_error)
