# StudentNetwork/server/studentnet/db/mongodb.py

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

# Import settings for configuration
from studentnet.core.config import settings
from studentnet.core.exceptions import StoreError, WriteError
from studentnet.db.store import (
    ArrayRemove,
    ArrayUnion,
    BatchOp,
    DeleteOp,
    Document,
    DocumentStore,
    Increment,
    OrderBy,
    Predicate,
    PutOp,
    SERVER_TIMESTAMP,
    Unsubscribe,
    UpdateOp,
)

logger = logging.getLogger(__name__)


class MongoDB:
    """
    Singleton class to manage the MongoDB connection lifecycle.
    """
    client: Optional[AsyncIOMotorClient]
    db: Optional[AsyncIOMotorDatabase]

    def __init__(self):
        """Initializes the MongoDB manager with None client/db."""
        self.client = None
        self.db = None
        self.mongodb_url = settings.MONGODB_URL
        self.mongodb_db_name = settings.MONGODB_DB
        logger.info("MongoDB manager initialized.")

    async def connect(self):
        """
        Establishes connection to MongoDB using settings.
        Raises an exception if the connection fails.
        """
        if self.client is not None:
            logger.warning("Connection attempt ignored, MongoDB client already initialized.")
            return

        if not self.mongodb_url or not self.mongodb_db_name:
            logger.error("MONGODB_URL or MONGODB_DB not configured in settings.")
            raise ValueError("MongoDB connection details missing in settings.")

        try:
            logger.info(f"Attempting to connect to MongoDB at {self.mongodb_url}...")
            self.client = AsyncIOMotorClient(
                self.mongodb_url,
                serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
                connectTimeoutMS=settings.MONGODB_CONNECT_TIMEOUT_MS,
                tz_aware=True,
            )
            await self.client.admin.command('ping')
            self.db = self.client[self.mongodb_db_name]
            logger.info(f"MongoDB connection successful. Database '{self.mongodb_db_name}' is ready.")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}", exc_info=True)
            self.client = None
            self.db = None
            raise

    async def ensure_indexes(self):
        """Indexes backing the live queries of the social-graph services."""
        db = self.get_db()
        await db[settings.MONGODB_COLLECTION_CHATS].create_index(
            [("participants", ASCENDING), ("last_message_time", DESCENDING)])
        await db[settings.MONGODB_COLLECTION_MESSAGES].create_index(
            [("thread_id", ASCENDING), ("timestamp", ASCENDING)])
        await db[settings.MONGODB_COLLECTION_MESSAGES].create_index(
            [("thread_id", ASCENDING), ("read", ASCENDING)])
        await db[settings.MONGODB_COLLECTION_NOTIFICATIONS].create_index(
            [("user_id", ASCENDING), ("read", ASCENDING), ("timestamp", DESCENDING)])
        await db[settings.MONGODB_COLLECTION_CONNECTIONS].create_index(
            [("users", ASCENDING), ("status", ASCENDING), ("connected_at", DESCENDING)])
        await db[settings.MONGODB_COLLECTION_CONNECTION_REQUESTS].create_index(
            [("receiver_id", ASCENDING), ("status", ASCENDING), ("sent_at", DESCENDING)])
        logger.info("MongoDB indexes ensured.")

    async def close(self):
        """Closes the MongoDB connection and resets client/db attributes."""
        if self.client:
            self.client.close()
            self.client = None
            self.db = None
            logger.info("MongoDB connection closed.")
        else:
            logger.info("No active MongoDB connection to close.")

    def get_db(self) -> AsyncIOMotorDatabase:
        """
        Returns the database instance.

        Raises:
            RuntimeError: If the database is not connected (self.db is None).
        """
        if self.db is None:
            logger.critical("get_db called but database is not connected/initialized.")
            raise RuntimeError("Database not connected. Ensure connect() was called and succeeded during application startup.")
        return self.db


# --- Translation helpers ---
def to_filter(predicates: Sequence[Predicate]) -> Dict[str, Any]:
    query: Dict[str, Any] = {}
    for predicate in predicates:
        if predicate.op in ("==", "array-contains"):
            # Mongo equality on an array field already means "contains"
            condition: Any = predicate.value
        elif predicate.op == "!=":
            condition = {"$ne": predicate.value}
        elif predicate.op == "in":
            condition = {"$in": list(predicate.value)}
        else:
            raise ValueError(f"Unsupported predicate operator: {predicate.op}")
        if predicate.field in query:
            query.setdefault("$and", []).append({predicate.field: condition})
        else:
            query[predicate.field] = condition
    return query


def to_sort(order_by: Sequence[OrderBy]) -> List[tuple]:
    sort = [(o.field, DESCENDING if o.direction == "desc" else ASCENDING) for o in order_by]
    # ObjectId-derived ids break timestamp ties in insertion order
    sort.append(("_id", ASCENDING))
    return sort


def to_update(field_ops: Dict[str, Any]) -> Dict[str, Any]:
    update: Dict[str, Dict[str, Any]] = {}
    for path, op in field_ops.items():
        if op is SERVER_TIMESTAMP:
            update.setdefault("$currentDate", {})[path] = True
        elif isinstance(op, Increment):
            update.setdefault("$inc", {})[path] = op.amount
        elif isinstance(op, ArrayUnion):
            update.setdefault("$addToSet", {})[path] = {"$each": list(op.values)}
        elif isinstance(op, ArrayRemove):
            update.setdefault("$pull", {})[path] = {"$in": list(op.values)}
        else:
            update.setdefault("$set", {})[path] = op
    return update


def to_replacement_pipeline(doc_id: str, fields: Dict[str, Any]) -> List[Dict[str, Any]]:
    """
    Create-or-replace as an update pipeline, so top-level SERVER_TIMESTAMP
    fields resolve to the server's $$NOW rather than the client clock.
    """
    literal = {"_id": doc_id}
    stamped = {}
    for key, value in fields.items():
        if value is SERVER_TIMESTAMP:
            stamped[key] = "$$NOW"
        else:
            literal[key] = value
    pipeline: List[Dict[str, Any]] = [{"$replaceWith": {"$literal": literal}}]
    if stamped:
        pipeline.append({"$set": stamped})
    return pipeline


def to_document(raw: Dict[str, Any]) -> Document:
    data = dict(raw)
    doc_id = data.pop("_id")
    return Document(id=str(doc_id), data=data)


class MongoDocumentStore(DocumentStore):
    """
    DocumentStore over Motor. Subscriptions use change streams and batches use
    multi-document transactions, so the server must run as a replica set.
    """

    def __init__(self, db: AsyncIOMotorDatabase, client: Optional[AsyncIOMotorClient] = None):
        self.db = db
        self.client = client if client is not None else db.client

    def new_id(self) -> str:
        return str(ObjectId())

    async def get(self, collection, doc_id) -> Optional[Document]:
        try:
            raw = await self.db[collection].find_one({"_id": doc_id})
        except PyMongoError as e:
            logger.error(f"find_one on '{collection}/{doc_id}' failed: {e}", exc_info=True)
            raise StoreError(str(e), operation="get", collection=collection) from e
        return to_document(raw) if raw is not None else None

    async def query(self, collection, predicates=(), order_by=(), limit=None) -> List[Document]:
        try:
            cursor = self.db[collection].find(to_filter(predicates)).sort(to_sort(order_by))
            if limit is not None:
                cursor = cursor.limit(limit)
            docs = await cursor.to_list(length=None)
        except PyMongoError as e:
            logger.error(f"find on '{collection}' failed: {e}", exc_info=True)
            raise StoreError(str(e), operation="query", collection=collection) from e
        return [to_document(raw) for raw in docs]

    async def _apply(self, op: BatchOp, session=None) -> None:
        coll = self.db[op.collection]
        if isinstance(op, PutOp):
            await coll.update_one(
                {"_id": op.doc_id}, to_replacement_pipeline(op.doc_id, op.fields), upsert=True, session=session
            )
        elif isinstance(op, UpdateOp):
            result = await coll.update_one({"_id": op.doc_id}, to_update(op.field_ops), session=session)
            if result.matched_count == 0:
                raise WriteError(
                    f"Cannot update missing document '{op.collection}/{op.doc_id}'",
                    operation="update", collection=op.collection,
                )
        elif isinstance(op, DeleteOp):
            await coll.delete_one({"_id": op.doc_id}, session=session)
        else:
            raise TypeError(f"Unknown batch operation: {op!r}")

    async def _write(self, op: BatchOp) -> None:
        try:
            await self._apply(op)
        except PyMongoError as e:
            logger.error(f"Write to '{op.collection}/{op.doc_id}' failed: {e}", exc_info=True)
            raise WriteError(str(e), operation=type(op).__name__, collection=op.collection) from e

    async def put(self, collection, doc_id, fields) -> None:
        await self._write(PutOp(collection, doc_id, fields))

    async def update(self, collection, doc_id, field_ops) -> None:
        await self._write(UpdateOp(collection, doc_id, field_ops))

    async def delete(self, collection, doc_id) -> None:
        await self._write(DeleteOp(collection, doc_id))

    async def batch(self, operations: Sequence[BatchOp]) -> None:
        if not operations:
            return
        try:
            async with await self.client.start_session() as session:
                async with session.start_transaction():
                    for op in operations:
                        await self._apply(op, session=session)
        except PyMongoError as e:
            logger.error(f"Batch of {len(operations)} operations aborted: {e}", exc_info=True)
            raise WriteError(str(e), operation="batch") from e

    async def subscribe(self, collection, predicates, order_by, on_change, on_error=None) -> Unsubscribe:
        ready: asyncio.Future = asyncio.get_running_loop().create_future()
        task = asyncio.create_task(self._watch(collection, predicates, order_by, on_change, on_error, ready))
        await ready

        def unsubscribe() -> None:
            task.cancel()

        return unsubscribe

    async def _watch(self, collection, predicates, order_by, on_change, on_error, ready) -> None:
        try:
            # Open the stream before the first read so no change falls in between
            async with self.db[collection].watch() as stream:
                on_change(await self.query(collection, predicates, order_by))
                if not ready.done():
                    ready.set_result(None)
                async for _change in stream:
                    on_change(await self.query(collection, predicates, order_by))
        except asyncio.CancelledError:
            raise
        except (PyMongoError, StoreError) as e:
            logger.error(f"Change stream on '{collection}' stopped: {e}", exc_info=True)
            error = e if isinstance(e, StoreError) else StoreError(str(e), operation="subscribe", collection=collection)
            if not ready.done():
                ready.set_exception(error)
            elif on_error is not None:
                on_error(error)
        finally:
            if not ready.done():
                ready.cancel()


# Create a single, globally available instance of the MongoDB manager
mongodb = MongoDB()
