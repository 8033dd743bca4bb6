# StudentNetwork/server/studentnet/services/connection_service.py

import logging
from typing import Callable, List, Optional

from studentnet.core.config import settings
from studentnet.core.exceptions import InvalidTransitionError, NotFoundError
from studentnet.core.ids import pair_key, request_key
from studentnet.db.live import LiveQuery
from studentnet.db.store import (
    DESC,
    BatchOp,
    DocumentStore,
    OrderBy,
    PutOp,
    Query,
    SERVER_TIMESTAMP,
    UpdateOp,
    where,
)
from studentnet.models.connection import Connection, ConnectionRequest, ConnectionStatus
from studentnet.models.user import User
from studentnet.services.notification_service import NotificationService
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)


def _to_connections(docs) -> List[Connection]:
    return [Connection.model_validate(d.to_dict()) for d in docs]


class ConnectionService:
    """
    Connection-request lifecycle and the undirected connection graph.

    Requests live at request_key(sender, receiver) and connections at
    pair_key(a, b). Because both sides compute the same ids, concurrent or
    repeated writes land on the same documents instead of creating duplicates.
    Multi-document changes are issued as one atomic store batch.
    """

    def __init__(
        self,
        store: DocumentStore,
        users: Optional[UserService] = None,
        notifications: Optional[NotificationService] = None,
    ):
        self.store = store
        self.users = users if users is not None else UserService(store)
        # None disables fan-out entirely
        self.notifications = notifications
        self.request_collection = settings.MONGODB_COLLECTION_CONNECTION_REQUESTS
        self.connection_collection = settings.MONGODB_COLLECTION_CONNECTIONS

    @staticmethod
    def connection_id(user_a: str, user_b: str) -> str:
        return pair_key(user_a, user_b)

    async def _get_request(self, sender_id: str, receiver_id: str) -> Optional[ConnectionRequest]:
        doc = await self.store.get(self.request_collection, request_key(sender_id, receiver_id))
        return ConnectionRequest.model_validate(doc.to_dict()) if doc is not None else None

    async def get_connection(self, connection_id: str) -> Connection:
        doc = await self.store.get(self.connection_collection, connection_id)
        if doc is None:
            raise NotFoundError("Connection", connection_id)
        return Connection.model_validate(doc.to_dict())

    async def request_connection(self, current_user: User, to_user_id: str) -> ConnectionRequest:
        """Sender asks receiver to connect. Re-sending overwrites the same request document."""
        req_id = request_key(current_user.id, to_user_id)
        receiver = await self.users.get_user(to_user_id)
        previous = await self._get_request(current_user.id, to_user_id)

        logger.info(f"Creating connection request {req_id}")
        ops: List[BatchOp] = [PutOp(self.request_collection, req_id, {
            "sender_id": current_user.id,
            "sender_name": current_user.display_name,
            "sender_photo": current_user.photo_url,
            "receiver_id": receiver.id,
            "receiver_name": receiver.display_name,
            "receiver_photo": receiver.photo_url,
            "status": "pending",
            "sent_at": SERVER_TIMESTAMP,
        })]
        already_pending = previous is not None and previous.status == "pending"
        if self.notifications is not None and settings.NOTIFY_ON_CONNECTION_REQUEST and not already_pending:
            ops.append(self.notifications.emit_op(receiver.id, "connection_request", {
                "sender_id": current_user.id,
                "sender_name": current_user.display_name,
                "sender_photo": current_user.photo_url,
                "message": f"{current_user.display_name} wants to connect with you",
            }))
        await self.store.batch(ops)

        created = await self._get_request(current_user.id, to_user_id)
        if created is None:
            raise NotFoundError("ConnectionRequest", req_id)
        return created

    async def get_status(self, user_a: str, user_b: str) -> ConnectionStatus:
        """Relationship of user_a towards user_b. Read-only."""
        await self.users.get_user(user_b)
        conn_doc = await self.store.get(self.connection_collection, pair_key(user_a, user_b))
        if conn_doc is not None and conn_doc.data.get("status") == "accepted":
            return "connected"
        outgoing = await self._get_request(user_a, user_b)
        if outgoing is not None and outgoing.status == "pending":
            return "pending_outgoing"
        incoming = await self._get_request(user_b, user_a)
        if incoming is not None and incoming.status == "pending":
            return "pending_incoming"
        return "none"

    async def accept(self, from_user_id: str, current_user: User) -> Connection:
        """
        Receiver (current_user) accepts the request from `from_user_id`.
        The request update and the connection document are written together.
        """
        req_id = request_key(from_user_id, current_user.id)
        request = await self._get_request(from_user_id, current_user.id)
        if request is None:
            logger.error(f"Connection request {req_id} not found for receiver {current_user.id}.")
            raise NotFoundError("ConnectionRequest", req_id)

        conn_id = pair_key(from_user_id, current_user.id)
        if request.status == "accepted":
            existing = await self.store.get(self.connection_collection, conn_id)
            if existing is not None and existing.data.get("status") == "accepted":
                logger.info(f"Request {req_id} already accepted, returning connection {conn_id}")
                return Connection.model_validate(existing.to_dict())
            # reconnecting after a removal needs a fresh request
            logger.warning(f"Request {req_id} was accepted before and its connection is gone")
            raise InvalidTransitionError(f"Connection request {req_id} was already used; send a new request.")
        if request.status == "declined":
            raise InvalidTransitionError(f"Connection request {req_id} was declined.")

        requester = await self.users.get_user(from_user_id)
        logger.info(f"User {current_user.id} accepting connection request {req_id}")
        ops: List[BatchOp] = [
            UpdateOp(self.request_collection, req_id, {
                "status": "accepted",
                "accepted_at": SERVER_TIMESTAMP,
            }),
            PutOp(self.connection_collection, conn_id, {
                "users": sorted([requester.id, current_user.id]),
                "user_names": {
                    requester.id: requester.display_name,
                    current_user.id: current_user.display_name,
                },
                "user_photos": {
                    requester.id: requester.photo_url,
                    current_user.id: current_user.photo_url,
                },
                "status": "accepted",
                "connected_at": SERVER_TIMESTAMP,
            }),
        ]
        if self.notifications is not None and settings.NOTIFY_ON_CONNECTION_ACCEPTED:
            ops.append(self.notifications.emit_op(requester.id, "connection_accepted", {
                "sender_id": current_user.id,
                "sender_name": current_user.display_name,
                "sender_photo": current_user.photo_url,
                "message": f"{current_user.display_name} accepted your connection request",
            }))
        await self.store.batch(ops)
        return await self.get_connection(conn_id)

    async def decline(self, from_user_id: str, current_user: User) -> ConnectionRequest:
        req_id = request_key(from_user_id, current_user.id)
        request = await self._get_request(from_user_id, current_user.id)
        if request is None:
            raise NotFoundError("ConnectionRequest", req_id)
        if request.status != "pending":
            raise InvalidTransitionError(f"Connection request {req_id} is already {request.status}.")
        await self.store.update(self.request_collection, req_id, {
            "status": "declined",
            "declined_at": SERVER_TIMESTAMP,
        })
        logger.info(f"User {current_user.id} declined connection request {req_id}")
        return await self._get_request(from_user_id, current_user.id)

    async def remove(self, current_user: User, connection_id: str) -> Connection:
        """Soft-removes a connection. Request history is left as it is."""
        connection = await self.get_connection(connection_id)
        if current_user.id not in connection.users:
            logger.warning(f"User {current_user.id} is not part of connection {connection_id}")
            raise NotFoundError("Connection", connection_id)
        if connection.status == "removed":
            return connection
        await self.store.update(self.connection_collection, connection_id, {
            "status": "removed",
            "removed_at": SERVER_TIMESTAMP,
        })
        logger.info(f"User {current_user.id} removed connection {connection_id}")
        return await self.get_connection(connection_id)

    # --- Listings ---
    def _connections_query(self, user_id: str) -> Query:
        return Query(
            self.connection_collection,
            [where("users", "array-contains", user_id), where("status", "==", "accepted")],
            [OrderBy("connected_at", DESC)],
        )

    async def fetch_connections(self, user_id: str) -> List[Connection]:
        return _to_connections(await self.store.run(self._connections_query(user_id)))

    async def list_connections(
        self, user_id: str, on_change: Optional[Callable[[List[Connection]], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ) -> LiveQuery[List[Connection]]:
        live = LiveQuery(self.store, self._connections_query(user_id), _to_connections)
        await live.start(on_change, on_error)
        return live

    async def fetch_incoming_requests(self, user_id: str) -> List[ConnectionRequest]:
        docs = await self.store.query(
            self.request_collection,
            [where("receiver_id", "==", user_id), where("status", "==", "pending")],
            [OrderBy("sent_at", DESC)],
        )
        return [ConnectionRequest.model_validate(d.to_dict()) for d in docs]
