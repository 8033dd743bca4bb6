# StudentNetwork/server/studentnet/models/connection.py

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Literal, Dict, List
from datetime import datetime

# --- Literal types for statuses ---
RequestStatus = Literal["pending", "accepted", "declined"]
ConnectionRecordStatus = Literal["accepted", "removed"]

# Pairwise relationship as seen from the first user of get_status(a, b)
ConnectionStatus = Literal["none", "pending_outgoing", "pending_incoming", "connected"]


class ConnectionRequest(BaseModel):
    """
    Document in 'connection_requests', keyed by request_key(sender, receiver).
    A repeated request from the same sender overwrites this document.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str = Field(..., description="'<sender_id>_<receiver_id>'")
    sender_id: str
    sender_name: Optional[str] = None
    sender_photo: Optional[str] = None
    receiver_id: str
    receiver_name: Optional[str] = None
    receiver_photo: Optional[str] = None
    status: RequestStatus = "pending"
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    declined_at: Optional[datetime] = None


class Connection(BaseModel):
    """
    Undirected edge of the social graph, keyed by pair_key(a, b).
    Removal is a status change; the document is kept.
    """
    model_config = ConfigDict(populate_by_name=True, extra='ignore')

    id: str
    users: List[str] = Field(..., min_length=2, max_length=2)
    user_names: Dict[str, Optional[str]] = Field(default_factory=dict)
    user_photos: Dict[str, Optional[str]] = Field(default_factory=dict)
    status: ConnectionRecordStatus = "accepted"
    connected_at: Optional[datetime] = None
    removed_at: Optional[datetime] = None

    def other_user(self, self_id: str) -> Optional[str]:
        others = [uid for uid in self.users if uid != self_id]
        return others[0] if others else None
