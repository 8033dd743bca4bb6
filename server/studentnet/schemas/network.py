# StudentNetwork/server/studentnet/schemas/network.py

from pydantic import BaseModel
from typing import Optional

from studentnet.models.connection import ConnectionStatus


class ConnectionStatusOut(BaseModel):
    user_id: str
    status: ConnectionStatus
    connection_id: str


class ConnectionOut(BaseModel):
    id: str
    user_id: str
    name: Optional[str] = None
    photo_url: Optional[str] = None
