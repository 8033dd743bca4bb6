# StudentNetwork/server/studentnet/core/security.py

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional, Annotated

from fastapi import Depends, HTTPException, WebSocket, WebSocketException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt

from studentnet.core.config import settings
from studentnet.core.exceptions import NotFoundError, StoreError
from studentnet.api.deps import get_store
from studentnet.db.store import DocumentStore
from studentnet.models.user import User
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)

# Tokens are issued by the external sign-in flow; this service only verifies them
oauth2_scheme = OAuth2PasswordBearer(tokenUrl=f"{settings.API_V1_STR}/auth/login")

Token = Annotated[str, Depends(oauth2_scheme)]


# --- JWT Token Utilities ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Creates a JWT access token. `data["sub"]` must be the user id."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError as e:
        logger.warning(f"JWT Error decoding token: {e}")
        return None
    subject = payload.get("sub")
    if subject is None:
        logger.warning("Token payload missing 'sub' (user id).")
    return subject


async def _resolve_user(token: str, store: DocumentStore) -> Optional[User]:
    user_id = decode_subject(token)
    if user_id is None:
        return None
    try:
        return await UserService(store).get_user(user_id)
    except NotFoundError:
        logger.warning(f"Token subject {user_id} has no user profile.")
        return None


# --- Core User Fetching Dependency ---
async def get_current_user(token: Token, store: DocumentStore = Depends(get_store)) -> User:
    """
    Decodes the bearer token and loads the user it names. The result is
    handed explicitly to every service call.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        user = await _resolve_user(token, store)
    except StoreError as e:
        logger.error(f"Store error while resolving current user: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="User store unavailable.",
        )
    if user is None:
        raise credentials_exception
    return user


async def get_websocket_user(websocket: WebSocket, store: DocumentStore = Depends(get_store)) -> User:
    """Browsers cannot set headers on WebSocket upgrades, so the token comes as ?token=."""
    token = websocket.query_params.get("token")
    user = await _resolve_user(token, store) if token else None
    if user is None:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Could not validate credentials")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]
WebSocketUser = Annotated[User, Depends(get_websocket_user)]
