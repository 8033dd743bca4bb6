# StudentNetwork/server/studentnet/api/routes/users.py

import logging
from typing import List

from fastapi import APIRouter, Depends

from studentnet.api.deps import get_user_service, raise_http
from studentnet.core.exceptions import StudentNetError
from studentnet.core.security import CurrentUser
from studentnet.models.user import User
from studentnet.schemas.user import ProfileUpdate, UserSummary
from studentnet.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/users",
    tags=["Users"]
)


@router.get("/me", response_model=User)
async def read_me(current_user: CurrentUser):
    return current_user


@router.patch("/me", response_model=User)
async def update_me(
    body: ProfileUpdate,
    current_user: CurrentUser,
    users: UserService = Depends(get_user_service),
):
    changes = body.model_dump(exclude_unset=True)
    logger.info(f"User {current_user.id} updating profile: {sorted(changes)}")
    try:
        return await users.update_profile(current_user, changes)
    except StudentNetError as e:
        raise_http(e)


@router.get("", response_model=List[UserSummary])
async def list_people(
    current_user: CurrentUser,
    users: UserService = Depends(get_user_service),
):
    """Everyone except the caller, for the 'new chat' and 'find connections' pickers."""
    try:
        people = await users.list_users(exclude_id=current_user.id)
    except StudentNetError as e:
        raise_http(e)
    return [UserSummary.model_validate(p.model_dump()) for p in people]


@router.get("/{user_id}", response_model=User)
async def read_user(
    user_id: str,
    current_user: CurrentUser,
    users: UserService = Depends(get_user_service),
):
    try:
        return await users.get_user(user_id)
    except StudentNetError as e:
        raise_http(e)
