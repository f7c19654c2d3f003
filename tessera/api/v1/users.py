"""Profile endpoints for the authenticated user."""

from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from tessera.api.v1.auth import get_current_user, get_session_manager
from tessera.core.database import get_db
from tessera.core.unit_of_work import commit_or_rollback
from tessera.schemas.auth import CurrentUser, UserInfo
from tessera.schemas.user import ChangePasswordRequest, UpdateProfileRequest
from tessera.services.errors import UserNotFoundError
from tessera.services.sessions import SessionManager
from tessera.services.users import UserDirectory, publish_events

router = APIRouter()


@router.get("/me", response_model=UserInfo)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> UserInfo:
    user = UserDirectory(db).find_by_id(current_user.id)
    if user is None:
        raise UserNotFoundError()
    return UserInfo.model_validate(user)


@router.put("/me", response_model=UserInfo)
def update_profile(
    body: UpdateProfileRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> UserInfo:
    """Replace first name, last name and avatar URL of the current user."""
    users = UserDirectory(db)
    user = users.find_by_id(current_user.id)
    if user is None:
        raise UserNotFoundError()
    updated = users.update_profile(
        user,
        first_name=body.first_name,
        last_name=body.last_name,
        avatar_url=body.avatar_url,
    )
    commit_or_rollback(db, "update_profile")
    publish_events(updated)
    return UserInfo.model_validate(updated)


@router.put("/me/password", status_code=status.HTTP_204_NO_CONTENT)
def change_password(
    body: ChangePasswordRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    manager: Annotated[SessionManager, Depends(get_session_manager)],
) -> None:
    """Change the current user's password. Existing sessions stay signed in."""
    manager.change_password(current_user.id, body.current_password, body.new_password)
