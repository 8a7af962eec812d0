"""Common FastAPI dependencies reused across controllers."""

from __future__ import annotations

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.application.interfaces import (
    AccountRepositoryInterface,
    AnalysisRepositoryInterface,
    DiscussionRepositoryInterface,
)
from app.config.dependencies import (
    get_account_repository,
    get_analysis_repository,
    get_discussion_repository,
    get_intake,
    get_registry,
)
from app.services.broadcast import BroadcastRegistry
from app.services.intake import AnalysisIntake
from app.utils import AuthenticationError, decode_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_optional_user_id(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(bearer_scheme)],
) -> Optional[int]:
    """Return the caller's user id, ``None`` for anonymous callers.

    A token that is present but invalid is rejected rather than silently
    downgraded to anonymous.
    """

    if credentials is None:
        return None

    try:
        payload = decode_access_token(credentials.credentials)
        return int(payload.sub)
    except (AuthenticationError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
        ) from None


async def get_current_user_id(
    user_id: Annotated[Optional[int], Depends(get_optional_user_id)],
) -> int:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
        )
    return user_id


OptionalUserDep = Annotated[Optional[int], Depends(get_optional_user_id)]
CurrentUserDep = Annotated[int, Depends(get_current_user_id)]
AnalysisRepoDep = Annotated[AnalysisRepositoryInterface, Depends(get_analysis_repository)]
AccountRepoDep = Annotated[AccountRepositoryInterface, Depends(get_account_repository)]
DiscussionRepoDep = Annotated[
    DiscussionRepositoryInterface, Depends(get_discussion_repository)
]
RegistryDep = Annotated[BroadcastRegistry, Depends(get_registry)]
IntakeDep = Annotated[AnalysisIntake, Depends(get_intake)]


__all__ = [
    "AccountRepoDep",
    "AnalysisRepoDep",
    "CurrentUserDep",
    "DiscussionRepoDep",
    "IntakeDep",
    "OptionalUserDep",
    "RegistryDep",
    "bearer_scheme",
    "get_current_user_id",
    "get_optional_user_id",
]
