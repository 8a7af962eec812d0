"""User controller: the caller's credit balance."""

from __future__ import annotations

from fastapi import APIRouter

from app.controllers.dependencies import AccountRepoDep, OptionalUserDep
from app.views import CreditsResponse

router = APIRouter(prefix="/api/user", tags=["user"])


@router.get("/credits", response_model=CreditsResponse)
async def get_credits(user_id: OptionalUserDep, accounts: AccountRepoDep) -> CreditsResponse:
    """Balance the client uses to decide whether a run will be full or partial."""

    if user_id is None:
        return CreditsResponse(credits=0, isAnonymous=True)
    return CreditsResponse(
        credits=await accounts.get_credit_balance(user_id), isAnonymous=False
    )
