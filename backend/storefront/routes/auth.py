"""Sign-up, sign-in and the onboarding profile."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.database import get_db_session
from storefront.schemas.commerce import (
    AuthResponse,
    ProfileResponse,
    ProfileUpdate,
    SigninRequest,
    SignupRequest,
)
from storefront.schemas.common import error_responses
from storefront.services.account_service import account_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Auth"])


@router.post(
    "/auth/signup",
    status_code=201,
    response_model=AuthResponse,
    responses=error_responses(400, 409, 500),
    summary="Create a merchant account",
)
async def signup(
    body: SignupRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user, token = await account_service.signup(db, body.email, body.password)
    return AuthResponse(user_id=user.id, token=token)


@router.post(
    "/auth/signin",
    response_model=AuthResponse,
    responses=error_responses(400, 401, 500),
    summary="Exchange email and password for a bearer token",
)
async def signin(
    body: SigninRequest,
    db: AsyncSession = Depends(get_db_session),
) -> AuthResponse:
    user, token = await account_service.signin(db, body.email, body.password)
    return AuthResponse(user_id=user.id, token=token)


@router.get("/onboarding", responses=error_responses(401, 500))
async def get_onboarding(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    profile = await account_service.get_profile(db, user)
    return {"success": True, "profile": ProfileResponse.model_validate(profile).model_dump()}


@router.patch(
    "/onboarding",
    responses=error_responses(400, 401, 500),
    description=(
        "Saves any subset of the onboarding answers. Setting a country "
        "without a currency picks that country's currency. "
        "`complete: true` marks onboarding finished."
    ),
)
async def update_onboarding(
    body: ProfileUpdate,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    patch = body.model_dump(exclude_unset=True, exclude={"complete"})
    profile = await account_service.update_profile(db, user, patch, complete=body.complete)
    return {"success": True, "profile": ProfileResponse.model_validate(profile).model_dump()}
