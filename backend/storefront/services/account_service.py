"""
Storefront Backend: Account Service
=====================================

What:  Merchant sign-up/sign-in and the onboarding profile.
Who:   /api/auth/* and /api/onboarding routes.

Emails are compared lower-cased. A failed sign-in never says whether the
email exists.
"""

import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, hash_password, issue_token, verify_password
from storefront.exceptions import ConflictError, UnauthorizedError
from storefront.models import Profile, User
from storefront.models.common import utcnow
from storefront.services.currency import currency_for_country

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("name", "country", "currency", "contact_email", "whatsapp", "phone")


class AccountService:

    async def _by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        result = await db.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def signup(self, db: AsyncSession, email: str, password: str) -> Tuple[User, str]:
        email = email.strip().lower()
        if await self._by_email(db, email) is not None:
            raise ConflictError(message="An account with this email already exists")

        user = User(email=email, password_hash=hash_password(password))
        try:
            async with db.begin_nested():
                db.add(user)
                await db.flush()
        except IntegrityError:
            raise ConflictError(message="An account with this email already exists")

        db.add(Profile(user_id=user.id, contact_email=email))
        await db.flush()
        logger.info("User %s signed up", user.id)
        return user, issue_token(user.id, user.email)

    async def signin(self, db: AsyncSession, email: str, password: str) -> Tuple[User, str]:
        user = await self._by_email(db, email.strip().lower())
        if user is None or not verify_password(password, user.password_hash):
            raise UnauthorizedError(message="Invalid email or password")
        return user, issue_token(user.id, user.email)

    async def get_profile(self, db: AsyncSession, user: SessionUser) -> Profile:
        profile = await db.get(Profile, user.id)
        if profile is None:
            profile = Profile(user_id=user.id, contact_email=user.email)
            db.add(profile)
            await db.flush()
        return profile

    async def update_profile(
        self, db: AsyncSession, user: SessionUser, patch: dict, complete: bool = False
    ) -> Profile:
        """
        Apply onboarding answers. Choosing a country without an explicit
        currency fills in that country's currency.
        """
        profile = await self.get_profile(db, user)
        for key in PROFILE_FIELDS:
            if key in patch:
                value = patch[key]
                if key in ("country", "currency") and value:
                    value = value.upper()
                setattr(profile, key, value)
        if patch.get("country") and not patch.get("currency"):
            profile.currency = currency_for_country(patch["country"])
        if complete:
            profile.onboarding_completed = True
        profile.updated_at = utcnow()
        await db.flush()
        return profile


account_service = AccountService()
