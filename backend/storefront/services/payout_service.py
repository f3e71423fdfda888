"""
Storefront Backend: Payout Service (Stripe Connect)
=====================================================

What:  One Stripe Express account per merchant, onboarding and dashboard
       links, and the charges/payouts flags checkout depends on.
Who:   /api/stripe/* routes and the Stripe webhook (account.* events).

Country resolution for a new account: the request's country, else the
merchant profile's country, else US. Only countries Stripe Connect supports
for Express accounts are accepted.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser
from storefront.config import settings
from storefront.exceptions import NotFoundError, ValidationError
from storefront.models import PayoutAccount, Profile
from storefront.models.common import utcnow
from storefront.services.stripe_client import stripe_client

logger = logging.getLogger(__name__)

SUPPORTED_COUNTRIES = frozenset({
    "US", "CA", "GB", "AU", "NZ", "IE", "AT", "BE", "DK", "FI", "FR", "DE", "IT",
    "LU", "NL", "NO", "PT", "ES", "SE", "CH", "JP", "SG", "HK", "MX", "BR",
})

# Events that carry (or point at) a connected account whose flags may change
ACCOUNT_EVENTS = frozenset({
    "account.updated",
    "account.application.authorized",
    "account.application.deauthorized",
    "account.external_account.created",
    "account.external_account.deleted",
    "account.external_account.updated",
})


def is_country_supported(country: Optional[str]) -> bool:
    return (country or "").upper() in SUPPORTED_COUNTRIES


class PayoutService:

    async def get_account(self, db: AsyncSession, user: SessionUser) -> Optional[PayoutAccount]:
        result = await db.execute(select(PayoutAccount).where(PayoutAccount.user_id == user.id))
        return result.scalar_one_or_none()

    async def _require_account(self, db: AsyncSession, user: SessionUser) -> PayoutAccount:
        account = await self.get_account(db, user)
        if account is None:
            raise NotFoundError(resource="payout account")
        return account

    async def get_or_create_account(
        self, db: AsyncSession, user: SessionUser, country: Optional[str] = None
    ) -> PayoutAccount:
        existing = await self.get_account(db, user)
        if existing is not None:
            return existing

        if not country:
            profile = await db.get(Profile, user.id)
            country = profile.country if profile is not None and profile.country else "US"
        country = country.upper()
        if not is_country_supported(country):
            raise ValidationError(
                message=f"Country {country} is not supported by Stripe Connect", field="country"
            )

        remote = await stripe_client.create_express_account(country)
        account = PayoutAccount(
            user_id=user.id,
            stripe_account_id=remote.id,
            country=country,
            charges_enabled=bool(remote.get("charges_enabled")),
            payouts_enabled=bool(remote.get("payouts_enabled")),
            details_submitted=bool(remote.get("details_submitted")),
        )
        db.add(account)
        await db.flush()
        logger.info("Created Stripe account %s for user %s (%s)", remote.id, user.id, country)
        return account

    async def create_onboarding_link(
        self, db: AsyncSession, user: SessionUser, country: Optional[str] = None
    ) -> str:
        if country and not is_country_supported(country):
            raise ValidationError(
                message=f"Country {country.upper()} is not supported by Stripe Connect",
                field="country",
            )
        account = await self.get_or_create_account(db, user, country)
        base = settings.public_base_url.rstrip("/")
        return await stripe_client.create_onboarding_link(
            account.stripe_account_id,
            refresh_url=f"{base}/dashboard/settings?stripe=resume",
            return_url=f"{base}/dashboard/settings?stripe=done",
        )

    async def create_login_link(self, db: AsyncSession, user: SessionUser) -> str:
        account = await self._require_account(db, user)
        return await stripe_client.create_login_link(account.stripe_account_id)

    async def _apply_remote(self, account: PayoutAccount, remote, event_type: str) -> None:
        account.charges_enabled = bool(remote.get("charges_enabled"))
        account.payouts_enabled = bool(remote.get("payouts_enabled"))
        account.details_submitted = bool(remote.get("details_submitted"))
        account.last_event_at = utcnow()
        account.last_event_type = event_type
        account.updated_at = utcnow()

    async def refresh_status(self, db: AsyncSession, user: SessionUser) -> PayoutAccount:
        """Pull the account from Stripe now instead of waiting for a webhook."""
        account = await self._require_account(db, user)
        remote = await stripe_client.retrieve_account(account.stripe_account_id)
        await self._apply_remote(account, remote, "manual_refresh")
        await db.flush()
        return account

    async def handle_account_event(
        self, db: AsyncSession, stripe_account_id: str, event_type: str
    ) -> Optional[PayoutAccount]:
        """Webhook path: re-read the account and persist its flags."""
        result = await db.execute(
            select(PayoutAccount).where(PayoutAccount.stripe_account_id == stripe_account_id)
        )
        account = result.scalar_one_or_none()
        if account is None:
            logger.warning("Stripe event %s for unknown account %s", event_type, stripe_account_id)
            return None
        remote = await stripe_client.retrieve_account(stripe_account_id)
        await self._apply_remote(account, remote, event_type)
        await db.flush()
        logger.info(
            "Payout account %s updated from %s: charges=%s payouts=%s",
            stripe_account_id, event_type, account.charges_enabled, account.payouts_enabled,
        )
        return account


payout_service = PayoutService()
