"""
Storefront Backend: Stripe Client
===================================

What:  Thin async wrapper over the Stripe SDK for the calls the storefront
       makes: Checkout Sessions on connected accounts, Express accounts,
       onboarding/login links and webhook verification.
How:   The SDK is synchronous, so each call runs in a worker thread. SDK
       exceptions are classified into UpstreamErrorKind by exception type
       (never by message text) and re-raised as UpstreamError.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import stripe

from storefront.config import settings
from storefront.exceptions import StorefrontError, UpstreamError, UpstreamErrorKind

logger = logging.getLogger(__name__)

PROVIDER = "Stripe"


def classify_stripe_error(error: stripe.StripeError) -> UpstreamErrorKind:
    if isinstance(error, stripe.RateLimitError):
        return UpstreamErrorKind.RATE_LIMIT
    if isinstance(error, (stripe.AuthenticationError, stripe.PermissionError)):
        return UpstreamErrorKind.AUTH_ERROR
    if isinstance(error, stripe.APIConnectionError):
        return UpstreamErrorKind.NETWORK_ERROR
    if error.http_status == 404:
        return UpstreamErrorKind.NOT_FOUND
    if isinstance(error, stripe.APIError) or (error.http_status or 0) >= 500:
        return UpstreamErrorKind.SERVER_ERROR
    return UpstreamErrorKind.UNKNOWN_ERROR


class StripeClient:

    def _configure(self) -> None:
        if not settings.stripe_secret_key:
            raise StorefrontError(message="Payments are not configured")
        stripe.api_key = settings.stripe_secret_key

    async def _call(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        self._configure()
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except stripe.StripeError as e:
            kind = classify_stripe_error(e)
            logger.error(
                "Stripe call %s failed: kind=%s status=%s error=%s",
                getattr(fn, "__qualname__", fn), kind.value, e.http_status, e.user_message or str(e),
            )
            raise UpstreamError(
                provider=PROVIDER,
                kind=kind,
                message=e.user_message or None,
                upstream_status=e.http_status,
                context={"code": e.code},
            )

    # ── Checkout ──────────────────────────────────────────────────────────

    async def create_checkout_session(
        self, params: Dict[str, Any], stripe_account: str, idempotency_key: str
    ) -> Any:
        return await self._call(
            stripe.checkout.Session.create,
            stripe_account=stripe_account,
            idempotency_key=idempotency_key,
            **params,
        )

    # ── Connect ───────────────────────────────────────────────────────────

    async def create_express_account(self, country: str) -> Any:
        return await self._call(
            stripe.Account.create,
            type="express",
            country=country,
            capabilities={
                "card_payments": {"requested": True},
                "transfers": {"requested": True},
            },
        )

    async def retrieve_account(self, account_id: str) -> Any:
        return await self._call(stripe.Account.retrieve, account_id)

    async def create_onboarding_link(
        self, account_id: str, refresh_url: str, return_url: str
    ) -> str:
        link = await self._call(
            stripe.AccountLink.create,
            account=account_id,
            refresh_url=refresh_url,
            return_url=return_url,
            type="account_onboarding",
        )
        return link.url

    async def create_login_link(self, account_id: str) -> str:
        link = await self._call(stripe.Account.create_login_link, account_id)
        return link.url

    # ── Webhooks ──────────────────────────────────────────────────────────

    def construct_event(self, payload: bytes, signature: Optional[str], secret: str) -> Any:
        """Verify the Stripe-Signature header; raises ValueError or SignatureVerificationError."""
        return stripe.Webhook.construct_event(payload, signature, secret)


stripe_client = StripeClient()
