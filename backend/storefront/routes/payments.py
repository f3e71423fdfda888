"""
Storefront Backend: Checkout, Payout and Webhook Routes
=========================================================

What:  POST /api/checkout (anonymous buyers), /api/stripe/* (merchant payout
       account on Stripe Connect) and POST /api/webhooks/stripe.
How:   Checkout failures are CheckoutErrors whose kind picks the status.
       The webhook verifies the Stripe signature against the raw body before
       reading anything, then dispatches by event type.

Webhook events handled:
    account.updated, account.application.*,
    account.external_account.*             → payout_service.handle_account_event
    checkout.session.completed             → order_service.handle_checkout_completed
    checkout.session.async_payment_failed  → order_service.handle_payment_failed
    anything else                          → acknowledged and ignored
"""

import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.auth import SessionUser, require_session
from storefront.config import settings
from storefront.database import get_db_session
from storefront.schemas.commerce import (
    CheckoutRequest,
    CheckoutResponse,
    OnboardingLinkRequest,
    PayoutStatusResponse,
)
from storefront.schemas.common import error_responses
from storefront.services.checkout_service import checkout_service
from storefront.services.order_service import order_service
from storefront.services.payout_service import ACCOUNT_EVENTS, payout_service
from storefront.services.stripe_client import stripe_client

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Payments"])


# ══════════════════════════════════════════════════════════════════════════
# Checkout
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    responses=error_responses(400, 404, 500, 502),
    summary="Start a Stripe Checkout for one product",
    description=(
        "Public endpoint. The price is the store's current storefront price; "
        "the session is created on the seller's connected Stripe account."
    ),
)
async def create_checkout(
    body: CheckoutRequest,
    db: AsyncSession = Depends(get_db_session),
) -> CheckoutResponse:
    url = await checkout_service.create_checkout_session(
        db, body.store_id, body.product_id,
        quantity=body.quantity, base_url=settings.public_base_url,
    )
    return CheckoutResponse(url=url)


# ══════════════════════════════════════════════════════════════════════════
# Payout account (Stripe Connect Express)
# ══════════════════════════════════════════════════════════════════════════

@router.get("/stripe/status", responses=error_responses(401, 500))
async def payout_status(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    account = await payout_service.get_account(db, user)
    if account is None:
        return {"success": True, "connected": False, "account": None}
    return {
        "success": True,
        "connected": True,
        "account": PayoutStatusResponse.model_validate(account).model_dump(mode="json"),
    }


@router.post(
    "/stripe/create-onboarding",
    responses=error_responses(400, 401, 500, 502),
    summary="Create (if needed) the payout account and return an onboarding link",
)
async def onboarding_link(
    body: Optional[OnboardingLinkRequest] = None,
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    url = await payout_service.create_onboarding_link(
        db, user, country=body.country if body else None
    )
    return {"success": True, "url": url}


@router.post("/stripe/express-login", responses=error_responses(401, 404, 500, 502))
async def login_link(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    url = await payout_service.create_login_link(db, user)
    return {"success": True, "url": url}


@router.post("/stripe/refresh-status", responses=error_responses(401, 404, 500, 502))
async def refresh_payout_status(
    user: SessionUser = Depends(require_session),
    db: AsyncSession = Depends(get_db_session),
) -> dict:
    account = await payout_service.refresh_status(db, user)
    return {
        "success": True,
        "account": PayoutStatusResponse.model_validate(account).model_dump(mode="json"),
    }


# ══════════════════════════════════════════════════════════════════════════
# Webhook
# ══════════════════════════════════════════════════════════════════════════

@router.post(
    "/webhooks/stripe",
    responses=error_responses(400, 500),
    summary="Stripe webhook receiver",
    include_in_schema=False,
)
async def stripe_webhook(request: Request, db: AsyncSession = Depends(get_db_session)):
    if not settings.stripe_webhook_secret:
        logger.error("Stripe webhook received but STRIPE_WEBHOOK_SECRET is not set")
        return JSONResponse(status_code=500, content={"error": "Webhook not configured"})

    signature = request.headers.get("stripe-signature")
    if not signature:
        return JSONResponse(status_code=400, content={"error": "Missing signature"})

    payload = await request.body()
    try:
        event = stripe_client.construct_event(payload, signature, settings.stripe_webhook_secret)
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid payload"})
    except stripe.SignatureVerificationError:
        logger.warning("Stripe webhook signature verification failed")
        return JSONResponse(status_code=400, content={"error": "Invalid signature"})

    event_type = event["type"]
    data_object = event["data"]["object"]
    logger.info("Stripe webhook received: %s (%s)", event_type, event.get("id"))

    if event_type in ACCOUNT_EVENTS:
        account_id = data_object.get("account") or data_object.get("id")
        if account_id:
            await payout_service.handle_account_event(db, account_id, event_type)
    elif event_type == "checkout.session.completed":
        await order_service.handle_checkout_completed(db, data_object)
    elif event_type == "checkout.session.async_payment_failed":
        updated = await order_service.handle_payment_failed(db, data_object)
        logger.info("Marked %d order(s) failed for session %s", updated, data_object.get("id"))
    else:
        logger.debug("Ignoring Stripe event %s", event_type)

    return {"received": True}
