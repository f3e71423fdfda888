"""
Storefront Backend: Checkout, Payout & Webhook Tests
======================================================

What:  Checkout session creation, its error kinds, Stripe Connect account
       sync and webhook-driven order fulfilment.
How:   The Stripe SDK wrapper (stripe_client) is patched where each module
       imports it; no network calls are made.

What we test:
    ✅ Every CheckoutErrorKind maps to its HTTP status
    ✅ A successful checkout opens the session on the seller's account and
       records a pending order
    ✅ Stripe failures surface as PROVIDER_ERROR (502)
    ✅ checkout.session.completed creates exactly one order, even when
       Stripe redelivers the event
    ✅ Webhook signature problems are 400
    ✅ account.updated refreshes payout flags
    ✅ /api/stripe/create-onboarding, /express-login and /refresh-status
"""

import uuid
from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest
import stripe
from sqlalchemy import func, select

from storefront.exceptions import (
    CHECKOUT_STATUS,
    CheckoutError,
    CheckoutErrorKind,
    UpstreamError,
    UpstreamErrorKind,
    ValidationError,
)
from storefront.models import Order, PayoutAccount, PendingOrder
from storefront.models.common import Visibility
from storefront.services.checkout_service import checkout_service
from storefront.services.payout_service import is_country_supported, payout_service


class _StripeObject(dict):
    """Dict with attribute access to `id`, like stripe.StripeObject."""

    @property
    def id(self):
        return self["id"]


def _stripe_session(session_id="cs_test_1"):
    return SimpleNamespace(id=session_id, url=f"https://checkout.stripe.test/{session_id}")


class TestCheckoutErrors:

    def setup_method(self):
        self.service = checkout_service

    @pytest.mark.parametrize("kind, status", [
        (CheckoutErrorKind.INVALID_QUANTITY, 400),
        (CheckoutErrorKind.STORE_NOT_FOUND, 404),
        (CheckoutErrorKind.PRODUCT_NOT_FOUND, 404),
        (CheckoutErrorKind.PRICE_NOT_CONFIGURED, 400),
        (CheckoutErrorKind.PAYOUTS_NOT_CONFIGURED, 400),
        (CheckoutErrorKind.CHARGES_DISABLED, 400),
        (CheckoutErrorKind.PROVIDER_ERROR, 502),
    ])
    def test_kind_decides_status(self, kind, status):
        assert CheckoutError(kind).status_code == status
        assert CHECKOUT_STATUS[kind] == status

    @pytest.mark.asyncio
    async def test_quantity_below_one(self, db):
        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, uuid.uuid4(), uuid.uuid4(), quantity=0)
        assert exc_info.value.kind is CheckoutErrorKind.INVALID_QUANTITY

    @pytest.mark.asyncio
    async def test_unknown_store(self, db):
        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, uuid.uuid4(), uuid.uuid4())
        assert exc_info.value.kind is CheckoutErrorKind.STORE_NOT_FOUND

    @pytest.mark.asyncio
    async def test_unknown_product(self, db, make):
        user = await make.user()
        store = await make.store(user)

        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, store.id, uuid.uuid4())
        assert exc_info.value.kind is CheckoutErrorKind.PRODUCT_NOT_FOUND

    @pytest.mark.asyncio
    async def test_hidden_product_has_no_price(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product], visibility=Visibility.HIDDEN.value)

        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, store.id, product.id)
        assert exc_info.value.kind is CheckoutErrorKind.PRICE_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_seller_without_payout_account(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])

        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, store.id, product.id)
        assert exc_info.value.kind is CheckoutErrorKind.PAYOUTS_NOT_CONFIGURED

    @pytest.mark.asyncio
    async def test_seller_with_charges_disabled(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        await make.payout_account(user, charges_enabled=False)

        with pytest.raises(CheckoutError) as exc_info:
            await self.service.create_checkout_session(db, store.id, product.id)
        assert exc_info.value.kind is CheckoutErrorKind.CHARGES_DISABLED


class TestCheckoutSuccess:

    def setup_method(self):
        self.service = checkout_service

    @pytest.mark.asyncio
    async def test_session_on_connected_account(self, db, make):
        user = await make.user()
        product = await make.product(user, title="Mug", price_cents=1500)
        store = await make.store(user, [product], slug="mugs")
        await make.payout_account(user, stripe_account_id="acct_seller")

        with patch("storefront.services.checkout_service.stripe_client") as mock_stripe:
            mock_stripe.create_checkout_session = AsyncMock(return_value=_stripe_session())

            url = await self.service.create_checkout_session(
                db, store.id, product.id, quantity=2, base_url="https://shop.test/"
            )

            assert url == "https://checkout.stripe.test/cs_test_1"
            params = mock_stripe.create_checkout_session.await_args.args[0]
            kwargs = mock_stripe.create_checkout_session.await_args.kwargs

        assert kwargs["stripe_account"] == "acct_seller"
        line_item = params["line_items"][0]
        assert line_item["quantity"] == 2
        assert line_item["price_data"]["unit_amount"] == 1500
        assert line_item["price_data"]["currency"] == "usd"
        assert params["cancel_url"] == "https://shop.test/s/mugs?canceled=1"
        assert params["metadata"] == {"storeId": str(store.id), "productId": str(product.id)}

        pending = (await db.execute(select(PendingOrder))).scalar_one()
        assert pending.stripe_session_id == "cs_test_1"
        assert pending.price_cents == 1500
        assert pending.stripe_account_id == "acct_seller"

    @pytest.mark.asyncio
    async def test_stripe_failure_is_provider_error(self, db, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        await make.payout_account(user)

        with patch("storefront.services.checkout_service.stripe_client") as mock_stripe:
            mock_stripe.create_checkout_session = AsyncMock(
                side_effect=UpstreamError(provider="Stripe", kind=UpstreamErrorKind.SERVER_ERROR)
            )

            with pytest.raises(CheckoutError) as exc_info:
                await self.service.create_checkout_session(db, store.id, product.id)

        assert exc_info.value.kind is CheckoutErrorKind.PROVIDER_ERROR
        assert exc_info.value.status_code == 502
        count = (await db.execute(select(func.count()).select_from(PendingOrder))).scalar_one()
        assert count == 0

    @pytest.mark.asyncio
    async def test_checkout_endpoint_maps_kind_to_status(self, test_client, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])

        response = await test_client.post(
            "/api/checkout",
            json={"store_id": str(store.id), "product_id": str(product.id), "quantity": 1},
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Seller payouts not configured"


class TestPayoutService:

    def setup_method(self):
        self.service = payout_service

    def test_supported_countries(self):
        assert is_country_supported("br")
        assert not is_country_supported("ZZ")
        assert not is_country_supported(None)

    @pytest.mark.asyncio
    async def test_account_created_once(self, db, make):
        user = await make.user()
        remote = {"charges_enabled": False, "payouts_enabled": False, "details_submitted": False}

        with patch("storefront.services.payout_service.stripe_client") as mock_stripe:
            mock_stripe.create_express_account = AsyncMock(
                return_value=_StripeObject(id="acct_new", **remote)
            )

            first = await self.service.get_or_create_account(db, user, "pt")
            second = await self.service.get_or_create_account(db, user, "pt")

            mock_stripe.create_express_account.assert_awaited_once_with("PT")

        assert first.id == second.id
        assert first.stripe_account_id == "acct_new"
        assert first.country == "PT"

    @pytest.mark.asyncio
    async def test_unsupported_country(self, db, make):
        user = await make.user()

        with pytest.raises(ValidationError):
            await self.service.create_onboarding_link(db, user, country="ZZ")


class TestPayoutEndpoints:

    @pytest.mark.asyncio
    async def test_create_onboarding_returns_link(self, test_client, make, headers_for):
        user = await make.user()

        with patch("storefront.services.payout_service.stripe_client") as mock_stripe:
            mock_stripe.create_express_account = AsyncMock(
                return_value=_StripeObject(id="acct_new", charges_enabled=False)
            )
            mock_stripe.create_onboarding_link = AsyncMock(
                return_value="https://connect.stripe.test/onboard"
            )

            response = await test_client.post(
                "/api/stripe/create-onboarding", json={"country": "BR"}, headers=headers_for(user)
            )

        assert response.status_code == 200
        assert response.json()["url"] == "https://connect.stripe.test/onboard"
        async with make.session() as s:
            account = (await s.execute(select(PayoutAccount))).scalar_one()
        assert account.country == "BR"
        assert account.user_id == user.id

    @pytest.mark.asyncio
    async def test_express_login_without_account_is_404(self, test_client, make, headers_for):
        user = await make.user()

        response = await test_client.post("/api/stripe/express-login", headers=headers_for(user))

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_express_login_returns_link(self, test_client, make, headers_for):
        user = await make.user()
        await make.payout_account(user)

        with patch("storefront.services.payout_service.stripe_client") as mock_stripe:
            mock_stripe.create_login_link = AsyncMock(return_value="https://dashboard.stripe.test")

            response = await test_client.post("/api/stripe/express-login", headers=headers_for(user))

            mock_stripe.create_login_link.assert_awaited_once_with("acct_test")

        assert response.json()["url"] == "https://dashboard.stripe.test"

    @pytest.mark.asyncio
    async def test_refresh_status_persists_flags(self, test_client, make, headers_for):
        user = await make.user()
        await make.payout_account(user, charges_enabled=False)

        with patch("storefront.services.payout_service.stripe_client") as mock_stripe:
            mock_stripe.retrieve_account = AsyncMock(return_value=_StripeObject(
                id="acct_test", charges_enabled=True, payouts_enabled=True, details_submitted=True
            ))

            response = await test_client.post(
                "/api/stripe/refresh-status", headers=headers_for(user)
            )

        assert response.status_code == 200
        assert response.json()["account"]["charges_enabled"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/stripe/create-onboarding",
        "/api/stripe/express-login",
        "/api/stripe/refresh-status",
    ])
    async def test_requires_session(self, test_client, path):
        response = await test_client.post(path)
        assert response.status_code == 401


class TestStripeWebhook:

    HEADERS = {"stripe-signature": "t=1,v1=test"}

    async def _pending_checkout(self, make):
        user = await make.user()
        product = await make.product(user)
        store = await make.store(user, [product])
        await make.save(PendingOrder(
            store_id=store.id,
            product_id=product.id,
            stripe_account_id="acct_test",
            stripe_session_id="cs_paid",
            price_cents=1500,
            currency="USD",
        ))
        return user, store, product

    def _completed_event(self, store, product):
        return {
            "id": "evt_1",
            "type": "checkout.session.completed",
            "data": {"object": {
                "id": "cs_paid",
                "metadata": {"storeId": str(store.id), "productId": str(product.id)},
                "amount_total": 3000,
                "currency": "usd",
                "payment_intent": "pi_1",
                "customer_details": {"email": "buyer@example.com"},
            }},
        }

    @pytest.mark.asyncio
    async def test_missing_signature_is_400(self, test_client):
        response = await test_client.post("/api/webhooks/stripe", content=b"{}")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_signature_is_400(self, test_client):
        with patch("storefront.routes.payments.stripe_client") as mock_stripe:
            mock_stripe.construct_event.side_effect = stripe.SignatureVerificationError(
                "No signatures found", "t=1,v1=test"
            )
            response = await test_client.post(
                "/api/webhooks/stripe", content=b"{}", headers=self.HEADERS
            )

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid signature"

    @pytest.mark.asyncio
    async def test_completed_creates_one_order_even_when_redelivered(self, test_client, make):
        user, store, product = await self._pending_checkout(make)
        event = self._completed_event(store, product)

        with patch("storefront.routes.payments.stripe_client") as mock_stripe:
            mock_stripe.construct_event.return_value = event
            first = await test_client.post(
                "/api/webhooks/stripe", content=b"{}", headers=self.HEADERS
            )
            second = await test_client.post(
                "/api/webhooks/stripe", content=b"{}", headers=self.HEADERS
            )

        assert first.status_code == second.status_code == 200
        assert first.json() == {"received": True}
        async with make.session() as s:
            orders = (await s.execute(select(Order))).scalars().all()
            pending = (await s.execute(select(func.count()).select_from(PendingOrder))).scalar_one()
        assert len(orders) == 1
        order = orders[0]
        assert order.user_id == user.id
        assert order.amount_cents == 3000
        assert order.currency == "USD"
        assert order.status == "paid"
        assert order.customer_email == "buyer@example.com"
        assert pending == 0

    @pytest.mark.asyncio
    async def test_async_payment_failed_marks_order(self, test_client, make):
        _, store, product = await self._pending_checkout(make)
        completed = self._completed_event(store, product)
        failed = {
            "id": "evt_2",
            "type": "checkout.session.async_payment_failed",
            "data": {"object": {"id": "cs_paid"}},
        }

        with patch("storefront.routes.payments.stripe_client") as mock_stripe:
            mock_stripe.construct_event.side_effect = [completed, failed]
            await test_client.post("/api/webhooks/stripe", content=b"{}", headers=self.HEADERS)
            await test_client.post("/api/webhooks/stripe", content=b"{}", headers=self.HEADERS)

        async with make.session() as s:
            order = (await s.execute(select(Order))).scalar_one()
        assert order.status == "failed"

    @pytest.mark.asyncio
    async def test_account_updated_refreshes_flags(self, test_client, make):
        user = await make.user()
        await make.payout_account(user, charges_enabled=False, stripe_account_id="acct_sync")
        event = {
            "id": "evt_3",
            "type": "account.updated",
            "data": {"object": {"id": "acct_sync"}},
        }
        remote = {"charges_enabled": True, "payouts_enabled": True, "details_submitted": True}

        with patch("storefront.routes.payments.stripe_client") as route_stripe, \
             patch("storefront.services.payout_service.stripe_client") as service_stripe:
            route_stripe.construct_event.return_value = event
            service_stripe.retrieve_account = AsyncMock(return_value=remote)

            response = await test_client.post(
                "/api/webhooks/stripe", content=b"{}", headers=self.HEADERS
            )

            service_stripe.retrieve_account.assert_awaited_once_with("acct_sync")

        assert response.status_code == 200
        async with make.session() as s:
            account = (await s.execute(select(PayoutAccount))).scalar_one()
        assert account.charges_enabled is True
        assert account.payouts_enabled is True
        assert account.last_event_type == "account.updated"

    @pytest.mark.asyncio
    async def test_unknown_event_is_acknowledged(self, test_client):
        with patch("storefront.routes.payments.stripe_client") as mock_stripe:
            mock_stripe.construct_event.return_value = {
                "id": "evt_4", "type": "invoice.paid", "data": {"object": {}},
            }
            response = await test_client.post(
                "/api/webhooks/stripe", content=b"{}", headers=self.HEADERS
            )

        assert response.status_code == 200
        assert response.json() == {"received": True}
