"""Schemas for accounts, onboarding, orders, checkout and integrations."""

import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

# Loose check: one "@" and a dot in the domain
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ── Accounts ──────────────────────────────────────────────────────────────

class SignupRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=8, max_length=128)


class SigninRequest(BaseModel):
    email: str = Field(pattern=EMAIL_PATTERN, max_length=255)
    password: str = Field(min_length=1, max_length=128)


class AuthResponse(BaseModel):
    success: bool = True
    user_id: uuid.UUID
    token: str


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)
    contact_email: Optional[str] = None
    whatsapp: Optional[str] = None
    phone: Optional[str] = None
    complete: bool = False


class ProfileResponse(BaseModel):
    name: Optional[str] = None
    country: Optional[str] = None
    currency: Optional[str] = None
    contact_email: Optional[str] = None
    whatsapp: Optional[str] = None
    phone: Optional[str] = None
    onboarding_completed: bool

    model_config = {"from_attributes": True}


# ── Orders ────────────────────────────────────────────────────────────────

class OrderResponse(BaseModel):
    id: uuid.UUID
    store_id: uuid.UUID
    product_id: uuid.UUID
    amount_cents: int
    currency: str
    customer_email: Optional[str] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderNotesUpdate(BaseModel):
    notes: str = Field(default="", max_length=5000)


# ── Checkout & payouts ────────────────────────────────────────────────────

class CheckoutRequest(BaseModel):
    store_id: uuid.UUID
    product_id: uuid.UUID
    quantity: int = 1


class CheckoutResponse(BaseModel):
    success: bool = True
    url: str


class OnboardingLinkRequest(BaseModel):
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)


class PayoutStatusResponse(BaseModel):
    stripe_account_id: str
    country: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool
    last_event_at: Optional[datetime] = None
    last_event_type: Optional[str] = None

    model_config = {"from_attributes": True}


# ── Printify & ImageKit ───────────────────────────────────────────────────

class PrintifyConnectRequest(BaseModel):
    api_key: str = Field(min_length=1)


class PrintifySetShopRequest(BaseModel):
    shop_id: str = Field(min_length=1)


class PrintifyImportRequest(BaseModel):
    shop_id: str = Field(min_length=1)
    product_id: str = Field(min_length=1)


class ImageKitAuthResponse(BaseModel):
    token: str
    expire: int
    signature: str
    public_key: str
    url_endpoint: str
