"""
Shared column helpers and enumerations for the ORM models.

Enumerations are stored as short strings (String(20)) rather than native
database enums so new values never need an ALTER TYPE migration.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import DateTime, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def uuid_pk() -> Mapped[uuid.UUID]:
    return mapped_column(Uuid, primary_key=True, default=uuid.uuid4)


def created_at_column() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


def updated_at_column() -> Mapped[datetime]:
    return mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        server_default=text("CURRENT_TIMESTAMP"),
    )


class ProductType(str, enum.Enum):
    OWN = "OWN"
    POD = "POD"
    DIGITAL = "DIGITAL"


class ProductStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    READY = "READY"


class StoreType(str, enum.Enum):
    HOTSITE = "HOTSITE"
    MINISTORE = "MINISTORE"


class StoreStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    LIVE = "LIVE"


class Visibility(str, enum.Enum):
    VISIBLE = "VISIBLE"
    HIDDEN = "HIDDEN"


class PriceVisibility(str, enum.Enum):
    VISIBLE = "VISIBLE"
    HIDDEN = "HIDDEN"
    SCHEDULED = "SCHEDULED"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
