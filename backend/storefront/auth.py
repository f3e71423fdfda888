"""
Storefront Backend: Session Provider
======================================

What:  Password hashing, bearer token issuing/verification, and the FastAPI
       dependencies that resolve the caller's identity.
Why:   Every owned-resource operation takes the caller explicitly as a
       SessionUser argument; nothing reads identity from ambient state.
How:   bcrypt for password hashes, HS256 JWTs (PyJWT) carrying the user id in
       `sub`. get_session returns None for anonymous callers; require_session
       raises UnauthorizedError so the request fails with 401 before any
       handler code (and therefore any write) runs.

Usage:
    @router.post("/products")
    async def create_product(
        body: ProductCreate,
        user: SessionUser = Depends(require_session),
        db: AsyncSession = Depends(get_db_session),
    ): ...
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends, Header

from storefront.config import settings
from storefront.exceptions import StorefrontError, UnauthorizedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionUser:
    """
    Immutable identity of the authenticated caller for one request.

    Attributes:
        id:    users.id; compared against owner columns in every ownership check
        email: informational only, never used for authorization
    """

    id: uuid.UUID
    email: Optional[str] = None


# ── Passwords ─────────────────────────────────────────────────────────────

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be parsed")
        return False


# ── Tokens ────────────────────────────────────────────────────────────────

def issue_token(user_id: uuid.UUID, email: Optional[str] = None) -> str:
    """Create a signed bearer token for a user that just signed in or up."""
    if not settings.session_secret:
        raise StorefrontError(
            message="Sign-in is temporarily unavailable.",
            context={"reason": "SESSION_SECRET not configured"},
        )
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "email": email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.session_ttl_minutes),
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.session_algorithm)


def decode_token(token: str) -> Optional[SessionUser]:
    """
    Verify a bearer token and return its SessionUser.

    Returns None for any invalid, expired or tampered token; the caller
    decides whether anonymity is acceptable.
    """
    if not settings.session_secret:
        return None
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.session_algorithm],
            options={"require": ["sub", "exp"]},
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired session token")
        return None
    except jwt.InvalidTokenError as e:
        logger.warning("Rejected invalid session token: %s", type(e).__name__)
        return None

    try:
        user_id = uuid.UUID(str(payload["sub"]))
    except ValueError:
        logger.warning("Session token carried a non-UUID subject")
        return None
    return SessionUser(id=user_id, email=payload.get("email"))


# ── FastAPI Dependencies ──────────────────────────────────────────────────

async def get_session(
    authorization: Optional[str] = Header(default=None),
) -> Optional[SessionUser]:
    """Resolve the caller from `Authorization: Bearer <token>`, or None."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return decode_token(token.strip())


async def require_session(
    session: Optional[SessionUser] = Depends(get_session),
) -> SessionUser:
    """Same as get_session but anonymous callers get a 401."""
    if session is None:
        raise UnauthorizedError()
    return session
