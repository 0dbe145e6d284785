"""Identity helpers: bearer token verification and user record provisioning.

Tokens are issued by the identity provider; this service only verifies them.
``create_access_token`` exists for tooling and tests.
"""

import logging
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from studysage.core.config import settings
from studysage.models.user import User

logger = logging.getLogger(__name__)

# JWT configuration
ALGORITHM = "HS256"


def create_access_token(
    user_id: str,
    email: str | None = None,
    expires_delta: timedelta | None = None,
) -> str:
    """Create a JWT access token for a user."""
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(
            minutes=settings.access_token_expire_minutes
        )

    to_encode = {
        "sub": user_id,
        "exp": expire,
        "iat": datetime.now(timezone.utc),
    }
    if email:
        to_encode["email"] = email

    return jwt.encode(to_encode, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict | None:
    """Decode a JWT access token and return its claims, or None if invalid."""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not payload.get("sub"):
        return None
    return payload


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    """Get a user by their ID."""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_or_create_user(db: AsyncSession, claims: dict) -> User:
    """Return the user for a verified subject, creating a fresh record on first sight."""
    user_id = str(claims["sub"])
    user = await get_user_by_id(db, user_id)
    if user is not None:
        return user

    user = User(
        id=user_id,
        email=claims.get("email"),
        first_name=claims.get("given_name"),
        last_name=claims.get("family_name"),
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        # Another request created it first
        existing = await get_user_by_id(db, user_id)
        if existing is not None:
            return existing

        # Otherwise the email is already taken by a different subject
        logger.warning("Email of new user %s is already in use, storing it without one", user_id)
        user = User(
            id=user_id,
            first_name=claims.get("given_name"),
            last_name=claims.get("family_name"),
        )
        db.add(user)
        await db.commit()
    return user
