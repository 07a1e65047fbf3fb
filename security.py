"""
Credentials and bearer tokens

Passwords are hashed with bcrypt. Tokens are HS256 JWTs carrying the
account id ("sub") and role, valid for Settings.jwt_expiration_minutes.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
from pydantic import ValidationError as PydanticValidationError

from config import Settings
from errors import Unauthenticated
from schemas import Principal

logger = logging.getLogger(__name__)


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, stored_hash: str) -> bool:
    if not password or not stored_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash
        return False


def issue_token(settings: Settings, principal: Principal, now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    payload = {
        "sub": principal.id,
        "role": principal.role,
        "iat": now,
        "exp": now + timedelta(minutes=settings.jwt_expiration_minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(settings: Settings, token: str) -> Principal:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise Unauthenticated("Token expired.")
    except jwt.InvalidTokenError as e:
        logger.warning(f"Rejected bearer token: {e}")
        raise Unauthenticated("Invalid token.")
    try:
        return Principal(id=payload["sub"], role=payload.get("role"))
    except PydanticValidationError:
        raise Unauthenticated("Invalid token.")


def principal_from_header(settings: Settings, authorization: Optional[str]) -> Principal:
    if not authorization:
        raise Unauthenticated()
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise Unauthenticated()
    return decode_token(settings, token.strip())
