"""Bearer-token trust service and password hashing."""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, cast

from jose import jwt
from jose.exceptions import JWTError
from passlib.context import CryptContext
from pydantic import ValidationError

from gatepass.core.exceptions import AuthenticationFailed
from gatepass.core.settings import get_settings
from gatepass.models.user import UserRole
from gatepass.schemas.user import TokenPayload

settings = get_settings()

pwd_context = CryptContext(
    schemes=[settings.security.PASSWORD_HASH_ALGORITHM],
    deprecated="auto",
    bcrypt__rounds=settings.security.BCRYPT_ROUNDS,
)

ALGORITHM = settings.security.JWT_ALGORITHM
ACCESS_TOKEN_TYPE = "access"


def issue_access_token(
    user_id: uuid.UUID,
    role: UserRole,
    expires_delta: Optional[timedelta] = None,
) -> str:
    expire = datetime.now(timezone.utc) + (
        expires_delta
        if expires_delta
        else timedelta(minutes=settings.security.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode: dict[str, Any] = {
        "exp": expire,
        "sub": str(user_id),
        "role": role.value,
        "typ": ACCESS_TOKEN_TYPE,
    }
    encoded_jwt = jwt.encode(to_encode, settings.security.SECRET_KEY, algorithm=ALGORITHM)
    return cast(str, encoded_jwt)


def verify_access_token(token: str) -> TokenPayload:
    """Return the claims of a valid access token or raise AuthenticationFailed."""
    try:
        payload = jwt.decode(token, settings.security.SECRET_KEY, algorithms=[ALGORITHM])
        if payload.get("typ") != ACCESS_TOKEN_TYPE:
            raise AuthenticationFailed("Unauthorized. Token expired or invalid.")
        return TokenPayload(**payload)
    except (JWTError, ValidationError):
        raise AuthenticationFailed("Unauthorized. Token expired or invalid.")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def get_password_hash(password: str) -> str:
    return cast(str, pwd_context.hash(password))
