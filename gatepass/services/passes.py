"""
Entry passes: signed tokens binding a booking to its holder and event.

A pass is an HS256 JWT signed with ``PASS_SECRET_KEY``, which is never used for
access tokens, so a login token can not be presented at the gate and a pass can
not be used as a bearer token.
"""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Sequence, Tuple, cast

import segno
from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError

from gatepass.core.exceptions import PassExpired, PassTampered
from gatepass.core.settings import get_settings

settings = get_settings()

PASS_TOKEN_TYPE = "pass"


@dataclass(frozen=True)
class PassClaims:
    booking_id: uuid.UUID
    user_id: uuid.UUID
    event_id: uuid.UUID
    seats: Tuple[str, ...] = field(default_factory=tuple)
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


def _as_uuid(value: Any) -> uuid.UUID:
    if not isinstance(value, str):
        raise PassTampered("Malformed payload: Token missing booking reference.")
    try:
        return uuid.UUID(value)
    except ValueError:
        raise PassTampered("Malformed payload: Token missing booking reference.")


def _timestamp(value: Any) -> Optional[datetime]:
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc)
    return None


class PassIssuer:
    def __init__(
        self,
        secret_key: Optional[str] = None,
        lifetime: Optional[timedelta] = None,
        algorithm: Optional[str] = None,
    ) -> None:
        self.secret_key = secret_key or settings.security.PASS_SECRET_KEY
        self.lifetime = lifetime or timedelta(days=settings.security.PASS_TOKEN_EXPIRE_DAYS)
        self.algorithm = algorithm or settings.security.JWT_ALGORITHM

    def mint(
        self,
        booking_id: uuid.UUID,
        holder_id: uuid.UUID,
        event_id: uuid.UUID,
        seats: Sequence[str] = (),
    ) -> str:
        """Sign a pass for a booking that exists in the current transaction"""
        now = datetime.now(timezone.utc)
        claims: Dict[str, Any] = {
            "booking_id": str(booking_id),
            "user_id": str(holder_id),
            "event_id": str(event_id),
            "seats": list(seats),
            "typ": PASS_TOKEN_TYPE,
            "iat": now,
            "exp": now + self.lifetime,
        }
        return cast(str, jwt.encode(claims, self.secret_key, algorithm=self.algorithm))

    def decode(self, token: str) -> PassClaims:
        """Verify signature and expiry, then parse the claims.

        Raises ``PassExpired`` for an expired pass and ``PassTampered`` for
        anything else that does not check out.
        """
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            raise PassExpired()
        except JWTError:
            raise PassTampered()

        if payload.get("typ") != PASS_TOKEN_TYPE:
            raise PassTampered()

        seats = payload.get("seats") or []
        if not isinstance(seats, list) or not all(isinstance(s, str) for s in seats):
            raise PassTampered()

        return PassClaims(
            booking_id=_as_uuid(payload.get("booking_id")),
            user_id=_as_uuid(payload.get("user_id")),
            event_id=_as_uuid(payload.get("event_id")),
            seats=tuple(seats),
            issued_at=_timestamp(payload.get("iat")),
            expires_at=_timestamp(payload.get("exp")),
        )


def render_data_uri(token: str, scale: int = 6) -> str:
    """PNG data URI of the token encoded as a QR code"""
    qr = segno.make_qr(token, error="m")
    return cast(str, qr.png_data_uri(scale=scale, border=2))


pass_issuer = PassIssuer()
