"""Scan-time verification of presented passes."""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.core.exceptions import PassError, PassMissing
from gatepass.core.metrics import metrics
from gatepass.crud import booking as crud_booking
from gatepass.services.passes import PassIssuer, pass_issuer

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "No matching booking found for this token. Token may be revoked."


@dataclass(frozen=True)
class VerificationResult:
    valid: bool
    user_name: Optional[str] = None
    event_name: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None
    status_code: int = status.HTTP_200_OK


async def verify_pass(
    db: AsyncSession, token: Optional[str], issuer: Optional[PassIssuer] = None
) -> VerificationResult:
    """Check a pass signature, then that its booking still exists with this exact token.

    Read-only; verifying the same pass twice gives the same answer.
    """
    issuer = issuer or pass_issuer
    try:
        if not token:
            raise PassMissing()
        claims = issuer.decode(token)
    except PassError as e:
        metrics.pass_verifications_total.labels(result=e.reason).inc()
        return VerificationResult(
            valid=False, reason=e.reason, error=e.message, status_code=e.status_code
        )

    row = await crud_booking.find_live_pass(db, claims.booking_id, token)
    if row is None:
        logger.info(f"Pass for booking {claims.booking_id} has no live booking")
        metrics.pass_verifications_total.labels(result="not_found").inc()
        return VerificationResult(
            valid=False,
            reason="not_found",
            error=NOT_FOUND_MESSAGE,
            status_code=status.HTTP_404_NOT_FOUND,
        )

    metrics.pass_verifications_total.labels(result="valid").inc()
    return VerificationResult(valid=True, user_name=row.user_name, event_name=row.event_name)
