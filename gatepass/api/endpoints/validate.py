from typing import Any, Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api import deps
from gatepass.schemas.validation import ValidateRequest, ValidateResponse
from gatepass.services.verification import verify_pass

router = APIRouter()


@router.post(
    "", response_model=ValidateResponse, response_model_exclude_none=True, summary="Verify Pass"
)  # type: ignore[misc]
async def validate_pass(
    *,
    db: AsyncSession = Depends(deps.get_db),
    body: Optional[ValidateRequest] = None,
) -> Any:
    """
    **Verify an Entry Pass at the Gate**

    Checks the pass signature and that its booking still exists. Bookings that
    were revoked report `not_found`. Calling this has no side effects.

    **Responses:**
    - `200`: `{"valid": true, "user_name", "event_name"}`
    - `400`: `{"valid": false, "error", "reason"}` with reason `missing`,
      `expired` or `invalid`
    - `404`: `{"valid": false, "error", "reason": "not_found"}`
    """
    result = await verify_pass(db, body.qr_token if body else None)
    if result.valid:
        return ValidateResponse(
            valid=True, user_name=result.user_name, event_name=result.event_name
        )
    return JSONResponse(
        status_code=result.status_code,
        content={"valid": False, "error": result.error, "reason": result.reason},
    )
