from typing import Optional

from pydantic import BaseModel


class ValidateRequest(BaseModel):
    qr_token: Optional[str] = None


class ValidateResponse(BaseModel):
    valid: bool
    user_name: Optional[str] = None
    event_name: Optional[str] = None
    error: Optional[str] = None
    reason: Optional[str] = None
