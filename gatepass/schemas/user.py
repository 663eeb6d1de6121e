import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from gatepass.models.user import UserRole


class UserRegister(BaseModel):
    name: str = Field(..., min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, pattern=r"^\+?[0-9]{7,15}$")
    password: str = Field(..., min_length=8)
    role: UserRole

    @model_validator(mode="after")
    def require_contact(self) -> "UserRegister":
        if not self.email and not self.phone:
            raise ValueError("Either email or phone is required.")
        return self


class UserLogin(BaseModel):
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    password: str = Field(..., min_length=1)

    @model_validator(mode="after")
    def require_contact(self) -> "UserLogin":
        if not self.email and not self.phone:
            raise ValueError(
                "Missing credentials. Please provide password and either email or phone."
            )
        return self


class User(BaseModel):
    id: uuid.UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: UserRole
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class AuthResponse(BaseModel):
    message: str
    user: User
    token: str


class TokenPayload(BaseModel):
    """Claims carried by a verified bearer token"""

    sub: uuid.UUID
    role: UserRole

    @property
    def user_id(self) -> uuid.UUID:
        return self.sub
