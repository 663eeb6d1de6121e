from typing import Any

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from gatepass.api import deps
from gatepass.core import security
from gatepass.core.db_utils import safe_rollback
from gatepass.core.exceptions import AuthenticationFailed, DuplicateUser
from gatepass.crud import user as crud_user
from gatepass.schemas.user import AuthResponse
from gatepass.schemas.user import User as UserSchema
from gatepass.schemas.user import UserLogin, UserRegister

router = APIRouter()


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Account",
)  # type: ignore[misc]
async def register(
    *,
    db: AsyncSession = Depends(deps.get_db),
    user_in: UserRegister,
) -> Any:
    """
    **Create an Account**

    Registers a ticket holder (`user`) or an event organizer (`organizer`)
    and returns an access token so the client is signed in immediately.

    **Request Body:**
    - `name` (string): Display name
    - `email` / `phone`: At least one is required, both must be unique
    - `password` (string): Minimum 8 characters
    - `role`: `user` or `organizer`

    **Errors:**
    - `400`: Missing or invalid fields
    - `409`: Email or phone already registered
    """
    existing = await crud_user.get_by_contact(db, email=user_in.email, phone=user_in.phone)
    if existing:
        raise DuplicateUser()

    try:
        user = await crud_user.create(db, obj_in=user_in)
    except IntegrityError:
        # Lost a race against a concurrent registration with the same contact
        await safe_rollback(db)
        raise DuplicateUser()

    token = security.issue_access_token(user.id, user.role)
    return AuthResponse(
        message="Registration successful", user=UserSchema.model_validate(user), token=token
    )


@router.post("/login", response_model=AuthResponse, summary="User Login")  # type: ignore[misc]
async def login(
    *,
    db: AsyncSession = Depends(deps.get_db),
    credentials: UserLogin,
) -> Any:
    """
    **Authenticate and Get Access Token**

    Accepts either `email` or `phone` together with `password`. The returned
    token is sent as `Authorization: Bearer <token>` on protected routes.

    **Errors:**
    - `400`: Neither email nor phone supplied
    - `401`: Invalid login credentials
    """
    user = await crud_user.authenticate(
        db, email=credentials.email, phone=credentials.phone, password=credentials.password
    )
    if not user:
        raise AuthenticationFailed("Invalid login credentials.")

    token = security.issue_access_token(user.id, user.role)
    return AuthResponse(
        message="Login successful", user=UserSchema.model_validate(user), token=token
    )
