from typing import Callable, Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer

from gatepass.core import security
from gatepass.core.database_manager import get_db  # noqa: F401
from gatepass.core.exceptions import AuthenticationFailed, PermissionDenied
from gatepass.core.settings import settings
from gatepass.models.user import UserRole
from gatepass.schemas.user import TokenPayload

reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_PREFIX}/auth/login", auto_error=False
)


async def get_current_user(token: Optional[str] = Depends(reusable_oauth2)) -> TokenPayload:
    """Identity and role from the bearer token. No database access."""
    if not token:
        raise AuthenticationFailed()
    return security.verify_access_token(token)


def require_role(*roles: UserRole) -> Callable[..., TokenPayload]:
    def role_checker(current_user: TokenPayload = Depends(get_current_user)) -> TokenPayload:
        if current_user.role not in roles:
            names = " or ".join(r.value for r in roles)
            raise PermissionDenied(f"Forbidden. Endpoint requires {names} privileges.")
        return current_user

    return role_checker


get_current_organizer = require_role(UserRole.ORGANIZER)
