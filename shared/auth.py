"""End-user identity as propagated by the API gateway."""
from typing import Optional

from fastapi import Header, HTTPException, status
from pydantic import BaseModel

ADMIN_ROLE = "admin"


class CurrentUser(BaseModel):
    """Authenticated caller of a user-facing route."""
    id: int
    role: str = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


async def require_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> CurrentUser:
    """
    Read the caller's identity from the headers the gateway sets.

    Users log in at the auth service; the gateway verifies their token,
    strips any client-sent identity headers and forwards ``X-User-Id``
    and ``X-User-Role``. This service only consumes them.

    Raises:
        HTTPException 401: no usable identity on the request
    """
    if not x_user_id or not x_user_id.strip().isdigit():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User authentication required",
        )

    return CurrentUser(id=int(x_user_id.strip()), role=(x_user_role or "user").strip().lower())
