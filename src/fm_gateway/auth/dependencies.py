"""FastAPI dependencies for caller identity.

Usage in any protected router:
    from src.fm_gateway.auth.dependencies import get_current_user_id

    @router.get("/protected")
    async def protected(user_id: Annotated[str, Depends(get_current_user_id)]):
        ...

Users are owned by the identity service, so identity is the token's `sub`
claim; there is no local users table to look up.
"""

import hmac
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings
from src.fm_common.errors import AdminRequiredError, CollaboratorAuthError, InvalidCredentialsError
from src.fm_gateway.auth.jwt_handler import decode_token

bearer_scheme = HTTPBearer(auto_error=False)

# Reusable 401 exception with WWW-Authenticate header (RFC 6750)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user_id(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
) -> str:
    """Validate the Bearer token and return the caller's user id.

    Raises HTTP 401 if the token is missing, invalid, or expired.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None
    return payload["sub"]


async def require_admin(
    user_id: Annotated[str, Depends(get_current_user_id)],
) -> str:
    """Caller must be listed in ADMIN_USER_IDS (AppError 1006, HTTP 403)."""
    if user_id not in settings.admin_user_ids:
        raise AdminRequiredError()
    return user_id


async def require_collaborator(
    x_collaborator_token: Annotated[str | None, Header()] = None,
) -> None:
    """Revenue-verification collaborator authenticates with a shared token."""
    if x_collaborator_token is None or not hmac.compare_digest(
        x_collaborator_token, settings.COLLABORATOR_TOKEN
    ):
        raise CollaboratorAuthError()
