import logging
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session
from blog_api.core.database import get_db
from blog_api.core.errors import InvalidToken, NotFound, Unauthenticated, Unauthorized
from blog_api.core.security import TokenPayload, verify_access_token
from blog_api.models.user import User
from blog_api.services.auth_service import auth_service

logger = logging.getLogger(__name__)

# Extracts "Authorization: Bearer <token>"; auto_error=False so that a
# missing header reaches our own handlers instead of FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


def _token_from(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    if credentials is None or not credentials.credentials:
        return None
    return credentials.credentials


async def authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> TokenPayload:
    """
    Require a valid bearer token.

    No token gives 401, a token that fails verification gives 403. The
    payload is attached to ``request.state.user`` for downstream handlers.
    """
    token = _token_from(credentials)
    if token is None:
        raise Unauthenticated()

    result = verify_access_token(token)
    if not result.ok:
        logger.debug(f"Rejected access token: {result.reason}")
        raise InvalidToken()

    request.state.user = result.payload
    return result.payload


async def optional_authenticate(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[TokenPayload]:
    """Attach the identity when a valid token is present; never rejects"""
    token = _token_from(credentials)
    if token is None:
        return None

    result = verify_access_token(token)
    if not result.ok:
        return None

    request.state.user = result.payload
    return result.payload


def require_role(*roles: str):
    """
    Dependency factory: authenticate, then check the token's role.

    Usage: ``Depends(require_role("admin"))``
    """
    allowed = frozenset(roles)

    async def role_checker(payload: TokenPayload = Depends(authenticate)) -> TokenPayload:
        if payload.role not in allowed:
            raise Unauthorized()
        return payload

    return role_checker


require_admin = require_role("admin")


async def get_current_user(
    payload: TokenPayload = Depends(authenticate),
    db: Session = Depends(get_db),
) -> User:
    """
    Load the user a token was issued to.

    A deleted or deactivated user gets 404 even while the token is still
    within its validity window.
    """
    user = auth_service.get_active_user(db, payload.userId)
    if user is None:
        raise NotFound("User does not exist or is disabled")
    return user
