"""
Request dependencies
Bearer-token authentication and role guards for the API routes.
"""

from typing import Callable, Optional

from fastapi import Depends, HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .models import UserTable
from .repository import HostelRepository
from .security import decode_access_token

security = HTTPBearer(auto_error=False)


def get_repo(request: Request) -> HostelRepository:
    return request.app.state.repo


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    repo: HostelRepository = Depends(get_repo),
) -> dict:
    """Decoded claims of a valid, non-revoked bearer token."""
    if not credentials:
        raise HTTPException(status_code=401, detail="Unauthorized")

    claims = decode_access_token(credentials.credentials)
    if claims is None or repo.is_token_revoked(claims["jti"]):
        raise HTTPException(status_code=401, detail="Unauthorized")
    return claims


def current_user(
    claims: dict = Depends(get_token_claims),
    repo: HostelRepository = Depends(get_repo),
) -> UserTable:
    user = repo.get_user(claims["sub"])
    if user is None:
        # account removed after the token was issued
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def require_role(*roles: str) -> Callable[..., UserTable]:
    """Dependency factory: 403 unless the caller has one of ``roles``."""

    def guard(user: UserTable = Depends(current_user)) -> UserTable:
        if user.role not in roles:
            raise HTTPException(status_code=403, detail="Forbidden")
        return user

    return guard
