"""Marketplace Settlement Engine - Clerk session authentication.

Users are provisioned by the marketplace's account service. This module
only turns a verified Clerk session into the local ``User`` row and gates
routes by role.
"""

import logging
from typing import Annotated

from clerk_backend_api import AuthenticateRequestOptions, authenticate_request
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from src.core.config import get_settings
from src.db import get_db
from src.models.user import User, UserRole

logger = logging.getLogger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


class ClerkAuth:
    """Verifies Clerk session tokens against the configured secret key."""

    def __init__(self, secret_key: str, authorized_parties: list[str] | None = None) -> None:
        self._options = AuthenticateRequestOptions(
            secret_key=secret_key,
            authorized_parties=authorized_parties,
        )

    def subject(self, request: Request) -> str:
        """Clerk user id (``sub`` claim) of a signed-in request.

        Raises:
            HTTPException: 401 when the session cannot be verified
        """
        try:
            state = authenticate_request(request, self._options)
        except Exception as e:
            logger.warning(f"Clerk verification error: {e}")
            raise _unauthorized("Authentication failed") from e

        if not state.is_signed_in:
            raise _unauthorized("Invalid or expired token")

        clerk_id = (state.payload or {}).get("sub")
        if not clerk_id:
            raise _unauthorized("Invalid token: missing user ID")
        return clerk_id


_clerk_auth: ClerkAuth | None = None


def get_clerk_auth() -> ClerkAuth:
    """Process-wide ClerkAuth built from settings."""
    global _clerk_auth
    if _clerk_auth is None:
        settings = get_settings()
        origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
        _clerk_auth = ClerkAuth(settings.clerk_secret_key, authorized_parties=origins or None)
    return _clerk_auth


async def get_current_user(
    request: Request,
    db: Annotated[AsyncSession, Depends(get_db)],
    clerk: Annotated[ClerkAuth, Depends(get_clerk_auth)],
) -> User:
    """Local user behind the request's Clerk session.

    Unknown or disabled users get 403: the session is valid but the
    settlement service has nothing for them.
    """
    clerk_id = clerk.subject(request)

    result = await db.execute(select(User).where(User.clerk_id == clerk_id))
    user = result.scalar_one_or_none()
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="User not found or disabled",
        )
    return user


def require_role(*roles: UserRole):
    """Dependency factory admitting only users with one of ``roles``.

    Usage:
        AdminUser = Annotated[User, Depends(require_role(UserRole.ADMIN))]
    """
    allowed = ", ".join(r.value for r in roles)

    async def role_checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Required role: {allowed}",
            )
        return user

    return role_checker
