"""
Development authentication routes.

Signing in with an email creates the user on first use and issues a bearer
token. Tokens live in process memory only.
"""

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .db import get_session
from .models import User
from .schemas import LoginRequest, LoginResponse, UserRead
from .services.errors import AuthenticationRequired, ValidationError
from .settings import get_settings

router = APIRouter(prefix="/api/auth", tags=["auth"])
security = HTTPBearer(auto_error=False)
SessionDep = Depends(get_session)


@dataclass
class _Token:
    user_id: int
    expires_at: datetime


# in production use Redis or DB
_tokens: dict[str, _Token] = {}


def _generate_token() -> str:
    return secrets.token_urlsafe(32)


def _cleanup_expired_tokens():
    now = datetime.now(timezone.utc)
    expired = [t for t, info in _tokens.items() if info.expires_at < now]
    for t in expired:
        del _tokens[t]


def issue_token(user: User) -> tuple[str, datetime]:
    _cleanup_expired_tokens()
    token = _generate_token()
    expires_at = datetime.now(timezone.utc) + timedelta(hours=get_settings().auth_token_ttl_hours)
    _tokens[token] = _Token(user_id=user.id, expires_at=expires_at)
    return token, expires_at


@router.post("/login", response_model=LoginResponse)
async def login(request: LoginRequest, session: AsyncSession = SessionDep):
    """Sign in by email; the account is created on first sign-in."""
    if "@" not in request.email:
        raise ValidationError("Enter a valid email address", field="email")

    user = await session.scalar(select(User).where(User.email == request.email))
    if user is None:
        user = User(email=request.email, name=(request.name or request.email.split("@", 1)[0]).strip())
        session.add(user)
        await session.commit()
        await session.refresh(user)

    token, expires_at = issue_token(user)
    return LoginResponse(token=token, expires_at=expires_at.isoformat(), user_id=user.id)


@router.post("/logout")
async def logout(credentials: HTTPAuthorizationCredentials = Depends(security)):
    """Invalidate current token."""
    if credentials and credentials.credentials in _tokens:
        del _tokens[credentials.credentials]
    return {"status": "logged out"}


async def get_optional_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    session: AsyncSession = SessionDep,
) -> Optional[User]:
    """Dependency that returns the signed-in user, or None."""
    if not credentials:
        return None
    _cleanup_expired_tokens()
    info = _tokens.get(credentials.credentials)
    if info is None:
        return None
    return await session.get(User, info.user_id)


async def require_user(user: Optional[User] = Depends(get_optional_user)) -> User:
    """Dependency that requires authentication."""
    if user is None:
        raise AuthenticationRequired("Not authenticated")
    return user


@router.get("/me", response_model=UserRead)
async def get_current_user(user: User = Depends(require_user)):
    return user
