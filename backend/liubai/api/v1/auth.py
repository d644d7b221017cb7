"""Auth: register, login, refresh, me."""

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user
from liubai.config import settings
from liubai.core.auth import (
    MIN_PASSWORD_LENGTH,
    create_access_token,
    create_refresh_token,
    hash_password,
    hash_refresh_token,
    verify_password,
)
from liubai.db.session import get_db
from liubai.models.refresh_token import RefreshToken
from liubai.models.user import User

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/auth", tags=["auth"])

ACCESS_TOKEN_EXPIRE_SECONDS = settings.access_token_expire_minutes * 60


class RegisterBody(BaseModel):
    email: str
    password: str
    name: str


class LoginBody(BaseModel):
    email: str
    password: str


class UserOut(BaseModel):
    id: int
    email: str
    name: str


class TokenResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds until access token expires
    user: UserOut


class RefreshBody(BaseModel):
    refresh_token: str


def _user_out(user: User) -> UserOut:
    return UserOut(id=user.id, email=user.email, name=user.name)


async def _issue_tokens(session: AsyncSession, user: User) -> TokenResponse:
    """Access token plus a new refresh token (stored hashed)."""
    refresh_plain = create_refresh_token()
    session.add(
        RefreshToken(
            user_id=user.id,
            token_hash=hash_refresh_token(refresh_plain),
            expires_at=datetime.now(timezone.utc) + timedelta(days=settings.refresh_token_expire_days),
        )
    )
    await session.flush()
    return TokenResponse(
        access_token=create_access_token(user.id, user.email),
        refresh_token=refresh_plain,
        expires_in=ACCESS_TOKEN_EXPIRE_SECONDS,
        user=_user_out(user),
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    summary="Register a new user",
    responses={400: {"description": "Missing fields, short password or email already registered"}},
)
async def register(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RegisterBody,
) -> TokenResponse:
    email = (body.email or "").strip().lower()
    password = body.password or ""
    name = (body.name or "").strip()
    if not email or not password or not name:
        raise HTTPException(status_code=400, detail="Email, password and name required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    r = await session.execute(select(User).where(User.email == email))
    if r.scalar_one_or_none() is not None:
        raise HTTPException(status_code=400, detail="Email already registered")
    user = User(
        email=email,
        password_hash=hash_password(password),
        name=name,
        energy_reserve_ratio=settings.default_reserve_ratio,
        check_in_times=settings.default_check_in_times,
    )
    try:
        session.add(user)
        await session.flush()
    except IntegrityError as e:
        logger.warning("Register IntegrityError: %s", e)
        raise HTTPException(status_code=400, detail="Email already registered") from e
    logger.info("Registered user_id=%s", user.id)
    return await _issue_tokens(session, user)


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Login with email and password",
    responses={401: {"description": "Invalid email or password"}},
)
async def login(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: LoginBody,
) -> TokenResponse:
    email = (body.email or "").strip().lower()
    r = await session.execute(select(User).where(User.email == email))
    user = r.scalar_one_or_none()
    if not user or not user.password_hash or not verify_password(body.password or "", user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    return await _issue_tokens(session, user)


@router.post(
    "/refresh",
    response_model=TokenResponse,
    summary="Exchange refresh token for new access and refresh tokens",
    responses={401: {"description": "Refresh token required, invalid or expired"}},
)
async def refresh_tokens(
    session: Annotated[AsyncSession, Depends(get_db)],
    body: RefreshBody,
) -> TokenResponse:
    token = (body.refresh_token or "").strip()
    if not token:
        raise HTTPException(status_code=401, detail="Refresh token required")
    r = await session.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == hash_refresh_token(token),
            RefreshToken.expires_at > datetime.now(timezone.utc),
        )
    )
    row = r.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=401, detail="Invalid or expired refresh token")
    user_id = row.user_id
    await session.delete(row)
    await session.flush()
    r_user = await session.execute(select(User).where(User.id == user_id))
    user = r_user.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return await _issue_tokens(session, user)


@router.get(
    "/me",
    response_model=UserOut,
    summary="Get current authenticated user",
    responses={401: {"description": "Not authenticated or invalid token"}},
)
async def me(user: Annotated[User, Depends(get_current_user)]) -> UserOut:
    return _user_out(user)
