"""FastAPI dependencies: current user from JWT, request timezone, process-wide services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request
from jose import JWTError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.core.auth import decode_token
from liubai.db.session import get_db
from liubai.models.user import User
from liubai.services.reply_orchestrator import ReplyOrchestrator
from liubai.services.time_context import resolve_timezone


async def get_current_user(
    request: Request,
    session: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Not authenticated")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = decode_token(token)
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    try:
        user_id = int(payload.get("sub") or "")
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    r = await session.execute(select(User).where(User.id == user_id))
    user = r.scalar_one_or_none()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_user_timezone(request: Request) -> str:
    """IANA zone hint from the timezone cookie, default zone when absent."""
    return resolve_timezone(request)


def get_reply_orchestrator(request: Request) -> ReplyOrchestrator:
    orchestrator = getattr(request.app.state, "reply_orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Check-in service is starting up")
    return orchestrator
