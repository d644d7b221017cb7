"""User settings: display name, energy reserve ratio, reminder times and the timezone hint."""

import logging
from typing import Annotated
from urllib.parse import quote

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.ext.asyncio import AsyncSession

from liubai.api.deps import get_current_user
from liubai.config import settings
from liubai.db.session import get_db
from liubai.models.user import User
from liubai.schemas.settings import SettingsOut, SettingsUpdateBody, TimezoneBody
from liubai.services.time_context import validate_timezone

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/settings", tags=["settings"])


def _settings_out(user: User) -> SettingsOut:
    times = [t for t in (user.check_in_times or "").split(",") if t]
    return SettingsOut(
        id=user.id,
        email=user.email,
        name=user.name,
        energy_reserve_ratio=user.energy_reserve_ratio,
        check_in_times=times,
    )


@router.get(
    "",
    response_model=SettingsOut,
    summary="Get current user settings",
    responses={401: {"description": "Not authenticated"}},
)
async def get_settings(user: Annotated[User, Depends(get_current_user)]) -> SettingsOut:
    return _settings_out(user)


@router.put(
    "",
    response_model=SettingsOut,
    summary="Update user settings",
    responses={
        400: {"description": "Nothing to update or reserve ratio out of range"},
        401: {"description": "Not authenticated"},
    },
)
async def update_settings(
    session: Annotated[AsyncSession, Depends(get_db)],
    user: Annotated[User, Depends(get_current_user)],
    body: SettingsUpdateBody,
) -> SettingsOut:
    data = body.model_dump(exclude_unset=True, exclude_none=True)
    if not data:
        raise HTTPException(status_code=400, detail="No settings to update")
    if "energy_reserve_ratio" in data:
        ratio = data["energy_reserve_ratio"]
        if not settings.min_reserve_ratio <= ratio <= settings.max_reserve_ratio:
            raise HTTPException(
                status_code=400,
                detail=(
                    f"energy_reserve_ratio must be between "
                    f"{settings.min_reserve_ratio} and {settings.max_reserve_ratio}"
                ),
            )
        user.energy_reserve_ratio = ratio
    if "check_in_times" in data:
        user.check_in_times = ",".join(data["check_in_times"])
    if "name" in data:
        user.name = data["name"]
    await session.flush()
    logger.info("Settings updated for user_id=%s: %s", user.id, sorted(data))
    return _settings_out(user)


@router.put(
    "/timezone",
    summary="Set the timezone used for today, periods and check-in timestamps",
    responses={400: {"description": "Unknown IANA timezone"}},
)
async def set_timezone(body: TimezoneBody, response: Response) -> dict:
    """Validated here and stored in a cookie; requests read the cookie without re-validating."""
    tz = body.timezone.strip()
    if not validate_timezone(tz):
        raise HTTPException(status_code=400, detail=f"Unknown timezone: {tz}")
    response.set_cookie(
        key=settings.timezone_cookie_name,
        value=quote(tz, safe=""),
        max_age=settings.timezone_cookie_max_age_days * 24 * 3600,
        path="/",
        samesite="lax",
    )
    return {"timezone": tz}
