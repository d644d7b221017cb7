"""User settings API schemas."""

import re

from pydantic import BaseModel, Field, field_validator

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class SettingsOut(BaseModel):
    id: int
    email: str
    name: str
    energy_reserve_ratio: float
    check_in_times: list[str]


class SettingsUpdateBody(BaseModel):
    """Partial update; reserve ratio bounds are checked in the router against settings."""

    energy_reserve_ratio: float | None = None
    check_in_times: list[str] | None = None
    name: str | None = Field(default=None, max_length=100)

    @field_validator("check_in_times")
    @classmethod
    def _check_times(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        cleaned = [t.strip() for t in v if t and t.strip()]
        for t in cleaned:
            if not _HHMM.match(t):
                raise ValueError(f"invalid time {t!r}, expected HH:MM")
        return sorted(set(cleaned))

    @field_validator("name")
    @classmethod
    def _check_name(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("name must not be empty")
        return v


class TimezoneBody(BaseModel):
    timezone: str = Field(..., min_length=1, max_length=64)
