from pydantic import BaseModel, field_validator
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from rssy.core.exceptions import TimeConfigError
from rssy.models.preference import DEFAULT_CLEANUP_EXPIRED_DAYS
from rssy.services.time_window import parse_hhmm


class UserPreferenceUpdate(BaseModel):
    cleanup_expired_days: Optional[int] = None
    enable_auto_cleanup: Optional[bool] = None
    enable_notify: Optional[bool] = None
    notify_time: Optional[str] = None
    enable_ai_summary: Optional[bool] = None
    ai_summary_time: Optional[str] = None
    ai_summary_prompt: Optional[str] = None
    timezone: Optional[str] = None

    @field_validator("notify_time", "ai_summary_time")
    @classmethod
    def validate_hhmm(cls, v):
        if v is None:
            return v
        try:
            parse_hhmm(v)
        except TimeConfigError as e:
            raise ValueError(str(e))
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if not v:
            return None
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {v}")
        return v

    @field_validator("cleanup_expired_days")
    @classmethod
    def validate_cleanup_days(cls, v):
        if v is not None and v <= 0:
            return DEFAULT_CLEANUP_EXPIRED_DAYS
        return v


class UserPreference(BaseModel):
    """Snapshot of a preference row, safe to cache across sessions."""

    email: str
    cleanup_expired_days: int
    enable_auto_cleanup: bool
    enable_notify: bool
    notify_time: str
    enable_ai_summary: bool
    ai_summary_time: str
    ai_summary_prompt: str
    timezone: Optional[str] = None

    class Config:
        from_attributes = True
