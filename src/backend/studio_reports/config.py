"""
Report settings read from the environment.
"""

from __future__ import annotations

import os

from pydantic import BaseModel

from .dates import DEFAULT_TIMEZONE
from .overview import DEFAULT_LESSON_CAPACITY, RECENT_ACTIVITY_DAYS, RECENT_ACTIVITY_LIMIT


class ReportSettings(BaseModel):
    timezone: str = DEFAULT_TIMEZONE
    activity_days: int = RECENT_ACTIVITY_DAYS
    activity_limit: int = RECENT_ACTIVITY_LIMIT
    default_lesson_capacity: int = DEFAULT_LESSON_CAPACITY
    auto_maintenance: bool = True


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> ReportSettings:
    defaults = ReportSettings()
    return ReportSettings(
        timezone=os.getenv("STUDIO_REPORTS_TIMEZONE", defaults.timezone),
        activity_days=_env_int("STUDIO_REPORTS_ACTIVITY_DAYS", defaults.activity_days),
        activity_limit=_env_int("STUDIO_REPORTS_ACTIVITY_LIMIT", defaults.activity_limit),
        default_lesson_capacity=_env_int("STUDIO_REPORTS_DEFAULT_CAPACITY", defaults.default_lesson_capacity),
        auto_maintenance=_env_bool("STUDIO_REPORTS_AUTO_MAINTENANCE", defaults.auto_maintenance),
    )
