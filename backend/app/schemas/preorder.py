"""Pre-order window schemas."""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, field_validator, model_validator

from app.services.preorder_service import PreOrderWindow, format_hhmm, parse_hhmm


class PreOrderSettingsUpdate(BaseModel):
    """Admin pre-order settings. Absent fields fall back to the defaults."""

    enabled: bool = False
    start_time: str = "00:00"
    end_time: str = "23:59"
    days_of_week: List[int] = [0, 1, 2, 3, 4, 5, 6]

    @field_validator("start_time", "end_time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        return format_hhmm(parse_hhmm(v))

    @field_validator("days_of_week")
    @classmethod
    def validate_days(cls, v: List[int]) -> List[int]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError("Days of week must be between 0 (Sunday) and 6 (Saturday)")
        return sorted(set(v))

    @model_validator(mode="after")
    def validate_days_selected(self) -> "PreOrderSettingsUpdate":
        if self.enabled and not self.days_of_week:
            raise ValueError("Please select at least one day")
        return self

    def to_window(self) -> PreOrderWindow:
        return PreOrderWindow(
            enabled=self.enabled,
            start=parse_hhmm(self.start_time),
            end=parse_hhmm(self.end_time),
            days_of_week=frozenset(self.days_of_week),
        )


class PreOrderSettingsResponse(BaseModel):
    enabled: bool
    start_time: str
    end_time: str
    days_of_week: List[int]
    crosses_midnight: bool

    @classmethod
    def from_window(cls, window: PreOrderWindow) -> "PreOrderSettingsResponse":
        return cls(
            enabled=window.enabled,
            start_time=format_hhmm(window.start),
            end_time=format_hhmm(window.end),
            days_of_week=sorted(window.days_of_week),
            crosses_midnight=window.crosses_midnight,
        )


class PreOrderStatusResponse(BaseModel):
    enabled: bool
    allowed: bool
    opens_in_seconds: Optional[int] = None
    opens_in: Optional[str] = None
    closes_in_seconds: Optional[int] = None
    closes_in: Optional[str] = None
    days: List[str]
    start_time: str
    end_time: str
    now: str
