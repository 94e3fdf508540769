"""Geofence and device location schemas."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator, model_validator

from app.core.config import settings
from app.services.location_source import LocationErrorReason


def _check_latitude(v: float) -> float:
    if v < -90 or v > 90:
        raise ValueError("Latitude must be between -90 and 90")
    return v


def _check_longitude(v: float) -> float:
    if v < -180 or v > 180:
        raise ValueError("Longitude must be between -180 and 180")
    return v


class GeofenceUpdate(BaseModel):
    """Admin geofence settings."""

    latitude: float
    longitude: float
    radius: float = settings.geofence_default_radius_meters

    @field_validator("latitude")
    @classmethod
    def validate_latitude(cls, v: float) -> float:
        return _check_latitude(v)

    @field_validator("longitude")
    @classmethod
    def validate_longitude(cls, v: float) -> float:
        return _check_longitude(v)

    @field_validator("radius")
    @classmethod
    def validate_radius(cls, v: float) -> float:
        if v < 1 or v > 1000:
            raise ValueError("Radius must be between 1 and 1000 meters")
        return v


class GeofenceResponse(BaseModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    radius: float
    configured: bool


class GeofenceCheckRequest(BaseModel):
    latitude: float
    longitude: float

    @field_validator("latitude")
    @classmethod
    def validate_latitude(cls, v: float) -> float:
        return _check_latitude(v)

    @field_validator("longitude")
    @classmethod
    def validate_longitude(cls, v: float) -> float:
        return _check_longitude(v)


class GeofenceCheckResponse(BaseModel):
    within: bool
    configured: bool
    distance_meters: Optional[float] = None
    radius: float


class DeviceLocationReport(BaseModel):
    """A tablet's GPS fix, or the reason it could not get one."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    error: Optional[LocationErrorReason] = None
    connection_type: Optional[str] = None

    @field_validator("latitude")
    @classmethod
    def validate_latitude(cls, v: Optional[float]) -> Optional[float]:
        return _check_latitude(v) if v is not None else v

    @field_validator("longitude")
    @classmethod
    def validate_longitude(cls, v: Optional[float]) -> Optional[float]:
        return _check_longitude(v) if v is not None else v

    @model_validator(mode="after")
    def validate_fix_or_error(self) -> "DeviceLocationReport":
        if self.error is None and (self.latitude is None or self.longitude is None):
            raise ValueError("Report needs latitude and longitude, or an error")
        return self


class GuardStatusResponse(BaseModel):
    device_id: str
    state: str
    location_error: Optional[str] = None
    distance_meters: Optional[float] = None
    last_sample: Optional[Dict[str, Any]] = None
    last_checked_at: Optional[str] = None
    running: bool
    decision: Dict[str, Any]
