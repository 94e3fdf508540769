"""Shared route dependencies."""

from datetime import datetime
from typing import Annotated
from zoneinfo import ZoneInfo

from fastapi import Depends, Request

from app.core.config import settings
from app.services.floor_runtime import FloorRuntime


def get_floor_runtime(request: Request) -> FloorRuntime:
    """The runtime created in the application lifespan."""
    return request.app.state.floor


def restaurant_now() -> datetime:
    """Current wall-clock time in the restaurant's timezone."""
    return datetime.now(ZoneInfo(settings.timezone))


Runtime = Annotated[FloorRuntime, Depends(get_floor_runtime)]
