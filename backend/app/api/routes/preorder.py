"""Pre-order window routes."""

import logging
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Query

from app.api.deps import Runtime, restaurant_now
from app.core.config import settings
from app.schemas.preorder import PreOrderSettingsResponse, PreOrderSettingsUpdate, PreOrderStatusResponse
from app.services.config_store import load_preorder_window, save_preorder_window
from app.services.preorder_service import preorder_status

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/settings", response_model=PreOrderSettingsResponse)
def get_preorder_settings(runtime: Runtime):
    return PreOrderSettingsResponse.from_window(load_preorder_window(runtime.store))


@router.put("/settings", response_model=PreOrderSettingsResponse)
def update_preorder_settings(body: PreOrderSettingsUpdate, runtime: Runtime):
    window = save_preorder_window(runtime.store, body.to_window())
    logger.info(f"Pre-order settings updated: enabled={window.enabled} days={sorted(window.days_of_week)}")
    return PreOrderSettingsResponse.from_window(window)


@router.get("/status", response_model=PreOrderStatusResponse)
def get_preorder_status(
    runtime: Runtime,
    at: Optional[datetime] = Query(None, description="Evaluate at this time instead of now (preview)"),
):
    """Whether pre-orders are open, and how long until they open or close."""
    if at is None:
        now = restaurant_now()
    elif at.tzinfo is None:
        now = at.replace(tzinfo=ZoneInfo(settings.timezone))
    else:
        now = at.astimezone(ZoneInfo(settings.timezone))

    window = load_preorder_window(runtime.store)
    return {**preorder_status(window, now), "now": now.isoformat()}
