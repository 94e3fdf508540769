"""New-order alert routes for the kitchen display and waiter terminals."""

import logging
from functools import lru_cache

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import Response

from app.api.deps import Runtime
from app.services.audio_alert import NEW_ORDER_CHIME, render_wav

logger = logging.getLogger(__name__)

router = APIRouter()


@lru_cache(maxsize=1)
def _chime_wav() -> bytes:
    return render_wav(NEW_ORDER_CHIME)


def _check_channel(runtime, channel: str) -> None:
    if channel not in runtime.alerts.sinks:
        raise HTTPException(status_code=404, detail=f"Unknown alert channel '{channel}'")


@router.get("/status")
def get_alert_status(runtime: Runtime):
    """Audio and notification readiness per channel."""
    return runtime.alerts.status()


@router.post("/arm")
def arm_audio(runtime: Runtime, channel: str = Query(..., description="kitchen or waiters")):
    """Unlock audio for a channel after the first user interaction."""
    _check_channel(runtime, channel)
    armed_now = runtime.alerts.arm(channel)
    if armed_now:
        logger.info(f"Audio alerts armed for {channel}")
    return {"channel": channel, "audio": runtime.alerts.sinks[channel].state.value, "armed_now": armed_now}


@router.post("/test")
async def test_sound(runtime: Runtime, channel: str = Query(..., description="kitchen or waiters")):
    """Play the new-order chime on a channel."""
    _check_channel(runtime, channel)
    played = await runtime.alerts.sinks[channel].play_tones(NEW_ORDER_CHIME)
    return {"channel": channel, "played": played}


@router.get("/chime.wav")
def get_chime():
    """The new-order chime as a WAV file."""
    return Response(content=_chime_wav(), media_type="audio/wav")
