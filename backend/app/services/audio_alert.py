"""
Audio Alert Service
New-order chime: three ascending sine tones pushed to the kitchen and waiter
screens, plus a rendered WAV of the same chime for clients without synthesis.

Screens only play audio after a user interaction, so an ``AudioSink`` stays
UNARMED until the first interaction arrives and then owns a single output for
the rest of its life.
"""
import asyncio
import io
import logging
import time
import wave
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, Protocol, Sequence

import numpy as np

from app.core.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tone:
    frequency_hz: float
    offset_s: float = 0.0
    duration_s: float = 0.3
    waveform: str = "sine"
    start_gain: float = 0.8
    end_gain: float = 0.01

    def to_dict(self) -> Dict[str, Any]:
        return {
            "frequency": self.frequency_hz,
            "offset": self.offset_s,
            "duration": self.duration_s,
            "type": self.waveform,
            "gain": [self.start_gain, self.end_gain],
        }


NEW_ORDER_CHIME = (
    Tone(600, offset_s=0.0),
    Tone(800, offset_s=0.4),
    Tone(1000, offset_s=0.8),
)


def render_wav(sequence: Sequence[Tone] = NEW_ORDER_CHIME, sample_rate: int = 22050) -> bytes:
    """Render a tone sequence to 16-bit mono PCM WAV bytes."""
    total_s = max(t.offset_s + t.duration_s for t in sequence)
    buffer = np.zeros(int(np.ceil(total_s * sample_rate)), dtype=np.float64)

    for tone in sequence:
        n = int(tone.duration_s * sample_rate)
        t = np.arange(n) / sample_rate
        # Exponential ramp from start_gain to end_gain over the tone
        envelope = tone.start_gain * (tone.end_gain / tone.start_gain) ** (t / tone.duration_s)
        start = int(tone.offset_s * sample_rate)
        buffer[start:start + n] += np.sin(2 * np.pi * tone.frequency_hz * t) * envelope

    pcm = (np.clip(buffer, -1.0, 1.0) * 32767).astype("<i2")

    out = io.BytesIO()
    with wave.open(out, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(sample_rate)
        wav.writeframes(pcm.tobytes())
    return out.getvalue()


# ============== Output ==============

class AudioOutputState(str, Enum):
    SUSPENDED = "suspended"
    RUNNING = "running"
    CLOSED = "closed"


class AudioOutput(Protocol):
    state: AudioOutputState

    @property
    def current_time(self) -> float: ...

    async def resume(self) -> None: ...

    async def play(self, tones: Sequence[Tone], start_at: float) -> None: ...


Broadcast = Callable[[Dict[str, Any], str], Awaitable[None]]


class BroadcastAudioOutput:
    """Plays tones by sending the schedule to every screen on a channel."""

    def __init__(self, channel: str, broadcast: Broadcast, clock: Callable[[], float] = time.monotonic):
        self.channel = channel
        self.broadcast = broadcast
        self._clock = clock
        self._origin = clock()
        self.state = AudioOutputState.SUSPENDED

    @property
    def current_time(self) -> float:
        return self._clock() - self._origin

    async def resume(self) -> None:
        self.state = AudioOutputState.RUNNING

    async def play(self, tones: Sequence[Tone], start_at: float) -> None:
        if self.state != AudioOutputState.RUNNING:
            raise RuntimeError(f"Audio output for '{self.channel}' is {self.state.value}")
        await self.broadcast({
            "type": "play_tones",
            "start_at": round(start_at, 3),
            "tones": [t.to_dict() for t in tones],
            "sound_url": f"{settings.api_v1_prefix}/alerts/chime.wav",
        }, self.channel)


# ============== Sink ==============

class AudioSinkState(str, Enum):
    UNARMED = "unarmed"
    ARMED = "armed"


class AudioSink:
    """Single audio output per channel, unlocked by the first interaction."""

    def __init__(
        self,
        output_factory: Callable[[], AudioOutput],
        settle_delay_ms: Optional[int] = None,
    ):
        self.output_factory = output_factory
        self.settle_delay_ms = settle_delay_ms if settle_delay_ms is not None else settings.audio_settle_delay_ms
        self.state = AudioSinkState.UNARMED
        self._output: Optional[AudioOutput] = None

    @property
    def output(self) -> Optional[AudioOutput]:
        return self._output

    def arm(self) -> bool:
        """Create the output on first interaction. Later calls are no-ops."""
        if self.state == AudioSinkState.ARMED:
            return False
        try:
            self._output = self.output_factory()
        except Exception as e:
            logger.error(f"Error initializing audio output: {e}")
            return False
        self.state = AudioSinkState.ARMED
        return True

    async def play_tones(self, sequence: Sequence[Tone] = NEW_ORDER_CHIME) -> bool:
        """Play a tone sequence. Returns False if nothing could be played."""
        if self.state != AudioSinkState.ARMED:
            logger.info("Audio not unlocked by a user interaction yet, skipping sound")
            return False

        try:
            output = self._output
            if output.state == AudioOutputState.SUSPENDED:
                await output.resume()
            await asyncio.sleep(self.settle_delay_ms / 1000)
            await output.play(sequence, output.current_time)
            return True
        except Exception as e:
            logger.error(f"Error playing notification sound: {e}")
            return await self._play_fallback(sequence)

    async def _play_fallback(self, sequence: Sequence[Tone]) -> bool:
        """Fresh output, one tone at a time on timers."""
        try:
            output = self.output_factory()
            if output.state == AudioOutputState.SUSPENDED:
                await output.resume()

            loop = asyncio.get_running_loop()
            started = loop.time()
            for tone in sorted(sequence, key=lambda t: t.offset_s):
                delay = tone.offset_s - (loop.time() - started)
                if delay > 0:
                    await asyncio.sleep(delay)
                await output.play([replace(tone, offset_s=0.0)], output.current_time)
            return True
        except Exception as e:
            logger.error(f"Error with alternative sound method: {e}")
            return False
