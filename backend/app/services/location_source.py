"""
Location Source
Reads device positions from a geolocation provider with fail-open semantics.

Every failure (permission denied, no fix, timeout, no provider at all) is
turned into an ``unavailable`` sample instead of an exception, so callers
never need error handling for the common "no GPS" case.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, List, Optional, Protocol, Tuple

from app.core.config import settings

logger = logging.getLogger(__name__)


class LocationErrorReason(str, Enum):
    """Why a location could not be determined"""
    PERMISSION_DENIED = "permission_denied"
    POSITION_UNAVAILABLE = "position_unavailable"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


REASON_MESSAGES = {
    LocationErrorReason.PERMISSION_DENIED: "Location permission denied",
    LocationErrorReason.POSITION_UNAVAILABLE: "Location information unavailable",
    LocationErrorReason.TIMEOUT: "Location request timeout",
    LocationErrorReason.UNKNOWN: "Unknown error",
}


@dataclass(frozen=True)
class DeviceLocationSample:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy_meters: Optional[float] = None
    unavailable: bool = False
    reason: Optional[LocationErrorReason] = None
    sampled_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_fix(cls, fix: "PositionFix") -> "DeviceLocationSample":
        return cls(latitude=fix.latitude, longitude=fix.longitude, accuracy_meters=fix.accuracy)

    @classmethod
    def failed(cls, reason: LocationErrorReason) -> "DeviceLocationSample":
        return cls(unavailable=True, reason=reason)

    @property
    def message(self) -> Optional[str]:
        return REASON_MESSAGES[self.reason] if self.reason else None

    def to_dict(self) -> dict:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "accuracy": self.accuracy_meters,
            "unavailable": self.unavailable,
            "reason": self.reason.value if self.reason else None,
            "sampled_at": self.sampled_at.isoformat(),
        }


# ============== Platform collaborator ==============

@dataclass(frozen=True)
class PositionFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None
    received_at: float = 0.0


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = True
    timeout: float = 10.0
    maximum_age: float = 0.0


class PositionError(Exception):
    """Error raised by a geolocation provider, using the platform error codes."""

    PERMISSION_DENIED = 1
    POSITION_UNAVAILABLE = 2
    TIMEOUT = 3

    _REASONS = {
        PERMISSION_DENIED: LocationErrorReason.PERMISSION_DENIED,
        POSITION_UNAVAILABLE: LocationErrorReason.POSITION_UNAVAILABLE,
        TIMEOUT: LocationErrorReason.TIMEOUT,
    }

    def __init__(self, code: int, message: Optional[str] = None):
        self.code = code
        super().__init__(message or REASON_MESSAGES[self.reason])

    @property
    def reason(self) -> LocationErrorReason:
        return self._REASONS.get(self.code, LocationErrorReason.UNKNOWN)


FixCallback = Callable[[PositionFix], None]
ErrorCallback = Callable[[PositionError], None]


class GeolocationProvider(Protocol):
    async def get_position(self, options: PositionOptions) -> PositionFix: ...

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions) -> int: ...

    def clear_watch(self, watch_id: int) -> None: ...

    def connection_type(self) -> Optional[str]: ...


class ReportedPositionProvider:
    """Geolocation provider fed by a tablet reporting its own GPS fixes.

    Single-shot requests are answered from the last fix when it is recent
    enough, otherwise they wait for the next report until the timeout.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._last_fix: Optional[PositionFix] = None
        self._connection_type: Optional[str] = None
        self._watchers: Dict[int, Tuple[FixCallback, ErrorCallback, PositionOptions]] = {}
        self._waiters: List[asyncio.Future] = []
        self._next_watch_id = 1

    @property
    def last_fix(self) -> Optional[PositionFix]:
        return self._last_fix

    @property
    def watcher_count(self) -> int:
        return len(self._watchers)

    def _fresh(self, maximum_age: float) -> Optional[PositionFix]:
        fix = self._last_fix
        if fix is None or maximum_age <= 0:
            return None
        if self._clock() - fix.received_at <= maximum_age:
            return fix
        return None

    def set_connection_type(self, connection_type: Optional[str]) -> None:
        self._connection_type = connection_type

    def report(
        self,
        latitude: float,
        longitude: float,
        accuracy: Optional[float] = None,
    ) -> PositionFix:
        """Accept a fix from the device and fan it out."""
        fix = PositionFix(latitude, longitude, accuracy, received_at=self._clock())
        self._last_fix = fix

        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_result(fix)

        for on_fix, _, _ in list(self._watchers.values()):
            on_fix(fix)
        return fix

    def report_error(self, code: int) -> PositionError:
        """Accept a geolocation failure from the device and fan it out."""
        error = PositionError(code)

        waiters, self._waiters = self._waiters, []
        for fut in waiters:
            if not fut.done():
                fut.set_exception(error)

        for _, on_error, _ in list(self._watchers.values()):
            on_error(error)
        return error

    async def get_position(self, options: PositionOptions) -> PositionFix:
        cached = self._fresh(options.maximum_age)
        if cached is not None:
            return cached

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            return await asyncio.wait_for(fut, timeout=options.timeout)
        except asyncio.TimeoutError:
            raise PositionError(PositionError.TIMEOUT)
        finally:
            if fut in self._waiters:
                self._waiters.remove(fut)

    def watch_position(self, on_fix: FixCallback, on_error: ErrorCallback, options: PositionOptions) -> int:
        watch_id = self._next_watch_id
        self._next_watch_id += 1
        self._watchers[watch_id] = (on_fix, on_error, options)

        cached = self._fresh(options.maximum_age)
        if cached is not None:
            on_fix(cached)
        return watch_id

    def clear_watch(self, watch_id: int) -> None:
        self._watchers.pop(watch_id, None)

    def connection_type(self) -> Optional[str]:
        return self._connection_type


# ============== Adapter ==============

@dataclass
class LocationWatch:
    """Handle for a continuous watch; release with ``clear_location_watch``."""
    watch_id: int
    provider: GeolocationProvider
    active: bool = True


SampleCallback = Callable[[DeviceLocationSample], None]


class LocationSource:
    """Fail-open wrapper around a geolocation provider."""

    def __init__(
        self,
        provider: Optional[GeolocationProvider],
        timeout: Optional[float] = None,
        watch_max_age: Optional[float] = None,
    ):
        self.provider = provider
        self.timeout = timeout if timeout is not None else settings.geolocation_timeout_seconds
        self.watch_max_age = (
            watch_max_age if watch_max_age is not None else settings.geolocation_watch_max_age_seconds
        )

    async def get_current_location(self) -> DeviceLocationSample:
        """Request one fresh fix. Never raises."""
        if self.provider is None:
            return DeviceLocationSample.failed(LocationErrorReason.UNKNOWN)

        options = PositionOptions(enable_high_accuracy=True, timeout=self.timeout, maximum_age=0)
        try:
            fix = await self.provider.get_position(options)
        except PositionError as e:
            logger.info(f"Location unavailable: {e}")
            return DeviceLocationSample.failed(e.reason)
        except asyncio.TimeoutError:
            return DeviceLocationSample.failed(LocationErrorReason.TIMEOUT)
        except Exception as e:
            logger.error(f"Geolocation provider failed: {e}")
            return DeviceLocationSample.failed(LocationErrorReason.UNKNOWN)
        return DeviceLocationSample.from_fix(fix)

    def watch_location(
        self,
        on_update: SampleCallback,
        on_error: Optional[SampleCallback] = None,
    ) -> Optional[LocationWatch]:
        """Start a continuous watch.

        Errors arrive as ``unavailable`` samples on ``on_error`` (or on
        ``on_update`` when no error callback is given). Returns None when there
        is no provider to watch.
        """
        error_sink = on_error or on_update

        if self.provider is None:
            error_sink(DeviceLocationSample.failed(LocationErrorReason.UNKNOWN))
            return None

        handle: Optional[LocationWatch] = None
        pending: List[DeviceLocationSample] = []

        def deliver(sink: SampleCallback, sample: DeviceLocationSample) -> None:
            if handle is None:
                # Provider answered synchronously from its cache during registration
                pending.append(sample)
            elif handle.active:
                sink(sample)

        options = PositionOptions(
            enable_high_accuracy=True, timeout=self.timeout, maximum_age=self.watch_max_age
        )
        watch_id = self.provider.watch_position(
            lambda fix: deliver(on_update, DeviceLocationSample.from_fix(fix)),
            lambda err: deliver(error_sink, DeviceLocationSample.failed(err.reason)),
            options,
        )
        handle = LocationWatch(watch_id=watch_id, provider=self.provider)
        for sample in pending:
            (error_sink if sample.unavailable else on_update)(sample)
        return handle

    def subscribe(self) -> "LocationSubscription":
        """Continuous watch as an async iterator of samples."""
        return LocationSubscription(self)

    def check_wifi_connection(self) -> Optional[bool]:
        """True on Wi-Fi, False on another link, None if the device cannot tell."""
        if self.provider is None:
            return None
        connection_type = self.provider.connection_type()
        if connection_type is None:
            return None
        return connection_type == "wifi"


def clear_location_watch(handle: Optional[LocationWatch]) -> None:
    """Release a watch. Releasing None or an already-cleared handle is a no-op."""
    if handle is None or not handle.active:
        return
    handle.active = False
    handle.provider.clear_watch(handle.watch_id)


class LocationSubscription:
    """Async-iterator view of ``LocationSource.watch_location``.

        async with source.subscribe() as samples:
            async for sample in samples:
                ...
    """

    _CLOSED = object()

    def __init__(self, source: LocationSource):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False
        self._handle = source.watch_location(self._queue.put_nowait)
        if self._handle is None:
            # Nothing will ever arrive beyond the one failure sample
            self._queue.put_nowait(self._CLOSED)

    def unsubscribe(self) -> None:
        if self._closed:
            return
        self._closed = True
        clear_location_watch(self._handle)
        self._queue.put_nowait(self._CLOSED)

    async def aclose(self) -> None:
        self.unsubscribe()

    def __aiter__(self):
        return self

    async def __anext__(self) -> DeviceLocationSample:
        item = await self._queue.get()
        if item is self._CLOSED:
            self._closed = True
            raise StopAsyncIteration
        return item

    async def __aenter__(self) -> "LocationSubscription":
        return self

    async def __aexit__(self, *exc) -> None:
        self.unsubscribe()
