"""
Pre-order Window Service
Evaluates the weekly window during which customers may place advance orders.

Days of week follow the Sunday=0 ... Saturday=6 convention used by the
ordering site. Windows whose end time is earlier than their start time run
past midnight (e.g. 22:00 - 02:00).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, time, timedelta
from typing import Any, Dict, FrozenSet, Iterable, Optional

logger = logging.getLogger(__name__)

ALL_DAYS: FrozenSet[int] = frozenset(range(7))
DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
DEFAULT_START = time(0, 0)
DEFAULT_END = time(23, 59)


def parse_hhmm(value: str) -> time:
    """Parse a 24-hour ``HH:mm`` string. Raises ValueError on bad input."""
    parts = str(value).strip().split(":")
    if len(parts) != 2 or not all(p.isdigit() for p in parts):
        raise ValueError(f"Invalid time '{value}', expected HH:mm")
    hour, minute = int(parts[0]), int(parts[1])
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time '{value}', expected HH:mm")
    return time(hour, minute)


def format_hhmm(value: time) -> str:
    return f"{value.hour:02d}:{value.minute:02d}"


def sunday_based_weekday(moment: datetime) -> int:
    """Day of week with Sunday=0, matching the stored days_of_week."""
    return (moment.weekday() + 1) % 7


def _minutes(value) -> int:
    return value.hour * 60 + value.minute


@dataclass(frozen=True)
class PreOrderWindow:
    """Recurring weekly pre-order window."""
    enabled: bool = False
    start: time = DEFAULT_START
    end: time = DEFAULT_END
    days_of_week: FrozenSet[int] = field(default_factory=lambda: ALL_DAYS)

    @property
    def crosses_midnight(self) -> bool:
        return _minutes(self.end) < _minutes(self.start)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PreOrderWindow":
        """Build from the persisted record, filling defaults for absent fields."""
        days: Iterable[int] = data.get("daysOfWeek")
        if days is None:
            days = ALL_DAYS
        return cls(
            enabled=bool(data.get("enabled", False)),
            start=parse_hhmm(data.get("startTime") or format_hhmm(DEFAULT_START)),
            end=parse_hhmm(data.get("endTime") or format_hhmm(DEFAULT_END)),
            days_of_week=frozenset(int(d) for d in days),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "enabled": self.enabled,
            "startTime": format_hhmm(self.start),
            "endTime": format_hhmm(self.end),
            "daysOfWeek": sorted(self.days_of_week),
        }


def is_preorder_allowed(window: PreOrderWindow, now: datetime) -> bool:
    """Check whether pre-orders may be placed at ``now``."""
    if not window.enabled:
        return False

    if sunday_based_weekday(now) not in window.days_of_week:
        return False

    current = _minutes(now)
    start = _minutes(window.start)
    end = _minutes(window.end)

    if end < start:
        # Window spans midnight
        return current >= start or current <= end
    return start <= current <= end


def time_until_start(window: PreOrderWindow, now: datetime) -> Optional[timedelta]:
    """Time until the next window opening, or None if it never opens."""
    if not window.enabled or not window.days_of_week:
        return None

    today = sunday_based_weekday(now)
    days_to_add = None

    if today in window.days_of_week and _minutes(now) < _minutes(window.start):
        days_to_add = 0
    else:
        for i in range(1, 8):
            if (today + i) % 7 in window.days_of_week:
                days_to_add = i
                break

    target = datetime.combine(
        now.date() + timedelta(days=days_to_add), window.start, tzinfo=now.tzinfo
    )
    return target - now


def time_until_end(window: PreOrderWindow, now: datetime) -> Optional[timedelta]:
    """Time until the open window closes, or None when it is not open."""
    if not is_preorder_allowed(window, now):
        return None

    end_date = now.date()
    if _minutes(window.end) < _minutes(now):
        # End time already passed today, so it is tomorrow's occurrence
        end_date += timedelta(days=1)

    target = datetime.combine(end_date, window.end, tzinfo=now.tzinfo)
    # Seconds into the closing minute still count as open
    return max(target - now, timedelta(0))


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_time_remaining(delta: Optional[timedelta]) -> str:
    """Render a duration using its largest unit, e.g. '2 days 3 hours'."""
    if delta is None or delta.total_seconds() <= 0:
        return "0 minutes"

    seconds = int(delta.total_seconds())
    minutes = seconds // 60
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{_plural(days, 'day')} {_plural(hours % 24, 'hour')}"
    if hours > 0:
        return f"{_plural(hours, 'hour')} {_plural(minutes % 60, 'minute')}"
    if minutes > 0:
        return _plural(minutes, "minute")
    return _plural(seconds, "second")


def preorder_status(window: PreOrderWindow, now: datetime) -> Dict[str, Any]:
    """Summary used by the ordering site's banner."""
    allowed = is_preorder_allowed(window, now)
    opens_in = None if allowed else time_until_start(window, now)
    closes_in = time_until_end(window, now)

    return {
        "enabled": window.enabled,
        "allowed": allowed,
        "opens_in_seconds": int(opens_in.total_seconds()) if opens_in is not None else None,
        "opens_in": format_time_remaining(opens_in) if opens_in is not None else None,
        "closes_in_seconds": int(closes_in.total_seconds()) if closes_in is not None else None,
        "closes_in": format_time_remaining(closes_in) if closes_in is not None else None,
        "days": [DAY_NAMES[d] for d in sorted(window.days_of_week)],
        "start_time": format_hhmm(window.start),
        "end_time": format_hhmm(window.end),
    }
