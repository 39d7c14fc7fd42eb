"""Time-of-day / day-of-week windows for scheduled tokens.

All checks run in one civil timezone chosen at deployment
(``SCHEDULE_TIMEZONE``), never in the scanning device's local time.
"""
import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from .errors import MalformedPayload

DAY_NAMES = ('Mon', 'Tue', 'Wed', 'Thu', 'Fri', 'Sat', 'Sun')
# Names sent by the Korean mobile clients
_KO_DAYS = {'월': 'Mon', '화': 'Tue', '수': 'Wed', '목': 'Thu', '금': 'Fri', '토': 'Sat', '일': 'Sun'}
_HHMM = re.compile(r'^([01]?\d|2[0-3]):([0-5]\d)$')


@dataclass(frozen=True)
class WindowCheck:
    valid: bool
    reason: str | None = None


def normalize_day(name: str) -> str:
    name = (name or '').strip()
    if name in _KO_DAYS:
        return _KO_DAYS[name]
    for d in DAY_NAMES:
        if name.lower()[:3] == d.lower():
            return d
    raise MalformedPayload(f'unknown day name: {name!r}')


def to_minutes(hhmm: str) -> int:
    m = _HHMM.match((hhmm or '').strip())
    if not m:
        raise MalformedPayload(f'bad time of day: {hhmm!r}')
    return int(m.group(1)) * 60 + int(m.group(2))


def parse_window(time_window, days=None):
    """Split ``"HH:MM-HH:MM"`` or ``"HH:MM-HH:MM|Mon,Wed"`` into a
    normalized ``(window, days)`` pair. Empty input gives ``(None, None)``.
    """
    if not time_window:
        if days:
            raise MalformedPayload('days given without a time window')
        return None, None
    window, _, day_part = time_window.partition('|')
    start, sep, end = window.partition('-')
    if not sep:
        raise MalformedPayload(f'bad time window: {time_window!r}')
    to_minutes(start)
    to_minutes(end)
    names = list(days or []) or [d for d in day_part.split(',') if d.strip()]
    normalized = [normalize_day(d) for d in names] or None
    return f"{start.strip()}-{end.strip()}", normalized


def local_now(now: datetime, tz_name: str) -> datetime:
    return now.astimezone(ZoneInfo(tz_name))


def is_within(now: datetime, start: str, end: str, allowed_days=None, lead_minutes: int = 10) -> WindowCheck:
    """Decide whether local time ``now`` falls inside ``start``-``end``.

    ``start`` is moved ``lead_minutes`` earlier; a window whose end is
    before its adjusted start wraps past midnight.
    """
    if allowed_days:
        today = DAY_NAMES[now.weekday()]
        allowed = [normalize_day(d) for d in allowed_days]
        if today not in allowed:
            return WindowCheck(False, f"not an allowed day (today {today}, allowed {','.join(allowed)})")

    current = now.hour * 60 + now.minute
    start_min = to_minutes(start) - lead_minutes
    end_min = to_minutes(end)
    if end_min < start_min:
        inside = current >= start_min or current <= end_min
    else:
        inside = start_min <= current <= end_min
    if not inside:
        return WindowCheck(False, f"outside the allowed schedule (now {now:%H:%M}, allowed {start}~{end})")
    return WindowCheck(True)
