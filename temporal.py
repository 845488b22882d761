"""Timezone-local calendar dates and their UTC storage instants.

Every date-bearing column stores the UTC instant of midnight of the user's
local calendar day.  Callers only ever see local dates; this module holds the
conversions and the per-request timezone binding.
"""

from __future__ import annotations

import contextvars
import inspect
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from config import DEFAULT_TIMEZONE, get_settings


@dataclass(frozen=True)
class TemporalContext:
    user_id: Optional[int]
    timezone: str

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @classmethod
    def resolve(
        cls, user_id: Optional[int], timezone_name: Optional[str]
    ) -> "TemporalContext":
        """Build a context, falling back to the default zone for unknown names."""
        if timezone_name and is_valid_timezone(timezone_name):
            return cls(user_id=user_id, timezone=timezone_name)
        return cls(user_id=user_id, timezone=default_timezone())


_current_context: contextvars.ContextVar[Optional[TemporalContext]] = (
    contextvars.ContextVar("temporal_context", default=None)
)


def default_timezone() -> str:
    try:
        return get_settings().default_timezone
    except ValueError:
        return DEFAULT_TIMEZONE


def is_valid_timezone(name: str) -> bool:
    try:
        ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        return False
    return True


def run_with_context(ctx: TemporalContext, fn: Callable[..., Any], *args, **kwargs):
    """Call ``fn`` with ``ctx`` bound as the current temporal context.

    Coroutine functions get an awaitable back; the binding then holds across
    every await inside it, including tasks spawned with ``asyncio.gather``.
    """
    if inspect.iscoroutinefunction(fn):

        async def runner():
            token = _current_context.set(ctx)
            try:
                return await fn(*args, **kwargs)
            finally:
                _current_context.reset(token)

        return runner()

    def call():
        _current_context.set(ctx)
        return fn(*args, **kwargs)

    return contextvars.copy_context().run(call)


def current_context() -> TemporalContext:
    ctx = _current_context.get()
    if ctx is None:
        return TemporalContext(user_id=None, timezone=default_timezone())
    return ctx


def current_timezone() -> str:
    return current_context().timezone


def _zone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def to_storage_instant(local_value, tz_name: str):
    """Midnight of ``local_value``'s day in ``tz_name``, as a naive UTC datetime.

    Naive datetimes and dates are wall-clock values in ``tz_name``; aware
    datetimes are first moved into ``tz_name``.  Anything else is returned
    unchanged.
    """
    zone = _zone(tz_name)
    if isinstance(local_value, datetime):
        if local_value.tzinfo is not None:
            local_value = local_value.astimezone(zone)
        day = local_value.date()
    elif isinstance(local_value, date):
        day = local_value
    else:
        return local_value
    midnight = datetime.combine(day, time.min, tzinfo=zone)
    return midnight.astimezone(timezone.utc).replace(tzinfo=None)


def from_storage_instant(utc_instant, tz_name: str):
    """Wall-clock (naive) representation of a UTC instant in ``tz_name``."""
    if not isinstance(utc_instant, datetime):
        return utc_instant
    if utc_instant.tzinfo is None:
        utc_instant = utc_instant.replace(tzinfo=timezone.utc)
    return utc_instant.astimezone(_zone(tz_name)).replace(tzinfo=None)


def to_local_date(utc_instant, tz_name: str) -> Optional[date]:
    if utc_instant is None:
        return None
    wall = from_storage_instant(utc_instant, tz_name)
    if isinstance(wall, datetime):
        return wall.date()
    return wall


def day_bounds(day: date, tz_name: str) -> tuple[datetime, datetime]:
    """Half-open naive UTC range ``[start, end)`` covering one local day."""
    start = to_storage_instant(day, tz_name)
    end = to_storage_instant(day + timedelta(days=1), tz_name)
    return start, end


def local_today(tz_name: str) -> date:
    return datetime.now(_zone(tz_name)).date()


def month_start(d: date) -> date:
    return d.replace(day=1)


def month_end(d: date) -> date:
    if d.month == 12:
        return date(d.year + 1, 1, 1) - date.resolution
    return date(d.year, d.month + 1, 1) - date.resolution


def add_months(d: date, count: int) -> date:
    total = d.month - 1 + count
    year = d.year + total // 12
    month = total % 12 + 1
    day = min(d.day, month_end(date(year, month, 1)).day)
    return date(year, month, day)


def month_bounds(d: date) -> tuple[date, date]:
    return month_start(d), month_end(d)
