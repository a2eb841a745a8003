"""
Cadence rules for the sync jobs.

Pure functions of "now": nothing here touches the scheduler, so the rules
can be exercised with fixed datetimes. Naive datetimes are interpreted in
the configured local timezone.
"""

from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from croniter import croniter

from catalog_sync.config import settings

INVENTORY_JOB = 'inventory'
PRICE_JOB = 'price'
JOB_TYPES = (INVENTORY_JOB, PRICE_JOB)


def local_now(now: Optional[datetime] = None) -> datetime:
    tz = ZoneInfo(settings.timezone)
    if now is None:
        return datetime.now(tz)
    if now.tzinfo is None:
        return now.replace(tzinfo=tz)
    return now.astimezone(tz)


def is_high_traffic_day(now: Optional[datetime] = None) -> bool:
    return local_now(now).weekday() in settings.high_traffic_weekdays_list


def inventory_interval(now: Optional[datetime] = None) -> timedelta:
    """Short interval on high-traffic days, long otherwise."""
    if is_high_traffic_day(now):
        return timedelta(hours=settings.high_traffic_interval_hours)
    return timedelta(hours=settings.low_traffic_interval_hours)


def _window_start(day: datetime) -> datetime:
    return day.replace(hour=settings.wake_window_start_hour, minute=0, second=0, microsecond=0)


def _window_end(day: datetime) -> datetime:
    return day.replace(hour=settings.wake_window_end_hour, minute=0, second=0, microsecond=0)


def next_inventory_run(now: Optional[datetime] = None) -> datetime:
    """
    Next inventory fire time.

    The wake window is [start, end) in local time. Inside it the job fires one
    interval later if that is still before the window closes, otherwise at
    the next morning's window start.
    """
    local = local_now(now)
    start = _window_start(local)
    end = _window_end(local)

    if local < start:
        return start
    if local >= end:
        return _window_start(local + timedelta(days=1))

    candidate = local + inventory_interval(local)
    if candidate < end:
        return candidate
    return _window_start(local + timedelta(days=1))


def next_price_run(now: Optional[datetime] = None) -> datetime:
    """Next occurrence of the daily price cron, in local time."""
    return croniter(settings.price_sync_cron, local_now(now)).get_next(datetime)


def next_run(job_type: str, now: Optional[datetime] = None) -> datetime:
    if job_type == INVENTORY_JOB:
        return next_inventory_run(now)
    if job_type == PRICE_JOB:
        return next_price_run(now)
    raise ValueError(f"Unknown job type: {job_type}")


def expected_interval(job_type: str, now: Optional[datetime] = None) -> timedelta:
    """Interval a healthy timeline is expected to keep at `now`."""
    if job_type == INVENTORY_JOB:
        return inventory_interval(now)
    if job_type == PRICE_JOB:
        return timedelta(hours=24)
    raise ValueError(f"Unknown job type: {job_type}")
