"""Calendar windows in the merchant's local time."""

from datetime import datetime, timedelta, tzinfo

from rewardman.engine.types import Period


def local_midnight(as_of: datetime, tz: tzinfo) -> datetime:
    """Start of the local day containing as_of."""
    local = as_of.astimezone(tz)
    return local.replace(hour=0, minute=0, second=0, microsecond=0)


def window_start(as_of: datetime, period: Period, tz: tzinfo) -> datetime:
    """
    Start of the calendar window containing as_of.

    daily = local day, weekly = ISO week (Monday), monthly = calendar month.
    """
    day = local_midnight(as_of, tz)
    if period == Period.DAILY:
        return day
    if period == Period.WEEKLY:
        return day - timedelta(days=day.weekday())
    if period == Period.MONTHLY:
        return day.replace(day=1)
    raise ValueError(f"Unknown period: {period}")


def in_window(moment: datetime, start: datetime, as_of: datetime) -> bool:
    return start <= moment <= as_of
