"""
Send-time eligibility.

``is_eligible_now`` never reads the clock; callers pass ``now`` already
converted to the tenant's local time (see ``to_local_time``).
"""
from datetime import timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

# Smart timing late-night guard: sends allowed from 07:00 through 21:59
EARLIEST_HOUR = 7
LATEST_HOUR = 21

# Simple mode: hours either side of the preferred send time
SEND_WINDOW_HOURS = 2


def day_number(now):
    """Day of week with 0 = Sunday .. 6 = Saturday"""
    return (now.weekday() + 1) % 7


def is_weekend(now):
    return now.weekday() >= 5


def is_eligible_now(settings, now, holiday_calendar=None):
    """Return True when ``now`` is an acceptable moment to send.

    Args:
        settings: ReviewFollowUpSettings (or anything with the same attributes)
        now (datetime): tenant-local time
        holiday_calendar: optional callable(date) -> bool; consulted only when
            smart timing asks to avoid holidays

    Returns:
        bool
    """
    if not settings.send_weekends and is_weekend(now):
        return False

    if settings.enable_smart_timing:
        prefs = settings.smart_timing_preferences

        if prefs.prefer_weekdays and prefs.preferred_days and day_number(now) not in prefs.preferred_days:
            return False

        if prefs.avoid_late_night and not (EARLIEST_HOUR <= now.hour <= LATEST_HOUR):
            return False

        if prefs.avoid_holidays and holiday_calendar is not None and holiday_calendar(now.date()):
            return False

        return True

    preferred_hour, preferred_minute = settings.preferred_hour_minute

    if abs(now.hour - preferred_hour) > SEND_WINDOW_HOURS:
        return False

    if now.hour == preferred_hour and now.minute < preferred_minute:
        return False

    return True


def to_local_time(utc_now, tz_name, fallback='UTC'):
    """Convert a naive-UTC (or aware) datetime to the named timezone"""
    try:
        zone = ZoneInfo(tz_name or fallback)
    except (ZoneInfoNotFoundError, ValueError):
        zone = ZoneInfo(fallback)
    if utc_now.tzinfo is None:
        utc_now = utc_now.replace(tzinfo=timezone.utc)
    return utc_now.astimezone(zone)
