"""Timezone-aware time utilities and the war calendar."""

import datetime
from typing import List, Optional
from zoneinfo import ZoneInfo
from .config import TIMEZONE, DAY_TOLERANCE_HOURS, WAR_DAYS

# Python weekday (Mon=0) -> war day index
_WAR_DAY_BY_WEEKDAY = {3: 0, 4: 1, 5: 2, 6: 3}
# Monday to Wednesday the week is closed
CLOSED_WEEK_INDEX = WAR_DAYS


def get_timezone():
    """Get the timezone object for the clan."""
    return ZoneInfo(TIMEZONE)


def now() -> datetime.datetime:
    """Get current timezone-aware datetime."""
    return datetime.datetime.now(ZoneInfo(TIMEZONE))


def war_clock(moment: Optional[datetime.datetime] = None) -> datetime.datetime:
    """Shift a moment back by the day tolerance so late-night entries count for the previous day."""
    return (moment or now()) - datetime.timedelta(hours=DAY_TOLERANCE_HOURS)


def auto_war_day(moment: Optional[datetime.datetime] = None) -> Optional[int]:
    """War day index (0-3) for the given moment, or None outside the war days."""
    return _WAR_DAY_BY_WEEKDAY.get(war_clock(moment).weekday())


def current_war_day(moment: Optional[datetime.datetime] = None) -> int:
    """War day used to close earlier days; Monday to Wednesday returns CLOSED_WEEK_INDEX."""
    return _WAR_DAY_BY_WEEKDAY.get(war_clock(moment).weekday(), CLOSED_WEEK_INDEX)


def is_day_closed(day_index: int, moment: Optional[datetime.datetime] = None) -> bool:
    """Check whether points for the given day can no longer be registered."""
    return day_index < current_war_day(moment)


def initial_daily_points(moment: Optional[datetime.datetime] = None) -> List[int]:
    """Daily points for a player joining mid-week: days already gone are marked -1."""
    points = [0] * WAR_DAYS
    weekday = (moment or now()).weekday()
    gone = {4: 1, 5: 2, 6: 3}.get(weekday, 0)  # Friday, Saturday, Sunday
    for index in range(gone):
        points[index] = -1
    return points


def timestamp() -> int:
    """Current epoch seconds."""
    return int(now().timestamp())
