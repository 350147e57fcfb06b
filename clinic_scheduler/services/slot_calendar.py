from datetime import date, datetime, time, timedelta
from typing import Optional

from ..core.config import settings


def time_slots(
    day_start: Optional[time] = None,
    day_end: Optional[time] = None,
    step_minutes: Optional[int] = None,
) -> list[time]:
    """Bookable times of day, start through end inclusive.

    The same set applies to every doctor and every date.
    """
    day_start = day_start or settings.SLOT_DAY_START
    day_end = day_end or settings.SLOT_DAY_END
    step = timedelta(minutes=step_minutes or settings.SLOT_STEP_MINUTES)

    # Any fixed date works; only the time component is kept
    current = datetime.combine(date.min, day_start)
    last = datetime.combine(date.min, day_end)

    slots: list[time] = []
    while current <= last:
        slots.append(current.time())
        current += step
    return slots


def is_bookable_slot(slot_time: time) -> bool:
    return slot_time in time_slots()
