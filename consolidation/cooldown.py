"""
Cooldown policy: decides whether a consolidation run may start.

Pure functions of their arguments. Callers supply ``now`` so the policy can
be tested without clocks or storage.
"""

from datetime import datetime, timedelta
from typing import Optional
import math

_ZERO = timedelta(0)


def should_run(
    last_execution_time: Optional[datetime],
    cooldown: timedelta,
    now: datetime
) -> bool:
    """
    Return True when a new run is allowed.
    
    A job that never ran is always eligible, as is any job whose cooldown is
    zero or negative. Otherwise the cooldown must have fully elapsed since
    the last execution (the boundary itself is eligible).
    """
    if last_execution_time is None or cooldown <= _ZERO:
        return True
    return now - last_execution_time >= cooldown


def time_until_eligible(
    last_execution_time: Optional[datetime],
    cooldown: timedelta,
    now: datetime
) -> timedelta:
    """Remaining cooldown, never negative."""
    if should_run(last_execution_time, cooldown, now):
        return _ZERO
    return cooldown - (now - last_execution_time)


def minutes_until_eligible(
    last_execution_time: Optional[datetime],
    cooldown: timedelta,
    now: datetime
) -> int:
    """Remaining cooldown rounded up to whole minutes."""
    remaining = time_until_eligible(last_execution_time, cooldown, now)
    return math.ceil(remaining.total_seconds() / 60)
