"""
Injected "now" for the scheduling rules.
"""

from typing import Callable

import pendulum
from pendulum import DateTime

Clock = Callable[[], DateTime]


def system_clock(timezone: str) -> Clock:
    """Return a clock reading the wall time of ``timezone``."""
    def now() -> DateTime:
        return pendulum.now(timezone)
    return now


def fixed_clock(moment: DateTime) -> Clock:
    """Return a clock frozen at ``moment``."""
    return lambda: moment


def minute_of_day(moment: DateTime) -> int:
    return moment.hour * 60 + moment.minute
