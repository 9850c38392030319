"""Injectable clock so date-driven logic can be tested without touching system time"""
from datetime import date, datetime
from typing import Callable

Clock = Callable[[], datetime]


def system_clock() -> datetime:
    return datetime.now()


def today(clock: Clock) -> date:
    return clock().date()
