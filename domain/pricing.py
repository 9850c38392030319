"""Pricing calculator"""
from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Union

from domain.exceptions import InvalidOperationError

# Same-day stays are billed as one night.
MINIMUM_BILLED_NIGHTS = 1


def normalize_day(value: Union[date, datetime]) -> date:
    """Drop the time of day so comparisons happen on calendar days"""
    if isinstance(value, datetime):
        return value.date()
    return value


def compute_nights(check_in: Union[date, datetime], check_out: Union[date, datetime]) -> int:
    """Calendar nights between check-in and check-out"""
    nights = (normalize_day(check_out) - normalize_day(check_in)).days
    if nights < 0:
        raise InvalidOperationError("Check-out must not be before check-in")
    return max(nights, MINIMUM_BILLED_NIGHTS)


def compute_stay_total(
    nightly_rate: Decimal,
    party_size: int,
    nights: int,
    expenses: Iterable = ()
) -> Decimal:
    """rate * party size * nights plus every recorded expense"""
    lodging = Decimal(nightly_rate) * party_size * nights
    return lodging + sum((Decimal(expense.value) for expense in expenses), Decimal("0"))
