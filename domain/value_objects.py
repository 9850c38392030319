"""Domain Value Objects"""
from pydantic import BaseModel, Field, field_validator
from datetime import date, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from domain.pricing import compute_nights

_ONE_DAY = timedelta(days=1)


class Expense(BaseModel):
    """Incidental charge recorded against an active stay"""
    description: str = Field(min_length=1)
    value: Decimal = Field(gt=0)

    class Config:
        frozen = True


class Guest(BaseModel):
    """Guest snapshot embedded in a room, a reservation or a history entry"""
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    check_in: date
    check_out: date
    guests: int = Field(ge=1, default=1)
    expenses: List[Expense] = []

    # Stable stay identifier; doubles as the RoomStore guest record id
    guest_id: Optional[str] = None

    @field_validator('check_out')
    @classmethod
    def check_out_not_before_check_in(cls, v, info):
        check_in = info.data.get('check_in')
        if check_in is not None and v < check_in:
            raise ValueError('Check-out must not be before check-in')
        return v

    def nights(self) -> int:
        return compute_nights(self.check_in, self.check_out)

    def expenses_total(self) -> Decimal:
        return sum((e.value for e in self.expenses), Decimal("0"))

    def with_expenses(self, expenses: List[Expense]) -> "Guest":
        return self.model_copy(update={"expenses": list(expenses)})

    def same_stay(self, other: "Guest") -> bool:
        """Stay identity when both sides carry one, otherwise fall back to the name"""
        if self.guest_id and other.guest_id:
            return self.guest_id == other.guest_id
        return self.name == other.name

    def overlaps(self, other: "Guest") -> bool:
        """Half-open [check_in, check_out) overlap; same-day stays occupy their day"""
        own_end = max(self.check_out, self.check_in + _ONE_DAY)
        other_end = max(other.check_out, other.check_in + _ONE_DAY)
        return self.check_in < other_end and other.check_in < own_end


class HotelFilters(BaseModel):
    """Ephemeral room query"""
    type: str = ""
    status: str = ""
    min_price: Decimal = Decimal("0")
    max_price: Decimal = Decimal("1000")
    search: str = ""

    def matches(self, room) -> bool:
        if self.type and room.type != self.type:
            return False
        if self.status and room.status.value != self.status:
            return False
        # Bounds at their defaults mean "no bound"
        if self.min_price > 0 and room.price < self.min_price:
            return False
        if self.max_price < 1000 and room.price > self.max_price:
            return False
        if self.search:
            term = self.search.lower()
            guest_name = room.guest.name.lower() if room.guest else ""
            if term not in room.number.lower() and term not in room.type.lower() and term not in guest_name:
                return False
        return True


class HotelStatistics(BaseModel):
    """Derived snapshot, never stored"""
    total_rooms: int = 0
    occupied_rooms: int = 0
    available_rooms: int = 0
    reserved_rooms: int = 0
    maintenance_rooms: int = 0
    occupancy_rate: float = 0.0
    rooms_by_type: Dict[str, int] = {}
    monthly_revenue: Decimal = Decimal("0")
    active_guests: int = 0
