"""Domain Entities - Rooms, future reservations and the guest history log"""
from pydantic import BaseModel, Field, field_validator
from uuid import uuid4
from datetime import datetime, date
from typing import Optional, List
from decimal import Decimal

from domain.enums import RoomStatus, HistoryStatus
from domain.exceptions import InvalidOperationError
from domain.pricing import compute_stay_total, normalize_day
from domain.value_objects import Guest, Expense


def new_id() -> str:
    return uuid4().hex


class NewRoom(BaseModel):
    """Room fields supplied when a room is created (no id, no guest)"""
    number: str = Field(min_length=1)
    type: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    beds: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    amenities: List[str] = []
    status: RoomStatus = RoomStatus.AVAILABLE

    @field_validator('amenities')
    @classmethod
    def amenities_as_set(cls, v):
        return sorted(set(v))


class Room(NewRoom):
    """Room Entity - at most one active guest at a time"""

    id: str
    guest: Optional[Guest] = None

    class Config:
        from_attributes = True

    @staticmethod
    def create(room_id: str, draft: NewRoom) -> "Room":
        return Room(id=room_id, **draft.model_dump())

    # ==================== STATE TRANSITION METHODS ====================
    def occupy(self, guest: Guest) -> None:
        """Attach a guest; the status follows"""
        self.status = RoomStatus.OCCUPIED
        self.guest = guest

    def release(self) -> None:
        self.status = RoomStatus.AVAILABLE
        self.guest = None

    # ==================== QUERY METHODS ====================
    def has_active_guest(self) -> bool:
        return self.guest is not None and self.status == RoomStatus.OCCUPIED

    def is_available(self) -> bool:
        return self.status == RoomStatus.AVAILABLE

    def as_reserved_view(self, guest: Guest) -> "Room":
        """Room-shaped view of a future reservation; the stored room is untouched"""
        return self.model_copy(update={"status": RoomStatus.RESERVED, "guest": guest})


class Reservation(BaseModel):
    """Future reservation - exists only while its check-in is after today"""

    id: str
    room_id: str
    guest: Guest
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    def is_due(self, today: date) -> bool:
        """Check-in has arrived, the reservation must be promoted"""
        return normalize_day(self.guest.check_in) <= today


class GuestHistoryEntry(BaseModel):
    """Append-only audit record of a booking"""

    id: str = Field(default_factory=new_id)
    guest: Guest
    room_number: str
    room_type: str
    check_in_date: date
    check_out_date: date
    total_price: Decimal
    status: HistoryStatus = HistoryStatus.ACTIVE
    created_at: datetime = Field(default_factory=datetime.now)

    class Config:
        from_attributes = True

    # ==================== FACTORY METHOD ====================
    @staticmethod
    def open(guest: Guest, room: Room, created_at: datetime) -> "GuestHistoryEntry":
        """Start an active entry priced from the room rate"""
        total = compute_stay_total(room.price, guest.guests, guest.nights(), guest.expenses)
        return GuestHistoryEntry(
            guest=guest,
            room_number=room.number,
            room_type=room.type,
            check_in_date=guest.check_in,
            check_out_date=guest.check_out,
            total_price=total,
            status=HistoryStatus.ACTIVE,
            created_at=created_at
        )

    # ==================== STATE TRANSITION METHODS ====================
    def complete(self) -> None:
        if self.status != HistoryStatus.ACTIVE:
            raise InvalidOperationError(f"Cannot complete history entry with status {self.status.value}")
        self.status = HistoryStatus.COMPLETED

    def cancel(self) -> None:
        if self.status != HistoryStatus.ACTIVE:
            raise InvalidOperationError(f"Cannot cancel history entry with status {self.status.value}")
        self.status = HistoryStatus.CANCELLED

    def record_expense(self, expense: Expense) -> None:
        self.guest = self.guest.with_expenses(self.guest.expenses + [expense])
        self.total_price = self.total_price + expense.value

    # ==================== QUERY METHODS ====================
    def is_active(self) -> bool:
        return self.status == HistoryStatus.ACTIVE

    def matches_occupant(self, room_number: str, guest: Guest) -> bool:
        """Active entry for whoever is in the room"""
        return self.is_active() and self.room_number == room_number and self.guest.same_stay(guest)

    def matches_booking(self, guest: Guest) -> bool:
        """Active entry for a booking; without a stay id, name plus check-in date decide"""
        if not self.is_active():
            return False
        if self.guest.guest_id and guest.guest_id:
            return self.guest.guest_id == guest.guest_id
        return self.guest.name == guest.name and self.check_in_date == guest.check_in
