"""Domain Repository Interfaces - the RoomStore and the local durable cache"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from domain.enums import RoomStatus
from domain.entities import Room, NewRoom, Reservation
from domain.value_objects import Guest, Expense

# Cache keys
ROOMS_KEY = "rooms"
FUTURE_RESERVATIONS_KEY = "future_reservations"
GUEST_HISTORY_KEY = "guest_history"


class RoomStore(ABC):
    """Authoritative store of rooms, guests, reservations and expenses.

    Reads raise ConnectivityError when the store cannot be reached.
    Multi-row writes are atomic and raise TransactionFailure after rollback.
    """

    @abstractmethod
    async def get_all_rooms(self) -> List[Room]:
        """All rooms, each with its active guest and recorded expenses attached"""
        pass

    @abstractmethod
    async def create_room(self, room: NewRoom) -> str:
        """Insert a room, return its id"""
        pass

    @abstractmethod
    async def update_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        """Partial update of room columns"""
        pass

    @abstractmethod
    async def update_room_status(self, room_id: str, status: RoomStatus, guest: Optional[Guest] = None) -> None:
        """Set room status; with a guest also open its stay, without one close the active stay"""
        pass

    @abstractmethod
    async def delete_room(self, room_id: str) -> None:
        """Delete a room together with its future reservations"""
        pass

    @abstractmethod
    async def get_future_reservations(self) -> List[Reservation]:
        """Reservations whose check-in is strictly after today"""
        pass

    @abstractmethod
    async def create_reservation(self, room_id: str, guest: Guest) -> str:
        """Write guest and reservation rows; a check-in of today or earlier also occupies the room"""
        pass

    @abstractmethod
    async def cancel_reservation(self, reservation_id: str) -> None:
        """Mark a reservation cancelled"""
        pass

    @abstractmethod
    async def add_expense(self, guest_id: str, expense: Expense) -> None:
        """Record an expense against a guest record"""
        pass

    @abstractmethod
    async def get_guest_expenses(self, guest_id: str) -> List[Expense]:
        """Expenses recorded for a guest record"""
        pass

    @abstractmethod
    async def activate_future_reservations(self) -> int:
        """Promote every future reservation with check-in today or earlier, return the count"""
        pass


class LocalCache(ABC):
    """Durable key/value cache of JSON-compatible values"""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        pass
