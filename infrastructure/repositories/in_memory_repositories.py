"""In-Memory Repository Implementations"""
import copy
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from domain.clock import Clock, system_clock, today
from domain.entities import Room, NewRoom, Reservation, new_id
from domain.enums import RoomStatus, ReservationStatus
from domain.exceptions import (
    HotelError, TransactionFailure, InvalidOperationError, RoomNotFoundError, ReservationNotFoundError
)
from domain.repositories import RoomStore, LocalCache
from domain.value_objects import Guest, Expense

logger = logging.getLogger(__name__)


class ReservationRecord(BaseModel):
    """Reservation row as the store keeps it"""
    id: str
    room_id: str
    guest_id: str
    status: ReservationStatus
    created_at: datetime


class InMemoryRoomStore(RoomStore):
    """In-memory implementation of RoomStore.

    Multi-row writes run inside a snapshot/restore transaction.
    """

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock
        self._rooms: Dict[str, Room] = {}
        self._guests: Dict[str, Guest] = {}
        self._reservations: Dict[str, ReservationRecord] = {}
        self._expenses: Dict[str, List[Expense]] = {}

    # ==================== TRANSACTIONS ====================
    @contextmanager
    def _transaction(self):
        snapshot = copy.deepcopy((self._rooms, self._guests, self._reservations, self._expenses))
        try:
            yield
        except HotelError:
            self._rooms, self._guests, self._reservations, self._expenses = snapshot
            raise
        except Exception as e:
            self._rooms, self._guests, self._reservations, self._expenses = snapshot
            raise TransactionFailure(f"Transaction rolled back: {e}") from e

    # ==================== ROW HELPERS ====================
    def _require_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def _insert_guest(self, guest: Guest) -> str:
        guest_id = guest.guest_id or new_id()
        self._guests[guest_id] = guest.model_copy(update={"guest_id": guest_id, "expenses": []})
        self._expenses.setdefault(guest_id, [])
        return guest_id

    def _insert_reservation(self, room_id: str, guest_id: str, status: ReservationStatus) -> str:
        reservation_id = new_id()
        self._reservations[reservation_id] = ReservationRecord(
            id=reservation_id,
            room_id=room_id,
            guest_id=guest_id,
            status=status,
            created_at=self.clock()
        )
        return reservation_id

    def _set_room_status(self, room_id: str, status: RoomStatus) -> None:
        self._require_room(room_id).status = status

    def _guest_with_expenses(self, guest_id: str) -> Guest:
        return self._guests[guest_id].with_expenses(self._expenses.get(guest_id, []))

    def _active_record(self, room_id: str) -> Optional[ReservationRecord]:
        active = [
            r for r in self._reservations.values()
            if r.room_id == room_id and r.status == ReservationStatus.ACTIVE
        ]
        return max(active, key=lambda r: r.created_at) if active else None

    # ==================== ROOMS ====================
    async def get_all_rooms(self) -> List[Room]:
        rooms = []
        for room in self._rooms.values():
            view = room.model_copy(deep=True)
            record = self._active_record(room.id)
            if record is not None:
                view.occupy(self._guest_with_expenses(record.guest_id))
            rooms.append(view)
        return rooms

    async def create_room(self, room: NewRoom) -> str:
        room_id = new_id()
        self._rooms[room_id] = Room.create(room_id, room)
        return room_id

    async def update_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        room = self._require_room(room_id)
        self._rooms[room_id] = room.model_copy(update=fields)

    async def update_room_status(self, room_id: str, status: RoomStatus, guest: Optional[Guest] = None) -> None:
        with self._transaction():
            self._require_room(room_id)
            if status == RoomStatus.OCCUPIED and guest is not None:
                guest_id = self._insert_guest(guest)
                self._insert_reservation(room_id, guest_id, ReservationStatus.ACTIVE)
            elif status == RoomStatus.AVAILABLE:
                for record in self._reservations.values():
                    if record.room_id == room_id and record.status == ReservationStatus.ACTIVE:
                        record.status = ReservationStatus.COMPLETED
            self._set_room_status(room_id, status)

    async def delete_room(self, room_id: str) -> None:
        with self._transaction():
            self._require_room(room_id)
            for reservation_id in [r.id for r in self._reservations.values() if r.room_id == room_id]:
                del self._reservations[reservation_id]
            del self._rooms[room_id]

    # ==================== RESERVATIONS ====================
    async def get_future_reservations(self) -> List[Reservation]:
        current_day = today(self.clock)
        return [
            Reservation(
                id=record.id,
                room_id=record.room_id,
                guest=self._guest_with_expenses(record.guest_id),
                created_at=record.created_at
            )
            for record in self._reservations.values()
            if record.status == ReservationStatus.FUTURE
            and self._guests[record.guest_id].check_in > current_day
        ]

    async def create_reservation(self, room_id: str, guest: Guest) -> str:
        with self._transaction():
            self._require_room(room_id)
            guest_id = self._insert_guest(guest)
            immediate = guest.check_in <= today(self.clock)
            status = ReservationStatus.ACTIVE if immediate else ReservationStatus.FUTURE
            reservation_id = self._insert_reservation(room_id, guest_id, status)
            if immediate:
                self._set_room_status(room_id, RoomStatus.OCCUPIED)
        return reservation_id

    async def cancel_reservation(self, reservation_id: str) -> None:
        record = self._reservations.get(reservation_id)
        if record is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
        record.status = ReservationStatus.CANCELLED

    async def activate_future_reservations(self) -> int:
        current_day = today(self.clock)
        promoted = 0
        with self._transaction():
            for record in list(self._reservations.values()):
                if record.status != ReservationStatus.FUTURE:
                    continue
                if self._guests[record.guest_id].check_in > current_day:
                    continue
                if self._active_record(record.room_id) is not None:
                    logger.warning("Room %s still occupied, reservation %s waits", record.room_id, record.id)
                    continue
                record.status = ReservationStatus.ACTIVE
                self._set_room_status(record.room_id, RoomStatus.OCCUPIED)
                promoted += 1
        return promoted

    # ==================== EXPENSES ====================
    async def add_expense(self, guest_id: str, expense: Expense) -> None:
        if guest_id not in self._guests:
            raise InvalidOperationError(f"Guest {guest_id} not found")
        self._expenses[guest_id].append(expense)

    async def get_guest_expenses(self, guest_id: str) -> List[Expense]:
        return list(self._expenses.get(guest_id, []))


class InMemoryLocalCache(LocalCache):
    """In-memory implementation of LocalCache"""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._storage: Dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._storage.get(key))

    def set(self, key: str, value: Any) -> None:
        self._storage[key] = copy.deepcopy(value)

    def remove(self, key: str) -> None:
        self._storage.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._storage)
