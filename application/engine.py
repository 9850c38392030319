"""Reservation Lifecycle Engine - keeps rooms, future reservations and history consistent"""
import logging
import warnings
from collections import OrderedDict
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from pydantic import ValidationError

from application.statistics import compute_statistics
from domain.clock import Clock, system_clock, today
from domain.entities import Room, NewRoom, Reservation, GuestHistoryEntry, new_id
from domain.enums import RoomStatus, CommandState
from domain.exceptions import (
    HotelError, InvalidOperationError, ReservationError, PartialSyncWarning,
    RoomNotFoundError, ReservationNotFoundError, HistoryEntryNotFoundError
)
from domain.pricing import normalize_day
from domain.repositories import (
    RoomStore, LocalCache, ROOMS_KEY, FUTURE_RESERVATIONS_KEY, GUEST_HISTORY_KEY
)
from domain.value_objects import Guest, Expense, HotelFilters, HotelStatistics

logger = logging.getLogger(__name__)

ResyncHook = Callable[[], Awaitable[bool]]
ErrorListener = Callable[[Optional[str]], None]

# Room columns a partial update may touch
UPDATABLE_ROOM_FIELDS = frozenset(NewRoom.model_fields)

# Statuses staff can set directly; occupied/reserved follow from bookings
MANUAL_STATUSES = frozenset({RoomStatus.AVAILABLE, RoomStatus.MAINTENANCE})

# Settled and failed command states kept for the status surface
MAX_TRACKED_COMMANDS = 100


class ReservationEngine:
    """Owns the in-memory views of rooms, future reservations and guest history.

    Commands write through to the RoomStore and then request a resync; local
    room and reservation state is only ever replaced by what the store returns.
    Guest history is owned here and backed up to the local cache.
    """

    def __init__(self, store: RoomStore, cache: Optional[LocalCache] = None, clock: Clock = system_clock):
        self.store = store
        self.cache = cache
        self.clock = clock

        self._rooms: Dict[str, Room] = {}
        self._future: List[Reservation] = []
        self._history: List[GuestHistoryEntry] = []

        self.filters = HotelFilters()
        self.error: Optional[str] = None
        self.last_sync: Optional[datetime] = None
        self.is_loading = True
        self.command_states: Dict[str, CommandState] = OrderedDict()
        self.max_tracked_commands = MAX_TRACKED_COMMANDS

        self._resync_hook: Optional[ResyncHook] = None
        self._error_listeners: List[ErrorListener] = []
        self._last_activation_day: Optional[date] = None

    # ==================== QUERY SURFACE ====================
    @property
    def rooms(self) -> List[Room]:
        return list(self._rooms.values())

    @property
    def future_reservations(self) -> List[Reservation]:
        return list(self._future)

    @property
    def guest_history(self) -> List[GuestHistoryEntry]:
        return list(self._history)

    @property
    def filtered_rooms(self) -> List[Room]:
        return self.filter_rooms(self.filters)

    @property
    def is_online(self) -> bool:
        return self.error is None and self.last_sync is not None

    @property
    def pending_commands(self) -> List[str]:
        return [name for name, state in self.command_states.items() if state == CommandState.PENDING]

    def get_room(self, room_id: str) -> Room:
        room = self._rooms.get(room_id)
        if room is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return room

    def get_statistics(self) -> HotelStatistics:
        return compute_statistics(self._rooms.values(), self._future)

    def get_future_reservations(self) -> List[Room]:
        """Each future reservation as a room-shaped view with status reserved"""
        views = []
        for reservation in self._future:
            room = self._rooms.get(reservation.room_id)
            if room is not None:
                views.append(room.as_reserved_view(reservation.guest))
        return views

    def get_guest_history(self) -> List[GuestHistoryEntry]:
        return sorted(self._history, key=lambda entry: entry.created_at, reverse=True)

    # ==================== FILTERS ====================
    def filter_rooms(self, filters: HotelFilters) -> List[Room]:
        return [room for room in self._rooms.values() if filters.matches(room)]

    def set_filters(self, filters: HotelFilters) -> None:
        self.filters = filters

    def clear_filters(self) -> None:
        self.filters = HotelFilters()

    def search_rooms(self, term: str) -> List[Room]:
        """Rooms whose number, type or guest name contains the term"""
        return self.filter_rooms(HotelFilters(search=term))

    # ==================== ERROR STATE ====================
    def add_error_listener(self, listener: ErrorListener) -> None:
        self._error_listeners.append(listener)

    def set_error(self, message: str) -> None:
        began = self.error is None
        self.error = message
        if began:
            self._notify_error(message)

    def clear_error(self) -> None:
        if self.error is not None:
            self.error = None
            self._notify_error(None)

    def _notify_error(self, error: Optional[str]) -> None:
        for listener in list(self._error_listeners):
            listener(error)

    # ==================== RECONCILIATION ====================
    def set_resync_hook(self, hook: Optional[ResyncHook]) -> None:
        self._resync_hook = hook

    async def refresh(self) -> bool:
        """Pull rooms and future reservations from the store and replace local state.

        A failed room fetch records the error and keeps last-known-good state.
        A failed future-reservation fetch only warns and keeps the stale list.
        Never raises HotelError.
        """
        try:
            rooms = await self.store.get_all_rooms()
        except HotelError as e:
            logger.error("Room fetch failed, keeping last known state: %s", e)
            self.set_error(str(e))
            return False

        try:
            futures = await self.store.get_future_reservations()
        except HotelError as e:
            logger.warning("Future reservations fetch failed, keeping stale list: %s", e)
            warnings.warn(f"Future reservations not refreshed: {e}", PartialSyncWarning, stacklevel=2)
            futures = None

        self.apply_snapshot(rooms, futures, self.clock())
        self._write_snapshot()
        logger.debug("Synced %d rooms and %d future reservations", len(self._rooms), len(self._future))
        return True

    def apply_snapshot(self, rooms: List[Room], futures: Optional[List[Reservation]], synced_at: datetime) -> None:
        """Replace local state; a None futures list keeps the current one"""
        self._rooms = {room.id: room for room in rooms}
        if futures is not None:
            self._future = list(futures)
        self.last_sync = synced_at
        self.is_loading = False
        self.clear_error()

    def load_cached_snapshot(self) -> bool:
        """Degraded mode: last cached rooms and future reservations, no sync stamp"""
        self.is_loading = False
        if self.cache is None:
            return False
        cached_rooms = self.cache.get(ROOMS_KEY)
        if not cached_rooms:
            return False
        try:
            rooms = [Room.model_validate(row) for row in cached_rooms]
            futures = [Reservation.model_validate(row) for row in self.cache.get(FUTURE_RESERVATIONS_KEY) or []]
        except ValidationError as e:
            logger.warning("Ignoring unreadable cached snapshot: %s", e)
            return False
        self._rooms = {room.id: room for room in rooms}
        self._future = futures
        return True

    def restore_history(self) -> int:
        if self.cache is None:
            return 0
        restored = []
        for row in self.cache.get(GUEST_HISTORY_KEY) or []:
            try:
                restored.append(GuestHistoryEntry.model_validate(row))
            except ValidationError as e:
                logger.warning("Skipping unreadable history entry: %s", e)
        self._history = restored
        return len(restored)

    def _write_snapshot(self) -> None:
        if self.cache is None:
            return
        self.cache.set(ROOMS_KEY, [room.model_dump(mode="json") for room in self._rooms.values()])
        self.cache.set(FUTURE_RESERVATIONS_KEY, [r.model_dump(mode="json") for r in self._future])

    def _persist_history(self) -> None:
        if self.cache is not None:
            self.cache.set(GUEST_HISTORY_KEY, [entry.model_dump(mode="json") for entry in self._history])

    async def _resync(self) -> bool:
        if self._resync_hook is not None:
            return await self._resync_hook()
        return await self.refresh()

    @asynccontextmanager
    async def _command(self, name: str):
        """Track pending/settled/failed; store failures also set the shared error"""
        self._track(name, CommandState.PENDING)
        try:
            yield
        except InvalidOperationError:
            self._track(name, CommandState.FAILED)
            raise
        except HotelError as e:
            self._track(name, CommandState.FAILED)
            self.set_error(str(e))
            raise
        except Exception:
            self._track(name, CommandState.FAILED)
            raise
        self._track(name, CommandState.SETTLED)

    def _track(self, name: str, state: CommandState) -> None:
        """Record the newest state; oldest finished commands are evicted past the cap"""
        self.command_states[name] = state
        self.command_states.move_to_end(name)
        while len(self.command_states) > self.max_tracked_commands:
            finished = next(
                (n for n, s in self.command_states.items() if s != CommandState.PENDING), None
            )
            if finished is None:
                break
            del self.command_states[finished]

    # ==================== HISTORY HELPERS ====================
    def _find_active_booking(self, guest: Guest) -> Optional[GuestHistoryEntry]:
        return next((entry for entry in self._history if entry.matches_booking(guest)), None)

    def _find_active_occupant(self, room: Room) -> Optional[GuestHistoryEntry]:
        if room.guest is None:
            return None
        return next(
            (entry for entry in self._history if entry.matches_occupant(room.number, room.guest)),
            None
        )

    def _open_history(self, guest: Guest, room: Room) -> GuestHistoryEntry:
        entry = GuestHistoryEntry.open(guest, room, self.clock())
        self._history.append(entry)
        return entry

    # ==================== COMMANDS ====================
    async def make_reservation(self, room_id: str, guest: Guest) -> str:
        """Book a room; check-in today or earlier occupies it, later check-in queues a reservation"""
        room = self.get_room(room_id)

        immediate = normalize_day(guest.check_in) <= today(self.clock)
        if immediate and not room.is_available():
            raise InvalidOperationError(f"Room {room.number} is not available (status: {room.status.value})")
        for reservation in self._future:
            if reservation.room_id == room_id and reservation.guest.overlaps(guest):
                raise InvalidOperationError(
                    f"Room {room.number} is already reserved from {reservation.guest.check_in} "
                    f"to {reservation.guest.check_out}"
                )
        if room.has_active_guest() and room.guest.overlaps(guest):
            raise InvalidOperationError(
                f"Room {room.number} is occupied by {room.guest.name} until {room.guest.check_out}"
            )

        booking = guest.model_copy(update={"expenses": [], "guest_id": new_id()})

        async with self._command(f"make_reservation:{room_id}"):
            try:
                reservation_id = await self.store.create_reservation(room_id, booking)
            except HotelError as e:
                raise ReservationError(f"Could not reserve room {room.number}: {e}") from e
            self._open_history(booking, room)
            self._persist_history()
            await self._resync()

        logger.info(
            "%s room %s for %s (%s to %s)",
            "Checked in" if immediate else "Reserved",
            room.number, booking.name, booking.check_in, booking.check_out
        )
        return reservation_id

    async def check_and_activate_future_reservations(self) -> int:
        """Promote reservations whose check-in has arrived. Idempotent."""
        current_day = today(self.clock)
        due = [reservation for reservation in self._future if reservation.is_due(current_day)]
        if not due and self._last_activation_day == current_day:
            return 0

        async with self._command("activate_future_reservations"):
            promoted = await self.store.activate_future_reservations()
            self._last_activation_day = current_day
            for reservation in due:
                room = self._rooms.get(reservation.room_id)
                if room is None:
                    continue
                if self._find_active_booking(reservation.guest) is None:
                    self._open_history(reservation.guest.with_expenses([]), room)
            if due:
                self._persist_history()
            if promoted or due:
                await self._resync()

        if promoted:
            logger.info("Promoted %d future reservation(s)", promoted)
        return promoted

    async def checkout_room(self, room_id: str) -> None:
        """Free the room, complete its stay and drop reservations still queued on it"""
        room = self.get_room(room_id)
        stale = [reservation for reservation in self._future if reservation.room_id == room_id]

        async with self._command(f"checkout_room:{room_id}"):
            await self.store.update_room_status(room_id, RoomStatus.AVAILABLE)
            for reservation in stale:
                await self.store.cancel_reservation(reservation.id)
            # A reservation held back while the room was occupied may promote now
            self._last_activation_day = None

            entry = self._find_active_occupant(room)
            if entry is not None:
                entry.complete()
            for reservation in stale:
                booking = self._find_active_booking(reservation.guest)
                if booking is not None:
                    booking.cancel()
            self._persist_history()
            await self._resync()

        logger.info("Checked out room %s", room.number)

    async def cancel_future_reservation(self, reservation_id: str) -> None:
        reservation = next((r for r in self._future if r.id == reservation_id), None)
        if reservation is None:
            raise ReservationNotFoundError(f"Reservation {reservation_id} not found")

        async with self._command(f"cancel_future_reservation:{reservation_id}"):
            await self.store.cancel_reservation(reservation_id)
            entry = self._find_active_booking(reservation.guest)
            if entry is not None:
                entry.cancel()
                self._persist_history()
            await self._resync()

        logger.info("Cancelled reservation %s for %s", reservation_id, reservation.guest.name)

    async def add_expense_to_room(self, room_id: str, expense: Expense) -> None:
        room = self.get_room(room_id)
        if not room.has_active_guest():
            raise InvalidOperationError(f"Room {room.number} has no active guest")
        if not room.guest.guest_id:
            raise InvalidOperationError(f"Room {room.number} guest has no stay id")

        async with self._command(f"add_expense:{room_id}"):
            await self.store.add_expense(room.guest.guest_id, expense)
            entry = self._find_active_occupant(room)
            if entry is not None:
                entry.record_expense(expense)
                self._persist_history()
            await self._resync()

    async def add_room(self, room: NewRoom) -> str:
        if any(existing.number == room.number for existing in self._rooms.values()):
            raise InvalidOperationError(f"Room number {room.number} already exists")

        async with self._command("add_room"):
            room_id = await self.store.create_room(room)
            await self._resync()

        logger.info("Added room %s", room.number)
        return room_id

    async def update_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        room = self.get_room(room_id)
        unknown = set(fields) - UPDATABLE_ROOM_FIELDS
        if unknown:
            raise InvalidOperationError(f"Cannot update room fields: {', '.join(sorted(unknown))}")
        try:
            merged = NewRoom(**{**room.model_dump(include=set(UPDATABLE_ROOM_FIELDS)), **fields})
        except ValidationError as e:
            raise InvalidOperationError(str(e)) from e

        if "number" in fields and any(
            other.number == merged.number for other in self._rooms.values() if other.id != room_id
        ):
            raise InvalidOperationError(f"Room number {merged.number} already exists")
        if "status" in fields and merged.status != room.status:
            if merged.status not in MANUAL_STATUSES:
                raise InvalidOperationError(f"Status {merged.status.value} follows from bookings only")
            if room.has_active_guest():
                raise InvalidOperationError(f"Room {room.number} has an active guest")

        changes = {name: getattr(merged, name) for name in fields}
        async with self._command(f"update_room:{room_id}"):
            await self.store.update_room(room_id, changes)
            await self._resync()

    async def delete_room(self, room_id: str) -> None:
        """Remove the room and its queued reservations; history is untouched"""
        room = self.get_room(room_id)

        async with self._command(f"delete_room:{room_id}"):
            await self.store.delete_room(room_id)
            await self._resync()

        logger.info("Deleted room %s", room.number)

    def delete_guest_history(self, entry_id: str) -> None:
        entry = next((e for e in self._history if e.id == entry_id), None)
        if entry is None:
            raise HistoryEntryNotFoundError(f"History entry {entry_id} not found")
        self._history.remove(entry)
        self._persist_history()
