"""SQLAlchemy Repository Implementations - relational RoomStore"""
import logging
from contextlib import contextmanager
from typing import Any, Dict, List, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from starlette.concurrency import run_in_threadpool

from domain.clock import Clock, system_clock, today
from domain.entities import Room, NewRoom, Reservation, new_id
from domain.enums import RoomStatus, ReservationStatus
from domain.exceptions import (
    ConnectivityError, TransactionFailure, InvalidOperationError, RoomNotFoundError, ReservationNotFoundError
)
from domain.repositories import RoomStore
from domain.value_objects import Guest, Expense
from infrastructure.models import RoomModel, GuestModel, ReservationModel, ExpenseModel

logger = logging.getLogger(__name__)


def _to_guest(row: GuestModel) -> Guest:
    return Guest(
        guest_id=row.id,
        name=row.name,
        email=row.email,
        phone=row.phone,
        cpf=row.cpf,
        check_in=row.check_in,
        check_out=row.check_out,
        guests=row.guests,
        expenses=[Expense(description=e.description, value=e.value) for e in row.expenses]
    )


def _to_room(row: RoomModel, guest: Optional[Guest] = None) -> Room:
    room = Room(
        id=row.id,
        number=row.number,
        type=row.type,
        capacity=row.capacity,
        beds=row.beds,
        price=row.price,
        amenities=list(row.amenities or []),
        status=RoomStatus(row.status)
    )
    if guest is not None:
        room.occupy(guest)
    return room


def _column_value(value: Any) -> Any:
    if isinstance(value, RoomStatus):
        return value.value
    return value


class SQLAlchemyRoomStore(RoomStore):
    """RoomStore over SQLAlchemy sessions.

    Session work runs in the threadpool so a slow database never stalls the
    event loop. Query failures surface as ConnectivityError, failed writes as
    TransactionFailure after the session transaction is rolled back.
    """

    def __init__(self, session_factory: sessionmaker, clock: Clock = system_clock):
        self._session_factory = session_factory
        self.clock = clock

    @contextmanager
    def _read(self):
        session: Session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error("Room store query failed: %s", e)
            raise ConnectivityError(f"Room store query failed: {e}") from e
        finally:
            session.close()

    @contextmanager
    def _write(self):
        session: Session = self._session_factory()
        try:
            with session.begin():
                yield session
        except SQLAlchemyError as e:
            logger.error("Room store transaction rolled back: %s", e)
            raise TransactionFailure(f"Room store transaction rolled back: {e}") from e
        finally:
            session.close()

    # ==================== ROW HELPERS ====================
    @staticmethod
    def _require_room(session: Session, room_id: str) -> RoomModel:
        row = session.get(RoomModel, room_id)
        if row is None:
            raise RoomNotFoundError(f"Room {room_id} not found")
        return row

    @staticmethod
    def _insert_guest(session: Session, guest: Guest) -> str:
        guest_id = guest.guest_id or new_id()
        session.add(GuestModel(
            id=guest_id,
            name=guest.name,
            email=guest.email,
            phone=guest.phone,
            cpf=guest.cpf,
            check_in=guest.check_in,
            check_out=guest.check_out,
            guests=guest.guests
        ))
        return guest_id

    def _insert_reservation(self, session: Session, room_id: str, guest_id: str, status: ReservationStatus) -> str:
        reservation_id = new_id()
        session.add(ReservationModel(
            id=reservation_id,
            room_id=room_id,
            guest_id=guest_id,
            status=status.value,
            created_at=self.clock()
        ))
        return reservation_id

    # ==================== ROOMS ====================
    async def get_all_rooms(self) -> List[Room]:
        return await run_in_threadpool(self._get_all_rooms)

    def _get_all_rooms(self) -> List[Room]:
        with self._read() as session:
            active = session.scalars(
                select(ReservationModel)
                .where(ReservationModel.status == ReservationStatus.ACTIVE.value)
                .order_by(ReservationModel.created_at)
            ).all()
            # Latest active stay wins
            occupants = {r.room_id: _to_guest(r.guest) for r in active}
            rows = session.scalars(select(RoomModel).order_by(RoomModel.number)).all()
            return [_to_room(row, occupants.get(row.id)) for row in rows]

    async def create_room(self, room: NewRoom) -> str:
        return await run_in_threadpool(self._create_room, room)

    def _create_room(self, room: NewRoom) -> str:
        room_id = new_id()
        with self._write() as session:
            session.add(RoomModel(
                id=room_id,
                number=room.number,
                type=room.type,
                capacity=room.capacity,
                beds=room.beds,
                price=room.price,
                amenities=list(room.amenities),
                status=room.status.value
            ))
        return room_id

    async def update_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        await run_in_threadpool(self._update_room, room_id, fields)

    def _update_room(self, room_id: str, fields: Dict[str, Any]) -> None:
        with self._write() as session:
            row = self._require_room(session, room_id)
            for name, value in fields.items():
                setattr(row, name, _column_value(value))

    async def update_room_status(self, room_id: str, status: RoomStatus, guest: Optional[Guest] = None) -> None:
        await run_in_threadpool(self._update_room_status, room_id, status, guest)

    def _update_room_status(self, room_id: str, status: RoomStatus, guest: Optional[Guest]) -> None:
        with self._write() as session:
            row = self._require_room(session, room_id)
            if status == RoomStatus.OCCUPIED and guest is not None:
                guest_id = self._insert_guest(session, guest)
                self._insert_reservation(session, room_id, guest_id, ReservationStatus.ACTIVE)
            elif status == RoomStatus.AVAILABLE:
                active = session.scalars(
                    select(ReservationModel).where(
                        ReservationModel.room_id == room_id,
                        ReservationModel.status == ReservationStatus.ACTIVE.value
                    )
                ).all()
                for reservation in active:
                    reservation.status = ReservationStatus.COMPLETED.value
            row.status = status.value

    async def delete_room(self, room_id: str) -> None:
        await run_in_threadpool(self._delete_room, room_id)

    def _delete_room(self, room_id: str) -> None:
        with self._write() as session:
            row = self._require_room(session, room_id)
            session.execute(delete(ReservationModel).where(ReservationModel.room_id == room_id))
            session.delete(row)

    # ==================== RESERVATIONS ====================
    async def get_future_reservations(self) -> List[Reservation]:
        return await run_in_threadpool(self._get_future_reservations)

    def _get_future_reservations(self) -> List[Reservation]:
        current_day = today(self.clock)
        with self._read() as session:
            rows = session.scalars(
                select(ReservationModel)
                .join(GuestModel, ReservationModel.guest_id == GuestModel.id)
                .where(
                    ReservationModel.status == ReservationStatus.FUTURE.value,
                    GuestModel.check_in > current_day
                )
                .order_by(GuestModel.check_in)
            ).all()
            return [
                Reservation(id=r.id, room_id=r.room_id, guest=_to_guest(r.guest), created_at=r.created_at)
                for r in rows
            ]

    async def create_reservation(self, room_id: str, guest: Guest) -> str:
        return await run_in_threadpool(self._create_reservation, room_id, guest)

    def _create_reservation(self, room_id: str, guest: Guest) -> str:
        immediate = guest.check_in <= today(self.clock)
        status = ReservationStatus.ACTIVE if immediate else ReservationStatus.FUTURE
        with self._write() as session:
            row = self._require_room(session, room_id)
            guest_id = self._insert_guest(session, guest)
            session.flush()
            reservation_id = self._insert_reservation(session, room_id, guest_id, status)
            if immediate:
                row.status = RoomStatus.OCCUPIED.value
        return reservation_id

    async def cancel_reservation(self, reservation_id: str) -> None:
        await run_in_threadpool(self._cancel_reservation, reservation_id)

    def _cancel_reservation(self, reservation_id: str) -> None:
        with self._write() as session:
            row = session.get(ReservationModel, reservation_id)
            if row is None:
                raise ReservationNotFoundError(f"Reservation {reservation_id} not found")
            row.status = ReservationStatus.CANCELLED.value

    async def activate_future_reservations(self) -> int:
        return await run_in_threadpool(self._activate_future_reservations)

    def _activate_future_reservations(self) -> int:
        current_day = today(self.clock)
        with self._write() as session:
            occupied = set(session.scalars(
                select(ReservationModel.room_id).where(ReservationModel.status == ReservationStatus.ACTIVE.value)
            ).all())
            due = session.scalars(
                select(ReservationModel)
                .join(GuestModel, ReservationModel.guest_id == GuestModel.id)
                .where(
                    ReservationModel.status == ReservationStatus.FUTURE.value,
                    GuestModel.check_in <= current_day
                )
                .order_by(GuestModel.check_in, ReservationModel.created_at)
            ).all()
            promoted = 0
            for reservation in due:
                if reservation.room_id in occupied:
                    logger.warning(
                        "Room %s still occupied, reservation %s waits", reservation.room_id, reservation.id
                    )
                    continue
                reservation.status = ReservationStatus.ACTIVE.value
                occupied.add(reservation.room_id)
                room = session.get(RoomModel, reservation.room_id)
                if room is not None:
                    room.status = RoomStatus.OCCUPIED.value
                promoted += 1
            return promoted

    # ==================== EXPENSES ====================
    async def add_expense(self, guest_id: str, expense: Expense) -> None:
        await run_in_threadpool(self._add_expense, guest_id, expense)

    def _add_expense(self, guest_id: str, expense: Expense) -> None:
        with self._write() as session:
            if session.get(GuestModel, guest_id) is None:
                raise InvalidOperationError(f"Guest {guest_id} not found")
            session.add(ExpenseModel(
                guest_id=guest_id,
                description=expense.description,
                value=expense.value,
                created_at=self.clock()
            ))

    async def get_guest_expenses(self, guest_id: str) -> List[Expense]:
        return await run_in_threadpool(self._get_guest_expenses, guest_id)

    def _get_guest_expenses(self, guest_id: str) -> List[Expense]:
        with self._read() as session:
            rows = session.scalars(
                select(ExpenseModel).where(ExpenseModel.guest_id == guest_id).order_by(ExpenseModel.id)
            ).all()
            return [Expense(description=row.description, value=row.value) for row in rows]
