"""Statistics aggregator - read-only derivation over a room/reservation snapshot"""
from collections import Counter
from decimal import Decimal
from typing import Iterable, Sequence

from domain.entities import Room, Reservation
from domain.enums import RoomStatus
from domain.pricing import compute_stay_total
from domain.value_objects import HotelStatistics


def occupancy_rate(rooms: Sequence[Room]) -> float:
    """Percentage of occupied rooms, 0 for an empty hotel"""
    if not rooms:
        return 0.0
    occupied = sum(1 for room in rooms if room.status == RoomStatus.OCCUPIED)
    return occupied / len(rooms) * 100


def stay_revenue(room: Room) -> Decimal:
    guest = room.guest
    return compute_stay_total(room.price, guest.guests, guest.nights(), guest.expenses)


def compute_statistics(rooms: Iterable[Room], future_reservations: Sequence[Reservation]) -> HotelStatistics:
    rooms = list(rooms)
    by_status = Counter(room.status for room in rooms)
    occupied = [room for room in rooms if room.has_active_guest()]

    return HotelStatistics(
        total_rooms=len(rooms),
        occupied_rooms=by_status[RoomStatus.OCCUPIED],
        available_rooms=by_status[RoomStatus.AVAILABLE],
        reserved_rooms=len(future_reservations),
        maintenance_rooms=by_status[RoomStatus.MAINTENANCE],
        occupancy_rate=occupancy_rate(rooms),
        rooms_by_type=dict(Counter(room.type for room in rooms)),
        monthly_revenue=sum((stay_revenue(room) for room in occupied), Decimal("0")),
        active_guests=sum(room.guest.guests for room in occupied)
    )
