"""Domain Enums"""
from enum import Enum


class RoomStatus(str, Enum):
    AVAILABLE = "available"
    OCCUPIED = "occupied"
    RESERVED = "reserved"
    MAINTENANCE = "maintenance"


class HistoryStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReservationStatus(str, Enum):
    """Status of a reservation row inside the RoomStore"""
    FUTURE = "future"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class UserRole(str, Enum):
    ADMIN = "admin"
    STAFF = "staff"
    GUEST = "guest"


class Capability(str, Enum):
    VIEW_ROOMS = "view_rooms"
    VIEW_RESERVATIONS = "view_reservations"
    MAKE_RESERVATION = "make_reservation"
    MANAGE_ROOMS = "manage_rooms"
    VIEW_STATISTICS = "view_statistics"
    MANAGE_HISTORY = "manage_history"
    SYNC = "sync"


class CommandState(str, Enum):
    PENDING = "pending"
    SETTLED = "settled"
    FAILED = "failed"
