"""Domain Exceptions"""


class HotelError(Exception):
    """Base exception for all front-desk errors."""
    pass


class ConnectivityError(HotelError):
    """Raised when the RoomStore is unreachable or a query fails."""
    pass


class TransactionFailure(HotelError):
    """Raised when a multi-step RoomStore write fails and was rolled back."""
    pass


class ReservationError(HotelError):
    """Raised when a reservation could not be written to the RoomStore."""
    pass


class InvalidOperationError(HotelError, ValueError):
    """Raised when a command's preconditions do not hold. Nothing is mutated."""
    pass


class NotFoundError(InvalidOperationError):
    """Raised when a command targets an id that does not exist."""
    pass


class RoomNotFoundError(NotFoundError):
    pass


class ReservationNotFoundError(NotFoundError):
    pass


class HistoryEntryNotFoundError(NotFoundError):
    pass


class AuthorizationError(HotelError):
    """Raised when the current role lacks a capability."""
    pass


class PartialSyncWarning(UserWarning):
    """Future reservations could not be fetched while rooms could."""
    pass
