"""API Schemas - Request and Response DTOs"""
from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from typing import Dict, List, Optional

from domain.enums import RoomStatus, HistoryStatus, UserRole


# ============================================================================
# GUEST & EXPENSE SCHEMAS
# ============================================================================

class ExpenseSchema(BaseModel):
    """Expense request/response DTO"""
    description: str = Field(min_length=1)
    value: Decimal = Field(gt=0)


class GuestRequest(BaseModel):
    """Guest details supplied with a booking"""
    name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    check_in: date
    check_out: date
    guests: int = Field(ge=1, default=1)


class GuestResponse(BaseModel):
    """Guest response DTO"""
    guest_id: Optional[str] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    cpf: Optional[str] = None
    check_in: date
    check_out: date
    guests: int
    nights: int
    expenses: List[ExpenseSchema] = []
    expenses_total: Decimal


# ============================================================================
# ROOM SCHEMAS
# ============================================================================

class CreateRoomRequest(BaseModel):
    """Create room request DTO"""
    number: str = Field(min_length=1)
    type: str = Field(min_length=1)
    capacity: int = Field(ge=1)
    beds: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    amenities: List[str] = []
    status: RoomStatus = RoomStatus.AVAILABLE


class UpdateRoomRequest(BaseModel):
    """Partial room update; only the fields sent are changed"""
    number: Optional[str] = Field(None, min_length=1)
    type: Optional[str] = Field(None, min_length=1)
    capacity: Optional[int] = Field(None, ge=1)
    beds: Optional[int] = Field(None, ge=1)
    price: Optional[Decimal] = Field(None, ge=0)
    amenities: Optional[List[str]] = None
    status: Optional[RoomStatus] = None


class RoomResponse(BaseModel):
    """Room response DTO"""
    id: str
    number: str
    type: str
    capacity: int
    beds: int
    price: Decimal
    amenities: List[str]
    status: str
    guest: Optional[GuestResponse] = None


# ============================================================================
# RESERVATION SCHEMAS
# ============================================================================

class CreateReservationRequest(BaseModel):
    """Create reservation request DTO"""
    room_id: str
    guest: GuestRequest


class ReservationCreatedResponse(BaseModel):
    """Create reservation response DTO"""
    reservation_id: str
    room_id: str
    immediate: bool


class ActivationResponse(BaseModel):
    """Promotion run result"""
    promoted: int


# ============================================================================
# HISTORY & STATISTICS SCHEMAS
# ============================================================================

class HistoryEntryResponse(BaseModel):
    """Guest history entry response DTO"""
    id: str
    guest: GuestResponse
    room_number: str
    room_type: str
    check_in_date: date
    check_out_date: date
    total_price: Decimal
    status: HistoryStatus
    created_at: datetime


class StatisticsResponse(BaseModel):
    """Statistics response DTO"""
    total_rooms: int
    occupied_rooms: int
    available_rooms: int
    reserved_rooms: int
    maintenance_rooms: int
    occupancy_rate: float
    rooms_by_type: Dict[str, int]
    monthly_revenue: Decimal
    active_guests: int


# ============================================================================
# SYNC SCHEMAS
# ============================================================================

class SyncStatusResponse(BaseModel):
    """Online flag, last sync stamp and banner error"""
    is_online: bool
    last_sync: Optional[datetime] = None
    error: Optional[str] = None
    is_loading: bool
    pending_commands: List[str] = []


class SyncResultResponse(BaseModel):
    synced: bool
    status: SyncStatusResponse


class VisibilityRequest(BaseModel):
    visible: bool


# ============================================================================
# AUTH SCHEMAS
# ============================================================================

class Token(BaseModel):
    """Token response DTO"""
    access_token: str
    token_type: str


class TokenData(BaseModel):
    """Token payload DTO"""
    username: Optional[str] = None
    role: Optional[UserRole] = None


class UserResponse(BaseModel):
    """User response DTO"""
    user_id: UUID
    username: str
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: UserRole
    disabled: bool
