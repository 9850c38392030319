import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import List, Optional
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Depends
from fastapi.security import OAuth2PasswordRequestForm

from api.schemas import (
    # Rooms
    CreateRoomRequest, UpdateRoomRequest, RoomResponse, GuestResponse, ExpenseSchema,
    # Reservations
    CreateReservationRequest, ReservationCreatedResponse, ActivationResponse,
    # History & statistics
    HistoryEntryResponse, StatisticsResponse,
    # Sync
    SyncStatusResponse, SyncResultResponse, VisibilityRequest,
    # Auth
    Token, UserResponse
)
from api.dependencies import (
    get_current_active_user, require_capability, fake_users_db, get_user, get_engine, get_scheduler
)
from application.engine import ReservationEngine
from application.sync import SyncScheduler
from domain.auth import User
from domain.clock import today
from domain.entities import NewRoom
from domain.enums import RoomStatus, HistoryStatus, UserRole, Capability
from domain.exceptions import HotelError, InvalidOperationError, NotFoundError, AuthorizationError
from domain.value_objects import Guest, Expense, HotelFilters
from infrastructure.cache import JsonFileCache
from infrastructure.config import settings
from infrastructure.database import create_db_engine, create_session_factory, init_db
from infrastructure.repositories.sqlalchemy_repositories import SQLAlchemyRoomStore
from infrastructure.security import verify_password, create_staff_token
from infrastructure.seed import seed_demo_rooms

logger = logging.getLogger(__name__)


def create_front_desk() -> ReservationEngine:
    """Engine bound to the configured relational store and the JSON file cache"""
    db_engine = create_db_engine(settings.DATABASE_URL)
    init_db(db_engine)
    store = SQLAlchemyRoomStore(create_session_factory(db_engine))
    return ReservationEngine(store, JsonFileCache(settings.CACHE_DIR))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    engine = create_front_desk()
    if settings.SEED_DEMO_ROOMS:
        try:
            await seed_demo_rooms(engine.store)
        except HotelError as e:
            logger.error("Could not seed demo rooms: %s", e)

    scheduler = SyncScheduler(engine, interval=settings.SYNC_INTERVAL_SECONDS)
    await scheduler.start()
    app.state.engine = engine
    app.state.scheduler = scheduler
    yield
    await scheduler.stop()


app = FastAPI(
    title=settings.APP_NAME,
    description="Front-desk API: rooms, reservations, guest history and store synchronization",
    version="1.0.0",
    lifespan=lifespan
)

# ============================================================================
# HEALTH & ENUM REFERENCE ENDPOINTS
# ============================================================================

@app.get("/api/health", tags=["Health"])
async def health_check():
    return {"status": "healthy", "service": settings.APP_NAME}


@app.get("/api/enums/room-status", tags=["Enum Reference"])
async def get_room_statuses():
    return {
        "values": [s.value for s in RoomStatus],
        "description": "Room status values"
    }


@app.get("/api/enums/history-status", tags=["Enum Reference"])
async def get_history_statuses():
    return {
        "values": [s.value for s in HistoryStatus],
        "description": "Guest history entry status values"
    }


@app.get("/api/enums/user-role", tags=["Enum Reference"])
async def get_user_roles():
    return {
        "values": [r.value for r in UserRole],
        "description": "Roles: admin manages everything, staff manages rooms, guest books"
    }

# ============================================================================
# AUTH ENDPOINTS
# ============================================================================

@app.post("/token", response_model=Token, tags=["Auth"])
async def login_for_access_token(form_data: OAuth2PasswordRequestForm = Depends()):
    user = get_user(fake_users_db, form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        raise HTTPException(
            status_code=401,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    access_token_expires = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    access_token = create_staff_token(user.username, user.role.value, expires_delta=access_token_expires)
    return {"access_token": access_token, "token_type": "bearer"}


@app.get("/users/me", response_model=UserResponse, tags=["Auth"])
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user

# ============================================================================
# ROOM ENDPOINTS
# ============================================================================

@app.get("/api/rooms", response_model=List[RoomResponse], tags=["Rooms"])
async def get_filtered_rooms(
    type: str = "",
    status: str = "",
    min_price: Decimal = Decimal("0"),
    max_price: Decimal = Decimal("1000"),
    search: str = "",
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.VIEW_ROOMS))
):
    """Rooms matching the filters; price bounds at their defaults are ignored"""
    filters = HotelFilters(type=type, status=status, min_price=min_price, max_price=max_price, search=search)
    return [_room_to_response(room) for room in engine.filter_rooms(filters)]


@app.get("/api/rooms/all", response_model=List[RoomResponse], tags=["Rooms"])
async def get_all_rooms(
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.VIEW_ROOMS))
):
    return [_room_to_response(room) for room in engine.rooms]


@app.post("/api/rooms", response_model=RoomResponse, status_code=201, tags=["Rooms"])
async def create_room(
    request: CreateRoomRequest,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        room_id = await engine.add_room(NewRoom(**request.model_dump()))
        return _room_to_response(engine.get_room(room_id))
    except HotelError as e:
        raise _to_http_error(e)


@app.patch("/api/rooms/{room_id}", response_model=RoomResponse, tags=["Rooms"])
async def update_room(
    room_id: str,
    request: UpdateRoomRequest,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        await engine.update_room(room_id, request.model_dump(exclude_unset=True))
        return _room_to_response(engine.get_room(room_id))
    except HotelError as e:
        raise _to_http_error(e)


@app.delete("/api/rooms/{room_id}", status_code=204, tags=["Rooms"])
async def delete_room(
    room_id: str,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        await engine.delete_room(room_id)
    except HotelError as e:
        raise _to_http_error(e)


@app.post("/api/rooms/{room_id}/checkout", response_model=RoomResponse, tags=["Rooms"])
async def checkout_room(
    room_id: str,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        await engine.checkout_room(room_id)
        return _room_to_response(engine.get_room(room_id))
    except HotelError as e:
        raise _to_http_error(e)


@app.post("/api/rooms/{room_id}/expenses", response_model=RoomResponse, tags=["Rooms"])
async def add_expense(
    room_id: str,
    request: ExpenseSchema,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        await engine.add_expense_to_room(room_id, Expense(description=request.description, value=request.value))
        return _room_to_response(engine.get_room(room_id))
    except HotelError as e:
        raise _to_http_error(e)

# ============================================================================
# RESERVATION ENDPOINTS
# ============================================================================

@app.post("/api/reservations", response_model=ReservationCreatedResponse, status_code=201, tags=["Reservations"])
async def create_reservation(
    request: CreateReservationRequest,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MAKE_RESERVATION))
):
    """Check in now when check-in is today or earlier, otherwise queue a future reservation"""
    try:
        guest = Guest(**request.guest.model_dump())
        reservation_id = await engine.make_reservation(request.room_id, guest)
        return ReservationCreatedResponse(
            reservation_id=reservation_id,
            room_id=request.room_id,
            immediate=guest.check_in <= today(engine.clock)
        )
    except (ValueError, HotelError) as e:
        raise _to_http_error(e)


@app.get("/api/reservations/future", response_model=List[RoomResponse], tags=["Reservations"])
async def get_future_reservations(
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.VIEW_RESERVATIONS))
):
    """Future reservations as room views with status reserved"""
    return [_room_to_response(view) for view in engine.get_future_reservations()]


@app.post("/api/reservations/activate", response_model=ActivationResponse, tags=["Reservations"])
async def activate_future_reservations(
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        promoted = await engine.check_and_activate_future_reservations()
        return ActivationResponse(promoted=promoted)
    except HotelError as e:
        raise _to_http_error(e)


@app.post("/api/reservations/{reservation_id}/cancel", status_code=204, tags=["Reservations"])
async def cancel_future_reservation(
    reservation_id: str,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    try:
        await engine.cancel_future_reservation(reservation_id)
    except HotelError as e:
        raise _to_http_error(e)

# ============================================================================
# STATISTICS & HISTORY ENDPOINTS
# ============================================================================

@app.get("/api/statistics", response_model=StatisticsResponse, tags=["Statistics"])
async def get_statistics(
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.VIEW_STATISTICS))
):
    return StatisticsResponse(**engine.get_statistics().model_dump())


@app.get("/api/history", response_model=List[HistoryEntryResponse], tags=["History"])
async def get_guest_history(
    status: Optional[HistoryStatus] = None,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_ROOMS))
):
    """Guest history, newest first"""
    entries = engine.get_guest_history()
    if status is not None:
        entries = [entry for entry in entries if entry.status == status]
    return [_history_to_response(entry) for entry in entries]


@app.delete("/api/history/{entry_id}", status_code=204, tags=["History"])
async def delete_history_entry(
    entry_id: str,
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.MANAGE_HISTORY))
):
    try:
        engine.delete_guest_history(entry_id)
    except HotelError as e:
        raise _to_http_error(e)

# ============================================================================
# SYNC ENDPOINTS
# ============================================================================

@app.get("/api/sync/status", response_model=SyncStatusResponse, tags=["Sync"])
async def get_sync_status(
    engine: ReservationEngine = Depends(get_engine),
    current_user: User = Depends(require_capability(Capability.SYNC))
):
    return _sync_status(engine)


@app.post("/api/sync", response_model=SyncResultResponse, tags=["Sync"])
async def sync_now(
    scheduler: SyncScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_capability(Capability.SYNC))
):
    synced = await scheduler.sync_now()
    return SyncResultResponse(synced=synced, status=_sync_status(scheduler.engine))


@app.post("/api/sync/focus", response_model=SyncResultResponse, tags=["Sync"])
async def on_focus(
    scheduler: SyncScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_capability(Capability.SYNC))
):
    synced = await scheduler.on_focus()
    return SyncResultResponse(synced=synced, status=_sync_status(scheduler.engine))


@app.post("/api/sync/visibility", response_model=SyncResultResponse, tags=["Sync"])
async def on_visibility_change(
    request: VisibilityRequest,
    scheduler: SyncScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_capability(Capability.SYNC))
):
    synced = await scheduler.on_visibility_change(request.visible)
    return SyncResultResponse(synced=synced, status=_sync_status(scheduler.engine))

# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def _to_http_error(error: Exception) -> HTTPException:
    """Map front-desk errors to HTTP status codes"""
    if isinstance(error, NotFoundError):
        return HTTPException(status_code=404, detail=str(error))
    if isinstance(error, AuthorizationError):
        return HTTPException(status_code=403, detail=str(error))
    if isinstance(error, (InvalidOperationError, ValueError)):
        return HTTPException(status_code=400, detail=str(error))
    return HTTPException(status_code=503, detail=str(error))


def _guest_to_response(guest) -> GuestResponse:
    """Convert Guest value object to GuestResponse"""
    return GuestResponse(
        guest_id=guest.guest_id,
        name=guest.name,
        email=guest.email,
        phone=guest.phone,
        cpf=guest.cpf,
        check_in=guest.check_in,
        check_out=guest.check_out,
        guests=guest.guests,
        nights=guest.nights(),
        expenses=[ExpenseSchema(description=e.description, value=e.value) for e in guest.expenses],
        expenses_total=guest.expenses_total()
    )


def _room_to_response(room) -> RoomResponse:
    """Convert Room entity to RoomResponse"""
    return RoomResponse(
        id=room.id,
        number=room.number,
        type=room.type,
        capacity=room.capacity,
        beds=room.beds,
        price=room.price,
        amenities=list(room.amenities),
        status=room.status.value,
        guest=_guest_to_response(room.guest) if room.guest else None
    )


def _history_to_response(entry) -> HistoryEntryResponse:
    """Convert GuestHistoryEntry entity to HistoryEntryResponse"""
    return HistoryEntryResponse(
        id=entry.id,
        guest=_guest_to_response(entry.guest),
        room_number=entry.room_number,
        room_type=entry.room_type,
        check_in_date=entry.check_in_date,
        check_out_date=entry.check_out_date,
        total_price=entry.total_price,
        status=entry.status,
        created_at=entry.created_at
    )


def _sync_status(engine: ReservationEngine) -> SyncStatusResponse:
    return SyncStatusResponse(
        is_online=engine.is_online,
        last_sync=engine.last_sync,
        error=engine.error,
        is_loading=engine.is_loading,
        pending_commands=engine.pending_commands
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
