"""ORM models for rooms, guests, reservations and expenses"""
from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric, JSON
from sqlalchemy.orm import relationship

from infrastructure.database import Base


class RoomModel(Base):
    __tablename__ = "rooms"

    id = Column(String(32), primary_key=True)
    number = Column(String(20), unique=True, nullable=False)
    type = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False)
    beds = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    amenities = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="available")


class GuestModel(Base):
    __tablename__ = "guests"

    id = Column(String(32), primary_key=True)
    name = Column(String(100), nullable=False)
    email = Column(String(100))
    phone = Column(String(30))
    cpf = Column(String(20))
    check_in = Column(Date, nullable=False)
    check_out = Column(Date, nullable=False)
    guests = Column(Integer, nullable=False, default=1)

    expenses = relationship("ExpenseModel", order_by="ExpenseModel.id")


class ReservationModel(Base):
    __tablename__ = "reservations"

    id = Column(String(32), primary_key=True)
    room_id = Column(String(32), ForeignKey("rooms.id"), nullable=False, index=True)
    guest_id = Column(String(32), ForeignKey("guests.id"), nullable=False)
    status = Column(String(20), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False)

    guest = relationship("GuestModel")


class ExpenseModel(Base):
    __tablename__ = "expenses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    guest_id = Column(String(32), ForeignKey("guests.id"), nullable=False, index=True)
    description = Column(String(200), nullable=False)
    value = Column(Numeric(10, 2), nullable=False)
    created_at = Column(DateTime, nullable=False)
