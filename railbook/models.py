# railbook/models.py
from datetime import datetime, timezone

from sqlalchemy import (JSON, Boolean, CheckConstraint, Column, Date, DateTime, Enum,
                        ForeignKey, Integer, String, UniqueConstraint)
from sqlalchemy.orm import relationship

from railbook.database import Base
from railbook.schemas import (BerthPreference, BookingStatusEnum, ClassType,
                              Gender, PaymentMethod)


def enum_values(enum_cls):
    return [member.value for member in enum_cls]


def utcnow():
    return datetime.now(timezone.utc)


class Station(Base):
    __tablename__ = "stations"
    code = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    city = Column(String, nullable=False)


class Train(Base):
    __tablename__ = "trains"
    id = Column(Integer, primary_key=True, index=True)
    number = Column(String, unique=True, nullable=False, index=True)
    name = Column(String, nullable=False)
    from_code = Column(String, ForeignKey("stations.code"), nullable=False)
    to_code = Column(String, ForeignKey("stations.code"), nullable=False)
    departure_time = Column(String, nullable=False)  # HH:MM
    arrival_time = Column(String, nullable=False)
    duration = Column(String, nullable=False)
    days_of_operation = Column(JSON, nullable=False, default=list)

    from_station = relationship("Station", foreign_keys=[from_code])
    to_station = relationship("Station", foreign_keys=[to_code])
    classes = relationship(
        "FareClass", back_populates="train", cascade="all, delete-orphan", order_by="FareClass.id")


class FareClass(Base):
    __tablename__ = "fare_classes"
    __table_args__ = (
        UniqueConstraint("train_id", "class_type"),
        CheckConstraint("total_seats > 0 AND available_seats >= 0 AND available_seats <= total_seats",
                        name="ck_fare_class_availability"),
    )
    id = Column(Integer, primary_key=True, index=True)
    train_id = Column(Integer, ForeignKey("trains.id"), nullable=False)
    class_type = Column(Enum(ClassType, values_callable=enum_values), nullable=False)
    fare = Column(Integer, nullable=False)
    available_seats = Column(Integer, nullable=False)
    total_seats = Column(Integer, nullable=False)

    train = relationship("Train", back_populates="classes")


class CoachSeat(Base):
    """One seat of a fare class's coach layout on a given journey date."""
    __tablename__ = "coach_seats"
    __table_args__ = (
        UniqueConstraint("fare_class_id", "journey_date", "seat_number"),
    )
    id = Column(Integer, primary_key=True, index=True)
    fare_class_id = Column(Integer, ForeignKey("fare_classes.id"), nullable=False, index=True)
    journey_date = Column(Date, nullable=False)
    position = Column(Integer, nullable=False)
    seat_number = Column(String, nullable=False)
    is_booked = Column(Boolean, nullable=False, default=False)
    booking_pnr = Column(String, nullable=True)


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, index=True)
    pnr = Column(String(10), unique=True, nullable=False, index=True)
    user_token = Column(String, nullable=True, index=True)
    fare_class_id = Column(Integer, ForeignKey("fare_classes.id"), nullable=False)
    train_number = Column(String, nullable=False)
    train_name = Column(String, nullable=False)
    class_type = Column(Enum(ClassType, values_callable=enum_values), nullable=False)
    journey_date = Column(Date, nullable=False)
    seat_numbers = Column(JSON, nullable=False)
    total_fare = Column(Integer, nullable=False)
    status = Column(Enum(BookingStatusEnum),
                    default=BookingStatusEnum.confirmed, nullable=False)
    booked_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    payment_method = Column(Enum(PaymentMethod), nullable=False)
    payment_reference = Column(String, nullable=True)

    passengers = relationship(
        "BookingPassenger", back_populates="booking", cascade="all, delete-orphan",
        order_by="BookingPassenger.position")


class BookingPassenger(Base):
    __tablename__ = "booking_passengers"
    booking_id = Column(Integer, ForeignKey("bookings.id"), primary_key=True)
    position = Column(Integer, primary_key=True)
    id = Column(String, nullable=False)
    name = Column(String, nullable=False)
    age = Column(Integer, nullable=False)
    gender = Column(Enum(Gender), nullable=False)
    berth_preference = Column(Enum(BerthPreference), nullable=False)
    assigned_seat = Column(String, nullable=False)

    booking = relationship("Booking", back_populates="passengers")
