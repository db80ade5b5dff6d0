# railbook/crud.py
import logging
from datetime import date
from typing import List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.orm import Session

from railbook import models
from railbook.exceptions import NotFound, SeatUnavailable
from railbook.schemas import ClassType
from railbook.seats import generate_layout

logger = logging.getLogger(__name__)


def coach_key(fare_class_id: int, journey_date: date) -> str:
    return f"{fare_class_id}:{journey_date.isoformat()}"


def get_stations(db: Session) -> List[models.Station]:
    return db.query(models.Station).order_by(models.Station.code).all()


def search_trains(db: Session, from_station: Optional[str] = None, to_station: Optional[str] = None):
    query = db.query(models.Train)
    if from_station:
        query = query.filter(models.Train.from_code == from_station.upper())
    if to_station:
        query = query.filter(models.Train.to_code == to_station.upper())
    return query.order_by(models.Train.departure_time).all()


def get_train(db: Session, train_number: str) -> models.Train:
    train = db.query(models.Train).filter(models.Train.number == train_number).first()
    if not train:
        raise NotFound(f"Train {train_number} not found")
    return train


def get_fare_class(db: Session, train_number: str, class_type: ClassType) -> models.FareClass:
    train = get_train(db, train_number)
    for fare_class in train.classes:
        if fare_class.class_type == class_type:
            return fare_class
    raise NotFound(f"Class {class_type.value} is not available on train {train_number}")


def _layout_query(db: Session, fare_class_id: int, journey_date: date):
    return db.query(models.CoachSeat).filter(
        models.CoachSeat.fare_class_id == fare_class_id,
        models.CoachSeat.journey_date == journey_date
    ).order_by(models.CoachSeat.position)


def get_coach_layout(db: Session, fare_class: models.FareClass, journey_date: date) -> List[models.CoachSeat]:
    """
    Returns the persisted coach layout of a fare class for a journey date,
    generating it on first access. A freshly generated layout has exactly
    total_seats - available_seats seats already booked.
    """
    seats = _layout_query(db, fare_class.id, journey_date).all()
    if seats:
        return seats

    layout = generate_layout(
        fare_class.total_seats,
        fare_class.total_seats - fare_class.available_seats,
        seed=f"{fare_class.id}:{journey_date.isoformat()}"
    )
    for position, seat in enumerate(layout, start=1):
        db.add(models.CoachSeat(
            fare_class_id=fare_class.id,
            journey_date=journey_date,
            position=position,
            seat_number=seat.seat_number,
            is_booked=seat.is_booked
        ))
    db.flush()
    logger.info(f"Generated coach layout {coach_key(fare_class.id, journey_date)}")
    return _layout_query(db, fare_class.id, journey_date).all()


def claim_seats(db: Session, fare_class_id: int, journey_date: date,
                seat_numbers: Sequence[str], pnr: str) -> None:
    """Marks seats booked for pnr. Every seat must still be free, otherwise nothing is claimed."""
    result = db.execute(
        update(models.CoachSeat)
        .where(
            models.CoachSeat.fare_class_id == fare_class_id,
            models.CoachSeat.journey_date == journey_date,
            models.CoachSeat.seat_number.in_(list(seat_numbers)),
            models.CoachSeat.is_booked.is_(False)
        )
        .values(is_booked=True, booking_pnr=pnr)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != len(seat_numbers):
        raise SeatUnavailable("One or more selected seats have already been booked")


def release_seats(db: Session, fare_class_id: int, journey_date: date, pnr: str) -> int:
    result = db.execute(
        update(models.CoachSeat)
        .where(
            models.CoachSeat.fare_class_id == fare_class_id,
            models.CoachSeat.journey_date == journey_date,
            models.CoachSeat.booking_pnr == pnr
        )
        .values(is_booked=False, booking_pnr=None)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def decrement_availability(db: Session, fare_class_id: int, count: int) -> None:
    result = db.execute(
        update(models.FareClass)
        .where(
            models.FareClass.id == fare_class_id,
            models.FareClass.available_seats >= count
        )
        .values(available_seats=models.FareClass.available_seats - count)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise SeatUnavailable("Not enough seats left in this class")


def restore_availability(db: Session, fare_class_id: int, count: int) -> None:
    db.execute(
        update(models.FareClass)
        .where(
            models.FareClass.id == fare_class_id,
            models.FareClass.available_seats + count <= models.FareClass.total_seats
        )
        .values(available_seats=models.FareClass.available_seats + count)
        .execution_options(synchronize_session=False)
    )
