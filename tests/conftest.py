"""
Shared fixtures: an in-memory database seeded with one train and a booking
service wired to it.
"""
import threading
import time
from datetime import date

import pytest
from sqlalchemy.orm import sessionmaker

from railbook import models
from railbook.database import Base, make_engine
from railbook.payments import MockPaymentGateway, PaymentGateway, PaymentResult
from railbook.schemas import ClassType
from railbook.service import BookingService
from railbook.settings import Settings

SATURDAY = date(2024, 1, 6)
WEDNESDAY = date(2024, 1, 3)
TRAIN_NUMBER = "12951"


class DecliningGateway(PaymentGateway):
    def charge(self, amount, details):
        return PaymentResult(success=False, message="Insufficient funds")


class FailingGateway(PaymentGateway):
    def charge(self, amount, details):
        raise ConnectionError("gateway unreachable")


class SlowGateway(PaymentGateway):
    def __init__(self, delay_seconds):
        self.delay_seconds = delay_seconds

    def charge(self, amount, details):
        time.sleep(self.delay_seconds)
        return PaymentResult(success=True, reference="PAY-LATE")


class BlockingGateway(PaymentGateway):
    """Approves only once released; `started` is set when a charge begins."""

    def __init__(self):
        self.started = threading.Event()
        self.release = threading.Event()

    def charge(self, amount, details):
        self.started.set()
        self.release.wait(timeout=5)
        return PaymentResult(success=True, reference="PAY-HELD")


class BarrierGateway(PaymentGateway):
    """Approves once every party sharing the barrier is charging."""

    def __init__(self, barrier):
        self.barrier = barrier

    def charge(self, amount, details):
        self.barrier.wait(timeout=5)
        return PaymentResult(success=True, reference="PAY-RACE")


@pytest.fixture
def session_factory():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def catalog(session_factory):
    return seed_catalog(session_factory)


@pytest.fixture
def file_catalog(tmp_path):
    """A seeded catalog on a file database, so concurrent sessions get their own connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'railbook.db'}")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    yield seed_catalog(factory)
    engine.dispose()


def seed_catalog(session_factory):
    with session_factory.begin() as db:
        db.add_all([
            models.Station(code="NDLS", name="New Delhi Railway Station", city="New Delhi"),
            models.Station(code="BCT", name="Mumbai Central", city="Mumbai"),
        ])
        db.add(models.Train(
            number=TRAIN_NUMBER,
            name="Mumbai Rajdhani",
            from_code="NDLS",
            to_code="BCT",
            departure_time="08:00",
            arrival_time="16:30",
            duration="8h 30m",
            days_of_operation=["Mon", "Wed", "Sat"],
            classes=[
                models.FareClass(class_type=ClassType.third_ac, fare=1500,
                                 available_seats=10, total_seats=72),
                models.FareClass(class_type=ClassType.first_ac, fare=3500,
                                 available_seats=72, total_seats=72),
                models.FareClass(class_type=ClassType.sleeper, fare=500,
                                 available_seats=0, total_seats=72),
            ],
        ))
    return session_factory


@pytest.fixture
def test_settings():
    return Settings(
        database_url="sqlite://",
        payment_delay_seconds=0,
        payment_timeout_seconds=2,
        seat_hold_ttl_seconds=600,
    )


@pytest.fixture
def service(catalog, test_settings):
    return BookingService(catalog, gateway=MockPaymentGateway(0), settings=test_settings)


def fare_class_row(session_factory, class_type=ClassType.third_ac):
    with session_factory() as db:
        return db.query(models.FareClass).filter(
            models.FareClass.class_type == class_type).one()


def free_seats(service, count, class_type=ClassType.third_ac, journey_date=SATURDAY):
    seat_map = service.seat_map(TRAIN_NUMBER, class_type, journey_date)
    seats = [seat.seat_number for seat in seat_map.seats if not seat.is_booked]
    return seats[:count]
