# railbook/workflow.py
"""
Booking workflow: one booking attempt from passenger entry to a committed
booking.

    drafting -> seats_pending -> payment_pending -> confirmed

Any state before confirmed may move to abandoned.

Validation failures never advance the state. A declined or timed-out payment
keeps the attempt in payment_pending with its seats still held. Failing to
commit abandons the attempt and releases its seats; nothing is persisted.
"""
import logging
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as PaymentTimeout
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from railbook import crud, models, schemas, scoring
from railbook.exceptions import (BookingError, InvalidPassengerData,
                                 InvalidTransition, LedgerError,
                                 PaymentDeclined, SeatCountMismatch,
                                 SeatHoldExpired, SeatUnavailable)
from railbook.ledger import BookingLedger
from railbook.payments import PaymentGateway, PaymentResult, validate_payment
from railbook.schemas import BookingStatusEnum, WorkflowState
from railbook.seats import LayoutSeat, SeatAllocator, SeatHoldRegistry

logger = logging.getLogger(__name__)

MIN_AGE = 1
MAX_AGE = 120

_payment_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="payment")


def _round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def quote_fare(class_fare: int, passenger_count: int, gst_rate: float,
               reservation_charge: int) -> schemas.FareQuote:
    """total = fare x n x (1 + gst) + reservation charge x n, rounded half up."""
    base = Decimal(class_fare) * passenger_count
    gst = base * Decimal(str(gst_rate))
    charges = Decimal(reservation_charge) * passenger_count
    return schemas.FareQuote(
        base_fare=int(base),
        gst=_round_half_up(gst),
        reservation_charge=int(charges),
        total_fare=_round_half_up(base + gst + charges),
    )


def validate_passengers(passengers: Sequence[schemas.PassengerBase], max_passengers: int) -> None:
    if not passengers:
        raise InvalidPassengerData("Please add at least one passenger")
    if len(passengers) > max_passengers:
        raise InvalidPassengerData(f"A booking can have at most {max_passengers} passengers")
    for index, passenger in enumerate(passengers, start=1):
        if not passenger.name or not passenger.name.strip():
            raise InvalidPassengerData(f"Please enter name for passenger {index}")
        if not MIN_AGE <= passenger.age <= MAX_AGE:
            raise InvalidPassengerData(f"Please enter valid age for passenger {index}")


class BookingWorkflow:

    def __init__(self, fare_class: models.FareClass, journey_date: date, *,
                 session_factory: sessionmaker, ledger: BookingLedger,
                 holds: SeatHoldRegistry, gateway: PaymentGateway,
                 user_token: Optional[str] = None, gst_rate: float = 0.05,
                 reservation_charge: int = 40, max_passengers: int = 6,
                 payment_timeout: float = 10.0,
                 on_finished: Optional[Callable[["BookingWorkflow"], None]] = None):
        self.id = uuid.uuid4().hex
        self.user_token = user_token
        self.train_number = fare_class.train.number
        self.train_name = fare_class.train.name
        self.fare_class_id = fare_class.id
        self.class_type = fare_class.class_type
        self.journey_date = journey_date
        self.coach_key = crud.coach_key(fare_class.id, journey_date)
        self.assessment = scoring.assess(fare_class, fare_class.train.departure_time, journey_date)

        self.session_factory = session_factory
        self.ledger = ledger
        self.holds = holds
        self.gateway = gateway
        self.gst_rate = gst_rate
        self.reservation_charge = reservation_charge
        self.max_passengers = max_passengers
        self.payment_timeout = payment_timeout
        self.on_finished = on_finished

        self.state = WorkflowState.drafting
        self.passengers: List[schemas.Passenger] = []
        self.allocator: Optional[SeatAllocator] = None
        self.quote: Optional[schemas.FareQuote] = None
        self.pnr: Optional[str] = None
        # seats and fare frozen on entering payment_pending
        self._held_seats: List[str] = []
        self._paying = False
        self._lock = threading.RLock()
        self.last_active = time.monotonic()

    def _require(self, action: str, *states: WorkflowState):
        """Rejects actions illegal in the current state; any attempted action counts as activity."""
        self.last_active = time.monotonic()
        if self.state not in states:
            raise InvalidTransition(f"Cannot {action} while the booking is {self.state.value}")

    def submit_passengers(self, passengers: Sequence[schemas.PassengerBase]) -> None:
        with self._lock:
            self._require("update passengers", WorkflowState.drafting, WorkflowState.seats_pending)
            validate_passengers(passengers, self.max_passengers)

            accepted = [
                schemas.Passenger(
                    id=uuid.uuid4().hex[:12],
                    name=p.name.strip(),
                    age=p.age,
                    gender=p.gender,
                    berth_preference=p.berth_preference,
                )
                for p in passengers
            ]
            self.allocator = SeatAllocator(self._load_layout(), max_selection=len(accepted))
            self.passengers = accepted
            self.state = WorkflowState.seats_pending
            logger.debug(f"Draft {self.id}: {len(self.passengers)} passenger(s) accepted")

    def _load_layout(self) -> List[LayoutSeat]:
        held = set(self.holds.held_by_others(self.coach_key, owner=self.id))
        with self.session_factory.begin() as db:
            fare_class = db.get(models.FareClass, self.fare_class_id)
            return [
                LayoutSeat(seat.seat_number, seat.is_booked or seat.seat_number in held)
                for seat in crud.get_coach_layout(db, fare_class, self.journey_date)
            ]

    def toggle_seat(self, seat_number: str) -> bool:
        with self._lock:
            self._require("select seats", WorkflowState.seats_pending)
            return self.allocator.toggle(seat_number)

    def confirm_seats(self) -> schemas.FareQuote:
        with self._lock:
            self._require("confirm seats", WorkflowState.seats_pending)
            selected = self.allocator.selected
            if len(selected) != len(self.passengers):
                raise SeatCountMismatch(f"Please select {len(self.passengers)} seat(s)")

            self.holds.acquire(self.coach_key, selected, self.id)
            try:
                with self.session_factory.begin() as db:
                    fare_class = db.get(models.FareClass, self.fare_class_id)
                    booked = {
                        seat.seat_number for seat in crud.get_coach_layout(db, fare_class, self.journey_date)
                        if seat.is_booked
                    }
                    if booked.intersection(selected):
                        raise SeatUnavailable(
                            f"Seat(s) {', '.join(sorted(booked.intersection(selected)))} were just booked")
                    if fare_class.available_seats < len(selected):
                        raise SeatUnavailable("Not enough seats left in this class")
                    class_fare = fare_class.fare
            except Exception:
                self.holds.release(self.coach_key, selected, self.id)
                raise

            self._held_seats = selected
            for passenger, seat_number in zip(self.passengers, selected):
                passenger.assigned_seat = seat_number
            self.quote = quote_fare(class_fare, len(self.passengers),
                                    self.gst_rate, self.reservation_charge)
            self.state = WorkflowState.payment_pending
            return self.quote

    def pay(self, details: schemas.PaymentDetails) -> models.Booking:
        with self._lock:
            self._require("pay", WorkflowState.payment_pending)
            if self._paying:
                raise InvalidTransition("A payment for this booking is already in progress")
            validate_payment(details)
            if not self.holds.renew(self.coach_key, self._held_seats, self.id):
                self._back_to_seat_selection()
                raise SeatHoldExpired("Your seat hold expired, please confirm your seats again")
            amount = self.quote.total_fare
            self._paying = True

        try:
            result = self._charge(amount, details)
        finally:
            with self._lock:
                self._paying = False

        with self._lock:
            if self.state != WorkflowState.payment_pending:
                logger.warning(f"Draft {self.id} was {self.state.value} while awaiting payment "
                               f"{result.reference}")
                raise InvalidTransition("This booking attempt was abandoned during payment")
            if not result.success:
                logger.warning(f"Draft {self.id}: payment declined ({result.message})")
                raise PaymentDeclined(result.message or "Payment was declined, please try again")
            return self._commit(details.method, result.reference)

    def _charge(self, amount: int, details: schemas.PaymentDetails) -> PaymentResult:
        future = _payment_executor.submit(self.gateway.charge, amount, details)
        try:
            return future.result(timeout=self.payment_timeout)
        except PaymentTimeout:
            future.cancel()
            return PaymentResult(success=False, message="Payment timed out, please try again")
        except Exception:
            logger.exception(f"Draft {self.id}: payment gateway error")
            return PaymentResult(success=False, message="Payment could not be processed, please try again")

    def _commit(self, method: schemas.PaymentMethod, reference: Optional[str]) -> models.Booking:
        seats = list(self._held_seats)
        try:
            with self.session_factory.begin() as db:
                pnr = self.ledger.new_pnr(db=db)
                booking = models.Booking(
                    pnr=pnr,
                    user_token=self.user_token,
                    fare_class_id=self.fare_class_id,
                    train_number=self.train_number,
                    train_name=self.train_name,
                    class_type=self.class_type,
                    journey_date=self.journey_date,
                    seat_numbers=seats,
                    total_fare=self.quote.total_fare,
                    status=BookingStatusEnum.confirmed,
                    booked_at=models.utcnow(),
                    payment_method=method,
                    payment_reference=reference,
                    passengers=[
                        models.BookingPassenger(
                            position=position,
                            id=p.id,
                            name=p.name,
                            age=p.age,
                            gender=p.gender,
                            berth_preference=p.berth_preference,
                            assigned_seat=seat_number,
                        )
                        for position, (p, seat_number) in enumerate(zip(self.passengers, seats))
                    ],
                )
                crud.claim_seats(db, self.fare_class_id, self.journey_date, seats, pnr)
                crud.decrement_availability(db, self.fare_class_id, len(seats))
                self.ledger.create(booking, db=db)
        except BookingError:
            self._abandon()
            raise
        except SQLAlchemyError as exc:
            logger.exception(f"Draft {self.id}: booking commit failed")
            self._abandon()
            raise LedgerError("Booking could not be stored, please start again") from exc

        self.holds.release(self.coach_key, seats, self.id)
        self.pnr = pnr
        self.state = WorkflowState.confirmed
        self._finish()
        logger.info(f"Booking {pnr} confirmed: {self.train_number} {self.class_type.value} "
                    f"{self.journey_date} seats {seats} fare {booking.total_fare}")
        return booking

    def _back_to_seat_selection(self):
        self.holds.release(self.coach_key, self._held_seats, self.id)
        self._held_seats = []
        self.quote = None
        for passenger in self.passengers:
            passenger.assigned_seat = None
        self.state = WorkflowState.seats_pending

    def _abandon(self):
        self.holds.release(self.coach_key, self._held_seats, self.id)
        self._held_seats = []
        self.state = WorkflowState.abandoned
        self._finish()

    def _finish(self):
        if self.on_finished is not None:
            self.on_finished(self)

    def abandon(self) -> None:
        with self._lock:
            self._require("abandon", WorkflowState.drafting, WorkflowState.seats_pending,
                          WorkflowState.payment_pending)
            self._abandon()
            logger.info(f"Draft {self.id} abandoned")

    def abandon_if_idle(self, max_idle: float) -> bool:
        """Abandons the attempt if nothing happened for max_idle seconds and no payment is running."""
        with self._lock:
            if self.state in (WorkflowState.confirmed, WorkflowState.abandoned):
                return False
            if self._paying or time.monotonic() - self.last_active <= max_idle:
                return False
            self._abandon()
        logger.info(f"Draft {self.id} abandoned after {max_idle:.0f}s idle")
        return True

    def to_schema(self) -> schemas.Draft:
        return schemas.Draft(
            id=self.id,
            state=self.state,
            train_number=self.train_number,
            class_type=self.class_type,
            journey_date=self.journey_date,
            passengers=[p.model_copy() for p in self.passengers],
            selected_seats=self.allocator.selected if self.allocator else [],
            max_selection=len(self.passengers),
            quote=self.quote,
            assessment=self.assessment,
            pnr=self.pnr,
        )
