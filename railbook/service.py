# railbook/service.py
import logging
import threading
from datetime import date
from typing import Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from railbook import crud, models, schemas, scoring
from railbook.exceptions import NotFound
from railbook.ledger import BookingLedger
from railbook.payments import MockPaymentGateway, PaymentGateway
from railbook.seats import SeatHoldRegistry, partition_rows
from railbook.settings import Settings, settings as default_settings
from railbook.workflow import BookingWorkflow

logger = logging.getLogger(__name__)


class BookingService:
    """Entry point for the API: catalog reads, booking attempts and committed bookings."""

    def __init__(self, session_factory: sessionmaker, ledger: Optional[BookingLedger] = None,
                 gateway: Optional[PaymentGateway] = None, holds: Optional[SeatHoldRegistry] = None,
                 settings: Settings = default_settings):
        self.session_factory = session_factory
        self.settings = settings
        self.ledger = ledger or BookingLedger(session_factory)
        self.gateway = gateway or MockPaymentGateway(settings.payment_delay_seconds)
        self.holds = holds or SeatHoldRegistry(settings.seat_hold_ttl_seconds)
        self._drafts: Dict[str, BookingWorkflow] = {}
        self._drafts_lock = threading.Lock()

    # Catalog

    def assess(self, train_number: str, class_type: schemas.ClassType,
               journey_date: date) -> schemas.ClassAssessment:
        with self.session_factory() as db:
            fare_class = crud.get_fare_class(db, train_number, class_type)
            assessment = scoring.assess(fare_class, fare_class.train.departure_time, journey_date)
            return schemas.ClassAssessment(
                train_number=train_number,
                class_type=class_type,
                journey_date=journey_date,
                fare_class=schemas.FareClass.model_validate(fare_class),
                assessment=assessment,
                recommendation_label=scoring.recommendation_label(assessment.recommendation),
            )

    def seat_map(self, train_number: str, class_type: schemas.ClassType,
                 journey_date: date) -> schemas.SeatMap:
        with self.session_factory.begin() as db:
            fare_class = crud.get_fare_class(db, train_number, class_type)
            layout = crud.get_coach_layout(db, fare_class, journey_date)
            held = set(self.holds.held_by_others(crud.coach_key(fare_class.id, journey_date)))
            seats = [
                schemas.Seat(seat_number=seat.seat_number,
                             is_booked=seat.is_booked or seat.seat_number in held)
                for seat in layout
            ]
        return schemas.SeatMap(
            train_number=train_number,
            class_type=class_type,
            journey_date=journey_date,
            seats=seats,
            rows=partition_rows([seat.seat_number for seat in seats]),
        )

    # Booking attempts

    def start(self, request: schemas.DraftCreate, user_token: Optional[str] = None) -> BookingWorkflow:
        with self.session_factory() as db:
            fare_class = crud.get_fare_class(db, request.train_number, request.class_type)
            workflow = BookingWorkflow(
                fare_class, request.journey_date,
                session_factory=self.session_factory,
                ledger=self.ledger,
                holds=self.holds,
                gateway=self.gateway,
                user_token=user_token,
                gst_rate=self.settings.gst_rate,
                reservation_charge=self.settings.reservation_charge,
                max_passengers=self.settings.max_passengers,
                payment_timeout=self.settings.payment_timeout_seconds,
                on_finished=self._forget,
            )
        self.sweep_idle_drafts()
        with self._drafts_lock:
            self._drafts[workflow.id] = workflow
        logger.info(f"Draft {workflow.id} started for {request.train_number} "
                    f"{request.class_type.value} on {request.journey_date}")
        return workflow

    def get(self, draft_id: str, user_token: Optional[str] = None) -> BookingWorkflow:
        with self._drafts_lock:
            workflow = self._drafts.get(draft_id)
        if workflow is None or workflow.user_token != user_token:
            raise NotFound(f"Booking draft {draft_id} not found")
        return workflow

    def abandon(self, draft_id: str, user_token: Optional[str] = None) -> BookingWorkflow:
        workflow = self.get(draft_id, user_token)
        workflow.abandon()
        return workflow

    def sweep_idle_drafts(self, max_idle: Optional[float] = None) -> int:
        """Abandons drafts idle for longer than the seat hold TTL. Returns how many were dropped."""
        if max_idle is None:
            max_idle = self.settings.seat_hold_ttl_seconds
        with self._drafts_lock:
            drafts = list(self._drafts.values())
        # abandoning calls back into _forget, which takes the registry lock
        return sum(1 for workflow in drafts if workflow.abandon_if_idle(max_idle))

    def _forget(self, workflow: BookingWorkflow) -> None:
        with self._drafts_lock:
            self._drafts.pop(workflow.id, None)

    # Committed bookings

    def find_booking(self, pnr: str) -> models.Booking:
        return self.ledger.find_by_pnr(pnr.upper())

    def list_bookings(self, user_token: Optional[str] = None) -> List[models.Booking]:
        bookings = self.ledger.list_all(user_token=user_token)
        return sorted(bookings, key=lambda b: (b.booked_at, b.id), reverse=True)

    def cancel_booking(self, pnr: str) -> models.Booking:
        """Cancels a confirmed booking and returns its seats to the coach."""
        with self.session_factory.begin() as db:
            booking = self.ledger.cancel(pnr.upper(), db=db)
            released = crud.release_seats(db, booking.fare_class_id, booking.journey_date, booking.pnr)
            crud.restore_availability(db, booking.fare_class_id, len(booking.seat_numbers))
        logger.info(f"Booking {booking.pnr} cancelled, {released} seat(s) released")
        return booking
