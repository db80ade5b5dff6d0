# railbook/ledger.py
import logging
import secrets
import string
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload, sessionmaker

from railbook import models
from railbook.exceptions import DuplicatePNR, InvalidTransition, LedgerError, NotFound
from railbook.schemas import BookingStatusEnum

logger = logging.getLogger(__name__)

PNR_ALPHABET = string.ascii_uppercase + string.digits
PNR_LENGTH = 10
MAX_PNR_ATTEMPTS = 5


def generate_pnr() -> str:
    return "".join(secrets.choice(PNR_ALPHABET) for _ in range(PNR_LENGTH))


class BookingLedger:
    """
    Committed bookings keyed by PNR.

    Every method accepts an optional open session so that a booking can be
    written in the same transaction as the seat inventory it consumes. Without
    one, the ledger runs its own transaction.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _run(self, db: Optional[Session], operation, *args):
        if db is not None:
            return operation(db, *args)
        try:
            with self.session_factory.begin() as session:
                return operation(session, *args)
        except SQLAlchemyError as exc:
            logger.exception("Booking ledger operation failed")
            raise LedgerError("Booking store is unavailable, please try again later") from exc

    def exists(self, pnr: str, db: Optional[Session] = None) -> bool:
        return self._run(db, self._exists, pnr)

    def create(self, booking: models.Booking, db: Optional[Session] = None) -> models.Booking:
        return self._run(db, self._create, booking)

    def find_by_pnr(self, pnr: str, db: Optional[Session] = None) -> models.Booking:
        return self._run(db, self._find, pnr)

    def cancel(self, pnr: str, db: Optional[Session] = None) -> models.Booking:
        return self._run(db, self._cancel, pnr)

    def list_all(self, user_token: Optional[str] = None, db: Optional[Session] = None) -> List[models.Booking]:
        return self._run(db, self._list, user_token)

    def new_pnr(self, db: Optional[Session] = None) -> str:
        """A fresh PNR that no committed booking uses yet."""
        for _ in range(MAX_PNR_ATTEMPTS):
            pnr = generate_pnr()
            if not self.exists(pnr, db=db):
                return pnr
            logger.warning(f"Generated PNR {pnr} already exists, regenerating")
        logger.critical("Could not generate an unused PNR")
        raise DuplicatePNR("Could not allocate a unique PNR")

    @staticmethod
    def _exists(db: Session, pnr: str) -> bool:
        return db.query(models.Booking.id).filter(models.Booking.pnr == pnr).first() is not None

    @staticmethod
    def _create(db: Session, booking: models.Booking) -> models.Booking:
        if BookingLedger._exists(db, booking.pnr):
            logger.critical(f"Refusing to create booking: PNR {booking.pnr} already exists")
            raise DuplicatePNR(f"PNR {booking.pnr} already exists")
        db.add(booking)
        try:
            db.flush()
        except IntegrityError as exc:
            if "pnr" not in str(exc.orig).lower():
                raise LedgerError("Booking could not be stored") from exc
            logger.critical(f"Refusing to create booking: PNR {booking.pnr} already exists")
            raise DuplicatePNR(f"PNR {booking.pnr} already exists") from exc
        return booking

    @staticmethod
    def _query(db: Session):
        return db.query(models.Booking).options(selectinload(models.Booking.passengers))

    @staticmethod
    def _find(db: Session, pnr: str) -> models.Booking:
        booking = BookingLedger._query(db).filter(models.Booking.pnr == pnr).first()
        if not booking:
            raise NotFound(f"No booking found for PNR {pnr}")
        return booking

    @staticmethod
    def _cancel(db: Session, pnr: str) -> models.Booking:
        booking = BookingLedger._query(db).filter(
            models.Booking.pnr == pnr).with_for_update().first()
        if not booking:
            raise NotFound(f"No booking found for PNR {pnr}")
        if booking.status != BookingStatusEnum.confirmed:
            raise InvalidTransition(
                f"Booking {pnr} is {booking.status.value} and cannot be cancelled")
        booking.status = BookingStatusEnum.cancelled
        db.flush()
        logger.info(f"Booking {pnr} cancelled")
        return booking

    @staticmethod
    def _list(db: Session, user_token: Optional[str]) -> List[models.Booking]:
        query = BookingLedger._query(db)
        if user_token is not None:
            query = query.filter(models.Booking.user_token == user_token)
        return query.order_by(models.Booking.id).all()
