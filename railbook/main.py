# railbook/main.py
from contextlib import asynccontextmanager
from datetime import date
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from railbook import crud, schemas
from railbook.database import Base, SessionLocal, engine
from railbook.exceptions import BookingError
from railbook.logging_config import setup_logger
from railbook.prepopulate import prepopulate_catalog
from railbook.service import BookingService
from railbook.settings import settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logger(settings.log_level, settings.log_file)
    # Create all tables
    Base.metadata.create_all(bind=engine)
    prepopulate_catalog(SessionLocal)
    yield


app = FastAPI(title="Railway Seat Booking API", lifespan=lifespan)

_service = BookingService(SessionLocal)

# Dependencies


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_service() -> BookingService:
    return _service


def get_user_token(x_user_token: Optional[str] = Header(default=None)) -> Optional[str]:
    return x_user_token


@app.exception_handler(BookingError)
async def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(status_code=exc.status_code,
                        content={"detail": exc.detail, "error": type(exc).__name__})

# Catalog


@app.get("/api/v1/stations", response_model=List[schemas.Station])
def get_stations(db: Session = Depends(get_db)):
    return crud.get_stations(db)


@app.get("/api/v1/trains", response_model=List[schemas.Train])
def search_trains(from_station: Optional[str] = None, to_station: Optional[str] = None,
                  db: Session = Depends(get_db)):
    return crud.search_trains(db, from_station, to_station)


@app.get("/api/v1/trains/{train_number}/classes/{class_type}/assessment",
         response_model=schemas.ClassAssessment)
def assess_class(train_number: str, class_type: schemas.ClassType, journey_date: date,
                 service: BookingService = Depends(get_service)):
    return service.assess(train_number, class_type, journey_date)


@app.get("/api/v1/trains/{train_number}/classes/{class_type}/seats",
         response_model=schemas.SeatMap)
def get_seat_map(train_number: str, class_type: schemas.ClassType, journey_date: date,
                 service: BookingService = Depends(get_service)):
    return service.seat_map(train_number, class_type, journey_date)

# Booking drafts


@app.post("/api/v1/bookings/drafts", response_model=schemas.Draft, status_code=201)
def start_booking(request: schemas.DraftCreate,
                  service: BookingService = Depends(get_service),
                  user_token: Optional[str] = Depends(get_user_token)):
    return service.start(request, user_token).to_schema()


@app.get("/api/v1/bookings/drafts/{draft_id}", response_model=schemas.Draft)
def get_draft(draft_id: str, service: BookingService = Depends(get_service),
              user_token: Optional[str] = Depends(get_user_token)):
    return service.get(draft_id, user_token).to_schema()


@app.put("/api/v1/bookings/drafts/{draft_id}/passengers", response_model=schemas.Draft)
def submit_passengers(draft_id: str, passengers: List[schemas.PassengerCreate],
                      service: BookingService = Depends(get_service),
                      user_token: Optional[str] = Depends(get_user_token)):
    workflow = service.get(draft_id, user_token)
    workflow.submit_passengers(passengers)
    return workflow.to_schema()


@app.post("/api/v1/bookings/drafts/{draft_id}/seats/confirm", response_model=schemas.Draft)
def confirm_seats(draft_id: str, service: BookingService = Depends(get_service),
                  user_token: Optional[str] = Depends(get_user_token)):
    workflow = service.get(draft_id, user_token)
    workflow.confirm_seats()
    return workflow.to_schema()


@app.post("/api/v1/bookings/drafts/{draft_id}/seats/{seat_number}", response_model=schemas.Draft)
def toggle_seat(draft_id: str, seat_number: str, service: BookingService = Depends(get_service),
                user_token: Optional[str] = Depends(get_user_token)):
    workflow = service.get(draft_id, user_token)
    workflow.toggle_seat(seat_number)
    return workflow.to_schema()


@app.post("/api/v1/bookings/drafts/{draft_id}/payment", response_model=schemas.Booking, status_code=201)
def pay(draft_id: str, details: schemas.PaymentDetails,
        service: BookingService = Depends(get_service),
        user_token: Optional[str] = Depends(get_user_token)):
    return service.get(draft_id, user_token).pay(details)


@app.delete("/api/v1/bookings/drafts/{draft_id}", response_model=schemas.Draft)
def abandon_booking(draft_id: str, service: BookingService = Depends(get_service),
                    user_token: Optional[str] = Depends(get_user_token)):
    return service.abandon(draft_id, user_token).to_schema()

# Committed bookings


@app.get("/api/v1/bookings", response_model=List[schemas.Booking])
def get_bookings(service: BookingService = Depends(get_service),
                 user_token: Optional[str] = Depends(get_user_token)):
    return service.list_bookings(user_token)


@app.get("/api/v1/bookings/{pnr}", response_model=schemas.Booking)
def get_booking(pnr: str, service: BookingService = Depends(get_service)):
    return service.find_booking(pnr)


@app.post("/api/v1/bookings/cancel/{pnr}", response_model=schemas.Booking)
def cancel_booking(pnr: str, service: BookingService = Depends(get_service)):
    return service.cancel_booking(pnr)
