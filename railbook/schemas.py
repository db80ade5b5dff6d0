# railbook/schemas.py
from datetime import date, datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Enums for Pydantic validation


class ClassType(str, Enum):
    first_ac = "1A"
    second_ac = "2A"
    third_ac = "3A"
    sleeper = "SL"
    chair_car = "CC"
    second_sitting = "2S"
    executive_chair = "EC"


class CrowdLevel(str, Enum):
    low = "low"
    medium = "medium"
    high = "high"


class Recommendation(str, Enum):
    seniors = "seniors"
    students = "students"
    night = "night"
    family = "family"
    budget = "budget"
    comfort = "comfort"


class Gender(str, Enum):
    M = "M"
    F = "F"
    O = "O"


class BerthPreference(str, Enum):
    LB = "LB"
    MB = "MB"
    UB = "UB"
    SL = "SL"
    SU = "SU"
    none = "none"


class BookingStatusEnum(str, Enum):
    confirmed = "confirmed"
    waiting = "waiting"
    cancelled = "cancelled"


class PaymentMethod(str, Enum):
    upi = "upi"
    card = "card"
    wallet = "wallet"


class WorkflowState(str, Enum):
    drafting = "drafting"
    seats_pending = "seats_pending"
    payment_pending = "payment_pending"
    confirmed = "confirmed"
    abandoned = "abandoned"

# Catalog schemas


class Station(BaseModel):
    code: str
    name: str
    city: str

    model_config = ConfigDict(from_attributes=True)


class FareClass(BaseModel):
    class_type: ClassType
    fare: int = Field(..., ge=0)
    available_seats: int = Field(..., ge=0)
    total_seats: int = Field(..., ge=1)

    model_config = ConfigDict(from_attributes=True)

    @model_validator(mode="after")
    def check_availability(self):
        if self.available_seats > self.total_seats:
            raise ValueError("available_seats cannot exceed total_seats")
        return self


class Train(BaseModel):
    number: str
    name: str
    from_station: Station
    to_station: Station
    departure_time: str
    arrival_time: str
    duration: str
    days_of_operation: List[str]
    classes: List[FareClass]

    model_config = ConfigDict(from_attributes=True)

# Crowd assessment schemas


class CrowdAssessment(BaseModel):
    level: CrowdLevel
    crowd_score: int
    comfort_score: float
    recommendation: Recommendation


class ClassAssessment(BaseModel):
    train_number: str
    class_type: ClassType
    journey_date: date
    fare_class: FareClass
    assessment: CrowdAssessment
    recommendation_label: str

# Seat schemas


class Seat(BaseModel):
    seat_number: str
    is_booked: bool

    model_config = ConfigDict(from_attributes=True)


class SeatMap(BaseModel):
    train_number: str
    class_type: ClassType
    journey_date: date
    seats: List[Seat]
    # rows of [lower, middle, upper-and-side] seat-number groups
    rows: List[List[List[str]]]

# Passenger schemas


class PassengerBase(BaseModel):
    name: str
    age: int
    gender: Gender = Gender.M
    berth_preference: BerthPreference = BerthPreference.none


class PassengerCreate(PassengerBase):
    pass


class Passenger(PassengerBase):
    id: str
    assigned_seat: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

# Booking workflow schemas


class DraftCreate(BaseModel):
    train_number: str
    class_type: ClassType
    journey_date: date


class PaymentDetails(BaseModel):
    method: PaymentMethod
    upi_id: Optional[str] = None
    card_number: Optional[str] = None
    card_expiry: Optional[str] = None
    card_cvv: Optional[str] = None
    wallet_type: Optional[str] = None


class FareQuote(BaseModel):
    base_fare: int
    gst: int
    reservation_charge: int
    total_fare: int


class Draft(BaseModel):
    id: str
    state: WorkflowState
    train_number: str
    class_type: ClassType
    journey_date: date
    passengers: List[Passenger]
    selected_seats: List[str]
    max_selection: int
    quote: Optional[FareQuote] = None
    pnr: Optional[str] = None
    assessment: Optional[CrowdAssessment] = None

# Booking schemas


class Booking(BaseModel):
    id: int
    pnr: str
    train_number: str
    train_name: str
    class_type: ClassType
    journey_date: date
    passengers: List[Passenger]
    seat_numbers: List[str]
    total_fare: int
    status: BookingStatusEnum
    booked_at: datetime
    payment_method: PaymentMethod
    payment_reference: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
