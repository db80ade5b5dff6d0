# railbook/prepopulate.py
import logging
import random
from datetime import datetime, timedelta

from sqlalchemy.orm import sessionmaker

from railbook import models
from railbook.database import Base, SessionLocal, engine
from railbook.schemas import ClassType

logger = logging.getLogger(__name__)

STATIONS = [
    ("NDLS", "New Delhi Railway Station", "New Delhi"),
    ("BCT", "Mumbai Central", "Mumbai"),
    ("HWH", "Howrah Junction", "Kolkata"),
    ("MAS", "Chennai Central", "Chennai"),
    ("SBC", "Bengaluru City Junction", "Bangalore"),
    ("JP", "Jaipur Junction", "Jaipur"),
    ("LKO", "Lucknow Junction", "Lucknow"),
    ("PUNE", "Pune Junction", "Pune"),
    ("ADI", "Ahmedabad Junction", "Ahmedabad"),
    ("HYB", "Hyderabad Deccan", "Hyderabad"),
    ("CNB", "Kanpur Central", "Kanpur"),
    ("GKP", "Gorakhpur Junction", "Gorakhpur"),
    ("PNBE", "Patna Junction", "Patna"),
    ("AGC", "Agra Cantt", "Agra"),
    ("BPL", "Bhopal Junction", "Bhopal"),
]

ROUTES = [
    ("NDLS", "BCT"),
    ("NDLS", "HWH"),
    ("BCT", "SBC"),
    ("MAS", "SBC"),
    ("NDLS", "JP"),
    ("BCT", "PUNE"),
]

# (name suffix, classes, departure)
TRAIN_TEMPLATES = [
    ("Rajdhani", ["1A", "2A", "3A"], "05:30"),
    ("Shatabdi", ["EC", "CC"], "08:15"),
    ("Duronto", ["1A", "2A", "3A", "SL"], "10:45"),
    ("Garib Rath", ["3A"], "14:20"),
    ("Superfast", ["1A", "2A", "3A", "SL", "2S"], "17:00"),
    ("Express", ["2A", "3A", "SL", "2S"], "20:30"),
    ("Mail", ["3A", "SL", "2S"], "23:15"),
]

BASE_FARES = {
    "1A": 3500,
    "2A": 2200,
    "3A": 1500,
    "EC": 1800,
    "CC": 900,
    "SL": 500,
    "2S": 250,
}

TOTAL_SEATS = 72
WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def prepopulate_catalog(session_factory: sessionmaker = SessionLocal, seed: int = 42):
    """Seeds stations, trains and fare classes. Does nothing if trains already exist."""
    rng = random.Random(seed)
    with session_factory.begin() as db:
        if db.query(models.Train).first():
            logger.info("Train catalog already populated.")
            return

        cities = {}
        for code, name, city in STATIONS:
            db.add(models.Station(code=code, name=name, city=city))
            cities[code] = city

        for route_index, (from_code, to_code) in enumerate(ROUTES):
            for index, (suffix, classes, departure) in enumerate(TRAIN_TEMPLATES):
                number = str(12000 + route_index * 1000 + index * 100 + rng.randint(0, 49))
                hours, minutes = 4 + rng.randint(0, 11), rng.randint(0, 59)
                arrival = datetime.strptime(departure, "%H:%M") + timedelta(hours=hours, minutes=minutes)
                db.add(models.Train(
                    number=number,
                    name=f"{cities[from_code]} {suffix}",
                    from_code=from_code,
                    to_code=to_code,
                    departure_time=departure,
                    arrival_time=arrival.strftime("%H:%M"),
                    duration=f"{hours}h {minutes}m",
                    days_of_operation=WEEKDAYS[:3 + rng.randint(0, 4)],
                    classes=[
                        models.FareClass(
                            class_type=ClassType(class_code),
                            fare=BASE_FARES[class_code] + rng.randint(0, 299),
                            available_seats=rng.randint(5, TOTAL_SEATS),
                            total_seats=TOTAL_SEATS,
                        )
                        for class_code in classes
                    ],
                ))
    logger.info("Train catalog pre-populated.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    Base.metadata.create_all(bind=engine)
    prepopulate_catalog()
