import pytest
from sqlalchemy.exc import IntegrityError

from railbook import models
from railbook.prepopulate import ROUTES, STATIONS, TOTAL_SEATS, TRAIN_TEMPLATES, prepopulate_catalog
from railbook.schemas import ClassType
from tests.conftest import TRAIN_NUMBER


class TestPrepopulate:
    """Catalog seeding."""

    def test_seeds_catalog(self, session_factory):
        prepopulate_catalog(session_factory)
        with session_factory() as db:
            assert db.query(models.Station).count() == len(STATIONS)
            trains = db.query(models.Train).all()
            assert len(trains) == len(ROUTES) * len(TRAIN_TEMPLATES)
            assert len({t.number for t in trains}) == len(trains)
            for fare_class in db.query(models.FareClass):
                assert fare_class.total_seats == TOTAL_SEATS
                assert 0 <= fare_class.available_seats <= fare_class.total_seats

    def test_is_idempotent(self, session_factory):
        prepopulate_catalog(session_factory)
        prepopulate_catalog(session_factory)
        with session_factory() as db:
            assert db.query(models.Train).count() == len(ROUTES) * len(TRAIN_TEMPLATES)


class TestFareClassConstraint:

    def test_fare_class_needs_seats(self, catalog):
        with pytest.raises(IntegrityError):
            with catalog.begin() as db:
                train = db.query(models.Train).filter(models.Train.number == TRAIN_NUMBER).one()
                db.add(models.FareClass(train_id=train.id, class_type=ClassType.chair_car,
                                        fare=900, available_seats=0, total_seats=0))

    def test_available_cannot_exceed_total(self, catalog):
        with pytest.raises(IntegrityError):
            with catalog.begin() as db:
                train = db.query(models.Train).filter(models.Train.number == TRAIN_NUMBER).one()
                db.add(models.FareClass(train_id=train.id, class_type=ClassType.chair_car,
                                        fare=900, available_seats=73, total_seats=72))
