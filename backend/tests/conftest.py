from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from tours_api.config import Settings
from tours_api.main import create_app
from tours_api.schemas import TOUR_FIELD_TYPES
from tours_api.services.memory import MemoryTourStore
from tours_api.services.tours import TourService


def _tour(name, duration, group, difficulty, rating, quantity, price, day):
    return {
        "name": name,
        "duration": duration,
        "maxGroupSize": group,
        "difficulty": difficulty,
        "ratingsAverage": rating,
        "ratingsQuantity": quantity,
        "price": price,
        "summary": f"{name} summary",
        "imageCover": f"tour-{day}-cover.jpg",
        "images": [],
        "startDates": [],
        "createdAt": datetime(2021, 1, day, tzinfo=timezone.utc),
        "__v": 0,
    }


TOURS = [
    _tour("The Forest Hiker", 5, 25, "easy", 4.7, 37, 397.0, 1),
    _tour("The Sea Explorer", 7, 15, "medium", 4.8, 23, 497.0, 2),
    _tour("The Snow Adventurer", 4, 10, "difficult", 4.5, 13, 997.0, 3),
    _tour("The City Wanderer", 9, 20, "easy", 4.6, 54, 1197.0, 4),
    _tour("The Park Camper", 10, 15, "medium", 4.9, 19, 1497.0, 5),
    _tour("The Sports Lover", 14, 8, "difficult", 4.7, 28, 2997.0, 6),
    _tour("The Wine Taster", 5, 8, "easy", 4.4, 30, 1997.0, 7),
]


@pytest.fixture
def store():
    return MemoryTourStore(TOURS, field_types=TOUR_FIELD_TYPES)


@pytest.fixture
def service(store):
    return TourService(store)


@pytest.fixture
def settings():
    return Settings(backend="memory", log_level="WARNING")


@pytest.fixture
def client(settings, store):
    return TestClient(create_app(settings, store))


@pytest.fixture
def tour_ids(store):
    return {t["name"]: str(t["_id"]) for t in store.query().execute()}


@pytest.fixture
def new_tour():
    return {
        "name": "  The Northern Lights  ",
        "duration": 3,
        "maxGroupSize": 12,
        "difficulty": "easy",
        "price": 1497,
        "summary": "Enjoy the Northern Lights in one of the best places in the world",
        "imageCover": "tour-9-cover.jpg",
    }
