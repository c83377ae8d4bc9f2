from datetime import datetime, timezone

import pytest
from bson import ObjectId

from tours_api.query.casting import CastError, cast_predicate, coerce
from tours_api.query.plan import Condition, Operator, Predicate
from tours_api.schemas import TOUR_FIELD_TYPES


def test_tour_field_types():
    assert TOUR_FIELD_TYPES["price"] is float
    assert TOUR_FIELD_TYPES["duration"] is int
    assert TOUR_FIELD_TYPES["priceDiscount"] is float
    assert TOUR_FIELD_TYPES["startDates"] is datetime
    assert TOUR_FIELD_TYPES["images"] is str
    assert TOUR_FIELD_TYPES["_id"] is ObjectId


def test_coerce_by_declared_type():
    assert coerce("price", "200", float) == 200.0
    assert coerce("duration", " 5 ", int) == 5
    assert coerce("duration", "4.5", int) == 4.5
    assert coerce("createdAt", "2021-01-02T00:00:00Z", datetime) == datetime(2021, 1, 2, tzinfo=timezone.utc)
    assert coerce("name", "x", str) == "x"
    assert coerce("unknown", "7", None) == "7"
    assert coerce("price", 4.5, float) == 4.5


def test_coerce_failure_names_field():
    with pytest.raises(CastError) as info:
        coerce("price", "cheap", float)
    assert info.value.field == "price"
    assert "price" in str(info.value)


def test_cast_predicate_leaves_unknown_fields_alone():
    predicate = Predicate((
        Condition("price", Operator.GTE, "200"),
        Condition("price[foo]", Operator.EQ, "1"),
    ))
    cast = cast_predicate(predicate, TOUR_FIELD_TYPES)
    assert cast.conditions == (
        Condition("price", Operator.GTE, 200.0),
        Condition("price[foo]", Operator.EQ, "1"),
    )


def test_date_without_timezone_is_utc():
    assert coerce("createdAt", "2021-01-03", datetime) == datetime(2021, 1, 3, tzinfo=timezone.utc)
