import pytest

from tours_api.query.params import normalize, params_from_pairs, split_nested_key
from tours_api.query.plan import (
    DEFAULT_PROJECTION,
    DEFAULT_SORT,
    Condition,
    Direction,
    Operator,
    PaginationSpec,
    ProjectionSpec,
    SortKey,
)
from tours_api.query.stages import filter_stage, pagination_stage, projection_stage, sort_stage


def test_params_from_pairs_collapses_repeated_keys():
    params = params_from_pairs([("a", "1"), ("b", "2"), ("a", "3"), ("a", "4")])
    assert params == {"a": ["1", "3", "4"], "b": "2"}


def test_normalize_strips_reserved_keys_without_mutating_input():
    params = {"page": "2", "sort": "price", "limit": "10", "fields": "name", "duration": "5", "Page": "x"}
    residual = normalize(params)
    assert residual == {"duration": "5", "Page": "x"}
    assert set(params) == {"page", "sort", "limit", "fields", "duration", "Page"}


@pytest.mark.parametrize("key,expected", [
    ("price[gte]", ("price", "gte")),
    ("price", ("price", None)),
    ("price[gte][x]", ("price[gte][x]", None)),
    ("a.b[lt]", ("a.b", "lt")),
])
def test_split_nested_key(key, expected):
    assert split_nested_key(key) == expected


def test_filter_range_on_one_field_yields_two_conditions():
    predicate = filter_stage({"price[gte]": "200", "price[lte]": "500"})
    assert set(predicate.on("price")) == {
        Condition("price", Operator.GTE, "200"),
        Condition("price", Operator.LTE, "500"),
    }
    assert predicate.to_mongo() == {"price": {"$gte": "200", "$lte": "500"}}


def test_filter_accepts_already_nested_values():
    predicate = filter_stage({"price": {"lt": "300"}, "difficulty": "easy"})
    assert predicate.conditions == (
        Condition("price", Operator.LT, "300"),
        Condition("difficulty", Operator.EQ, "easy"),
    )


def test_filter_operator_tokens_must_match_whole():
    predicate = filter_stage({"price[gtx]": "1", "gte": "2", "name": "gt"})
    assert predicate.conditions == (
        Condition("price[gtx]", Operator.EQ, "1"),
        Condition("gte", Operator.EQ, "2"),
        Condition("name", Operator.EQ, "gt"),
    )


def test_filter_duplicate_keys_keep_last_value():
    predicate = filter_stage(params_from_pairs([("price[gte]", "100"), ("price[gte]", "300")]))
    assert predicate.conditions == (Condition("price", Operator.GTE, "300"),)


def test_filter_equality_mixed_with_range_uses_eq_operator():
    predicate = filter_stage({"price": "397", "price[gt]": "100"})
    assert predicate.to_mongo() == {"price": {"$eq": "397", "$gt": "100"}}


def test_sort_defaults_to_newest_first():
    assert sort_stage(None) == DEFAULT_SORT
    assert DEFAULT_SORT.keys == (SortKey("createdAt", Direction.DESC),)
    assert sort_stage(" , ") == DEFAULT_SORT


def test_sort_keeps_order_and_direction():
    spec = sort_stage("-ratingsAverage,price, -duration")
    assert spec.keys == (
        SortKey("ratingsAverage", Direction.DESC),
        SortKey("price", Direction.ASC),
        SortKey("duration", Direction.DESC),
    )
    assert spec.to_mongo() == [("ratingsAverage", -1), ("price", 1), ("duration", -1)]


def test_projection_inclusion_and_default():
    assert projection_stage("name,price") == ProjectionSpec.including({"name", "price"})
    assert projection_stage(None) == DEFAULT_PROJECTION
    assert DEFAULT_PROJECTION == ProjectionSpec.excluding({"__v"})


def test_projection_never_mixes_modes():
    assert projection_stage("-description,-images") == ProjectionSpec.excluding({"description", "images"})
    assert projection_stage("name,-price") == ProjectionSpec.including({"name"})


def test_pagination_defaults():
    spec = pagination_stage()
    assert spec == PaginationSpec(page=1, limit=100)
    assert spec.skip == 0


def test_pagination_window():
    spec = pagination_stage("3", "10")
    assert (spec.skip, spec.limit) == (20, 10)


@pytest.mark.parametrize("limit", ["0", "-5", "ten", "", "2.5"])
def test_pagination_invalid_limit_falls_back(limit):
    assert pagination_stage("1", limit).limit == 100


@pytest.mark.parametrize("page", ["0", "-1", "abc"])
def test_pagination_invalid_page_falls_back(page):
    assert pagination_stage(page, "10").page == 1


def test_pagination_cap_and_custom_default():
    assert pagination_stage(None, "5000", max_limit=500).limit == 500
    assert pagination_stage(None, None, default_limit=20).limit == 20


def test_pagination_rejects_invalid_windows_directly():
    with pytest.raises(ValueError):
        PaginationSpec(page=1, limit=0)


@pytest.mark.parametrize("limit", ["1_0", "+3", "٣", " 10 x"])
def test_pagination_accepts_plain_digits_only(limit):
    assert pagination_stage("1", limit).limit == 100


def test_pagination_window_stays_within_int64():
    huge = str(2 ** 63)
    assert pagination_stage("1", huge).limit == 100
    spec = pagination_stage("1000000000000000000", "100")
    assert spec.page == 1
    assert spec.skip == 0
    spec = pagination_stage(str(2 ** 62), "2")
    assert spec.skip <= 2 ** 63 - 1


def test_projection_may_hide_id_beside_inclusion():
    spec = projection_stage("name,-_id,-price")
    assert spec == ProjectionSpec.including({"name"}, hide_id=True)
    assert spec.to_mongo() == {"name": 1, "_id": 0}
