"""In-process evaluation of plans over plain dict records.

Mirrors how MongoDB compares and orders values closely enough for the
operators the query builder emits: missing fields never satisfy a range
comparison, array fields match when any element does, and sorting places
missing values first in ascending order.
"""
import operator
from datetime import datetime
from numbers import Number
from typing import Any, Dict, Iterable, List

from .plan import Condition, Operator, Predicate, ProjectionSpec, SortSpec

_MISSING = object()

_COMPARE = {
    Operator.EQ: operator.eq,
    Operator.GT: operator.gt,
    Operator.GTE: operator.ge,
    Operator.LT: operator.lt,
    Operator.LTE: operator.le,
}


def get_path(record: Dict[str, Any], path: str, default: Any = _MISSING) -> Any:
    cur: Any = record
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _type_rank(value: Any) -> int:
    # BSON comparison order, reduced to the types tours actually hold
    if value is None or value is _MISSING:
        return 0
    if isinstance(value, bool):
        return 5
    if isinstance(value, Number):
        return 1
    if isinstance(value, str):
        return 2
    if isinstance(value, dict):
        return 3
    if isinstance(value, list):
        return 4
    if isinstance(value, datetime):
        return 6
    return 7


def _compare_scalar(actual: Any, op: Operator, expected: Any) -> bool:
    if op is Operator.EQ:
        if actual is _MISSING:
            return expected is None
        return actual == expected
    if actual is _MISSING or actual is None:
        return False
    if _type_rank(actual) != _type_rank(expected):
        return False
    try:
        return _COMPARE[op](actual, expected)
    except TypeError:
        return False


def _matches_condition(record: Dict[str, Any], cond: Condition) -> bool:
    actual = get_path(record, cond.field)
    if isinstance(actual, list) and not isinstance(cond.value, list):
        return any(_compare_scalar(item, cond.operator, cond.value) for item in actual)
    return _compare_scalar(actual, cond.operator, cond.value)


def matches(record: Dict[str, Any], predicate: Predicate) -> bool:
    return all(_matches_condition(record, c) for c in predicate.conditions)


def sort_key(value: Any):
    rank = _type_rank(value)
    if rank == 0:
        return (0, 0)
    if rank in (3, 4, 7):
        return (rank, repr(value))
    return (rank, value)


def sort_records(records: Iterable[Dict[str, Any]], spec: SortSpec) -> List[Dict[str, Any]]:
    out = list(records)
    # stable sorts applied from the least significant key up
    for key in reversed(spec.keys):
        out.sort(key=lambda r: sort_key(get_path(r, key.field, None)), reverse=key.direction.mongo < 0)
    return out


def project(record: Dict[str, Any], spec: ProjectionSpec) -> Dict[str, Any]:
    if spec.include:
        out = {}
        # _id rides along with an inclusion projection unless hidden
        names = sorted(spec.fields - {"_id"})
        if not spec.hide_id:
            names.insert(0, "_id")
        for name in names:
            value = get_path(record, name)
            if value is not _MISSING:
                out[name] = value
        return out
    return {k: v for k, v in record.items() if k not in spec.fields}
