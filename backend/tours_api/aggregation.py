"""Grouped statistics over the tours collection.

A pipeline is a tuple of stages run left to right: ``Match`` keeps records
satisfying a predicate, ``Group`` folds them into one record per key with a
set of accumulators, ``Sort`` orders whatever the previous stage produced.
Stages compile to MongoDB pipeline documents with ``to_mongo`` and can also be
run over in-memory records with ``run_pipeline``.
"""
from dataclasses import dataclass
from enum import Enum
from numbers import Number
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .query.evaluate import get_path, matches, sort_key, sort_records
from .query.plan import Condition, Direction, Operator, Predicate, SortKey, SortSpec


class AccumulatorKind(str, Enum):
    COUNT = "count"
    SUM = "sum"
    AVG = "avg"
    MIN = "min"
    MAX = "max"


@dataclass(frozen=True)
class Accumulator:
    name: str
    kind: AccumulatorKind
    field: Optional[str] = None

    def __post_init__(self):
        if self.kind is not AccumulatorKind.COUNT and not self.field:
            raise ValueError(f"{self.kind.value} accumulator {self.name!r} needs a field")

    def to_mongo(self) -> Dict[str, Any]:
        if self.kind is AccumulatorKind.COUNT:
            return {"$sum": 1}
        return {f"${self.kind.value}": f"${self.field}"}


@dataclass(frozen=True)
class GroupKey:
    field: str
    upper: bool = False

    def to_mongo(self) -> Any:
        ref = f"${self.field}"
        return {"$toUpper": ref} if self.upper else ref

    def of(self, record: Dict[str, Any]) -> Any:
        value = get_path(record, self.field, None)
        if self.upper:
            # $toUpper turns null into the empty string
            return "" if value is None else str(value).upper()
        return value


@dataclass(frozen=True)
class Match:
    predicate: Predicate

    def to_mongo(self) -> Dict[str, Any]:
        return {"$match": self.predicate.to_mongo()}

    def run(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [r for r in records if matches(r, self.predicate)]


@dataclass(frozen=True)
class Group:
    key: GroupKey
    accumulators: Tuple[Accumulator, ...]

    def to_mongo(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"_id": self.key.to_mongo()}
        for acc in self.accumulators:
            body[acc.name] = acc.to_mongo()
        return {"$group": body}

    def run(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        # groups come out in first-seen order and values are folded in record
        # order, so the same input always yields the same floats
        buckets: Dict[Any, List[Dict[str, Any]]] = {}
        for record in records:
            buckets.setdefault(self.key.of(record), []).append(record)
        return [self._fold(key, members) for key, members in buckets.items()]

    def _fold(self, key: Any, members: List[Dict[str, Any]]) -> Dict[str, Any]:
        out: Dict[str, Any] = {"_id": key}
        for acc in self.accumulators:
            if acc.kind is AccumulatorKind.COUNT:
                out[acc.name] = len(members)
                continue
            values = [
                v for v in (get_path(m, acc.field, None) for m in members)
                if v is not None
            ]
            numbers = [v for v in values if isinstance(v, Number) and not isinstance(v, bool)]
            if acc.kind is AccumulatorKind.SUM:
                total = 0
                for v in numbers:
                    total += v
                out[acc.name] = total
            elif acc.kind is AccumulatorKind.AVG:
                total = 0.0
                for v in numbers:
                    total += v
                out[acc.name] = total / len(numbers) if numbers else None
            elif acc.kind is AccumulatorKind.MIN:
                out[acc.name] = min(values, key=sort_key) if values else None
            elif acc.kind is AccumulatorKind.MAX:
                out[acc.name] = max(values, key=sort_key) if values else None
        return out


@dataclass(frozen=True)
class Sort:
    spec: SortSpec

    def to_mongo(self) -> Dict[str, Any]:
        return {"$sort": dict(self.spec.to_mongo())}

    def run(self, records: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return sort_records(records, self.spec)


Stage = Union[Match, Group, Sort]


def to_mongo_pipeline(stages: Sequence[Stage]) -> List[Dict[str, Any]]:
    return [stage.to_mongo() for stage in stages]


def run_pipeline(stages: Sequence[Stage], records: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    out = list(records)
    for stage in stages:
        out = stage.run(out)
    return out


TOUR_STATS_PIPELINE: Tuple[Stage, ...] = (
    Match(Predicate((Condition("ratingsAverage", Operator.GTE, 4.5),))),
    Group(
        GroupKey("difficulty", upper=True),
        (
            Accumulator("numTours", AccumulatorKind.COUNT),
            Accumulator("numOfRatings", AccumulatorKind.SUM, "ratingsQuantity"),
            Accumulator("avgRating", AccumulatorKind.AVG, "ratingsAverage"),
            Accumulator("avgPrice", AccumulatorKind.AVG, "price"),
            Accumulator("minPrice", AccumulatorKind.MIN, "price"),
            Accumulator("maxPrice", AccumulatorKind.MAX, "price"),
        ),
    ),
    Sort(SortSpec((SortKey("avgPrice", Direction.ASC),))),
)
