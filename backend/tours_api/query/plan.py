"""Value types describing one retrieval: what to match, how to order it,
which fields to return and which window of the result to hand back.

Every type here is frozen. Stages build new values instead of editing the
plan in place, so a plan handed to a collection cannot change under it.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Tuple


class Operator(str, Enum):
    EQ = "eq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"


# Tokens accepted inside brackets, e.g. ``price[gte]=200``.
OPERATOR_TOKENS: Dict[str, Operator] = {
    "gte": Operator.GTE,
    "gt": Operator.GT,
    "lte": Operator.LTE,
    "lt": Operator.LT,
}

MONGO_OPERATORS: Dict[Operator, str] = {
    Operator.EQ: "$eq",
    Operator.GT: "$gt",
    Operator.GTE: "$gte",
    Operator.LT: "$lt",
    Operator.LTE: "$lte",
}


class Direction(str, Enum):
    ASC = "asc"
    DESC = "desc"

    @property
    def mongo(self) -> int:
        return 1 if self is Direction.ASC else -1


@dataclass(frozen=True)
class Condition:
    field: str
    operator: Operator
    value: Any


@dataclass(frozen=True)
class Predicate:
    """Conjunction of field conditions; an empty predicate matches everything."""

    conditions: Tuple[Condition, ...] = ()

    @classmethod
    def of(cls, conditions: Iterable[Condition]) -> "Predicate":
        # last condition wins per (field, operator), first position is kept
        merged: Dict[Tuple[str, Operator], Condition] = {}
        for cond in conditions:
            merged[(cond.field, cond.operator)] = cond
        return cls(tuple(merged.values()))

    def on(self, field_name: str) -> Tuple[Condition, ...]:
        return tuple(c for c in self.conditions if c.field == field_name)

    def to_mongo(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        by_field: Dict[str, List[Condition]] = {}
        for cond in self.conditions:
            by_field.setdefault(cond.field, []).append(cond)
        for name, conds in by_field.items():
            if len(conds) == 1 and conds[0].operator is Operator.EQ:
                out[name] = conds[0].value
            else:
                out[name] = {MONGO_OPERATORS[c.operator]: c.value for c in conds}
        return out


@dataclass(frozen=True)
class SortKey:
    field: str
    direction: Direction = Direction.ASC


@dataclass(frozen=True)
class SortSpec:
    keys: Tuple[SortKey, ...]

    def __post_init__(self):
        if not self.keys:
            raise ValueError("SortSpec needs at least one key")

    def to_mongo(self) -> List[Tuple[str, int]]:
        return [(k.field, k.direction.mongo) for k in self.keys]


@dataclass(frozen=True)
class ProjectionSpec:
    fields: FrozenSet[str]
    include: bool
    # inclusion only: drop _id, the one exclusion MongoDB allows beside an inclusion
    hide_id: bool = False

    @classmethod
    def including(cls, names: Iterable[str], hide_id: bool = False) -> "ProjectionSpec":
        return cls(frozenset(names) - {"_id"} if hide_id else frozenset(names), True, hide_id)

    @classmethod
    def excluding(cls, names: Iterable[str]) -> "ProjectionSpec":
        return cls(frozenset(names), False)

    def to_mongo(self) -> Dict[str, int]:
        flag = 1 if self.include else 0
        out = {name: flag for name in sorted(self.fields)}
        if self.include and self.hide_id:
            out["_id"] = 0
        return out


@dataclass(frozen=True)
class PaginationSpec:
    page: int = 1
    limit: int = 100

    def __post_init__(self):
        if self.page < 1 or self.limit < 1:
            raise ValueError(f"invalid pagination window page={self.page} limit={self.limit}")

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


# mongoose-style version key stored on every document
VERSION_FIELD = "__v"

DEFAULT_SORT = SortSpec((SortKey("createdAt", Direction.DESC),))
DEFAULT_PROJECTION = ProjectionSpec.excluding([VERSION_FIELD])
DEFAULT_PAGINATION = PaginationSpec()


@dataclass(frozen=True)
class QueryPlan:
    predicate: Predicate = field(default_factory=Predicate)
    sort: SortSpec = DEFAULT_SORT
    projection: ProjectionSpec = DEFAULT_PROJECTION
    pagination: PaginationSpec = DEFAULT_PAGINATION

    def with_(self, **changes) -> "QueryPlan":
        return replace(self, **changes)
