from .plan import (
    Condition,
    Direction,
    Operator,
    PaginationSpec,
    Predicate,
    ProjectionSpec,
    QueryPlan,
    SortKey,
    SortSpec,
)
from .features import QueryFeatures, QueryResult
from .params import ParameterMap, normalize, params_from_pairs

__all__ = [
    "Condition",
    "Direction",
    "Operator",
    "PaginationSpec",
    "ParameterMap",
    "Predicate",
    "ProjectionSpec",
    "QueryFeatures",
    "QueryPlan",
    "QueryResult",
    "SortKey",
    "SortSpec",
    "normalize",
    "params_from_pairs",
]
