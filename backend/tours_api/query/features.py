"""Query builder: client parameters in, one deferred retrieval out.

    features = QueryFeatures(collection, params).filter().sort().limit_fields().paginate()
    result = features.materialize()

Stages may be called in any order and any number of times. Each one replaces
only its own slice of the plan, so calling a stage twice with the same input
leaves the plan unchanged. A builder belongs to one request and executes at
most once.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from ..errors import PlanAlreadyMaterializedError
from .params import ParameterMap, normalize
from .plan import QueryPlan
from .queryable import Queryable, Record
from .stages import DEFAULT_LIMIT, filter_stage, pagination_stage, projection_stage, sort_stage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QueryResult:
    records: List[Record]

    @property
    def count(self) -> int:
        return len(self.records)


class QueryFeatures:
    def __init__(
        self,
        query: Queryable,
        params: ParameterMap,
        default_limit: int = DEFAULT_LIMIT,
        max_limit: Optional[int] = None,
    ):
        self.query = query
        self.params = params
        self.default_limit = default_limit
        self.max_limit = max_limit
        self._plan = QueryPlan()
        self._materialized = False

    @property
    def plan(self) -> QueryPlan:
        return self._plan

    def filter(self) -> "QueryFeatures":
        self._plan = self._plan.with_(predicate=filter_stage(normalize(self.params)))
        return self

    def sort(self) -> "QueryFeatures":
        self._plan = self._plan.with_(sort=sort_stage(self.params.get("sort")))
        return self

    def limit_fields(self) -> "QueryFeatures":
        self._plan = self._plan.with_(projection=projection_stage(self.params.get("fields")))
        return self

    def paginate(self) -> "QueryFeatures":
        spec = pagination_stage(
            self.params.get("page"),
            self.params.get("limit"),
            default_limit=self.default_limit,
            max_limit=self.max_limit,
        )
        self._plan = self._plan.with_(pagination=spec)
        return self

    def apply(self) -> Queryable:
        """Chain the plan onto the collection handle without executing it."""
        plan = self._plan
        return (
            self.query.find(plan.predicate)
            .sort(plan.sort)
            .select(plan.projection)
            .skip(plan.pagination.skip)
            .limit(plan.pagination.limit)
        )

    def materialize(self) -> QueryResult:
        if self._materialized:
            raise PlanAlreadyMaterializedError("query plan has already been executed")
        self._materialized = True
        logger.debug("executing plan %s", self._plan)
        return QueryResult(self.apply().execute())
