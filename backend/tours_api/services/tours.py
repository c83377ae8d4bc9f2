import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from pydantic import ValidationError

from ..aggregation import TOUR_STATS_PIPELINE
from ..errors import TourNotFoundError, ValidationFailedError
from ..query.features import QueryFeatures, QueryResult
from ..query.params import ParameterMap
from ..query.plan import DEFAULT_PROJECTION, VERSION_FIELD, Condition, Operator, Predicate
from ..query.queryable import Queryable
from ..schemas import TourCreate, TourUpdate
from ..utils import parse_object_id

logger = logging.getLogger(__name__)

TOP_TOURS_PARAMS = {
    "limit": "5",
    "sort": "-ratingsAverage,price",
    "fields": "name,price,ratingsAverage,summary,difficulty",
}


class TourStore(Protocol):
    def startup(self) -> None: ...

    def shutdown(self) -> None: ...

    def query(self) -> Queryable: ...

    def insert(self, doc: Dict[str, Any]) -> Dict[str, Any]: ...

    def update(self, oid: ObjectId, changes: Dict[str, Any]) -> Optional[Dict[str, Any]]: ...

    def delete(self, oid: ObjectId) -> bool: ...


def alias_top_tours(params: ParameterMap) -> Dict[str, Any]:
    """Five best rated, cheapest tours with a short field list."""
    out = dict(params)
    out.update(TOP_TOURS_PARAMS)
    return out


def _validation_message(err: ValidationError) -> str:
    parts = []
    for item in err.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()))
        parts.append(f"{loc}: {item.get('msg')}" if loc else str(item.get("msg")))
    return "Invalid data sent: " + "; ".join(parts)


class TourService:
    def __init__(self, store: TourStore, default_limit: int = 100, max_limit: Optional[int] = None):
        self.store = store
        self.default_limit = default_limit
        self.max_limit = max_limit

    def features(self, params: ParameterMap) -> QueryFeatures:
        return QueryFeatures(self.store.query(), params, self.default_limit, self.max_limit)

    def list_tours(self, params: ParameterMap) -> QueryResult:
        return self.features(params).filter().sort().limit_fields().paginate().materialize()

    def top_tours(self, params: ParameterMap) -> QueryResult:
        return self.list_tours(alias_top_tours(params))

    def get_tour(self, tour_id: str) -> Dict[str, Any]:
        oid = parse_object_id(tour_id)
        by_id = Predicate((Condition("_id", Operator.EQ, oid),))
        doc = self.store.query().find(by_id).select(DEFAULT_PROJECTION).execute_one()
        if doc is None:
            raise TourNotFoundError(tour_id)
        return doc

    def create_tour(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            tour = TourCreate.model_validate(payload)
        except ValidationError as e:
            raise ValidationFailedError(_validation_message(e)) from e
        doc = tour.model_dump()
        doc["createdAt"] = datetime.now(timezone.utc)
        doc[VERSION_FIELD] = 0
        created = self.store.insert(doc)
        logger.info("created tour %s (%s)", created["_id"], created.get("name"))
        return created

    def update_tour(self, tour_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        oid = parse_object_id(tour_id)
        try:
            changes = TourUpdate.model_validate(payload).model_dump(exclude_unset=True)
        except ValidationError as e:
            raise ValidationFailedError(_validation_message(e)) from e
        if not changes:
            return self.get_tour(tour_id)
        updated = self.store.update(oid, changes)
        if updated is None:
            raise TourNotFoundError(tour_id)
        return updated

    def delete_tour(self, tour_id: str) -> None:
        if not self.store.delete(parse_object_id(tour_id)):
            raise TourNotFoundError(tour_id)

    def tour_stats(self) -> List[Dict[str, Any]]:
        return self.store.query().aggregate(TOUR_STATS_PIPELINE)
