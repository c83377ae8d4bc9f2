from typing import Any
from bson import ObjectId
from bson.decimal128 import Decimal128
from bson.errors import InvalidId
from datetime import datetime

from .errors import InvalidIdError


def to_jsonable(obj: Any) -> Any:
    """Recursively convert Mongo objects (e.g., ObjectId) to JSON-serializable types."""
    if isinstance(obj, ObjectId):
        return str(obj)
    if isinstance(obj, Decimal128):
        # keep precision by going through the string form
        return str(obj.to_decimal())
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: to_jsonable(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [to_jsonable(i) for i in obj]
    return obj


def parse_object_id(value: str) -> ObjectId:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidIdError(value)
