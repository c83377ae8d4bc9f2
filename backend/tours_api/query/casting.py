"""Coercion of raw filter values to the types a collection declares.

Query strings only carry text, so ``price[gte]=200`` arrives as ``"200"``.
The collection casts it to the declared type of ``price`` before comparing,
the way an ODM casts query values against its schema.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Union, get_args, get_origin

from bson import ObjectId
from bson.errors import InvalidId

from ..errors import ToursError
from .plan import Condition, Predicate

FieldTypes = Mapping[str, type]


class CastError(ToursError):
    def __init__(self, field: str, value: Any, target: type):
        super().__init__(f'Cast to {target.__name__} failed for value "{value}" at path "{field}"')
        self.field = field
        self.value = value
        self.target = target


_TRUE = {"true", "1", "yes"}
_FALSE = {"false", "0", "no"}


def _parse_datetime(text: str) -> datetime:
    # fromisoformat only learned the trailing Z in 3.11
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    # naive values are UTC, as pymongo encodes them
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def coerce(field: str, value: Any, target: Optional[type]) -> Any:
    if target is None or not isinstance(value, str):
        return value
    text = value.strip()
    try:
        if target is bool:
            lowered = text.lower()
            if lowered in _TRUE:
                return True
            if lowered in _FALSE:
                return False
            raise ValueError(text)
        if target is int:
            try:
                return int(text)
            except ValueError:
                # "4.0" on an int field still compares numerically
                return float(text)
        if target is float:
            return float(text)
        if target is datetime:
            return _parse_datetime(text)
        if target is ObjectId:
            return ObjectId(text)
    except (ValueError, InvalidId):
        raise CastError(field, value, target)
    return value


def cast_predicate(predicate: Predicate, field_types: Optional[FieldTypes]) -> Predicate:
    if not field_types:
        return predicate
    return Predicate(tuple(
        Condition(c.field, c.operator, coerce(c.field, c.value, field_types.get(c.field)))
        for c in predicate.conditions
    ))


def _scalar_type(annotation: Any) -> Optional[type]:
    origin = get_origin(annotation)
    if origin is Union:
        args = [a for a in get_args(annotation) if a is not type(None)]
        return _scalar_type(args[0]) if len(args) == 1 else None
    if origin in (list, List):
        args = get_args(annotation)
        # array fields match element-wise, so cast to the element type
        return _scalar_type(args[0]) if args else None
    if isinstance(annotation, type):
        return annotation
    return None


def field_types_from_model(model) -> Dict[str, type]:
    """Map each field (by alias when set) of a pydantic model to its scalar type."""
    out: Dict[str, type] = {}
    for name, info in model.model_fields.items():
        target = _scalar_type(info.annotation)
        if target is not None:
            out[info.alias or name] = target
    return out
