from datetime import datetime
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

from .query.casting import field_types_from_model


def _strip(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class TourCreate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1)
    duration: int
    maxGroupSize: int
    difficulty: str
    ratingsAverage: float = 4.5
    ratingsQuantity: int = 0
    price: float
    priceDiscount: Optional[float] = None
    summary: str = Field(..., min_length=1)
    description: Optional[str] = None
    imageCover: str
    images: List[str] = Field(default_factory=list)
    startDates: List[datetime] = Field(default_factory=list)

    @field_validator("name", "summary", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)


class TourUpdate(BaseModel):
    """Partial update; only fields present in the payload are validated and written."""

    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1)
    duration: Optional[int] = None
    maxGroupSize: Optional[int] = None
    difficulty: Optional[str] = None
    ratingsAverage: Optional[float] = None
    ratingsQuantity: Optional[int] = None
    price: Optional[float] = None
    priceDiscount: Optional[float] = None
    summary: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    imageCover: Optional[str] = None
    images: Optional[List[str]] = None
    startDates: Optional[List[datetime]] = None

    @field_validator("name", "summary", "description", mode="before")
    @classmethod
    def strip_text(cls, value):
        return _strip(value)

    @field_validator("name", "duration", "maxGroupSize", "difficulty", "price", "summary", "imageCover")
    @classmethod
    def not_null(cls, value):
        if value is None:
            raise ValueError("field is required and cannot be null")
        return value


# Declared type per stored field, used to cast filter values from the query string.
TOUR_FIELD_TYPES: Dict[str, type] = {
    **field_types_from_model(TourCreate),
    "_id": ObjectId,
    "createdAt": datetime,
    "__v": int,
}
