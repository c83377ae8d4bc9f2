from typing import Any, Dict

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, Response
from pymongo.errors import PyMongoError

from ..errors import DuplicateTourError, InvalidIdError, TourNotFoundError, ValidationFailedError
from ..query.casting import CastError
from ..query.params import params_from_pairs
from ..services.tours import TourService
from ..utils import to_jsonable

router = APIRouter(prefix="/v1/tours", tags=["tours"])


def _service(request: Request) -> TourService:
    return request.app.state.tour_service


def _fail(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "fail", "message": message})


def _list_response(result) -> Dict[str, Any]:
    return {
        "status": "success",
        "results": result.count,
        "data": {"tours": to_jsonable(result.records)},
    }


@router.get("")
def get_all_tours(request: Request):
    params = params_from_pairs(request.query_params.multi_items())
    try:
        return _list_response(_service(request).list_tours(params))
    except (CastError, PyMongoError) as e:
        return _fail(404, str(e))


@router.get("/top-5-cheap")
def get_top_tours(request: Request):
    params = params_from_pairs(request.query_params.multi_items())
    try:
        return _list_response(_service(request).top_tours(params))
    except (CastError, PyMongoError) as e:
        return _fail(404, str(e))


@router.get("/tour-stats")
def get_tour_stats(request: Request):
    try:
        stats = _service(request).tour_stats()
    except PyMongoError as e:
        return _fail(404, str(e))
    return {"status": "success", "data": {"stats": to_jsonable(stats)}}


@router.get("/{tour_id}")
def get_tour(tour_id: str, request: Request):
    try:
        tour = _service(request).get_tour(tour_id)
    except (InvalidIdError, TourNotFoundError, PyMongoError) as e:
        return _fail(404, str(e))
    return {"status": "success", "data": {"tour": to_jsonable(tour)}}


@router.post("", status_code=201)
def create_tour(payload: Dict[str, Any], request: Request):
    try:
        tour = _service(request).create_tour(payload)
    except (ValidationFailedError, DuplicateTourError, PyMongoError) as e:
        return _fail(400, str(e))
    return {"status": "success", "data": {"tour": to_jsonable(tour)}}


@router.patch("/{tour_id}")
def update_tour(tour_id: str, payload: Dict[str, Any], request: Request):
    try:
        tour = _service(request).update_tour(tour_id, payload)
    except (InvalidIdError, TourNotFoundError) as e:
        return _fail(404, str(e))
    except (ValidationFailedError, DuplicateTourError, PyMongoError) as e:
        return _fail(400, str(e))
    return {"status": "success", "data": {"tour": to_jsonable(tour)}}


@router.delete("/{tour_id}", status_code=204)
def delete_tour(tour_id: str, request: Request):
    try:
        _service(request).delete_tour(tour_id)
    except (InvalidIdError, TourNotFoundError, PyMongoError) as e:
        return _fail(404, str(e))
    return Response(status_code=204)
