"""
API route handlers for bikes endpoints.
"""
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.concurrency import run_in_threadpool

from ..database import BikeRepository
from ..dependencies import get_bike_filters, get_repository
from ..errors import InvalidArgument
from ..models import BikeOut, BikesResponse, ErrorResponse
from ..query import FilterCriteria
from ..service import get_bike, get_bikes_by_ids, list_bikes

router = APIRouter(prefix="/bikes", tags=["bikes"])

ERROR_RESPONSES = {400: {"model": ErrorResponse}}


@router.get("", response_model=BikesResponse, responses=ERROR_RESPONSES)
async def get_api_bikes(
    criteria: FilterCriteria = Depends(get_bike_filters),
    repo: BikeRepository = Depends(get_repository),
):
    """List bikes with filtering, free-text search, sorting and pagination."""
    return await run_in_threadpool(list_bikes, repo, criteria)


@router.post("/by-ids", response_model=List[BikeOut], responses=ERROR_RESPONSES)
async def post_api_bikes_by_ids(
    request: Request,
    repo: BikeRepository = Depends(get_repository),
):
    """Get bikes for a list of ids. Malformed ids are ignored."""
    try:
        payload = await request.json()
    except ValueError:
        raise InvalidArgument.single("body", "Body must be a JSON object", location="body")
    ids = payload.get("ids") if isinstance(payload, dict) else None
    return await run_in_threadpool(get_bikes_by_ids, repo, ids)


@router.get(
    "/{bike_id}",
    response_model=BikeOut,
    responses={**ERROR_RESPONSES, 404: {"description": "Bike not found"}},
)
async def get_api_bike(bike_id: str, repo: BikeRepository = Depends(get_repository)):
    """Get a specific bike by id."""
    return await run_in_threadpool(get_bike, repo, bike_id)
