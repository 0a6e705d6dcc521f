"""
FastAPI dependencies shared by the route modules.
"""
from typing import Optional

from fastapi import Request

from .database import BikeRepository
from .query import FilterCriteria, normalize_filters


def get_repository(request: Request) -> BikeRepository:
    """The repository opened by the application lifespan."""
    return request.app.state.repository


def get_bike_filters(
    brand: Optional[str] = None,
    model: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
    page: Optional[str] = None,
    limit: Optional[str] = None,
    sort: Optional[str] = None,
) -> FilterCriteria:
    """Dependency to extract and validate bike filters."""
    # page/limit arrive as text so that bad values surface as our own 400s
    return normalize_filters({
        "brand": brand,
        "model": model,
        "category": category,
        "search": search,
        "page": page,
        "limit": limit,
        "sort": sort,
    })
