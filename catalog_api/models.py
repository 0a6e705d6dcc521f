"""
Pydantic models for API request/response serialization.
"""
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class BikeOut(BaseModel):
    """
    A catalog item. Only the identifier is fixed; every other attribute is
    passed through as stored, under whichever field name the document uses.
    """
    model_config = ConfigDict(extra="allow")

    id: str = Field(alias="_id")


class BikesResponse(BaseModel):
    """Response model for a page of bikes."""
    page: int
    limit: int
    total: int
    bikes: List[BikeOut]


class BrandOut(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(alias="_id")


class FieldProblem(BaseModel):
    field: str
    msg: str
    value: Optional[Any] = None
    location: str = "query"


class ErrorResponse(BaseModel):
    """Body of a 400 response."""
    errors: List[FieldProblem]


class HealthOut(BaseModel):
    status: str
    version: str
    database: str
