"""
Static lookup lists (brands, categories).
"""
from typing import List

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool

from ..database import BikeRepository
from ..dependencies import get_repository
from ..models import BrandOut
from ..service import list_brands, list_categories

router = APIRouter(tags=["lookups"])


@router.get("/brands", response_model=List[BrandOut])
async def get_api_brands(repo: BikeRepository = Depends(get_repository)):
    return await run_in_threadpool(list_brands, repo)


@router.get("/categories", response_model=List[str])
async def get_api_categories(repo: BikeRepository = Depends(get_repository)):
    """Sorted, de-duplicated category names."""
    return await run_in_threadpool(list_categories, repo)
