"""
Route package initialization.
"""
from .bikes import router as bikes_router
from .lookups import router as lookups_router

__all__ = ["bikes_router", "lookups_router"]
