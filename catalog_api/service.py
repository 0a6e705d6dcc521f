"""
Catalog operations used by the route handlers.

These functions run synchronously against a BikeRepository; the routes
dispatch them to the threadpool.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from .database import BikeRepository
from .errors import InvalidArgument, NotFound
from .query import (
    ID_FIELD, FilterCriteria, compile_predicate, page_window, resolve_sort,
)

logger = logging.getLogger(__name__)

COMPUTED_PREFIX = "_sort_"
CATEGORY_HEADER = "Category"


def try_parse_item_id(value: Any) -> Optional[str]:
    """Canonical id string (32 lowercase hex digits) or None if malformed."""
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value.strip()).hex
    except ValueError:
        return None


def parse_item_id(value: Any) -> str:
    item_id = try_parse_item_id(value)
    if item_id is None:
        raise InvalidArgument.single("id", "Invalid bike id", value, location="path")
    return item_id


def project_item(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Drop computed sort fields and normalize the identifier to its string form."""
    item = {k: v for k, v in doc.items() if not k.startswith(COMPUTED_PREFIX)}
    if ID_FIELD in item:
        item[ID_FIELD] = try_parse_item_id(str(item[ID_FIELD])) or str(item[ID_FIELD])
    return item


def list_bikes(repo: BikeRepository, criteria: FilterCriteria) -> Dict[str, Any]:
    """One page of matching bikes plus the total match count."""
    predicate = compile_predicate(criteria)
    sort = resolve_sort(criteria.sort)
    window = page_window(criteria)

    docs = repo.find(predicate, sort, window)
    # Not a snapshot with ``docs``; concurrent writes may skew it.
    total = repo.count(predicate)
    logger.debug(f"Listed {len(docs)}/{total} bikes (page={criteria.page}, sort={criteria.sort})")

    return {
        "page": criteria.page,
        "limit": criteria.limit,
        "total": total,
        "bikes": [project_item(doc) for doc in docs],
    }


def get_bike(repo: BikeRepository, raw_id: Any) -> Dict[str, Any]:
    item_id = parse_item_id(raw_id)
    doc = repo.get(item_id)
    if doc is None:
        raise NotFound(item_id)
    return project_item(doc)


def get_bikes_by_ids(repo: BikeRepository, raw_ids: Any) -> List[Dict[str, Any]]:
    """
    Batch lookup. Malformed ids are dropped silently; only a missing, empty
    or non-list ``ids`` fails the request.
    """
    if not isinstance(raw_ids, list) or not raw_ids:
        raise InvalidArgument.single("ids", "Valid IDs array required", raw_ids, location="body")
    item_ids = [i for i in (try_parse_item_id(raw) for raw in raw_ids) if i is not None]
    dropped = len(raw_ids) - len(item_ids)
    if dropped:
        logger.debug(f"Dropped {dropped} malformed ids from batch lookup")
    if not item_ids:
        return []
    return [project_item(doc) for doc in repo.get_many(item_ids)]


def list_brands(repo: BikeRepository) -> List[Dict[str, Any]]:
    return [project_item(doc) for doc in repo.list_documents("brands")]


def list_categories(repo: BikeRepository) -> List[str]:
    """Sorted unique category names from the categories lookup collection."""
    names = (doc.get("category") for doc in repo.list_documents("categories"))
    return sorted({
        name for name in names
        if isinstance(name, str) and name and name != CATEGORY_HEADER
    })
