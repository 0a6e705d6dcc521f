"""
Error types raised along the catalog query path.
"""
from typing import Any, Dict, List, Optional


class CatalogError(Exception):
    """Base class for catalog service errors."""


class InvalidArgument(CatalogError):
    """Malformed or out-of-range client input. Rendered as 400."""

    def __init__(self, errors: List[Dict[str, Any]]):
        super().__init__("; ".join(f"{e.get('field')}: {e.get('msg')}" for e in errors))
        self.errors = errors

    @classmethod
    def single(cls, field: str, msg: str, value: Any = None, location: str = "query") -> "InvalidArgument":
        return cls([field_error(field, msg, value, location)])


class NotFound(CatalogError):
    """No record has the requested identifier. Rendered as 404."""

    def __init__(self, item_id: str):
        super().__init__(f"Bike not found: {item_id}")
        self.item_id = item_id


class StoreUnavailable(CatalogError):
    """Store connection or query failure. Rendered as a generic 500."""


def field_error(field: str, msg: str, value: Optional[Any] = None, location: str = "query") -> Dict[str, Any]:
    """Build one field-level problem entry."""
    return {"field": field, "msg": msg, "value": value, "location": location}
