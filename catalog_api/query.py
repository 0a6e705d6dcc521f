"""
Query compilation for the bikes listing endpoint.

Request parameters are normalized into a FilterCriteria, which compiles into
a predicate tree and a sort spec. Nothing here touches the store; the
repository in database.py renders these value objects into SQL.

Documents carry each semantic attribute under one of two field names, a
current lowercase one and a legacy capitalized one. FIELD_VARIANTS is the
single place that knows about both.
"""
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .config import config
from .errors import InvalidArgument, field_error

FIELD_VARIANTS: Dict[str, Tuple[str, str]] = {
    "brand": ("brand", "Brand"),
    "model": ("model", "Model"),
    "category": ("category", "Category"),
    "year": ("year", "Year"),
    "displacement": ("displacement", "Displacement"),
    "power": ("power", "Power"),
}

ID_FIELD = "_id"

SORT_MODES = (
    "year-asc", "year-desc",
    "cc-asc", "cc-desc",
    "hp-asc", "hp-desc",
    "name-asc", "name-desc",
)
DEFAULT_SORT = "name-asc"

# sort-mode prefix -> attribute the synthetic key is extracted from
NUMERIC_SORTS = {"year": "year", "cc": "displacement", "hp": "power"}

NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")
CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]")

EXACT = "exact"
CONTAINS = "contains"

ASC = 1
DESC = -1


def canonical_value(doc: Mapping[str, Any], attribute: str) -> Any:
    """Return an attribute's value, lowercase field name first."""
    for name in FIELD_VARIANTS[attribute]:
        value = doc.get(name)
        if value is not None:
            return value
    return None


def extract_number(value: Any) -> float:
    """
    Extract the synthetic numeric sort key from a free-text attribute.

    The first run of digits (with an optional decimal part) wins, so
    "650cc" -> 650.0 and "150 HP" -> 150.0. Anything without digits,
    including None, sorts as 0.
    """
    if value is None:
        return 0.0
    match = NUMBER_RE.search(str(value))
    return float(match.group(0)) if match else 0.0


@lru_cache(maxsize=512)
def _compile(pattern: str) -> "re.Pattern[str]":
    return re.compile(pattern, re.IGNORECASE)


def regexp(pattern: str, value: Any) -> bool:
    """Case-insensitive search of ``pattern`` in the text form of ``value``."""
    if value is None:
        return False
    return _compile(pattern).search(str(value)) is not None


def split_values(value: Optional[str]) -> Tuple[str, ...]:
    """Split a comma-separated filter, trimming and dropping empty tokens."""
    if not value:
        return ()
    tokens = (token.strip() for token in value.split(","))
    return tuple(dict.fromkeys(token for token in tokens if token))


# ---------------------------------------------------------------------------
# FilterCriteria
# ---------------------------------------------------------------------------

class FilterParams(BaseModel):
    """Validation schema for the raw listing query parameters."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    brand: Optional[str] = Field(None, max_length=config.MAX_BRAND_LENGTH)
    model: Optional[str] = Field(None, max_length=config.MAX_MODEL_LENGTH)
    category: Optional[str] = Field(None, max_length=config.MAX_CATEGORY_LENGTH)
    search: Optional[str] = Field(None, max_length=config.MAX_SEARCH_LENGTH)
    sort: Optional[str] = Field(None, max_length=config.MAX_SORT_LENGTH)
    page: int = Field(config.DEFAULT_PAGE, ge=1, le=config.MAX_PAGE)
    limit: int = config.DEFAULT_LIMIT

    @field_validator("brand", "model", "category", "search", "sort")
    @classmethod
    def reject_control_characters(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and CONTROL_CHARS_RE.search(value):
            raise ValueError("must not contain control characters")
        return value

    @field_validator("limit")
    @classmethod
    def clamp_limit(cls, value: int) -> int:
        return min(max(value, 1), config.MAX_LIMIT)


@dataclass(frozen=True)
class FilterCriteria:
    """Normalized, immutable listing request."""

    brands: Tuple[str, ...] = ()
    model: Optional[str] = None
    categories: Tuple[str, ...] = ()
    search: Optional[str] = None
    sort: str = DEFAULT_SORT
    page: int = config.DEFAULT_PAGE
    limit: int = config.DEFAULT_LIMIT


def normalize_filters(raw: Mapping[str, Any]) -> FilterCriteria:
    """
    Validate raw request parameters and build a FilterCriteria.

    Over-length or malformed values raise InvalidArgument with one entry per
    offending field. An unknown sort mode is not an error; it falls back to
    the default ordering.
    """
    present = {key: value for key, value in raw.items() if value is not None}
    try:
        params = FilterParams(**present)
    except ValidationError as e:
        errors = [
            field_error(
                ".".join(str(part) for part in err["loc"]) or "query",
                err["msg"],
                err.get("input"),
            )
            for err in e.errors()
        ]
        raise InvalidArgument(errors) from e

    sort = params.sort if params.sort in SORT_MODES else DEFAULT_SORT
    return FilterCriteria(
        brands=split_values(params.brand),
        model=params.model or None,
        categories=split_values(params.category),
        search=params.search or None,
        sort=sort,
        page=params.page,
        limit=params.limit,
    )


# ---------------------------------------------------------------------------
# Predicate tree
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FieldMatch:
    """Leaf: one concrete field matches any of ``values``, case-insensitively."""

    field: str
    values: Tuple[str, ...]
    mode: str = EXACT

    @property
    def pattern(self) -> str:
        alternatives = "|".join(re.escape(value) for value in self.values)
        if self.mode == EXACT:
            return rf"^(?:{alternatives})\Z"
        return f"(?:{alternatives})"

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return regexp(self.pattern, doc.get(self.field))


@dataclass(frozen=True)
class AnyOf:
    children: Tuple["Predicate", ...]

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return any(child.matches(doc) for child in self.children)


@dataclass(frozen=True)
class AllOf:
    """Conjunction of dimensions. With no children it matches every record."""

    children: Tuple["Predicate", ...] = ()

    def matches(self, doc: Mapping[str, Any]) -> bool:
        return all(child.matches(doc) for child in self.children)


Predicate = Union[FieldMatch, AnyOf, AllOf]


def _variant_matches(attribute: str, values: Tuple[str, ...], mode: str) -> Tuple[FieldMatch, ...]:
    return tuple(FieldMatch(name, values, mode) for name in FIELD_VARIANTS[attribute])


def compile_predicate(criteria: FilterCriteria) -> AllOf:
    """
    Build the predicate tree for a request.

    Every active dimension becomes an AnyOf over both field-name variants,
    and the dimensions are ANDed together. Free-text search is one more
    dimension (brand OR model, substring) rather than a replacement for the
    others.
    """
    dimensions = []
    if criteria.brands:
        dimensions.append(AnyOf(_variant_matches("brand", criteria.brands, EXACT)))
    if criteria.model:
        dimensions.append(AnyOf(_variant_matches("model", (criteria.model,), CONTAINS)))
    if criteria.categories:
        dimensions.append(AnyOf(_variant_matches("category", criteria.categories, EXACT)))
    if criteria.search:
        term = (criteria.search,)
        dimensions.append(AnyOf(
            _variant_matches("brand", term, CONTAINS) + _variant_matches("model", term, CONTAINS)
        ))
    return AllOf(tuple(dimensions))


# ---------------------------------------------------------------------------
# Sort spec
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SortKey:
    """
    One ordering key. ``numeric`` keys are synthesized from free text with
    extract_number and never leave the store.
    """

    attribute: str
    direction: int = ASC
    numeric: bool = False

    @property
    def name(self) -> str:
        return f"_sort_{self.attribute}" if self.numeric else self.attribute


SortSpec = Tuple[SortKey, ...]


def resolve_sort(mode: Optional[str]) -> SortSpec:
    """Map a sort mode to its keys, always ending in a total-order tie-break."""
    if mode not in SORT_MODES:
        mode = DEFAULT_SORT
    prefix, _, order = mode.partition("-")
    direction = DESC if order == "desc" else ASC

    if prefix == "name":
        return (
            SortKey("brand", direction),
            SortKey("model", direction),
            SortKey(ID_FIELD),
        )
    return (
        SortKey(NUMERIC_SORTS[prefix], direction, numeric=True),
        SortKey("brand"),
        SortKey("model"),
        SortKey(ID_FIELD),
    )


# ---------------------------------------------------------------------------
# Pagination window
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Window:
    skip: int
    limit: int


def page_window(criteria: FilterCriteria) -> Window:
    return Window(skip=(criteria.page - 1) * criteria.limit, limit=criteria.limit)
