"""
Document store access: a bounded SQLite connection pool and the bikes repository.

Each collection is a table of ``(id, doc)`` rows where ``doc`` holds the JSON
document. Predicate trees and sort specs from query.py are rendered into SQL
here; the REGEXP operator and the synthetic numeric sort key are backed by
Python functions registered on every connection.
"""
import json
import logging
import queue
import sqlite3
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

from .config import config
from .errors import StoreUnavailable
from .query import (
    ASC, FIELD_VARIANTS, ID_FIELD, AllOf, AnyOf, FieldMatch, SortSpec, Window,
    extract_number, regexp,
)

logger = logging.getLogger(__name__)

BIKES = "bikes"
COLLECTIONS = ("bikes", "brands", "categories")

# SQLite's default host-parameter limit is 999 on older builds
MAX_IDS_PER_QUERY = 500


def db_connect(path: str) -> sqlite3.Connection:
    """Open a read-only connection with the catalog SQL functions registered."""
    conn = sqlite3.connect(path, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA query_only = ON;")
    conn.create_function("REGEXP", 2, regexp, deterministic=True)
    conn.create_function("sort_number", 1, extract_number, deterministic=True)
    return conn


class ConnectionPool:
    """
    Bounded pool of SQLite connections.

    Connections are opened lazily up to ``size``. When all of them are in
    use, acquiring waits up to ``timeout`` seconds and then fails with
    StoreUnavailable.
    """

    def __init__(self, path: str, size: int = config.POOL_SIZE, timeout: float = config.POOL_TIMEOUT):
        self.path = path
        self.size = size
        self.timeout = timeout
        self._idle: "queue.LifoQueue[sqlite3.Connection]" = queue.LifoQueue()
        self._slots = threading.BoundedSemaphore(size)
        self._closed = False

    def _checkout(self) -> sqlite3.Connection:
        try:
            return self._idle.get_nowait()
        except queue.Empty:
            pass
        try:
            return db_connect(self.path)
        except sqlite3.Error as e:
            logger.error(f"Cannot open database {self.path}: {e}")
            raise StoreUnavailable("cannot open database") from e

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        if self._closed:
            raise StoreUnavailable("connection pool is closed")
        if not self._slots.acquire(timeout=self.timeout):
            raise StoreUnavailable(f"connection pool exhausted after {self.timeout}s")
        try:
            conn = self._checkout()
            try:
                yield conn
            finally:
                self._idle.put(conn)
        finally:
            self._slots.release()

    def close(self) -> None:
        self._closed = True
        while True:
            try:
                conn = self._idle.get_nowait()
            except queue.Empty:
                break
            conn.close()


# ---------------------------------------------------------------------------
# SQL rendering
# ---------------------------------------------------------------------------

def json_path(field: str) -> str:
    return f'$."{field}"'


def attribute_expr(attribute: str) -> str:
    """SQL expression for an attribute, preferring the lowercase field name."""
    if attribute == ID_FIELD:
        return "id"
    extracts = [f"json_extract(doc, '{json_path(name)}')" for name in FIELD_VARIANTS[attribute]]
    return f"COALESCE({', '.join(extracts)})"


def render_predicate(node) -> Tuple[str, List[Any]]:
    """Render a predicate tree into a WHERE expression and its parameters."""
    if isinstance(node, FieldMatch):
        return "json_extract(doc, ?) REGEXP ?", [json_path(node.field), node.pattern]
    if isinstance(node, (AllOf, AnyOf)):
        if not node.children:
            return ("1" if isinstance(node, AllOf) else "0"), []
        joiner = " AND " if isinstance(node, AllOf) else " OR "
        parts, params = [], []
        for child in node.children:
            sql, child_params = render_predicate(child)
            parts.append(sql)
            params.extend(child_params)
        return "(" + joiner.join(parts) + ")", params
    raise TypeError(f"Unsupported predicate node: {node!r}")


def render_sort(sort: SortSpec) -> Tuple[List[str], str]:
    """Render a sort spec into computed select columns and an ORDER BY list."""
    computed, order = [], []
    for key in sort:
        expr = attribute_expr(key.attribute)
        if key.numeric:
            computed.append(f"sort_number({expr}) AS {key.name}")
            expr = key.name
        order.append(f"{expr} {'ASC' if key.direction == ASC else 'DESC'}")
    return computed, ", ".join(order)


def row_to_document(row: sqlite3.Row) -> Dict[str, Any]:
    """Decode a stored row, keeping any computed columns next to the document."""
    doc = json.loads(row["doc"])
    doc[ID_FIELD] = row["id"]
    for key in row.keys():
        if key not in ("id", "doc"):
            doc[key] = row[key]
    return doc


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------

class BikeRepository:
    """Read access to the catalog collections through a ConnectionPool."""

    def __init__(self, pool: ConnectionPool, collection: str = BIKES):
        self.pool = pool
        self.collection = collection

    @classmethod
    def from_path(cls, path: str, size: int = config.POOL_SIZE, timeout: float = config.POOL_TIMEOUT) -> "BikeRepository":
        return cls(ConnectionPool(path, size=size, timeout=timeout))

    def _fetch(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            with self.pool.connection() as conn:
                return conn.execute(sql, params).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Store query failed: {e}", exc_info=True)
            raise StoreUnavailable("store query failed") from e

    def find(self, predicate, sort: SortSpec, window: Window) -> List[Dict[str, Any]]:
        """Matching documents ordered by ``sort``, restricted to ``window``."""
        where, params = render_predicate(predicate)
        computed, order = render_sort(sort)
        columns = ", ".join(["id", "doc"] + computed)
        sql = (
            f"SELECT {columns} FROM {self.collection} "
            f"WHERE {where} ORDER BY {order} LIMIT ? OFFSET ?"
        )
        rows = self._fetch(sql, params + [window.limit, window.skip])
        return [row_to_document(row) for row in rows]

    def count(self, predicate) -> int:
        where, params = render_predicate(predicate)
        rows = self._fetch(f"SELECT COUNT(*) FROM {self.collection} WHERE {where}", params)
        return rows[0][0] if rows else 0

    def get(self, item_id: str) -> Optional[Dict[str, Any]]:
        rows = self._fetch(f"SELECT id, doc FROM {self.collection} WHERE id = ?", (item_id,))
        return row_to_document(rows[0]) if rows else None

    def get_many(self, item_ids: Sequence[str]) -> List[Dict[str, Any]]:
        """Documents for ``item_ids`` in request order; unknown ids are skipped."""
        ids = list(dict.fromkeys(item_ids))
        found: Dict[str, Dict[str, Any]] = {}
        for start in range(0, len(ids), MAX_IDS_PER_QUERY):
            chunk = ids[start:start + MAX_IDS_PER_QUERY]
            placeholders = ",".join("?" * len(chunk))
            rows = self._fetch(
                f"SELECT id, doc FROM {self.collection} WHERE id IN ({placeholders})", chunk
            )
            for row in rows:
                found[row["id"]] = row_to_document(row)
        return [found[i] for i in ids if i in found]

    def list_documents(self, collection: str) -> List[Dict[str, Any]]:
        """All documents of a lookup collection in insertion order."""
        if collection not in COLLECTIONS:
            raise ValueError(f"Unknown collection: {collection}")
        rows = self._fetch(f"SELECT id, doc FROM {collection} ORDER BY rowid")
        return [row_to_document(row) for row in rows]

    def ping(self) -> None:
        """Raise StoreUnavailable unless the bikes collection is readable."""
        self._fetch(f"SELECT 1 FROM {self.collection} LIMIT 1")

    def close(self) -> None:
        self.pool.close()
