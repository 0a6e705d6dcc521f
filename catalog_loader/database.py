"""
Document store schema and write operations for the catalog loader.
"""
import json
import sqlite3
from typing import Any, Dict, Iterable

from .utils import new_item_id, now_iso

COLLECTIONS = ("bikes", "brands", "categories")

DDL_COLLECTION = """
CREATE TABLE IF NOT EXISTS {name} (
  id TEXT PRIMARY KEY,
  doc TEXT NOT NULL,
  imported_at TEXT
);
"""


def _check_collection(name: str) -> None:
    if name not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {name}")


def db_connect(path: str) -> sqlite3.Connection:
    """Create database connection with optimized settings."""
    conn = sqlite3.connect(path)
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute("PRAGMA synchronous=NORMAL;")
    return conn


def db_init(conn: sqlite3.Connection):
    """Create one table per collection. Safe to run repeatedly."""
    for name in COLLECTIONS:
        conn.execute(DDL_COLLECTION.format(name=name))
    conn.commit()


def clear_collection(conn: sqlite3.Connection, collection: str) -> int:
    """Delete every document of a collection, returning how many went."""
    _check_collection(collection)
    cur = conn.execute(f"DELETE FROM {collection}")
    conn.commit()
    return cur.rowcount


def insert_documents(conn: sqlite3.Connection, collection: str, docs: Iterable[Dict[str, Any]]) -> list:
    """
    Insert documents under fresh ids.

    Returns:
        The ids assigned, in input order.
    """
    _check_collection(collection)
    ts = now_iso()
    rows = [(new_item_id(), json.dumps(doc, ensure_ascii=False), ts) for doc in docs]
    conn.executemany(f"INSERT INTO {collection} (id, doc, imported_at) VALUES (?, ?, ?)", rows)
    conn.commit()
    return [row[0] for row in rows]


def count_documents(conn: sqlite3.Connection, collection: str) -> int:
    _check_collection(collection)
    return conn.execute(f"SELECT COUNT(*) FROM {collection}").fetchone()[0]
