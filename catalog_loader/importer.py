#!/usr/bin/env python3
"""
Load catalog documents from CSV or JSON exports into the document store.
"""
import argparse
import os
import sqlite3
from typing import Any, Dict, List

import pandas as pd

from catalog_api.query import FIELD_VARIANTS

from .database import COLLECTIONS, clear_collection, db_connect, db_init, insert_documents
from .models import ImportResult
from .utils import clean_text, init_logger

# Ids are always assigned by the store
IGNORED_COLUMNS = {"_id"}


def read_records(path: str) -> pd.DataFrame:
    """Read an export file. CSV cells stay text so unit-suffixed values survive."""
    lower = path.lower()
    if lower.endswith(".csv"):
        return pd.read_csv(path, dtype=str)
    if lower.endswith(".json"):
        return pd.read_json(path, orient="records", dtype=False, convert_dates=False)
    raise ValueError(f"Unsupported input format: {path} (expected .csv or .json)")


def _to_native(value: Any) -> Any:
    # numpy scalars -> plain Python for json.dumps
    if hasattr(value, "item") and pd.api.types.is_scalar(value):
        return value.item()
    return value


def normalize_field_names(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Move legacy capitalized attributes to their lowercase field names."""
    out = dict(doc)
    for current, legacy in FIELD_VARIANTS.values():
        if legacy in out:
            value = out.pop(legacy)
            out.setdefault(current, value)
    return out


def rows_to_documents(df: pd.DataFrame, normalize_fields: bool = False) -> List[Dict[str, Any]]:
    """
    Turn table rows into documents.

    Missing cells are left out of the document rather than stored as null,
    and rows with nothing left are dropped.
    """
    docs = []
    for record in df.to_dict(orient="records"):
        doc = {}
        for key, value in record.items():
            key = clean_text(str(key))
            if not key or key in IGNORED_COLUMNS:
                continue
            if pd.api.types.is_scalar(value) and pd.isna(value):
                continue
            value = _to_native(value)
            if isinstance(value, str):
                value = clean_text(value)
                if not value:
                    continue
            doc[key] = value
        if normalize_fields:
            doc = normalize_field_names(doc)
        if doc:
            docs.append(doc)
    return docs


def import_file(
    conn: sqlite3.Connection,
    path: str,
    collection: str = "bikes",
    replace: bool = False,
    normalize_fields: bool = False,
    logger=None
) -> ImportResult:
    """Read ``path`` and insert its rows into ``collection``."""
    df = read_records(path)
    docs = rows_to_documents(df, normalize_fields=normalize_fields)
    result = ImportResult(collection=collection, source_path=path, rows_read=len(df))
    result.skipped_rows = result.rows_read - len(docs)

    if replace:
        result.removed = clear_collection(conn, collection)
        if logger:
            logger.info(f">>> Cleared {result.removed} documents from '{collection}'")

    result.inserted_ids = insert_documents(conn, collection, docs)
    if logger:
        logger.info(
            f">>> Imported {result.inserted} documents into '{collection}' "
            f"from {path} ({result.skipped_rows} empty rows skipped)"
        )
    return result


def parse_args(argv=None):
    ap = argparse.ArgumentParser(description="Load motorcycle catalog exports (CSV/JSON) into the SQLite document store")
    ap.add_argument("input", help="CSV or JSON file to import")
    ap.add_argument("--db", type=str, default=os.getenv("CATALOG_DB", "./data/db/catalog.db"), help="Path to SQLite DB")
    ap.add_argument("--collection", choices=list(COLLECTIONS), default="bikes", help="Target collection")
    ap.add_argument("--replace", action="store_true", help="Remove existing documents from the collection first")
    ap.add_argument("--normalize-fields", action="store_true",
                    help="Store legacy capitalized attributes (Brand, Model, ...) under lowercase names")
    # Logging
    lvl_choices = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    ap.add_argument("--log-level", choices=lvl_choices, default=os.getenv("LOG_LEVEL", "INFO"),
                    help="Log level for console and file (default from env LOG_LEVEL or INFO).")
    ap.add_argument("--log-file-path", default=os.getenv("LOG_FILE_PATH", "catalog_loader.log"),
                    help="Path to log file (default from env LOG_FILE_PATH or catalog_loader.log).")
    ap.add_argument("--no-file-log", action="store_true",
                    help="Disable file logging (only console output).")
    return ap.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    logger = init_logger(
        console_level=args.log_level,
        file_level=args.log_level,
        log_file=None if args.no_file_log else args.log_file_path
    )

    os.makedirs(os.path.dirname(args.db) or ".", exist_ok=True)
    conn = db_connect(args.db)
    try:
        db_init(conn)
        import_file(
            conn, args.input,
            collection=args.collection,
            replace=args.replace,
            normalize_fields=args.normalize_fields,
            logger=logger
        )
    finally:
        conn.close()


if __name__ == "__main__":
    main()
