"""
Motorcycle catalog loader package.
"""
from .models import ImportResult
from .database import (
    db_connect,
    db_init,
    insert_documents,
    clear_collection,
    count_documents
)
from .importer import import_file, read_records, rows_to_documents
from .utils import init_logger, now_iso

__version__ = "1.0.0"

__all__ = [
    "ImportResult",
    "db_connect",
    "db_init",
    "insert_documents",
    "clear_collection",
    "count_documents",
    "import_file",
    "read_records",
    "rows_to_documents",
    "init_logger",
    "now_iso"
]
