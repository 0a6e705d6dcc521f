"""
Data models for the catalog loader.
"""
from dataclasses import dataclass, field
from typing import List


@dataclass
class ImportResult:
    """Outcome of loading one input file into a collection."""

    collection: str
    source_path: str
    rows_read: int = 0
    skipped_rows: int = 0
    removed: int = 0
    inserted_ids: List[str] = field(default_factory=list)

    @property
    def inserted(self) -> int:
        return len(self.inserted_ids)
