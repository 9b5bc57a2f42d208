"""
Import Types and Errors

Exceptions raised by the Companies House import pipeline and the result
objects it hands back to routes and the worker CLI.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from pydantic import BaseModel, Field


# =============================================================================
# ERRORS
# =============================================================================

class CsvImportError(ValueError):
    """Base class for failures that stop an import run."""
    code = "IMPORT_FAILED"


class CsvParseError(CsvImportError):
    """The delimited text could not be parsed."""
    code = "CSV_PARSE_ERROR"


class HeaderDetectionError(CsvImportError):
    """No line in the file looks like the Companies House header row."""
    code = "HEADER_NOT_FOUND"


class HeaderCollisionError(CsvImportError):
    """Two input headers resolve to the same canonical column."""
    code = "HEADER_COLLISION"

    def __init__(self, collisions: Dict[str, List[str]]):
        self.collisions = collisions
        detail = "; ".join(f"{target} <- {', '.join(sources)}" for target, sources in collisions.items())
        super().__init__(f"Input headers map to the same column: {detail}")


class StorageDownloadError(CsvImportError):
    """The uploaded object could not be fetched from storage."""
    code = "STORAGE_DOWNLOAD_FAILED"


class NoOutputRowsError(CsvImportError):
    """Every row was filtered or de-duplicated away."""
    code = "NO_VALID_ROWS"

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "No valid data found after cleaning/filtering, or all rows were duplicates/filtered. "
               "Check CSV content and header mapping."
        )


# =============================================================================
# RESULTS
# =============================================================================

class DropCounts(BaseModel):
    """Why rows were left out of the output."""
    empty: int = 0
    missing_key: int = 0
    liquidation: int = 0
    duplicate: int = 0

    @property
    def total(self) -> int:
        return self.empty + self.missing_key + self.liquidation + self.duplicate


@dataclass
class CleanedTable:
    """Output of the filter stage, ready for an emitter."""
    original_headers: List[str]
    headers: List[str]
    rows: List[Dict[str, str]]
    rows_input: int
    dropped: DropCounts = field(default_factory=DropCounts)
    dedup_enabled: bool = True

    @property
    def rows_output(self) -> int:
        return len(self.rows)


class BatchOutcome(BaseModel):
    """Result of one upsert call."""
    index: int
    size: int
    success: bool
    error: Optional[str] = None


class UpsertReport(BaseModel):
    """Summary of a storage-triggered ingestion run."""
    file_path: str
    table: str
    rows_parsed: int = 0
    rows_cleaned: int = 0
    rows_upserted: int = 0
    rows_failed: int = 0
    dropped: DropCounts = Field(default_factory=DropCounts)
    batches: List[BatchOutcome] = Field(default_factory=list)

    @property
    def failed_batches(self) -> List[BatchOutcome]:
        return [b for b in self.batches if not b.success]
