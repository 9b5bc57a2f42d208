"""
Batch Emitters

Two ways out of the pipeline:
- to_csv_text: the cleaned table as delimited text for download
- upsert_in_batches: fixed-size upserts into a Supabase table, where a failed
  batch is recorded and the run carries on with the next one
"""

import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from .import_types import BatchOutcome, CleanedTable, NoOutputRowsError
from .schema_tables import PRIMARY_KEY_COLUMN

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 100


def chunk_list(lst: List[Any], chunk_size: int) -> List[List[Any]]:
    """Split a list into chunks."""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def to_dataframe(table: CleanedTable) -> pd.DataFrame:
    return pd.DataFrame(table.rows, columns=table.headers, dtype=str)


def to_csv_text(table: CleanedTable) -> str:
    """
    Serialize header row plus surviving rows with CRLF record endings.

    The csv writer quotes any field holding a character of the line
    terminator, so both bare \r and \n inside values survive a re-parse.
    Raises NoOutputRowsError when there are no rows.
    """
    if not table.rows:
        raise NoOutputRowsError()
    return to_dataframe(table).to_csv(index=False, lineterminator="\r\n")


def to_db_record(row: Dict[str, str]) -> Dict[str, Optional[str]]:
    """Empty cells become NULL in the destination table."""
    return {column: (value if value != "" else None) for column, value in row.items()}


def upsert_in_batches(
    supabase,
    table_name: str,
    rows: List[Dict[str, Any]],
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_conflict: str = PRIMARY_KEY_COLUMN,
) -> List[BatchOutcome]:
    """Upsert rows batch by batch. Returns one outcome per batch, in order."""
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")

    outcomes: List[BatchOutcome] = []
    written = 0

    for index, batch in enumerate(chunk_list(rows, batch_size)):
        logger.info(f"Upserting batch {index + 1} of {len(batch)} records into {table_name}...")
        try:
            supabase.table(table_name).upsert(batch, on_conflict=on_conflict).execute()
        except Exception as e:
            logger.error(f"Error upserting batch {index + 1} ({len(batch)} records) into {table_name}: {e}")
            outcomes.append(BatchOutcome(index=index, size=len(batch), success=False, error=str(e)))
            continue

        written += len(batch)
        outcomes.append(BatchOutcome(index=index, size=len(batch), success=True))
        logger.info(f"Batch {index + 1} upserted. Total so far: {written}")

    return outcomes
