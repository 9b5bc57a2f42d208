"""
Companies House Import Pipeline

Parse -> Map Headers -> Normalize Values -> Filter/Dedup -> Emit

Two entry points share every stage up to the emitter:
- clean_csv_file: an uploaded file is cleaned in memory and returned as CSV text
- ingest_storage_file: a stored object is downloaded, cleaned and upserted
"""

import io
import logging
import os
import re
from dataclasses import dataclass
from typing import Dict, List, Tuple

import pandas as pd

from .emitters import DEFAULT_BATCH_SIZE, to_csv_text, to_db_record, upsert_in_batches
from .header_mapper import map_headers
from .import_types import (
    CleanedTable,
    CsvParseError,
    HeaderDetectionError,
    StorageDownloadError,
    UpsertReport,
)
from .row_filter import filter_rows
from .schema_tables import HEADER_DETECTION_SAMPLE, PRIMARY_KEY_COLUMN
from .value_normalizer import clean_value

logger = logging.getLogger(__name__)

_EDGE_QUOTES = re.compile(r'^"|"$')


@dataclass(frozen=True)
class IngestSettings:
    """Policy for storage-triggered ingestion."""
    bucket: str = "companies-house-uploads"
    table: str = "companies_house_data"
    batch_size: int = DEFAULT_BATCH_SIZE

    @classmethod
    def from_env(cls) -> "IngestSettings":
        return cls(
            bucket=os.environ.get("COMPANIES_CSV_BUCKET", cls.bucket),
            table=os.environ.get("COMPANIES_CSV_TABLE", cls.table),
            batch_size=_batch_size_from_env(),
        )


def _batch_size_from_env() -> int:
    raw = os.environ.get("COMPANIES_CSV_BATCH_SIZE", "").strip()
    if not raw:
        return DEFAULT_BATCH_SIZE
    try:
        size = int(raw)
    except ValueError:
        size = 0
    if size < 1:
        logger.error(f"Invalid COMPANIES_CSV_BATCH_SIZE {raw!r}; using {DEFAULT_BATCH_SIZE}.")
        return DEFAULT_BATCH_SIZE
    return size


# =============================================================================
# PARSING
# =============================================================================

def decode_content(content: bytes) -> str:
    """Decode uploaded bytes, falling back to latin-1 for legacy exports."""
    try:
        return content.decode("utf-8-sig")
    except UnicodeDecodeError:
        return content.decode("latin-1")


def read_records(text: str) -> Tuple[List[str], pd.DataFrame]:
    """
    Parse delimited text whose first row is the header. Every cell stays a string.

    The header row fixes the field count; a data row with more fields is a
    parse error rather than being shifted onto an implicit index column.
    Short rows are padded with empty cells.
    """
    try:
        raw = pd.read_csv(
            io.StringIO(text),
            header=None,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except pd.errors.EmptyDataError:
        raise CsvParseError("Error parsing CSV: file has no header row")
    except (pd.errors.ParserError, ValueError) as e:
        logger.error(f"Parsing errors: {e}")
        raise CsvParseError(f"Error parsing CSV: {e}")

    raw = raw.fillna("")
    headers = [str(c) for c in raw.iloc[0]]
    df = raw.iloc[1:].reset_index(drop=True)
    df.columns = headers
    logger.info(f"Parsed {len(df)} records. Columns: {headers}")
    return headers, df


def detect_header_row(text: str) -> int:
    """
    Index of the first line containing every HEADER_DETECTION_SAMPLE cell.

    Exports sometimes start with a title or notes; data begins after this line.
    """
    for index, line in enumerate(text.split("\n")):
        if not line.strip():
            continue
        cells = [_EDGE_QUOTES.sub("", cell.strip()) for cell in line.split(",")]
        if all(expected in cells for expected in HEADER_DETECTION_SAMPLE):
            logger.info(f"Detected header row at line: {index + 1}")
            return index

    logger.error("Could not find a valid header row in the CSV.")
    raise HeaderDetectionError("Valid CSV header row not found.")


def text_from_header_row(text: str) -> str:
    lines = text.split("\n")
    return "\n".join(lines[detect_header_row(text):])


# =============================================================================
# TRANSFORM
# =============================================================================

def clean_dataframe(headers: List[str], df: pd.DataFrame) -> CleanedTable:
    """Map headers, clean every cell and apply the row rules."""
    pairs = map_headers(headers)
    targets = [target for _, target in pairs]

    cleaned = pd.DataFrame(index=df.index)
    for original, target in pairs:
        cleaned[target] = df[original].map(lambda value, t=target: clean_value(value, t))

    records: List[Dict[str, str]] = cleaned.to_dict("records") if targets else [{} for _ in range(len(df))]
    rows, dropped = filter_rows(records, targets)

    return CleanedTable(
        original_headers=headers,
        headers=targets,
        rows=rows,
        rows_input=len(df),
        dropped=dropped,
        dedup_enabled=PRIMARY_KEY_COLUMN in targets,
    )


def clean_csv_text(text: str) -> CleanedTable:
    headers, df = read_records(text)
    return clean_dataframe(headers, df)


# =============================================================================
# ENTRY POINTS
# =============================================================================

def clean_csv_file(content: bytes) -> Tuple[CleanedTable, str]:
    """
    Interactive variant: clean an uploaded file entirely in memory.

    Returns the cleaned table and its CSV serialization. Raises
    NoOutputRowsError when nothing survives the filters.
    """
    table = clean_csv_text(decode_content(content))
    return table, to_csv_text(table)


def download_object(supabase, bucket: str, path: str) -> bytes:
    logger.info(f"Attempting to download {path} from bucket {bucket}")
    try:
        data = supabase.storage.from_(bucket).download(path)
    except Exception as e:
        logger.error(f"Error downloading file {path}: {e}")
        raise StorageDownloadError(f"Error downloading {path}: {e}")

    if not data:
        logger.error("No file data received.")
        raise StorageDownloadError("No file data received from storage.")

    logger.info(f"File {path} downloaded successfully. Size: {len(data)} bytes. Starting processing.")
    return data


def ingest_storage_file(supabase, path: str, settings: IngestSettings = None) -> UpsertReport:
    """
    Triggered variant: download a stored CSV and upsert its cleaned rows.

    Batch failures are recorded in the report; only download, parse and
    header problems raise.
    """
    settings = settings or IngestSettings.from_env()

    content = download_object(supabase, settings.bucket, path)
    table = clean_csv_text(text_from_header_row(decode_content(content)))

    report = UpsertReport(
        file_path=path,
        table=settings.table,
        rows_parsed=table.rows_input,
        rows_cleaned=table.rows_output,
        dropped=table.dropped,
    )

    if not table.rows:
        logger.warning(f"No rows left to upsert from {path} after cleaning.")
        return report

    records = [to_db_record(row) for row in table.rows]
    report.batches = upsert_in_batches(
        supabase,
        settings.table,
        records,
        batch_size=settings.batch_size,
        on_conflict=PRIMARY_KEY_COLUMN,
    )
    report.rows_upserted = sum(b.size for b in report.batches if b.success)
    report.rows_failed = sum(b.size for b in report.batches if not b.success)

    logger.info(f"Successfully processed {report.rows_upserted} records from {path}.")
    return report
