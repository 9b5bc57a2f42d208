"""
Companies House CSV Import

Cleans the public Companies House bulk company data into the
companies_house_data schema. Used by the admin cleaner (download) and by the
storage-triggered ingestion (upsert).

Key components:
- schema_tables: header mapping, column kinds, sentinel values
- header_mapper / value_normalizer / row_filter: the transform stages
- emitters: CSV serialization and batched upserts
- pipeline: parsing, header detection and the two entry points
"""

from app.companies_csv.import_types import (
    BatchOutcome,
    CleanedTable,
    CsvImportError,
    CsvParseError,
    DropCounts,
    HeaderCollisionError,
    HeaderDetectionError,
    NoOutputRowsError,
    StorageDownloadError,
    UpsertReport,
)

from app.companies_csv.pipeline import (
    IngestSettings,
    clean_csv_file,
    clean_csv_text,
    detect_header_row,
    ingest_storage_file,
)

__all__ = [
    # Types
    "BatchOutcome",
    "CleanedTable",
    "DropCounts",
    "UpsertReport",
    # Errors
    "CsvImportError",
    "CsvParseError",
    "HeaderCollisionError",
    "HeaderDetectionError",
    "NoOutputRowsError",
    "StorageDownloadError",
    # Pipeline
    "IngestSettings",
    "clean_csv_file",
    "clean_csv_text",
    "detect_header_row",
    "ingest_storage_file",
]
