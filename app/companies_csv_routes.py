"""
Companies House CSV Routes

- POST /api/admin/companies-csv/clean: admin uploads a raw bulk-data chunk and
  gets the cleaned, de-duplicated CSV (or a JSON preview) back. Nothing is
  written to the database.
- POST /api/companies-csv/storage-event: Supabase database webhook fired when
  a file lands in the companies-house-uploads bucket; the file is cleaned and
  upserted into companies_house_data.
"""

import io
import os
import asyncio
import logging

from fastapi import APIRouter, Depends, File, HTTPException, Query, Request, UploadFile
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import ValidationError

from app.auth_permissions import get_admin_user, verify_storage_webhook_secret
from app.companies_csv import (
    CsvImportError,
    IngestSettings,
    NoOutputRowsError,
    StorageDownloadError,
    clean_csv_file,
    ingest_storage_file,
)
from app.schemas import StorageObjectRecord
from app.supabase_client import get_supabase

logger = logging.getLogger(__name__)

admin_router = APIRouter(prefix="/api/admin/companies-csv", tags=["companies-csv"])
router = APIRouter(prefix="/api/companies-csv", tags=["companies-csv"])

PREVIEW_ROWS = 20
DEFAULT_MAX_UPLOAD_BYTES = 200 * 1024 * 1024


def _max_upload_bytes() -> int:
    return int(os.environ.get("MAX_UPLOAD_BYTES", str(DEFAULT_MAX_UPLOAD_BYTES)))


# ============================================================================
# Interactive cleaner
# ============================================================================

@admin_router.post("/clean")
async def clean_companies_csv(
    file: UploadFile = File(...),
    format: str = Query("csv", pattern="^(csv|json)$"),
    user: dict = Depends(get_admin_user),
):
    """Clean a Companies House CSV chunk and return it for download."""
    filename = file.filename or "companies.csv"
    if not filename.lower().endswith(".csv"):
        raise HTTPException(status_code=400, detail=f"Invalid file type. Allowed: .csv. Got: {filename}")

    contents = await file.read()
    logger.info(f"CSV clean requested by user {user['id']}, file: {filename}, size: {len(contents)} bytes")

    if not contents:
        raise HTTPException(status_code=400, detail="File is empty. Please upload a file with data.")
    if len(contents) > _max_upload_bytes():
        raise HTTPException(
            status_code=413,
            detail=f"File too large ({len(contents) / 1024 / 1024:.1f} MB). Maximum allowed: {_max_upload_bytes() // 1024 // 1024}MB",
        )

    try:
        table, csv_text = await asyncio.to_thread(clean_csv_file, contents)
    except NoOutputRowsError as e:
        raise HTTPException(status_code=422, detail={"code": e.code, "message": str(e)})
    except CsvImportError as e:
        logger.error(f"CSV clean failed for {filename}: {e}")
        raise HTTPException(status_code=400, detail={"code": e.code, "message": str(e)})

    logger.info(
        f"CSV cleaned successfully! {table.rows_output} data rows kept out of {table.rows_input} "
        f"(duplicates and 'Liquidation' status removed)."
    )

    if format == "json":
        return {
            "original_headers": table.original_headers,
            "cleaned_headers": table.headers,
            "rows_input": table.rows_input,
            "rows_output": table.rows_output,
            "dedup_enabled": table.dedup_enabled,
            "dropped": table.dropped.model_dump(),
            "preview": table.rows[:PREVIEW_ROWS],
            "csv": csv_text,
        }

    return StreamingResponse(
        io.BytesIO(csv_text.encode("utf-8")),
        media_type="text/csv; charset=utf-8",
        headers={
            "Content-Disposition": f'attachment; filename="cleaned_deduplicated_{filename}"',
            "X-Rows-Input": str(table.rows_input),
            "X-Rows-Output": str(table.rows_output),
        },
    )


# ============================================================================
# Storage-triggered ingestion
# ============================================================================

def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


@router.post("/storage-event")
async def handle_storage_event(
    request: Request,
    _: None = Depends(verify_storage_webhook_secret),
):
    """Ingest a Companies House CSV that was just uploaded to storage."""
    try:
        payload = await request.json()
    except Exception as e:
        logger.error(f"Error parsing request or invalid payload: {e}")
        return _bad_request(f"Error parsing request: {e}")

    if not isinstance(payload, dict) or not (
        payload.get("type") == "INSERT"
        and payload.get("table") == "objects"
        and payload.get("schema") == "storage"
    ):
        event_type = payload.get("type") if isinstance(payload, dict) else None
        logger.warning(f"Payload is not a recognized storage INSERT event: {event_type}")
        return _bad_request("Function expects a Supabase Storage INSERT event.")

    try:
        record = StorageObjectRecord(**(payload.get("record") or {}))
    except (ValidationError, TypeError) as e:
        logger.error(f"Invalid storage event payload: {e}")
        return _bad_request("Invalid storage event payload")

    settings = IngestSettings.from_env()
    if record.bucket_id != settings.bucket:
        logger.warning(f"File uploaded to unexpected bucket: {record.bucket_id}. Expected '{settings.bucket}'.")
        return _bad_request("File not in the correct bucket.")

    supabase = get_supabase()
    if not supabase:
        raise HTTPException(status_code=503, detail="Database not available")

    logger.info(f"Processing new file: {record.name} in bucket {record.bucket_id}")

    try:
        report = await asyncio.to_thread(ingest_storage_file, supabase, record.name, settings)
    except (StorageDownloadError, CsvImportError) as e:
        logger.error(f"Unhandled error in storage ingestion for {record.name}: {e}")
        return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

    return {
        "success": True,
        "message": f"Processed {report.rows_upserted} records from {record.name}.",
        "report": report.model_dump(),
    }
