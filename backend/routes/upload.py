"""
Upload routes — turn an uploaded mark sheet into cleaned score records.
"""

import json
import os
import tempfile
from pathlib import Path

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from core.app_logger import get_logger
from core.cleaner import clean_dataframe
from core.parser import SUPPORTED_EXTENSIONS, load_records, validate_data

router = APIRouter()
logger = get_logger(__name__)


@router.post("/file")
async def upload_file(
    file: UploadFile = File(...),
    sheet: str | None = Form(None),
    default_level: str | None = Form(None),
):
    """
    Upload a CSV, Excel, or ODS mark sheet.
    Returns cleaned long-format records, validation issues and the cleaning report.
    """
    ext = Path(file.filename or "").suffix.lower()
    if ext not in SUPPORTED_EXTENSIONS:
        raise HTTPException(400, f"Unsupported file type: {ext}. Use CSV, Excel, or ODS.")

    # Parsed from a temporary copy; nothing is kept after the request.
    tmp = tempfile.NamedTemporaryFile(suffix=ext, delete=False)
    try:
        with tmp:
            while True:
                chunk = await file.read(1024 * 1024)
                if not chunk:
                    break
                tmp.write(chunk)

        df = load_records(tmp.name, sheet=sheet)
        issues = validate_data(df)
        level = default_level or os.getenv("DEFAULT_SUBJECT_LEVEL") or None
        cleaned, report = clean_dataframe(df, default_level=level)
    except ValueError as e:
        raise HTTPException(400, f"Failed to process upload '{file.filename}': {e}")
    finally:
        Path(tmp.name).unlink(missing_ok=True)

    logger.info("Parsed %s: %d records after cleaning", file.filename, len(cleaned))
    return {
        "filename": file.filename,
        "issues": issues,
        "cleaning_report": report,
        "records": json.loads(cleaned.to_json(orient="records")),
    }
