"""
Clean routes — data cleaning endpoints.
"""

import json
import os

from fastapi import APIRouter, HTTPException
import pandas as pd

from core.cleaner import clean_dataframe, generate_cleaning_report

router = APIRouter()


def _df_records(df: pd.DataFrame) -> list:
    """JSON-safe records; NaN becomes null."""
    return json.loads(df.to_json(orient="records"))


def _clean_payload(payload: dict):
    data = payload.get("data")
    options = payload.get("options", {})

    if not data:
        raise HTTPException(400, "No data provided.")

    default_level = options.get("default_level") or os.getenv("DEFAULT_SUBJECT_LEVEL") or None
    return clean_dataframe(pd.DataFrame(data), default_level=default_level)


@router.post("/preview")
async def preview_cleaning(payload: dict):
    """
    Preview what cleaning would do to the dataset without committing.
    Expects: { "data": [...records...], "options": { "default_level": "junior_secondary" } }
    """
    cleaned_df, report = _clean_payload(payload)
    return {
        "cleaning_report": report,
        "report_text": generate_cleaning_report(report),
        "cleaned_row_count": len(cleaned_df),
        "preview": _df_records(cleaned_df.head(20)),
    }


@router.post("/apply")
async def apply_cleaning(payload: dict):
    """
    Apply cleaning to the dataset and return the full cleaned result.
    Expects: { "data": [...records...], "options": { "default_level": "junior_secondary" } }
    """
    cleaned_df, report = _clean_payload(payload)
    return {
        "cleaning_report": report,
        "cleaned_data": _df_records(cleaned_df),
        "cleaned_row_count": len(cleaned_df),
        "columns": list(cleaned_df.columns),
    }
