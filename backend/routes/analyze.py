"""
Analyze routes — bands, averages, rankings and advice over posted records.
"""

import json
import math
import os

from fastapi import APIRouter, HTTPException
import pandas as pd

from core.advice import generate_report_advice, generate_summary_advice, partition_subjects
from core.app_logger import get_logger
from core.cbc_grading import BAND_LEVELS, classify_score, get_all_band_thresholds
from core.ranking import rank_class, rank_cross_stream, rank_stream, summarize_streams
from core.records import out_of_range, to_frame
from core.reports import annotate_marks, build_population_report, build_student_report

router = APIRouter()
logger = get_logger(__name__)

DEFAULT_SUBJECT_LEVEL = os.getenv("DEFAULT_SUBJECT_LEVEL") or None


def _df_from_payload(payload: dict) -> pd.DataFrame:
    """Canonical record frame from the payload; refuses scores outside 0-100."""
    data = payload.get("data")
    if not data:
        raise HTTPException(400, "No data provided.")
    df = to_frame(data, default_level=DEFAULT_SUBJECT_LEVEL)

    bad = out_of_range(df)
    if len(bad):
        logger.warning("Refused payload with %d out-of-range scores", len(bad))
        raise HTTPException(422, {
            "message": f"{len(bad)} scores fall outside 0-100.",
            "rejected": json.loads(bad.to_json(orient="records")),
        })
    return df


@router.post("/band")
async def band(payload: dict):
    """Classify a single score for a curriculum level."""
    return {
        "score": payload.get("score"),
        "level": payload.get("level"),
        "band": classify_score(payload.get("score"), payload.get("level")),
    }


@router.post("/marks")
async def marks(payload: dict):
    """
    Mark-entry feedback: band and remark per entered score.
    Out-of-range scores come back with the "Invalid Score" band.
    """
    data = payload.get("data")
    if not data:
        raise HTTPException(400, "No data provided.")
    level = payload.get("level") or DEFAULT_SUBJECT_LEVEL
    return {"marks": annotate_marks(data, level=level)}


@router.post("/student/{student_id}")
async def student_report(student_id: str, payload: dict):
    """Single-student report: averages, position, bands and advice."""
    df = _df_from_payload(payload)
    result = build_student_report(
        df, student_id, period=payload.get("period"), roster=payload.get("roster"),
    )
    if result is None:
        raise HTTPException(404, f"Student '{student_id}' not found.")
    return result


@router.post("/population")
async def population_report(payload: dict):
    """Class or stream batch report: rankings and subject summary."""
    df = _df_from_payload(payload)
    try:
        return build_population_report(
            df,
            grade=payload.get("grade"),
            stream=payload.get("stream"),
            period=payload.get("period"),
            mode=payload.get("mode", "class"),
            roster=payload.get("roster"),
        )
    except ValueError as e:
        raise HTTPException(422, str(e))


@router.post("/rankings")
async def rankings(payload: dict):
    """
    Rank precomputed averages.
    Expects: { "population": [{student_id, average, grade?, stream?}], "mode": "class"|"stream"|"cross_stream" }
    """
    population = payload.get("population")
    if population is None:
        raise HTTPException(400, "No population provided.")
    if not isinstance(population, list):
        raise HTTPException(422, "'population' must be a list of student averages.")
    mode = payload.get("mode", "class")

    try:
        if mode == "class":
            return {"rankings": rank_class(population, grade=payload.get("grade"))}
        if mode == "stream":
            if not payload.get("stream"):
                raise HTTPException(400, "Stream ranking needs a 'stream'.")
            return {"rankings": rank_stream(population, payload.get("grade"), payload["stream"])}
        if mode == "cross_stream":
            ranked = rank_cross_stream(population)
            return {"rankings": ranked, "streams": summarize_streams(ranked)}
    except ValueError as e:
        raise HTTPException(422, str(e))

    raise HTTPException(400, f"Unknown ranking mode '{mode}'.")


@router.post("/advice")
async def advice(payload: dict):
    """Recommendation text from subject scores and the overall average."""
    subjects = payload.get("subjects") or []
    if not isinstance(subjects, list):
        raise HTTPException(422, "'subjects' must be a list of subject scores.")
    result = {
        "partition": partition_subjects(subjects),
        "summary": generate_summary_advice(subjects),
    }
    if payload.get("average") is not None:
        try:
            average = float(payload["average"])
        except (TypeError, ValueError):
            raise HTTPException(422, f"Average '{payload['average']}' is not a number.")
        if math.isnan(average):
            raise HTTPException(422, "Average must be a number.")
        result["recommendation"] = generate_report_advice(subjects, average)
    return result


@router.get("/grade-scales")
async def grade_scales():
    """Band tables for every banded curriculum level."""
    return {
        "levels": [
            {"id": level, "label": label, "bands": get_all_band_thresholds(level)}
            for level, label in BAND_LEVELS.items()
        ]
    }
