"""
records.py — Canonical score-record frame.

Score records arrive as a list of dicts (API payloads) or a DataFrame (parsed
sheets). Everything downstream works on one frame shape:

    student_id, name, grade, stream, subject_id, subject,
    subject_level, period_id, period, term, score

Records are expected to be deduplicated already: one row per
(student_id, subject, period).
"""

from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd

from core.cbc_grading import normalize_level

NO_STREAM = "No Stream"

RECORD_COLUMNS = [
    "student_id", "name", "grade", "stream", "subject_id", "subject",
    "subject_level", "period_id", "period", "term", "score",
]

# Accepted spellings per canonical column, first match wins.
FIELD_ALIASES = {
    "student_id": [
        "student_id", "studentid", "student id", "admission_number",
        "admission number", "admission_no", "admission no", "adm_no",
        "adm no", "upi", "assessment_number", "assessment number", "id",
    ],
    "name": [
        "name", "student_name", "student name", "full_name", "full name",
        "learner_name", "learner name", "pupil_name", "pupil name",
    ],
    "grade": ["grade", "class", "class_name", "class name", "form", "standard"],
    "stream": ["stream", "section", "arm"],
    "subject_id": ["subject_id", "subject_code", "subject code", "code"],
    "subject": [
        "subject", "subject_name", "subject name", "learning_area",
        "learning area", "course",
    ],
    "subject_level": [
        "subject_level", "subject level", "level", "curriculum_level",
        "curriculum level",
    ],
    "period_id": ["period_id", "exam_period_id", "exam_id"],
    "period": [
        "period", "exam_period", "exam period", "exam_name", "exam name",
        "exam", "assessment", "assessment_name", "assessment name",
    ],
    "term": ["term", "semester"],
    "score": ["score", "marks", "mark", "percentage", "perc", "total"],
}

Records = Union[pd.DataFrame, Iterable[Dict[str, Any]]]


def find_col(df: pd.DataFrame, aliases: List[str]) -> Optional[str]:
    """Find the first column matching any alias (case-insensitive)."""
    cols_lower = {str(c).lower().strip(): c for c in df.columns}
    for a in aliases:
        if a.lower() in cols_lower:
            return cols_lower[a.lower()]
    return None


def to_frame(records: Records, default_level: Optional[str] = None) -> pd.DataFrame:
    """
    Normalise records into the canonical frame.

    Missing identifier columns fall back to their display twin (subject_id ↔
    subject, period_id ↔ period). Scores are coerced to numbers (unparseable
    → NaN) but never range-checked here.
    """
    df = records.copy() if isinstance(records, pd.DataFrame) else pd.DataFrame(list(records))

    out = pd.DataFrame(index=df.index)
    for field, aliases in FIELD_ALIASES.items():
        col = find_col(df, aliases)
        out[field] = df[col] if col is not None else np.nan

    if out["subject_id"].isna().all():
        out["subject_id"] = out["subject"]
    if out["subject"].isna().all():
        out["subject"] = out["subject_id"]
    if out["period_id"].isna().all():
        out["period_id"] = out["period"]
    if out["period"].isna().all():
        out["period"] = out["period_id"]

    for col in ("student_id", "subject_id", "subject", "period_id", "period", "grade"):
        out[col] = out[col].where(out[col].isna(), out[col].astype(str).str.strip())

    out["stream"] = out["stream"].where(out["stream"].notna(), NO_STREAM).astype(str).str.strip()
    out.loc[out["stream"] == "", "stream"] = NO_STREAM

    if default_level:
        out["subject_level"] = out["subject_level"].fillna(default_level)
    out["subject_level"] = out["subject_level"].apply(normalize_level)

    out["score"] = pd.to_numeric(out["score"], errors="coerce")
    out["term"] = pd.to_numeric(out["term"], errors="coerce")

    return out[RECORD_COLUMNS].reset_index(drop=True)


def filter_records(
    df: pd.DataFrame,
    student_id: Optional[str] = None,
    grade: Optional[str] = None,
    stream: Optional[str] = None,
    period: Optional[str] = None,
) -> pd.DataFrame:
    """Select the records in scope. Period matches either id or display name."""
    mask = pd.Series(True, index=df.index)
    if student_id is not None:
        mask &= df["student_id"].astype(str) == str(student_id)
    if grade is not None:
        mask &= df["grade"].astype(str) == str(grade)
    if stream is not None:
        mask &= df["stream"].astype(str) == str(stream)
    if period is not None:
        mask &= (df["period_id"].astype(str) == str(period)) | (df["period"].astype(str) == str(period))
    return df[mask]


def out_of_range(df: pd.DataFrame) -> pd.DataFrame:
    """Rows whose score is a number outside 0-100."""
    scores = df["score"]
    return df[scores.notna() & ((scores < 0) | (scores > 100))]


def student_info(df: pd.DataFrame, student_id: str) -> Optional[Dict[str, Any]]:
    rows = df[df["student_id"].astype(str) == str(student_id)]
    if rows.empty:
        return None
    first = rows.iloc[0]
    return {
        "student_id": str(student_id),
        "name": clean_str(first["name"]) or str(student_id),
        "grade": clean_str(first["grade"]),
        "stream": clean_str(first["stream"]) or NO_STREAM,
    }


def clean_str(value: Any) -> Optional[str]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    text = str(value).strip()
    return text if text and text.lower() != "nan" else None
