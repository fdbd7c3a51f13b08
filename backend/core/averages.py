"""
averages.py — Average calculations over score records.

Computes:
- A student's overall average over the records handed in
- Per-student averages for a whole population
- Subject-level population averages (subject performance summary)
- Per-period averages and subject × period progress for one student

The calculators never filter: callers pass exactly the records in scope (one
exam period, or a student's entire history). No rounding happens here;
rounding to one decimal place is a display concern.
"""

import math
import re
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from core.cbc_grading import UNCLASSIFIED, classify_score
from core.records import NO_STREAM, Records, to_frame


# ── Helpers ─────────────────────────────────────────────────────────

def _sanitize(obj):
    """Recursively coerce numpy/pandas scalars to JSON-safe Python types."""
    if isinstance(obj, dict):
        return {k: _sanitize(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_sanitize(v) for v in obj]
    if isinstance(obj, (np.bool_,)):
        return bool(obj)
    if isinstance(obj, (np.integer,)):
        return int(obj)
    if isinstance(obj, (np.floating, float)):
        v = float(obj)
        return None if (np.isnan(v) or np.isinf(v)) else v
    return obj


def _mean(scores: pd.Series) -> float:
    # fsum is exactly rounded, so the mean does not depend on record order.
    values = [float(v) for v in scores.dropna()]
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def _first_value(series: pd.Series) -> Optional[str]:
    valid = series.dropna()
    return str(valid.iloc[0]) if len(valid) else None


def sort_periods(periods: List[Any], terms: Optional[Dict[Any, Any]] = None) -> List[Any]:
    """
    Order assessment periods in calendar order.

    Uses the term number when one is known for the period, then the last
    number in the label ("Term 2 Opener" → 2), then the label itself.
    """
    terms = terms or {}

    def key(period):
        term = terms.get(period)
        if term is not None and not (isinstance(term, float) and np.isnan(term)):
            order = float(term)
        else:
            nums = re.findall(r"\d+", str(period))
            order = float(nums[-1]) if nums else 99.0
        return (order, str(period))

    return sorted(periods, key=key)


# ── Student Average ─────────────────────────────────────────────────

def compute_student_average(records: Records, student_id: Optional[str] = None) -> Dict[str, Any]:
    """
    Unweighted mean of every score in ``records``.

    A student with no visible records averages 0 with a subject_count of 0;
    check subject_count to tell that apart from a real all-zero result.
    Out-of-range scores are included as given (they are rejected upstream).
    """
    df = to_frame(records)
    scores = df["score"].dropna()

    if student_id is None:
        ids = df["student_id"].dropna().unique()
        student_id = str(ids[0]) if len(ids) == 1 else None

    return {
        "student_id": student_id,
        "average": _mean(scores),
        "subject_count": int(len(scores)),
    }


def compute_population_averages(
    records: Records, roster: Optional[List[Dict[str, Any]]] = None
) -> List[Dict[str, Any]]:
    """
    One StudentAverage per student, in order of first appearance.

    ``roster`` lists students that belong to the population even without any
    records in scope; they are appended with average 0 and subject_count 0.
    """
    df = to_frame(records)
    results: List[Dict[str, Any]] = []

    for sid, group in df.dropna(subset=["student_id"]).groupby("student_id", sort=False):
        scores = group["score"].dropna()
        results.append({
            "student_id": str(sid),
            "name": _first_value(group["name"]) or str(sid),
            "grade": _first_value(group["grade"]),
            "stream": _first_value(group["stream"]) or NO_STREAM,
            "average": _mean(scores),
            "subject_count": int(len(scores)),
        })

    by_id = {r["student_id"]: r for r in results}
    for student in roster or []:
        sid = str(student.get("student_id") or student.get("id"))
        entry = by_id.get(sid)
        if entry is None:
            entry = {
                "student_id": sid,
                "name": student.get("name") or student.get("full_name") or sid,
                "grade": student.get("grade"),
                "stream": student.get("stream") or NO_STREAM,
                "average": 0.0,
                "subject_count": 0,
            }
            results.append(entry)
            by_id[sid] = entry
        else:
            for key in ("grade", "stream"):
                if student.get(key):
                    entry[key] = str(student[key])

    return _sanitize(results)


# ── Subject Performance Summary ─────────────────────────────────────

def compute_subject_averages(records: Records, by_stream: bool = False) -> List[Dict[str, Any]]:
    """
    Per-subject population averages, strongest subject first.

    The band of each subject average uses the subject's curriculum level, so
    unbanded levels carry band None.
    """
    df = to_frame(records).dropna(subset=["score"])
    subjects: List[Dict[str, Any]] = []

    for subject_id, group in df.groupby("subject_id", sort=False):
        scores = group["score"]
        level = _first_value(group["subject_level"]) or UNCLASSIFIED
        mean = _mean(scores)
        entry: Dict[str, Any] = {
            "subject_id": str(subject_id),
            "subject": _first_value(group["subject"]) or str(subject_id),
            "level": level,
            "average": mean,
            "count": int(len(scores)),
            "highest": float(scores.max()),
            "lowest": float(scores.min()),
            "band": classify_score(mean, level),
        }
        if by_stream:
            entry["stream_averages"] = [
                {"stream": str(stream), "average": _mean(sgroup["score"]), "count": int(len(sgroup))}
                for stream, sgroup in group.groupby("stream", sort=True)
            ]
        subjects.append(entry)

    subjects.sort(key=lambda s: (-s["average"], s["subject"]))
    return _sanitize(subjects)


# ── Period Comparison / Subject Progress ───────────────────────────

def _period_order(df: pd.DataFrame) -> List[str]:
    terms = {}
    for pid, group in df.groupby("period_id", sort=False):
        valid = group["term"].dropna()
        terms[pid] = float(valid.iloc[0]) if len(valid) else None
    return sort_periods(list(terms.keys()), terms)


def compute_period_comparison(records: Records) -> List[Dict[str, Any]]:
    """Average per assessment period, in calendar order."""
    df = to_frame(records).dropna(subset=["period_id"])
    comparison = []
    for pid in _period_order(df):
        group = df[df["period_id"] == pid]
        scores = group["score"].dropna()
        comparison.append({
            "period_id": str(pid),
            "period": _first_value(group["period"]) or str(pid),
            "average": _mean(scores),
            "subject_count": int(len(scores)),
        })
    return _sanitize(comparison)


def compute_subject_progress(records: Records) -> Dict[str, Any]:
    """Subject × period score matrix for one student's records."""
    df = to_frame(records).dropna(subset=["period_id", "subject_id"])
    order = _period_order(df)
    labels = {
        pid: _first_value(df.loc[df["period_id"] == pid, "period"]) or str(pid)
        for pid in order
    }

    rows = []
    for subject_id, group in df.groupby("subject_id", sort=True):
        scores = {}
        for _, row in group.iterrows():
            if pd.notna(row["score"]):
                scores[labels[row["period_id"]]] = float(row["score"])
        rows.append({
            "subject_id": str(subject_id),
            "subject": _first_value(group["subject"]) or str(subject_id),
            "scores": scores,
        })

    return _sanitize({
        "periods": [labels[pid] for pid in order],
        "subjects": rows,
    })
