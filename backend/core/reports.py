"""
reports.py — Report assembly for the three kinds of views.

- Mark entry: band and remark for each entered score.
- Single-student report: period comparison, overall average, grade and
  stream position, advice.
- Class / stream batch report: averages and ranks for a whole population plus
  a subject performance summary.

Pure composition of the band classifier, average calculator, ranking engine
and advice generator over records the caller already fetched.
"""

from typing import Any, Dict, List, Optional

import pandas as pd

from core.advice import generate_report_advice, generate_summary_advice, score_remark
from core.app_logger import get_logger
from core.averages import (
    compute_period_comparison,
    compute_population_averages,
    compute_student_average,
    compute_subject_averages,
    compute_subject_progress,
)
from core.cbc_grading import classify_score
from core.ranking import (
    find_student,
    rank_class,
    rank_cross_stream,
    rank_stream,
    summarize_streams,
)
from core.records import Records, clean_str, filter_records, student_info, to_frame

logger = get_logger(__name__)

RANKING_MODES = ("class", "cross_stream")
NO_MARKS_ADVICE = "No marks recorded for this period."


def _subject_scores(df: pd.DataFrame) -> List[Dict[str, Any]]:
    return [
        {"subject": row["subject"], "score": float(row["score"])}
        for _, row in df.iterrows()
        if pd.notna(row["score"])
    ]


def _roster_for(roster: Optional[List[Dict[str, Any]]], grade: Optional[str]) -> List[Dict[str, Any]]:
    if not roster:
        return []
    if grade is None:
        return list(roster)
    return [s for s in roster if s.get("grade") in (None, "") or str(s.get("grade")) == str(grade)]


# ── Mark Entry ──────────────────────────────────────────────────────

def annotate_marks(records: Records, level: Optional[str] = None) -> List[Dict[str, Any]]:
    """Attach band and remark to each record; ``level`` fills records without one."""
    df = to_frame(records, default_level=level)
    marks = []
    for _, row in df.iterrows():
        score = float(row["score"]) if pd.notna(row["score"]) else None
        marks.append({
            "student_id": clean_str(row["student_id"]),
            "name": clean_str(row["name"]),
            "subject_id": clean_str(row["subject_id"]),
            "subject": clean_str(row["subject"]),
            "subject_level": row["subject_level"],
            "period_id": clean_str(row["period_id"]),
            "period": clean_str(row["period"]),
            "score": score,
            "band": classify_score(score, row["subject_level"]),
            "remark": score_remark(score),
        })
    return marks


# ── Single-Student Report ──────────────────────────────────────────

def build_student_report(
    records: Records,
    student_id: str,
    period: Optional[str] = None,
    roster: Optional[List[Dict[str, Any]]] = None,
) -> Optional[Dict[str, Any]]:
    """
    Full report for one student, or None if the student has no records.

    ``period`` scopes the overall average, ranks and advice to one assessment
    period; the period comparison always spans every period.
    """
    df = to_frame(records)
    info = student_info(df, student_id)
    if info is None:
        return None

    scoped = filter_records(df, period=period) if period is not None else df
    own_all = filter_records(df, student_id=student_id)
    own = filter_records(scoped, student_id=student_id)

    overall = compute_student_average(own, student_id=info["student_id"])

    grade = info["grade"]
    grade_records = filter_records(scoped, grade=grade) if grade is not None else scoped
    population = compute_population_averages(
        grade_records, roster=_roster_for(roster, grade) + [info]
    )
    cross = rank_cross_stream(population)
    position = find_student(cross, info["student_id"]) or {}

    subjects = _subject_scores(own)

    logger.debug(
        "Student report for %s: %d records in scope, %d students in grade",
        student_id, len(own), len(cross),
    )

    return {
        "student": info,
        "period": period,
        "marks": annotate_marks(own),
        "overall_average": overall["average"],
        "subject_count": overall["subject_count"],
        "class_rank": position.get("grade_rank"),
        "class_total": position.get("grade_total"),
        "tied_rank": position.get("tied_rank"),
        "stream_rank": position.get("stream_rank"),
        "stream_total": position.get("stream_total"),
        "period_comparison": compute_period_comparison(own_all),
        "subject_progress": compute_subject_progress(own_all),
        "recommendations": generate_report_advice(subjects, overall["average"]),
        "summary_advice": generate_summary_advice(subjects),
    }


# ── Class / Stream Batch Report ────────────────────────────────────

def build_population_report(
    records: Records,
    grade: Optional[str] = None,
    stream: Optional[str] = None,
    period: Optional[str] = None,
    mode: str = "class",
    roster: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """
    Rank a class or stream and summarise its subjects.

    ``class`` mode ranks the grade, or only ``stream`` when one is given.
    ``cross_stream`` mode ranks the whole grade once and, when ``stream`` is
    given, returns that stream's students carrying both their grade rank and
    stream rank.
    """
    if mode not in RANKING_MODES:
        raise ValueError(f"Unknown ranking mode '{mode}'. Use one of: {', '.join(RANKING_MODES)}.")

    df = to_frame(records)
    scoped = filter_records(df, grade=grade, period=period)
    population = compute_population_averages(scoped, roster=_roster_for(roster, grade))

    streams: List[Dict[str, Any]] = []
    if mode == "cross_stream":
        ranked = rank_cross_stream(population)
        streams = summarize_streams(ranked)
        if stream is not None:
            ranked = [r for r in ranked if r["stream"] == str(stream)]
    elif stream is not None:
        ranked = rank_stream(population, grade, stream)
    else:
        ranked = rank_class(population)

    subject_records = filter_records(scoped, stream=stream) if stream is not None else scoped
    by_student = {
        str(sid): _subject_scores(group)
        for sid, group in subject_records.groupby("student_id", sort=False)
    }
    for entry in ranked:
        if entry.get("subject_count"):
            entry["summary_advice"] = generate_summary_advice(by_student.get(entry["student_id"], []))
        else:
            entry["summary_advice"] = NO_MARKS_ADVICE

    averages = [r["average"] for r in ranked if r.get("subject_count")]
    logger.info(
        "Population report: grade=%s stream=%s period=%s mode=%s students=%d",
        grade, stream, period, mode, len(ranked),
    )

    return {
        "grade": grade,
        "stream": stream,
        "period": period,
        "mode": mode,
        "student_count": len(ranked),
        "population_average": sum(averages) / len(averages) if averages else 0.0,
        "rankings": ranked,
        "streams": streams,
        "subjects": compute_subject_averages(subject_records, by_stream=(mode == "cross_stream")),
    }
