"""
ranking.py — Class, stream and cross-stream rankings.

Every ranking sorts a population by average, highest first, and hands out
1-based positions. Ties are broken by student id (ascending), never by the
order the population happened to arrive in, so the same snapshot always
ranks the same way.

Cross-stream mode sorts the whole grade once. Stream ranks are read off that
single order, so a student's stream position can never disagree with the
grade-wide ordering.

The ranking functions expect a complete snapshot: every student's average
resolved before ranking starts.
"""

from typing import Any, Dict, List, Optional

import numpy as np
from scipy import stats as sp_stats

from core.app_logger import get_logger
from core.records import NO_STREAM

logger = get_logger(__name__)


# ── Helpers ─────────────────────────────────────────────────────────

def _normalise_population(population: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    entries = []
    seen = set()
    for item in population:
        if not isinstance(item, dict):
            raise ValueError(f"Population entry {item!r} is not a student record.")
        sid = item.get("student_id")
        if sid is None:
            raise ValueError("Population entry is missing 'student_id'.")
        sid = str(sid)
        if sid in seen:
            raise ValueError(f"Student '{sid}' appears more than once in the population.")
        seen.add(sid)

        try:
            average = float(item.get("average"))
        except (TypeError, ValueError):
            raise ValueError(f"Student '{sid}' has no numeric average.")
        if np.isnan(average):
            raise ValueError(f"Student '{sid}' has no numeric average.")

        entry = dict(item)
        entry["student_id"] = sid
        entry["average"] = average
        entries.append(entry)
    return entries


def _ordered(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return sorted(entries, key=lambda e: (-e["average"], e["student_id"]))


def _tied_ranks(ordered: List[Dict[str, Any]]) -> List[int]:
    """Competition ranks (1, 2, 2, 4) for display of shared positions."""
    if not ordered:
        return []
    averages = np.array([-e["average"] for e in ordered])
    return [int(r) for r in sp_stats.rankdata(averages, method="min")]


# ── Rankings ────────────────────────────────────────────────────────

def rank_population(population: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Rank a population by average, highest first.

    Each entry gets ``rank`` (its 1-based position; equal averages ordered by
    student id) and ``tied_rank`` (the position shared by equal averages).
    Extra keys on the input entries are carried through.
    """
    ordered = _ordered(_normalise_population(population))
    for position, (entry, tied) in enumerate(zip(ordered, _tied_ranks(ordered)), start=1):
        entry["rank"] = position
        entry["tied_rank"] = tied
    return ordered


def rank_class(population: List[Dict[str, Any]], grade: Optional[str] = None) -> List[Dict[str, Any]]:
    """Class ranking: every student sharing a grade, ranked together."""
    if grade is not None:
        population = [p for p in population if str(p.get("grade")) == str(grade)]
    return rank_population(population)


def rank_stream(
    population: List[Dict[str, Any]], grade: Optional[str], stream: str
) -> List[Dict[str, Any]]:
    """Stream ranking: students sharing both grade and stream."""
    members = [
        p for p in population
        if (grade is None or str(p.get("grade")) == str(grade))
        and str(p.get("stream") or NO_STREAM) == str(stream)
    ]
    return rank_population(members)


def rank_cross_stream(population: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Grade-wide ranking with stream positions derived from it.

    Returns the grade in rank order. Each entry has ``grade_rank`` and
    ``grade_total`` from the single grade-wide sort, and ``stream_rank`` /
    ``stream_total`` from its stream's subsequence of that same order.
    """
    ordered = _ordered(_normalise_population(population))
    tied = _tied_ranks(ordered)

    stream_sizes: Dict[str, int] = {}
    for entry in ordered:
        stream = str(entry.get("stream") or NO_STREAM)
        entry["stream"] = stream
        stream_sizes[stream] = stream_sizes.get(stream, 0) + 1

    stream_positions: Dict[str, int] = {}
    for position, (entry, tied_rank) in enumerate(zip(ordered, tied), start=1):
        stream = entry["stream"]
        stream_positions[stream] = stream_positions.get(stream, 0) + 1
        entry["grade_rank"] = position
        entry["grade_total"] = len(ordered)
        entry["tied_rank"] = tied_rank
        entry["stream_rank"] = stream_positions[stream]
        entry["stream_total"] = stream_sizes[stream]

    logger.debug("Ranked %d students across %d streams", len(ordered), len(stream_sizes))
    return ordered


def summarize_streams(cross_ranked: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Per-stream average, size and top student, best stream first."""
    streams: Dict[str, List[Dict[str, Any]]] = {}
    for entry in cross_ranked:
        streams.setdefault(str(entry.get("stream") or NO_STREAM), []).append(entry)

    summary = []
    for stream, members in streams.items():
        top = min(members, key=lambda e: e.get("grade_rank", e.get("rank", 0)))
        summary.append({
            "stream": stream,
            "average": float(np.mean([m["average"] for m in members])),
            "student_count": len(members),
            "top_student": top.get("name") or top["student_id"],
            "top_student_id": top["student_id"],
        })

    summary.sort(key=lambda s: (-s["average"], s["stream"]))
    return summary


def find_student(ranked: List[Dict[str, Any]], student_id: str) -> Optional[Dict[str, Any]]:
    for entry in ranked:
        if entry["student_id"] == str(student_id):
            return entry
    return None
