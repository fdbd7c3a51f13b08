"""
advice.py — Template-based recommendations for student reports.

Two variants share one subject partition:
- report advice: the detailed paragraph on the student report and report card
- summary advice: the one-liner shown in plain report lists

Deterministic templates with no randomness or clock.
"""

import math
from typing import Any, Dict, Iterable, List, Tuple

EXCELLENT_MIN = 80
GOOD_MIN = 60
WEAK_BELOW = 50


def _pairs(subjects: Iterable[Any]) -> List[Tuple[str, float]]:
    """Accept (name, score) pairs or dicts with subject/score keys."""
    pairs = []
    for item in subjects:
        if isinstance(item, dict):
            name = item.get("subject") or item.get("name") or item.get("subject_id")
            score = item.get("score")
        else:
            name, score = item
        try:
            value = float(score)
        except (TypeError, ValueError):
            continue
        if math.isnan(value):
            continue
        pairs.append((str(name), value))
    return pairs


def partition_subjects(subjects: Iterable[Any]) -> Dict[str, List[str]]:
    """
    Split subjects into excellent (≥80), good (60–79) and weak (<50).

    Scores of 50–59 land in no group. A subject listed once per period is
    named once per group, in first-seen order.
    """
    pairs = _pairs(subjects)
    return {
        "excellent": list(dict.fromkeys(n for n, s in pairs if s >= EXCELLENT_MIN)),
        "good": list(dict.fromkeys(n for n, s in pairs if GOOD_MIN <= s < EXCELLENT_MIN)),
        "weak": list(dict.fromkeys(n for n, s in pairs if s < WEAK_BELOW)),
    }


def _join(names: List[str]) -> str:
    return ", ".join(names)


def generate_report_advice(subjects: Iterable[Any], average: float) -> str:
    """Detailed recommendation, bucketed by overall average."""
    groups = partition_subjects(subjects)
    excellent, good, weak = groups["excellent"], groups["good"], groups["weak"]
    sentences: List[str] = []

    if average >= 80:
        sentences.append("Excellent performance! You are excelling across all subjects.")
        if excellent:
            sentences.append(f"Continue your outstanding work in {_join(excellent)}.")
        sentences.append("Consider taking on leadership roles and helping fellow students.")
    elif average >= 65:
        sentences.append("Good performance overall.")
        if excellent:
            sentences.append(f"Excellent work in {_join(excellent)}.")
        if weak:
            sentences.append(
                f"Focus on improving in {_join(weak)} through extra practice "
                f"and seeking help when needed."
            )
    elif average >= 50:
        sentences.append("You're making progress!")
        if good:
            sentences.append(f"Build on your strengths in {_join(good)}.")
        if weak:
            sentences.append(
                f"Dedicate more time to {_join(weak)}. Consider forming study groups "
                f"and asking teachers for additional support."
            )
    else:
        sentences.append("There's room for significant improvement.")
        sentences.append(
            "Meet with your teachers regularly, create a structured study schedule, "
            "and don't hesitate to ask for help."
        )
        if good:
            sentences.append(
                f"Use your understanding in {_join(good)} as a foundation to improve other areas."
            )

    return " ".join(sentences)


def generate_summary_advice(subjects: Iterable[Any]) -> str:
    """One-line advice keyed on the number of weak subjects."""
    weak = partition_subjects(subjects)["weak"]
    if not weak:
        return "Excellent work in all subjects!"
    if len(weak) == 1:
        return f"Great work overall. Try to improve in {weak[0]}."
    return f"Focus on improving: {_join(weak)}."


def score_remark(score: Any) -> str:
    """Short remark printed beside a single mark on the report card."""
    try:
        value = float(score)
    except (TypeError, ValueError):
        return "-"
    if math.isnan(value):
        return "-"
    if value >= 90:
        return "Keep up the excellence."
    if value >= 80:
        return "Great job, stay focused."
    if value >= 70:
        return "Well done, aim higher."
    if value >= 60:
        return "Work harder next time."
    if value >= 50:
        return "Keep trying, don't quit."
    return "Work hard, seek help."
