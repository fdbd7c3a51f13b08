"""
cbc_grading.py — Competency Based Curriculum band classification.

A single canonical band table per curriculum level. Every caller (mark entry,
student report, report card, batch reports) classifies through this module so
the thresholds never drift between views.

Levels other than upper primary and junior secondary (pre-primary, senior
secondary, ...) are not banded: they classify to ``None``.
"""

import math
import re
from typing import Any, Dict, List, Optional


UPPER_PRIMARY = "upper_primary"
JUNIOR_SECONDARY = "junior_secondary"
UNCLASSIFIED = "unclassified"

SCORE_MIN = 0.0
SCORE_MAX = 100.0

# (min_score, max_score, label, points), ordered low to high.
# Closed intervals that partition 0-100.
CBC_BANDS = {
    UPPER_PRIMARY: [
        (0, 29, "Below Expectation", "1"),
        (30, 45, "Approaching Expectation", "2"),
        (46, 69, "Meeting Expectations", "3"),
        (70, 100, "Exceeding Expectations", "4"),
    ],
    JUNIOR_SECONDARY: [
        (0, 14, "Below Expectation 2", "D"),
        (15, 29, "Below Expectation 1", "D+"),
        (30, 37, "Approaching Expectation 2", "C"),
        (38, 45, "Approaching Expectation 1", "C+"),
        (46, 57, "Meeting Expectations 2", "B"),
        (58, 69, "Meeting Expectations 1", "B+"),
        (70, 79, "Exceeding Expectations 2", "A-"),
        (80, 100, "Exceeding Expectations", "A"),
    ],
}

BAND_LEVELS = {
    UPPER_PRIMARY: "Upper Primary (1-4)",
    JUNIOR_SECONDARY: "Junior Secondary (A-D)",
}

# Display severity, keyed on the band label. Not a ranking signal.
SEVERITY_KEYWORDS = [
    ("Below", "destructive"),
    ("Approaching", "warning"),
    ("Meeting", "secondary"),
    ("Exceeding", "success"),
]

INVALID_LABEL = "Invalid Score"

LEVEL_ALIASES = {
    "upper_primary": UPPER_PRIMARY,
    "upper primary": UPPER_PRIMARY,
    "upper-primary": UPPER_PRIMARY,
    "junior_secondary": JUNIOR_SECONDARY,
    "junior secondary": JUNIOR_SECONDARY,
    "junior-secondary": JUNIOR_SECONDARY,
    "junior school": JUNIOR_SECONDARY,
    "jss": JUNIOR_SECONDARY,
    "js": JUNIOR_SECONDARY,
}


def normalize_level(value: Any) -> str:
    """Map a free-text curriculum level to a canonical key, else 'unclassified'."""
    if value is None:
        return UNCLASSIFIED
    if isinstance(value, float) and math.isnan(value):
        return UNCLASSIFIED
    key = re.sub(r"\s+", " ", str(value).strip().lower())
    return LEVEL_ALIASES.get(key, UNCLASSIFIED)


def band_severity(label: str) -> str:
    for keyword, severity in SEVERITY_KEYWORDS:
        if keyword in label:
            return severity
    return "destructive"


def _as_score(score: Any) -> Optional[float]:
    if isinstance(score, bool):
        return None
    try:
        value = float(score)
    except (TypeError, ValueError):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def invalid_band(level: str) -> Dict[str, Any]:
    return {
        "label": INVALID_LABEL,
        "severity": "destructive",
        "points": "-",
        "level": level,
    }


def classify_score(score: Any, level: Any) -> Optional[Dict[str, Any]]:
    """
    Classify a 0-100 score into its competency band for a curriculum level.

    Returns None when the level is not banded. A score outside 0-100 (or one
    that is not a number) yields the "Invalid Score" band instead of raising,
    so views can display bad data rather than fail on it.

    Fractional scores belong to the highest band whose lower bound they meet.
    """
    canonical = normalize_level(level)
    if canonical == UNCLASSIFIED:
        return None

    value = _as_score(score)
    if value is None or value < SCORE_MIN or value > SCORE_MAX:
        return invalid_band(canonical)

    for min_score, _max_score, label, points in reversed(CBC_BANDS[canonical]):
        if value >= min_score:
            return {
                "label": label,
                "severity": band_severity(label),
                "points": points,
                "level": canonical,
            }

    return invalid_band(canonical)


def get_band_label(score: Any, level: Any) -> str:
    band = classify_score(score, level)
    return band["label"] if band else "-"


def get_band_points(score: Any, level: Any) -> str:
    band = classify_score(score, level)
    return band["points"] if band else "-"


def band_order(band: Optional[Dict[str, Any]]) -> int:
    """Position of a band within its level table (0 = lowest); -1 if none or invalid."""
    if not band or band.get("level") not in CBC_BANDS:
        return -1
    for idx, row in enumerate(CBC_BANDS[band["level"]]):
        if row[2] == band["label"]:
            return idx
    return -1


def get_all_band_thresholds(level: Any) -> List[Dict[str, Any]]:
    """Full band scale for a level, highest band first, for legends."""
    canonical = normalize_level(level)
    if canonical == UNCLASSIFIED:
        return []
    return [
        {
            "min": min_score,
            "max": max_score,
            "label": label,
            "points": points,
            "severity": band_severity(label),
        }
        for min_score, max_score, label, points in reversed(CBC_BANDS[canonical])
    ]
