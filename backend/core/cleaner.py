"""
cleaner.py — Pandas cleaning pipeline for score records.

Handles:
- Whitespace fixes
- Subject name normalization
- Curriculum level normalization
- Deduplication on (student, subject, period), last entry wins
- Score → numeric conversion
- Rejection of scores outside 0-100
- Cleaning report generation
"""

from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd

from core.app_logger import get_logger
from core.cbc_grading import UNCLASSIFIED, normalize_level
from core.records import FIELD_ALIASES, find_col

logger = get_logger(__name__)


# ── Subject Normalization ───────────────────────────────────────────

SUBJECT_MAP = {
    "maths": "Mathematics", "math": "Mathematics", "mathematics": "Mathematics",
    "mat": "Mathematics",
    "eng": "English", "english": "English", "english language": "English",
    "kis": "Kiswahili", "kiswahili": "Kiswahili", "swahili": "Kiswahili",
    "kisw": "Kiswahili",
    "sci": "Integrated Science", "science": "Integrated Science",
    "integrated science": "Integrated Science",
    "sci & tech": "Science & Technology", "science and technology": "Science & Technology",
    "science & technology": "Science & Technology",
    "sst": "Social Studies", "social studies": "Social Studies",
    "s.s.t": "Social Studies",
    "cre": "CRE", "christian religious education": "CRE", "c.r.e": "CRE",
    "ire": "IRE", "islamic religious education": "IRE", "i.r.e": "IRE",
    "agri": "Agriculture", "agriculture": "Agriculture",
    "agriculture & nutrition": "Agriculture & Nutrition",
    "pre-tech": "Pre-Technical Studies", "pre technical studies": "Pre-Technical Studies",
    "pre-technical studies": "Pre-Technical Studies",
    "ca": "Creative Arts", "creative arts": "Creative Arts",
    "creative arts & sports": "Creative Arts & Sports",
    "hs": "Health Education", "health education": "Health Education",
    "pe": "Physical Education", "physical education": "Physical Education",
    "p.e": "Physical Education",
    "bs": "Business Studies", "business studies": "Business Studies",
    "ls": "Life Skills", "life skills": "Life Skills",
}


def normalize_subject(value: str) -> str:
    """Normalize subject name variants to standard names."""
    if pd.isna(value):
        return value
    cleaned = str(value).strip().lower()
    return SUBJECT_MAP.get(cleaned, str(value).strip().title())


# ── Main Cleaning Pipeline ──────────────────────────────────────────

def clean_dataframe(
    df: pd.DataFrame,
    default_level: Optional[str] = None,
) -> Tuple[pd.DataFrame, Dict]:
    """
    Clean a score-record frame and return (cleaned_df, cleaning_report).

    Out-of-range scores are removed here so they never reach the average
    calculator; the report lists how many were rejected.
    """
    report: Dict = {
        "original_rows": len(df),
        "original_columns": len(df.columns),
        "steps": [],
        "warnings": [],
        "rejected": [],
    }

    cleaned = df.copy()

    # ── 1. Trim whitespace ─────────────────────────────────────────
    str_cols = cleaned.select_dtypes(include=["object", "string"]).columns
    for col in str_cols:
        cleaned[col] = cleaned[col].where(cleaned[col].isna(), cleaned[col].astype(str).str.strip())
    cleaned = cleaned.replace({"nan": np.nan, "NaN": np.nan, "": np.nan, "None": np.nan})
    report["steps"].append("Trimmed whitespace from all string fields.")

    # ── 2. Subject normalization ───────────────────────────────────
    subject_col = find_col(cleaned, FIELD_ALIASES["subject"])
    if subject_col:
        original_subjects = cleaned[subject_col].dropna().unique()
        cleaned[subject_col] = cleaned[subject_col].apply(normalize_subject)
        normalized_count = sum(
            1 for s in original_subjects
            if str(s).strip().lower() in SUBJECT_MAP
            and SUBJECT_MAP[str(s).strip().lower()] != str(s).strip()
        )
        report["steps"].append(
            f"Normalized {normalized_count} subject name variants. "
            f"Subjects found: {list(cleaned[subject_col].dropna().unique())}"
        )

    # ── 3. Curriculum level normalization ──────────────────────────
    level_col = find_col(cleaned, FIELD_ALIASES["subject_level"])
    if level_col is None and default_level:
        level_col = "subject_level"
        cleaned[level_col] = default_level
    if level_col:
        if default_level:
            cleaned[level_col] = cleaned[level_col].fillna(default_level)
        cleaned[level_col] = cleaned[level_col].apply(normalize_level)
        unbanded = int((cleaned[level_col] == UNCLASSIFIED).sum())
        report["steps"].append("Normalized curriculum levels.")
        if unbanded:
            report["warnings"].append(
                f"{unbanded} records have a curriculum level without a band table; "
                "they will carry no band."
            )

    # ── 4. Deduplication ───────────────────────────────────────────
    # Runs before score checks: a rejected latest entry still supersedes
    # the rows before it.
    id_col = find_col(cleaned, FIELD_ALIASES["student_id"])
    period_col = find_col(cleaned, FIELD_ALIASES["period_id"] + FIELD_ALIASES["period"])

    dedup_cols = [c for c in (id_col, subject_col, period_col) if c]
    if id_col and subject_col:
        before = len(cleaned)
        cleaned = cleaned.drop_duplicates(subset=dedup_cols, keep="last")
        removed = before - len(cleaned)
        if removed > 0:
            report["steps"].append(
                f"Removed {removed} superseded rows using keys: {dedup_cols}."
            )
        else:
            report["steps"].append("No duplicate rows found.")
    else:
        report["warnings"].append(
            "Student or subject column missing; duplicates could not be checked."
        )

    # ── 5. Convert scores to numeric ───────────────────────────────
    score_col = find_col(cleaned, FIELD_ALIASES["score"])
    if score_col:
        original_na = cleaned[score_col].isna().sum()
        cleaned[score_col] = pd.to_numeric(cleaned[score_col], errors="coerce")
        parse_errors = int(cleaned[score_col].isna().sum() - original_na)
        if parse_errors > 0:
            report["warnings"].append(
                f"{parse_errors} score values could not be converted to numbers."
            )
        report["steps"].append("Converted scores to numeric.")

        missing = int(cleaned[score_col].isna().sum())
        if missing:
            cleaned = cleaned[cleaned[score_col].notna()]
            report["steps"].append(f"Dropped {missing} rows without a score.")
    else:
        report["warnings"].append("No score column found; scores were not checked.")

    # ── 6. Reject out-of-range scores ──────────────────────────────
    if score_col:
        bad_mask = (cleaned[score_col] < 0) | (cleaned[score_col] > 100)
        bad = cleaned[bad_mask]
        if len(bad):
            report["rejected"] = bad.astype(object).where(bad.notna(), None).to_dict(orient="records")
            report["warnings"].append(
                f"{len(bad)} scores fall outside 0-100 and were rejected."
            )
            logger.warning("Rejected %d out-of-range scores", len(bad))
        cleaned = cleaned[~bad_mask]
        report["steps"].append("Checked scores are within 0-100.")

    # ── Final summary ─────────────────────────────────────────────
    cleaned = cleaned.reset_index(drop=True)
    report["cleaned_rows"] = len(cleaned)
    report["cleaned_columns"] = len(cleaned.columns)
    report["columns"] = list(cleaned.columns)

    return cleaned, report


def generate_cleaning_report(report: Dict) -> str:
    """Generate a human-readable cleaning report text."""
    lines = [
        "═══ Data Cleaning Report ═══",
        f"Original: {report['original_rows']} rows × {report['original_columns']} columns",
        f"Cleaned:  {report['cleaned_rows']} rows × {report['cleaned_columns']} columns",
        "",
        "Steps performed:",
    ]
    for i, step in enumerate(report["steps"], 1):
        lines.append(f"  {i}. {step}")

    if report["warnings"]:
        lines.append("")
        lines.append("⚠ Warnings:")
        for w in report["warnings"]:
            lines.append(f"  • {w}")

    return "\n".join(lines)
