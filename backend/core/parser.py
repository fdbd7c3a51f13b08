"""
parser.py — CSV, Excel, ODS ingestion of mark sheets.

Supports:
- CSV files
- Excel (.xlsx, .xls) — single and multi-sheet
- ODS (OpenDocument Spreadsheet)
- Auto-detect wide (subjects as columns) vs long (one row per mark) layout
- Fuzzy column name mapping onto the score-record fields
"""

from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from core.records import FIELD_ALIASES, find_col

SUPPORTED_EXTENSIONS = (".csv", ".xlsx", ".xls", ".ods")


def parse_upload(file_path: str) -> Dict[str, pd.DataFrame]:
    """
    Parse an uploaded file and return a dict of {sheet_name: DataFrame}.
    For CSV files, returns {"Sheet1": df}.
    """
    path = Path(file_path)
    ext = path.suffix.lower()

    if ext == ".csv":
        df = pd.read_csv(file_path, dtype=str)
        return {"Sheet1": df}

    if ext in (".xlsx", ".xls", ".ods"):
        engine = {".xlsx": "openpyxl", ".xls": "xlrd", ".ods": "odf"}[ext]
        xls = pd.ExcelFile(file_path, engine=engine)
        sheets = {}
        for sheet_name in xls.sheet_names:
            df = pd.read_excel(xls, sheet_name=sheet_name, dtype=str)
            # Skip empty sheets
            if not df.empty and len(df.columns) > 1:
                sheets[sheet_name] = df
        if not sheets:
            raise ValueError(f"No valid sheets found in {path.name}.")
        return sheets

    raise ValueError(f"Unsupported file type: {ext}")


def suggest_column_mapping(df: pd.DataFrame) -> Dict[str, Optional[str]]:
    """
    Suggest a mapping from record field names to actual column names.
    Returns: { field: actual_column_name_or_None }
    """
    return {field: find_col(df, aliases) for field, aliases in FIELD_ALIASES.items()}


def detect_layout(df: pd.DataFrame) -> str:
    """
    Detect whether the sheet is 'wide' or 'long'.

    Wide: one row per student, one column per subject.
    Long: one row per student-subject mark (has a subject column).
    """
    mapping = suggest_column_mapping(df)
    if mapping.get("subject"):
        return "long"

    known = {c for c in mapping.values() if c is not None}
    unmapped = [c for c in df.columns if c not in known]

    # Three or more unrecognised columns are taken to be subjects
    if len(unmapped) >= 3:
        return "wide"
    return "long"


def convert_wide_to_long(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """
    Melt a wide sheet into one row per mark.
    Every column not mapped to a record field is treated as a subject.
    """
    metadata_cols = [v for v in mapping.values() if v and v in df.columns]
    subject_cols = [c for c in df.columns if c not in metadata_cols]

    if not subject_cols:
        return df

    return df.melt(
        id_vars=metadata_cols,
        value_vars=subject_cols,
        var_name="subject",
        value_name="score",
    )


def apply_mapping(df: pd.DataFrame, mapping: Dict[str, Optional[str]]) -> pd.DataFrame:
    """Rename mapped columns to their record field names."""
    renames = {col: field for field, col in mapping.items() if col and col in df.columns}
    return df.rename(columns=renames)


def load_records(file_path: str, sheet: Optional[str] = None) -> pd.DataFrame:
    """Parse a mark sheet into a long frame with record field names."""
    sheets = parse_upload(file_path)
    if sheet is not None:
        if sheet not in sheets:
            raise ValueError(f"Sheet '{sheet}' not found. Available: {list(sheets.keys())}")
        df = sheets[sheet]
    else:
        df = next(iter(sheets.values()))

    mapping = suggest_column_mapping(df)
    if detect_layout(df) == "wide":
        df = convert_wide_to_long(df, mapping)
        mapping = suggest_column_mapping(df)
    return apply_mapping(df, mapping)


def validate_data(df: pd.DataFrame) -> List[Dict]:
    """
    Validate a parsed sheet and return a list of issues found.
    """
    issues = []
    mapping = suggest_column_mapping(df)

    for field in ("student_id", "subject", "score"):
        if mapping.get(field) is None:
            issues.append({
                "type": "missing_column",
                "severity": "critical",
                "message": f"Required column '{field}' not found. "
                           f"Expected one of: {FIELD_ALIASES.get(field, [])}",
            })

    if len(df) == 0:
        issues.append({
            "type": "empty_data",
            "severity": "critical",
            "message": "The uploaded file contains no data rows.",
        })

    score_col = mapping.get("score")
    if score_col and score_col in df.columns:
        scores = pd.to_numeric(df[score_col], errors="coerce")
        invalid_count = int(scores.isna().sum() - df[score_col].isna().sum())
        if invalid_count > 0:
            issues.append({
                "type": "invalid_scores",
                "severity": "warning",
                "message": f"{invalid_count} scores could not be parsed as numbers.",
            })
        out_of_range = int(((scores < 0) | (scores > 100)).sum())
        if out_of_range > 0:
            issues.append({
                "type": "out_of_range_scores",
                "severity": "warning",
                "message": f"{out_of_range} scores fall outside 0-100 and will be rejected.",
            })

    # Same student + subject + period more than once
    key_cols = [mapping.get(f) for f in ("student_id", "subject", "period")]
    key_cols = [c for c in key_cols if c and c in df.columns]
    if len(key_cols) >= 2:
        dupe_count = int(df.duplicated(subset=key_cols, keep=False).sum())
        if dupe_count > 0:
            issues.append({
                "type": "duplicates",
                "severity": "warning",
                "message": f"{dupe_count} duplicate entries detected (same student + subject + period). "
                           f"The last entry wins.",
            })

    return issues
