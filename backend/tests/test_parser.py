"""
Tests for core/parser.py — CSV/Excel/ODS parsing, layout detection, column mapping.
"""

import os
import sys
import pytest
import pandas as pd

# Ensure backend/ is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.parser import (
    apply_mapping,
    convert_wide_to_long,
    detect_layout,
    load_records,
    parse_upload,
    suggest_column_mapping,
    validate_data,
)
from core.records import to_frame

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_school.csv")


@pytest.fixture
def wide_df():
    return pd.DataFrame({
        "Admission No": ["S001", "S002"],
        "Learner Name": ["Amina", "Brian"],
        "Mathematics": ["78", "55"],
        "English": ["85", "60"],
        "Kiswahili": ["70", "45"],
    })


class TestParseUpload:

    def test_csv_parse_returns_single_sheet(self):
        result = parse_upload(SAMPLE_CSV)
        assert list(result.keys()) == ["Sheet1"]
        assert isinstance(result["Sheet1"], pd.DataFrame)

    def test_csv_parse_has_expected_columns(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        for col in ("student_id", "name", "grade", "stream", "subject", "score", "period"):
            assert col in df.columns
        assert len(df) == 48

    def test_missing_file_raises(self):
        with pytest.raises(FileNotFoundError):
            parse_upload("nonexistent_file.csv")

    def test_unsupported_extension(self, tmp_path):
        path = tmp_path / "marks.txt"
        path.write_text("student_id,score\nS001,50\n")
        with pytest.raises(ValueError, match="Unsupported file type"):
            parse_upload(str(path))

    def test_excel_round_trip(self, tmp_path, wide_df):
        path = tmp_path / "marks.xlsx"
        wide_df.to_excel(path, index=False, sheet_name="Grade 7")
        result = parse_upload(str(path))
        assert list(result.keys()) == ["Grade 7"]
        assert len(result["Grade 7"]) == 2


class TestColumnMapping:

    def test_sample_mapping(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        mapping = suggest_column_mapping(df)
        assert mapping["student_id"] == "student_id"
        assert mapping["subject_level"] == "subject_level"
        assert mapping["term"] == "term"

    def test_alias_mapping(self, wide_df):
        mapping = suggest_column_mapping(wide_df)
        assert mapping["student_id"] == "Admission No"
        assert mapping["name"] == "Learner Name"
        assert mapping["subject"] is None

    def test_mapping_matches_record_frame(self):
        df = pd.DataFrame({
            "Assessment Number": ["S001"],
            "Learning Area": ["Mathematics"],
            "Total": ["64"],
            "Exam Name": ["Term 1 Exam"],
        })
        mapping = suggest_column_mapping(df)
        assert mapping["student_id"] == "Assessment Number"
        assert mapping["subject"] == "Learning Area"
        assert mapping["score"] == "Total"
        assert mapping["period"] == "Exam Name"
        frame = to_frame(df)
        assert frame["score"].iloc[0] == 64
        assert frame["subject"].iloc[0] == "Mathematics"

    def test_apply_mapping_renames(self, wide_df):
        renamed = apply_mapping(wide_df, suggest_column_mapping(wide_df))
        assert "student_id" in renamed.columns
        assert "name" in renamed.columns


class TestLayout:

    def test_sample_is_long(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        assert detect_layout(df) == "long"

    def test_wide_detected(self, wide_df):
        assert detect_layout(wide_df) == "wide"

    def test_wide_to_long(self, wide_df):
        long_df = convert_wide_to_long(wide_df, suggest_column_mapping(wide_df))
        assert len(long_df) == 6
        assert set(long_df["subject"]) == {"Mathematics", "English", "Kiswahili"}

    def test_load_records_melts_wide_sheet(self, tmp_path, wide_df):
        path = tmp_path / "wide.csv"
        wide_df.to_csv(path, index=False)
        df = load_records(str(path))
        assert {"student_id", "name", "subject", "score"} <= set(df.columns)
        assert len(df) == 6

    def test_load_records_unknown_sheet(self):
        with pytest.raises(ValueError, match="not found"):
            load_records(SAMPLE_CSV, sheet="Term 3")


class TestValidateData:

    def test_sample_is_clean(self):
        df = parse_upload(SAMPLE_CSV)["Sheet1"]
        assert validate_data(df) == []

    def test_missing_score_column(self):
        df = pd.DataFrame({"student_id": ["S001"], "subject": ["English"]})
        types = [i["type"] for i in validate_data(df)]
        assert "missing_column" in types

    def test_bad_scores_reported(self):
        df = pd.DataFrame({
            "student_id": ["S001", "S002", "S003"],
            "subject": ["English"] * 3,
            "score": ["absent", "120", "60"],
        })
        types = [i["type"] for i in validate_data(df)]
        assert "invalid_scores" in types
        assert "out_of_range_scores" in types

    def test_duplicates_reported(self):
        df = pd.DataFrame({
            "student_id": ["S001", "S001"],
            "subject": ["English", "English"],
            "period": ["Term 1 Exam", "Term 1 Exam"],
            "score": ["60", "65"],
        })
        types = [i["type"] for i in validate_data(df)]
        assert "duplicates" in types
