"""
Tests for core/reports.py — mark entry, single-student and class/stream reports.
"""

import os
import sys
import pytest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from core.parser import load_records
from core.records import to_frame
from core.reports import (
    NO_MARKS_ADVICE,
    annotate_marks,
    build_population_report,
    build_student_report,
)

SAMPLE_CSV = os.path.join(os.path.dirname(__file__), "..", "sample_data", "sample_school.csv")


@pytest.fixture
def sample_df():
    return to_frame(load_records(SAMPLE_CSV))


class TestAnnotateMarks:

    def test_band_and_remark(self):
        marks = annotate_marks(
            [{"student_id": "A", "subject": "Mathematics", "score": 72}],
            level="junior_secondary",
        )
        assert marks[0]["band"]["label"] == "Exceeding Expectations 2"
        assert marks[0]["band"]["points"] == "A-"
        assert marks[0]["remark"] == "Well done, aim higher."

    def test_out_of_range_shows_invalid_band(self):
        marks = annotate_marks(
            [{"student_id": "A", "subject": "Mathematics", "score": 150}],
            level="upper_primary",
        )
        assert marks[0]["band"]["label"] == "Invalid Score"

    def test_record_level_wins_over_default(self):
        marks = annotate_marks(
            [{"student_id": "A", "subject": "Mathematics", "subject_level": "upper_primary", "score": 72}],
            level="junior_secondary",
        )
        assert marks[0]["band"]["points"] == "4"

    def test_unbanded_level(self):
        marks = annotate_marks([{"student_id": "A", "subject": "French", "score": 72}])
        assert marks[0]["band"] is None


class TestStudentReport:

    def test_unknown_student(self, sample_df):
        assert build_student_report(sample_df, "S999") is None

    def test_overall_and_positions(self, sample_df):
        report = build_student_report(sample_df, "S003")
        assert report["student"]["name"] == "Chebet Kiprono"
        assert report["overall_average"] == pytest.approx(46.75)
        assert report["subject_count"] == 8
        assert report["class_rank"] == 5
        assert report["class_total"] == 6
        assert report["stream_rank"] == 2
        assert report["stream_total"] == 3

    def test_period_comparison(self, sample_df):
        report = build_student_report(sample_df, "S003")
        averages = [(p["period"], p["average"]) for p in report["period_comparison"]]
        assert averages == [("Term 1 Exam", pytest.approx(45.75)), ("Term 2 Exam", pytest.approx(47.75))]

    def test_advice(self, sample_df):
        report = build_student_report(sample_df, "S003")
        assert report["summary_advice"] == (
            "Focus on improving: Mathematics, Kiswahili, Integrated Science."
        )
        assert report["recommendations"] == (
            "There's room for significant improvement. "
            "Meet with your teachers regularly, create a structured study schedule, "
            "and don't hesitate to ask for help."
        )

    def test_period_scope(self, sample_df):
        report = build_student_report(sample_df, "S005", period="Term 1 Exam")
        assert report["overall_average"] == pytest.approx(29.5)
        assert report["subject_count"] == 4
        assert report["class_rank"] == 6
        assert len(report["marks"]) == 4
        # Comparison still spans every period
        assert len(report["period_comparison"]) == 2

    def test_marks_are_banded(self, sample_df):
        report = build_student_report(sample_df, "S001", period="Term 1 Exam")
        maths = [m for m in report["marks"] if m["subject"] == "Mathematics"][0]
        assert maths["score"] == 85
        assert maths["band"]["points"] == "A"

    def test_roster_student_counts_toward_total(self, sample_df):
        roster = [{"student_id": "S099", "name": "New Learner", "grade": "Grade 7", "stream": "East"}]
        report = build_student_report(sample_df, "S005", roster=roster)
        assert report["class_total"] == 7
        assert report["class_rank"] == 6
        assert report["stream_total"] == 4


class TestPopulationReport:

    def test_class_ranking(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7")
        assert [r["student_id"] for r in report["rankings"]] == [
            "S001", "S004", "S002", "S006", "S003", "S005",
        ]
        assert report["student_count"] == 6
        assert report["population_average"] == pytest.approx(357.875 / 6)
        assert report["streams"] == []

    def test_summary_advice_per_student(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7")
        top = report["rankings"][0]
        assert top["summary_advice"] == "Excellent work in all subjects!"

    def test_stream_ranking(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7", stream="West")
        assert [(r["student_id"], r["rank"]) for r in report["rankings"]] == [
            ("S004", 1), ("S002", 2), ("S006", 3),
        ]

    def test_cross_stream(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7", stream="East", mode="cross_stream")
        assert [
            (r["student_id"], r["grade_rank"], r["stream_rank"]) for r in report["rankings"]
        ] == [("S001", 1, 1), ("S003", 5, 2), ("S005", 6, 3)]
        assert [s["stream"] for s in report["streams"]] == ["West", "East"]
        assert report["streams"][0]["top_student_id"] == "S004"

    def test_cross_stream_subjects_split_by_stream(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7", mode="cross_stream")
        maths = [s for s in report["subjects"] if s["subject"] == "Mathematics"][0]
        assert {s["stream"] for s in maths["stream_averages"]} == {"East", "West"}

    def test_period_scope(self, sample_df):
        report = build_population_report(sample_df, grade="Grade 7", period="Term 1 Exam")
        last = report["rankings"][-1]
        assert last["student_id"] == "S005"
        assert last["average"] == pytest.approx(29.5)

    def test_roster_student_without_marks(self, sample_df):
        roster = [{"student_id": "S099", "name": "New Learner", "grade": "Grade 7", "stream": "East"}]
        report = build_population_report(sample_df, grade="Grade 7", roster=roster)
        last = report["rankings"][-1]
        assert last["student_id"] == "S099"
        assert last["summary_advice"] == NO_MARKS_ADVICE
        assert report["population_average"] == pytest.approx(357.875 / 6)

    def test_unknown_mode(self, sample_df):
        with pytest.raises(ValueError, match="Unknown ranking mode"):
            build_population_report(sample_df, mode="alphabetical")
