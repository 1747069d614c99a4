# /tests/test_run_statistics.py

from datetime import datetime, timezone

import pytest

from app.models.classroom_run_model import StudentRunRecord
from app.services.classroom_helpers.run_statistics import (
    calculate_attendance_rate, calculate_run_statistics, determine_status, grade_distribution,
)

WHEN = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _student(grade, attendance=100, points=0):
    return StudentRunRecord(
        studentId=f"stu_{grade}",
        studentName="Estudiante",
        finalGrade=grade,
        status=determine_status(grade or 0),
        attendanceRate=attendance,
        participationPoints=points,
        enrollmentDate=WHEN,
        completionDate=WHEN,
    )


@pytest.mark.parametrize("grade, status", [(70, "completed"), (69.99, "failed"), (0, "failed")])
def test_determine_status(grade, status):
    assert determine_status(grade) == status


def test_grade_distribution_buckets():
    distribution = grade_distribution([95, 90, 85, 75, 69, 0])
    assert (distribution.excellent, distribution.good, distribution.regular, distribution.poor) == (2, 1, 1, 2)


def test_attendance_rate_from_evaluation():
    evaluation = {"attendanceRecords": [{"isPresent": True}, {"isPresent": True}, {"isPresent": False}, {"isPresent": True}]}
    assert calculate_attendance_rate(evaluation) == 75
    assert calculate_attendance_rate(None) == 0


def test_empty_run_statistics():
    stats = calculate_run_statistics([])
    assert stats.averageGrade == 0
    assert stats.passRate == 0


def test_ungraded_students_lower_pass_rate_but_not_average():
    stats = calculate_run_statistics([_student(90, points=3), _student(70, attendance=50, points=2), _student(None, attendance=0)])

    assert stats.averageGrade == 80
    assert stats.passRate == pytest.approx(200 / 3)
    assert stats.highestGrade == 90
    assert stats.lowestGrade == 70
    assert stats.attendanceRate == 50
    assert stats.totalParticipationPoints == 5
    assert stats.distribution.poor == 1
