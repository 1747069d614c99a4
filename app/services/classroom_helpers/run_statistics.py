# /app/services/classroom_helpers/run_statistics.py

"""Pure grade arithmetic shared by finalization, restart and run history."""

from typing import Any, Dict, List, Optional, Sequence

from ...models.classroom_run_model import (
    AggregatedRunStats, ClassroomRun, GradeDistribution, RunGradeSummary, RunStatistics, StudentRunRecord,
)
from ...models.user_model import CompletionStatus

PASSING_GRADE = 70


def determine_status(grade: float) -> str:
    """Students at or above the passing grade completed; everyone else failed."""
    return CompletionStatus.COMPLETED.value if grade >= PASSING_GRADE else CompletionStatus.FAILED.value


def calculate_attendance_rate(evaluation: Optional[Dict[str, Any]]) -> float:
    records = (evaluation or {}).get("attendanceRecords") or []
    if not records:
        return 0
    present = len([r for r in records if r.get("isPresent")])
    return present / len(records) * 100


def grade_distribution(grades: Sequence[float]) -> GradeDistribution:
    return GradeDistribution(
        excellent=len([g for g in grades if g >= 90]),
        good=len([g for g in grades if 80 <= g < 90]),
        regular=len([g for g in grades if 70 <= g < 80]),
        poor=len([g for g in grades if g < 70]),
    )


def calculate_run_statistics(students: List[StudentRunRecord]) -> RunStatistics:
    """
    Aggregates one run. Students without a grade count as 0: they lower the
    pass rate and land in the "poor" bucket, but the average, highest and
    lowest grades only look at non-zero grades.
    """
    if not students:
        return RunStatistics()

    all_grades = [s.finalGrade or 0 for s in students]
    graded = [g for g in all_grades if g > 0]

    return RunStatistics(
        averageGrade=sum(graded) / len(graded) if graded else 0,
        passRate=len([g for g in all_grades if g >= PASSING_GRADE]) / len(students) * 100,
        attendanceRate=sum(s.attendanceRate for s in students) / len(students),
        totalParticipationPoints=sum(s.participationPoints for s in students),
        highestGrade=max(graded) if graded else 0,
        lowestGrade=min(graded) if graded else 0,
        distribution=grade_distribution(all_grades),
    )


def aggregate_runs(runs: List[ClassroomRun]) -> AggregatedRunStats:
    if not runs:
        return AggregatedRunStats()

    by_grade = sorted(runs, key=lambda r: r.statistics.averageGrade, reverse=True)
    best, worst = by_grade[0], by_grade[-1]

    return AggregatedRunStats(
        totalRuns=len(runs),
        totalStudentsTaught=sum(r.totalStudents for r in runs),
        averageGradeAcrossRuns=sum(r.statistics.averageGrade for r in runs) / len(runs),
        averagePassRate=sum(r.statistics.passRate for r in runs) / len(runs),
        bestRun=RunGradeSummary(runNumber=best.runNumber, averageGrade=best.statistics.averageGrade),
        worstRun=RunGradeSummary(runNumber=worst.runNumber, averageGrade=worst.statistics.averageGrade),
    )
