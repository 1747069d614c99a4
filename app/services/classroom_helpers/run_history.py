# /app/services/classroom_helpers/run_history.py

"""Read-only access to the classroom runs written by restart."""

from typing import Any, Dict, List, Optional

import pandas as pd

from ...models.classroom_run_model import AggregatedRunStats, ClassroomRun
from ..database_service import Collections, DatabaseService
from .run_statistics import aggregate_runs

EXPORT_COLUMNS = [
    "Run", "Student Name", "Phone", "Email", "Final Grade", "Status",
    "Attendance Rate", "Participation Points",
]


def _to_run(document: Optional[Dict[str, Any]]) -> Optional[ClassroomRun]:
    return ClassroomRun.model_validate(document) if document else None


def get_classroom_runs(classroom_id: str, db: DatabaseService) -> List[ClassroomRun]:
    """All runs of a classroom, newest run number first."""
    runs = db.query_documents(Collections.CLASSROOM_RUNS, "classroomId", "==", classroom_id)
    runs.sort(key=lambda r: r.get("runNumber") or 0, reverse=True)
    return [_to_run(r) for r in runs]


def get_run_by_id(run_id: str, db: DatabaseService) -> Optional[ClassroomRun]:
    return _to_run(db.get_document(Collections.CLASSROOM_RUNS, run_id))


def get_teacher_runs(teacher_id: str, db: DatabaseService) -> List[ClassroomRun]:
    return [_to_run(r) for r in db.query_documents(Collections.CLASSROOM_RUNS, "teacherId", "==", teacher_id)]


def get_program_runs(program_id: str, db: DatabaseService) -> List[ClassroomRun]:
    return [_to_run(r) for r in db.query_documents(Collections.CLASSROOM_RUNS, "programId", "==", program_id)]


def delete_run(run_id: str, db: DatabaseService) -> bool:
    return db.delete_document(Collections.CLASSROOM_RUNS, run_id)


def get_aggregated_stats(classroom_id: str, db: DatabaseService) -> AggregatedRunStats:
    return aggregate_runs(get_classroom_runs(classroom_id, db))


def export_run_as_csv(run_id: str, db: DatabaseService) -> str:
    """
    Renders the student roster of a run as CSV. Raises ValueError when the
    run does not exist.
    """
    run = get_run_by_id(run_id, db)
    if run is None:
        raise ValueError(f"Run with ID {run_id} not found")

    export_data = [
        {
            "Run": run.runNumber,
            "Student Name": s.studentName,
            "Phone": s.studentPhone,
            "Email": s.studentEmail or "",
            "Final Grade": s.finalGrade if s.finalGrade is not None else "",
            "Status": s.status,
            "Attendance Rate": round(s.attendanceRate, 2),
            "Participation Points": s.participationPoints,
        }
        for s in run.students
    ]

    df = pd.DataFrame(export_data) if export_data else pd.DataFrame(columns=EXPORT_COLUMNS)
    return df.to_csv(index=False)
