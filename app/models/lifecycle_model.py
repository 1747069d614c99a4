# /app/models/lifecycle_model.py

"""
Request and result contracts for the classroom lifecycle: finalization,
reversion and restart. Results always carry an `errors` list instead of
raising, so a caller can show partial progress.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ValidationResult(BaseModel):
    isValid: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class FinalizationOptions(BaseModel):
    force: bool = Field(default=False, description="Finalize even when validation fails.")
    skipNotifications: bool = False
    archiveWhatsappGroup: bool = False
    customCompletionDate: Optional[datetime] = None


class FinalizationResult(BaseModel):
    success: bool = False
    classroomId: str
    studentsProcessed: int = 0
    teacherProcessed: bool = False
    errors: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
    canRevert: bool = False
    snapshotId: Optional[str] = None
    # True when some migrations failed and the classroom was left active.
    partiallyFinalized: bool = False
    notificationSent: bool = False
    notificationError: Optional[str] = None


class SnapshotStudent(BaseModel):
    userId: str
    enrolledClassrooms: List[str] = Field(default_factory=list)
    # Stored verbatim so a revert restores exactly what was there.
    completedClassrooms: List[Dict[str, Any]] = Field(default_factory=list)


class SnapshotTeacher(BaseModel):
    userId: str
    teachingClassrooms: List[str] = Field(default_factory=list)
    taughtClassrooms: List[Dict[str, Any]] = Field(default_factory=list)


class FinalizationSnapshot(BaseModel):
    id: Optional[str] = None
    classroomId: str
    classroom: Dict[str, Any]
    students: List[SnapshotStudent] = Field(default_factory=list)
    teacher: SnapshotTeacher
    timestamp: datetime


class RevertRequest(BaseModel):
    snapshotId: Optional[str] = None


class BatchFinalizeRequest(BaseModel):
    classroomIds: List[str] = Field(..., min_length=1)
    options: FinalizationOptions = Field(default_factory=FinalizationOptions)


class FinalizationStats(BaseModel):
    totalStudents: int = 0
    evaluated: int = 0
    passed: int = 0
    failed: int = 0
    averageGrade: float = 0
    completedModules: int = 0
    totalModules: int = 0


class RestartRequest(BaseModel):
    userId: str = Field(..., min_length=1)
    notes: Optional[str] = None


class RestartResult(BaseModel):
    success: bool = False
    classroomId: str
    runId: Optional[str] = None
    runNumber: int = 0
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=_utcnow)
