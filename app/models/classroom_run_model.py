# /app/models/classroom_run_model.py

"""
Data contracts for classroom runs: the immutable record written each time a
finalized classroom is restarted for a new cohort.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .classroom_model import Schedule
from .user_model import CompletionStatus


class StudentRunRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    studentId: str
    studentName: str
    studentPhone: str = ""
    studentEmail: Optional[str] = None
    finalGrade: Optional[float] = None
    status: CompletionStatus
    attendanceRate: float = 0
    participationPoints: float = 0
    enrollmentDate: datetime
    completionDate: datetime


class RunCustomCriterion(BaseModel):
    name: str
    points: float


class RunEvaluationCriteria(BaseModel):
    questionnaires: float = 0
    attendance: float = 0
    participation: float = 0
    finalExam: float = 0
    customCriteria: List[RunCustomCriterion] = Field(default_factory=list)


class GradeDistribution(BaseModel):
    excellent: int = 0  # 90-100
    good: int = 0       # 80-89
    regular: int = 0    # 70-79
    poor: int = 0       # <70


class RunStatistics(BaseModel):
    averageGrade: float = 0
    passRate: float = 0
    attendanceRate: float = 0
    totalParticipationPoints: float = 0
    highestGrade: float = 0
    lowestGrade: float = 0
    distribution: GradeDistribution = Field(default_factory=GradeDistribution)


class ClassroomRunBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    classroomId: str
    classroomName: str
    classroomSubject: str

    programId: str
    programName: str

    teacherId: str
    teacherName: str

    evaluationCriteria: RunEvaluationCriteria
    schedule: Optional[Schedule] = None
    room: Optional[str] = None
    location: Optional[str] = None
    materialPrice: float = 0

    totalModules: int = 0
    completedModules: int = 0
    moduleNames: List[str] = Field(default_factory=list)

    students: List[StudentRunRecord] = Field(default_factory=list)
    totalStudents: int = 0

    statistics: RunStatistics = Field(default_factory=RunStatistics)

    startDate: datetime
    endDate: datetime

    runNumber: int = Field(..., ge=1)
    createdBy: str
    notes: Optional[str] = None


class ClassroomRunCreate(ClassroomRunBase):
    pass


class ClassroomRun(ClassroomRunBase):
    id: str
    createdAt: Optional[datetime] = None


class RunGradeSummary(BaseModel):
    runNumber: int
    averageGrade: float


class AggregatedRunStats(BaseModel):
    totalRuns: int = 0
    totalStudentsTaught: int = 0
    averageGradeAcrossRuns: float = 0
    averagePassRate: float = 0
    bestRun: Optional[RunGradeSummary] = None
    worstRun: Optional[RunGradeSummary] = None
