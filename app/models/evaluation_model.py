# /app/models/evaluation_model.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class EvaluationStatus(str, Enum):
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    EVALUATED = "evaluated"


class AttendanceRecord(BaseModel):
    """Attendance of one student at one module."""
    moduleId: str
    studentId: str
    isPresent: bool
    date: datetime
    markedBy: str
    markedAt: datetime
    notes: Optional[str] = None


class ParticipationRecord(BaseModel):
    """A single participation entry. `points` may be negative for corrections."""
    studentId: str
    moduleId: Optional[str] = None
    points: float
    timestamp: datetime


class CustomScore(BaseModel):
    criterionId: str
    score: float


class EvaluationScores(BaseModel):
    questionnaires: float = 0
    attendance: float = 0
    participation: float = 0
    finalExam: float = 0
    customScores: List[CustomScore] = Field(default_factory=list)


class StudentEvaluationBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    studentId: str
    classroomId: str
    moduleId: str = ""
    participationRecords: List[ParticipationRecord] = Field(default_factory=list)
    scores: EvaluationScores = Field(default_factory=EvaluationScores)
    attendanceRecords: List[AttendanceRecord] = Field(default_factory=list)
    participationPoints: float = 0
    totalScore: float = 0
    percentage: float = 0
    letterGrade: Optional[str] = None
    status: EvaluationStatus = EvaluationStatus.IN_PROGRESS
    evaluatedBy: Optional[str] = None
    evaluatedAt: Optional[datetime] = None
    comments: Optional[str] = None
    isActive: Optional[bool] = None


class EvaluationCreate(StudentEvaluationBase):
    # An id here means "update this evaluation".
    id: Optional[str] = None


class StudentEvaluation(StudentEvaluationBase):
    id: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ScoresUpdate(BaseModel):
    questionnaires: Optional[float] = None
    finalExam: Optional[float] = None
    customScores: Optional[List[CustomScore]] = None


class AttendanceRequest(BaseModel):
    studentId: str
    classroomId: str
    moduleId: str
    isPresent: bool
    teacherId: str


class ParticipationRequest(BaseModel):
    studentId: str
    classroomId: str
    points: float
    moduleId: Optional[str] = None


class GradeScale(BaseModel):
    min: float
    max: float
    letter: str
    status: str


DEFAULT_GRADE_SCALE: List[GradeScale] = [
    GradeScale(min=90, max=100, letter="A", status="excellent"),
    GradeScale(min=80, max=89, letter="B", status="good"),
    GradeScale(min=70, max=79, letter="C", status="satisfactory"),
    GradeScale(min=60, max=69, letter="D", status="needs-improvement"),
    GradeScale(min=0, max=59, letter="F", status="failing"),
]


class EvaluationStatistics(BaseModel):
    totalStudents: int = 0
    evaluatedStudents: int = 0
    averageGrade: float = 0
    passRate: float = 0
    attendanceRate: float = 0
