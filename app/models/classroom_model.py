# /app/models/classroom_model.py

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .whatsapp_model import WhatsappGroup


class Module(BaseModel):
    """One week of a classroom's curriculum."""
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    weekNumber: int = Field(..., ge=0)
    date: Optional[datetime] = None
    topics: List[str] = Field(default_factory=list)
    materials: List[str] = Field(default_factory=list)
    videoUrl: Optional[str] = None
    isCompleted: bool = False
    description: Optional[str] = None


class CustomCriterion(BaseModel):
    id: str
    name: str
    points: float = Field(..., ge=0)
    description: Optional[str] = None


class EvaluationCriteria(BaseModel):
    """Weighted point allocations. A valid set of criteria totals 100 points."""
    model_config = ConfigDict(from_attributes=True)

    questionnaires: float = Field(default=0, ge=0)
    attendance: float = Field(default=0, ge=0)
    participation: float = Field(default=0, ge=0)
    participationPointsPerModule: int = Field(default=1, ge=1, le=3)
    finalExam: float = Field(default=0, ge=0)
    customCriteria: List[CustomCriterion] = Field(default_factory=list)

    def total_points(self) -> float:
        return (
            self.questionnaires
            + self.attendance
            + self.participation
            + self.finalExam
            + sum(c.points for c in self.customCriteria)
        )


class Schedule(BaseModel):
    dayOfWeek: str
    time: str
    duration: int = Field(..., gt=0, description="Length of a session in minutes.")


class ClassroomBase(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    programId: str
    name: str = Field(..., min_length=1)
    subject: str = Field(..., min_length=1)
    description: Optional[str] = None
    teacherId: str
    studentIds: List[str] = Field(default_factory=list)
    modules: List[Module] = Field(default_factory=list)
    currentModule: Optional[Module] = None
    isActive: bool = True
    whatsappGroup: Optional[WhatsappGroup] = None
    evaluationCriteria: EvaluationCriteria
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    schedule: Optional[Schedule] = None
    room: Optional[str] = None
    location: Optional[str] = None
    maxStudents: Optional[int] = None
    materialPrice: float = 0


class ClassroomCreate(ClassroomBase):
    pass


class ClassroomUpdate(BaseModel):
    """Partial update. `evaluationCriteria`, when present, is re-validated."""
    model_config = ConfigDict(from_attributes=True)

    programId: Optional[str] = None
    name: Optional[str] = Field(default=None, min_length=1)
    subject: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    teacherId: Optional[str] = None
    modules: Optional[List[Module]] = None
    evaluationCriteria: Optional[EvaluationCriteria] = None
    startDate: Optional[datetime] = None
    schedule: Optional[Schedule] = None
    room: Optional[str] = None
    location: Optional[str] = None
    maxStudents: Optional[int] = None
    materialPrice: Optional[float] = None


class Classroom(ClassroomBase):
    id: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @property
    def is_finalized(self) -> bool:
        return not self.isActive and self.endDate is not None


class ClassroomStatistics(BaseModel):
    totalStudents: int = 0
    completedModules: int = 0
    totalModules: int = 0
    isActive: bool = False
    hasWhatsappGroup: bool = False
