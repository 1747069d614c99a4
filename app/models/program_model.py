# /app/models/program_model.py

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProgramCategory(str, Enum):
    THEOLOGY = "theology"
    LEADERSHIP = "leadership"
    DISCIPLESHIP = "discipleship"
    GENERAL = "general"
    OTHER = "other"


class ProgramLevel(str, Enum):
    BASIC = "basic"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class ProgramMaterials(BaseModel):
    books: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)
    cost: Optional[float] = None


class ProgramBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    code: str = Field(..., min_length=1, description="Unique program code.")
    isActive: bool = True
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    coordinatorId: Optional[str] = None
    classrooms: List[str] = Field(default_factory=list)
    totalCredits: Optional[int] = None
    requirements: List[str] = Field(default_factory=list)
    category: Optional[ProgramCategory] = None
    level: Optional[ProgramLevel] = None
    duration: Optional[str] = None
    maxStudents: Optional[int] = None
    minStudents: Optional[int] = None
    materials: Optional[ProgramMaterials] = None


class ProgramCreate(ProgramBase):
    pass


class ProgramUpdate(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    code: Optional[str] = Field(default=None, min_length=1)
    isActive: Optional[bool] = None
    startDate: Optional[datetime] = None
    endDate: Optional[datetime] = None
    coordinatorId: Optional[str] = None
    classrooms: Optional[List[str]] = None
    totalCredits: Optional[int] = None
    requirements: Optional[List[str]] = None
    category: Optional[ProgramCategory] = None
    level: Optional[ProgramLevel] = None
    duration: Optional[str] = None
    maxStudents: Optional[int] = None
    minStudents: Optional[int] = None
    materials: Optional[ProgramMaterials] = None


class Program(ProgramBase):
    id: str
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None


class ProgramStatistics(BaseModel):
    totalClassrooms: int = 0
    activeClassrooms: int = 0
    totalStudents: int = 0
    totalTeachers: int = 0
    averageGrade: float = 0
