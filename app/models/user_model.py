# /app/models/user_model.py

from datetime import datetime
from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class HistoryRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"


class CompletionStatus(str, Enum):
    COMPLETED = "completed"
    DROPPED = "dropped"
    FAILED = "failed"


class ClassroomHistory(BaseModel):
    """
    One finished classroom in a user's history. The same shape is used for
    students (`completedClassrooms`) and teachers (`taughtClassrooms`).
    """
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    classroomId: str
    classroomName: str
    programId: str
    programName: str
    role: HistoryRole
    enrollmentDate: datetime
    completionDate: datetime
    # Teacher entries never carry a grade; the key is left out entirely.
    finalGrade: Optional[float] = None
    status: CompletionStatus


class UserPreferences(BaseModel):
    language: Optional[Literal["es", "en"]] = None
    notifications: Optional[bool] = None


class UserBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    firstName: str = Field(..., min_length=1)
    lastName: str = Field(default="")
    email: Optional[str] = None
    phone: str = Field(..., min_length=1)
    profilePhoto: Optional[str] = None
    role: UserRole = UserRole.STUDENT
    isTeacher: bool = False
    isActive: bool = True
    preferences: Optional[UserPreferences] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: Optional[str]) -> Optional[str]:
        # Forms send "" for an untouched email field.
        if value is None or not value.strip():
            return None
        return value.strip().lower()


class UserCreate(UserBase):
    enrolledClassrooms: List[str] = Field(default_factory=list)
    teachingClassrooms: List[str] = Field(default_factory=list)


class UserUpdate(BaseModel):
    """All fields are optional to allow for partial updates."""
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)

    firstName: Optional[str] = Field(default=None, min_length=1)
    lastName: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = Field(default=None, min_length=1)
    profilePhoto: Optional[str] = None
    role: Optional[UserRole] = None
    isTeacher: Optional[bool] = None
    isActive: Optional[bool] = None
    preferences: Optional[UserPreferences] = None


class User(UserBase):
    id: str
    enrolledClassrooms: List[str] = Field(default_factory=list)
    completedClassrooms: List[ClassroomHistory] = Field(default_factory=list)
    teachingClassrooms: List[str] = Field(default_factory=list)
    taughtClassrooms: List[ClassroomHistory] = Field(default_factory=list)
    lastLogin: Optional[datetime] = None
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        return f"{self.firstName} {self.lastName}".strip()


class UserRoleUpdate(BaseModel):
    role: UserRole
    isTeacher: bool = False


class UserStatistics(BaseModel):
    totalUsers: int
    totalStudents: int
    totalTeachers: int
    totalAdmins: int
    activeUsers: int
