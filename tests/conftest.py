# /tests/conftest.py

import pytest
from types import SimpleNamespace
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
from app.models.classroom_model import ClassroomCreate, EvaluationCriteria, Module
from app.models.evaluation_model import EvaluationCreate
from app.models.program_model import ProgramCreate
from app.models.user_model import UserCreate
from app.services import classroom_service, evaluation_service, program_service, user_service
from app.services.database_service import DatabaseService

CRITERIA = {"questionnaires": 20, "attendance": 20, "participation": 20, "finalExam": 40}


@pytest.fixture
def db_session():
    """
    A fresh in-memory SQLite database for EACH test. StaticPool keeps the
    single connection alive so every session sees the same tables.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def db(db_session):
    return DatabaseService(db_session=db_session)


def make_user(db, first_name, phone, **extra):
    return user_service.create_user(UserCreate(firstName=first_name, lastName=extra.pop("lastName", "Test"), phone=phone, **extra), db)


def grade_student(db, student_id, classroom_id, percentage):
    """Stores a finished evaluation with the given final percentage."""
    return evaluation_service.save_evaluation(EvaluationCreate(
        studentId=student_id,
        classroomId=classroom_id,
        totalScore=percentage,
        percentage=percentage,
        status="evaluated",
    ), db)


@pytest.fixture
def school(db):
    """
    A program with one classroom taught by Ana, two enrolled students and two
    modules of which only the first is completed.
    """
    program = program_service.create_program(ProgramCreate(name="Teología Básica", code="TB-101"), db)
    teacher = make_user(db, "Ana", "5551000000", lastName="Pérez", role="teacher", isTeacher=True)
    luis = make_user(db, "Luis", "5552000001", lastName="Gómez", email="luis@example.com")
    marta = make_user(db, "Marta", "5552000002", lastName="Ruiz")

    classroom = classroom_service.create_classroom(ClassroomCreate(
        programId=program.id,
        name="Grupo A",
        subject="Introducción a la Biblia",
        teacherId=teacher.id,
        studentIds=[luis.id, marta.id],
        modules=[
            Module(id="m1", name="Semana 1", weekNumber=1, isCompleted=True),
            Module(id="m2", name="Semana 2", weekNumber=2),
        ],
        evaluationCriteria=EvaluationCriteria(**CRITERIA),
    ), db)

    return SimpleNamespace(program=program, teacher=teacher, students=[luis, marta], classroom=classroom)
