# /tests/test_program_service.py

import pytest

from app.models.program_model import ProgramCreate, ProgramUpdate
from app.services import classroom_service, program_service
from tests.conftest import grade_student


def test_program_codes_are_unique(db):
    program_service.create_program(ProgramCreate(name="Teología Básica", code="TB-101"), db)
    with pytest.raises(ValueError, match="código"):
        program_service.create_program(ProgramCreate(name="Copia", code="TB-101"), db)


def test_update_program_checks_code_against_others_only(db):
    first = program_service.create_program(ProgramCreate(name="Teología", code="TB-101"), db)
    program_service.create_program(ProgramCreate(name="Liderazgo", code="LD-201"), db)

    renamed = program_service.update_program(first.id, ProgramUpdate(name="Teología I", code="TB-101"), db)
    assert renamed.name == "Teología I"

    with pytest.raises(ValueError):
        program_service.update_program(first.id, ProgramUpdate(code="LD-201"), db)


def test_filters(db):
    program_service.create_program(ProgramCreate(name="Teología", code="TB-101", category="theology"), db)
    program_service.create_program(ProgramCreate(name="Liderazgo", code="LD-201", category="leadership", isActive=False), db)

    assert [p.code for p in program_service.get_active_programs(db)] == ["TB-101"]
    assert [p.code for p in program_service.get_programs_by_category("leadership", db)] == ["LD-201"]
    assert [p.code for p in program_service.search_programs("lider", db)] == ["LD-201"]


def test_toggle_status(db):
    program = program_service.create_program(ProgramCreate(name="Teología", code="TB-101"), db)
    assert program_service.toggle_program_status(program.id, db).isActive is False


def test_creating_a_classroom_registers_it_on_the_program(db, school):
    program = program_service.get_program_by_id(school.program.id, db)
    assert program.classrooms == [school.classroom.id]
    assert [c.id for c in classroom_service.get_classrooms_by_program(program.id, db)] == [school.classroom.id]


def test_program_with_classrooms_cannot_be_deleted(db, school):
    with pytest.raises(ValueError, match="clases asociadas"):
        program_service.delete_program(school.program.id, db)

    classroom_service.delete_classroom(school.classroom.id, db)
    assert program_service.delete_program(school.program.id, db) is True
    assert program_service.delete_program(school.program.id, db) is False


def test_program_statistics(db, school):
    luis, marta = school.students
    grade_student(db, luis.id, school.classroom.id, 90)
    grade_student(db, marta.id, school.classroom.id, 70)

    stats = program_service.get_program_statistics(school.program.id, db)
    assert stats.totalClassrooms == 1
    assert stats.activeClassrooms == 1
    assert stats.totalStudents == 2
    assert stats.totalTeachers == 1
    assert stats.averageGrade == 80
