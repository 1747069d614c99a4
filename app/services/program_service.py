# /app/services/program_service.py

"""
Business logic for academic programs. A program groups classrooms and is
identified to users by a unique `code`.
"""

import logging
from typing import Any, Dict, List, Optional, Union

from ..models.program_model import (
    Program, ProgramCategory, ProgramCreate, ProgramStatistics, ProgramUpdate,
)
from .database_service import Collections, DatabaseService

logger = logging.getLogger(__name__)


def _to_program(document: Optional[Dict[str, Any]]) -> Optional[Program]:
    return Program.model_validate(document) if document else None


def _require_program(program_id: str, db: DatabaseService) -> Dict[str, Any]:
    program = db.get_document(Collections.PROGRAMS, program_id)
    if not program:
        raise ValueError("Programa no encontrado")
    return program


def get_all_programs(db: DatabaseService) -> List[Program]:
    documents = db.get_documents(Collections.PROGRAMS, order_by="createdAt", descending=True)
    return [_to_program(d) for d in documents]


def get_active_programs(db: DatabaseService) -> List[Program]:
    return [_to_program(d) for d in db.query_documents(Collections.PROGRAMS, "isActive", "==", True)]


def get_program_by_id(program_id: str, db: DatabaseService) -> Optional[Program]:
    return _to_program(db.get_document(Collections.PROGRAMS, program_id))


def get_programs_by_category(category: Union[ProgramCategory, str], db: DatabaseService) -> List[Program]:
    category_value = category.value if isinstance(category, ProgramCategory) else category
    documents = db.query_documents(Collections.PROGRAMS, "category", "==", category_value)
    return [_to_program(d) for d in documents]


def is_program_code_unique(code: str, db: DatabaseService, exclude_program_id: Optional[str] = None) -> bool:
    programs = db.query_documents(Collections.PROGRAMS, "code", "==", code)
    return not [p for p in programs if p["id"] != exclude_program_id]


def create_program(program_data: ProgramCreate, db: DatabaseService) -> Program:
    if not is_program_code_unique(program_data.code, db):
        raise ValueError("Ya existe un programa con este código")

    program_id = db.create_document(Collections.PROGRAMS, program_data.model_dump(exclude_none=True))
    logger.info("Created program %s (%s)", program_id, program_data.code)
    return get_program_by_id(program_id, db)


def update_program(program_id: str, program_update: Union[ProgramUpdate, Dict[str, Any]], db: DatabaseService) -> Program:
    if isinstance(program_update, ProgramUpdate):
        update_data = program_update.model_dump(exclude_unset=True)
    else:
        update_data = dict(program_update)
    if not update_data:
        raise ValueError("No update data provided.")

    if update_data.get("code") and not is_program_code_unique(update_data["code"], db, exclude_program_id=program_id):
        raise ValueError("Ya existe un programa con este código")

    db.update_document(Collections.PROGRAMS, program_id, update_data)
    return get_program_by_id(program_id, db)


def add_classroom_to_program(program_id: str, classroom_id: str, db: DatabaseService) -> None:
    program = _require_program(program_id, db)
    classrooms = list(program.get("classrooms") or [])
    if classroom_id not in classrooms:
        classrooms.append(classroom_id)
        db.update_document(Collections.PROGRAMS, program_id, {"classrooms": classrooms})


def remove_classroom_from_program(program_id: str, classroom_id: str, db: DatabaseService) -> None:
    program = _require_program(program_id, db)
    classrooms = [cid for cid in (program.get("classrooms") or []) if cid != classroom_id]
    db.update_document(Collections.PROGRAMS, program_id, {"classrooms": classrooms})


def toggle_program_status(program_id: str, db: DatabaseService) -> Program:
    program = _require_program(program_id, db)
    db.update_document(Collections.PROGRAMS, program_id, {"isActive": not program.get("isActive", True)})
    return get_program_by_id(program_id, db)


def delete_program(program_id: str, db: DatabaseService) -> bool:
    """
    Deletes a program. Programs that still have classrooms attached are
    refused with a ValueError; unknown ids return False.
    """
    program = db.get_document(Collections.PROGRAMS, program_id)
    if not program:
        return False
    if program.get("classrooms"):
        raise ValueError("No se puede eliminar un programa con clases asociadas")
    return db.delete_document(Collections.PROGRAMS, program_id)


def get_program_statistics(program_id: str, db: DatabaseService) -> ProgramStatistics:
    """
    Counts classrooms, distinct students and distinct teachers across a
    program. `averageGrade` is the mean of evaluated percentages.
    """
    program = _require_program(program_id, db)

    classrooms = [
        c for c in (db.get_document(Collections.CLASSROOMS, cid) for cid in program.get("classrooms") or [])
        if c
    ]
    student_ids = {sid for c in classrooms for sid in c.get("studentIds") or []}
    teacher_ids = {c.get("teacherId") for c in classrooms if c.get("teacherId")}

    grades = []
    for classroom in classrooms:
        evaluations = db.query_documents_multi(Collections.EVALUATIONS, [
            ("classroomId", "==", classroom["id"]),
            ("status", "==", "evaluated"),
        ])
        grades.extend(e.get("percentage") or 0 for e in evaluations)

    return ProgramStatistics(
        totalClassrooms=len(classrooms),
        activeClassrooms=len([c for c in classrooms if c.get("isActive")]),
        totalStudents=len(student_ids),
        totalTeachers=len(teacher_ids),
        averageGrade=sum(grades) / len(grades) if grades else 0,
    )


def search_programs(query: str, db: DatabaseService) -> List[Program]:
    """Case-insensitive match on name, code or description."""
    needle = query.lower()
    return [
        program for program in get_all_programs(db)
        if needle in program.name.lower()
        or needle in program.code.lower()
        or needle in (program.description or "").lower()
    ]
