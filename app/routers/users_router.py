# /app/routers/users_router.py

from fastapi import APIRouter, Depends, HTTPException, status, Response
from typing import List, Optional

from ..models import user_model
from ..services import user_service, database_service
from ..services.database_service import DocumentNotFoundError

router = APIRouter()

# --- USER COLLECTION ENDPOINTS (/api/users) ---

@router.get("", response_model=List[user_model.User], summary="List Users")
def list_users(role: Optional[user_model.UserRole] = None, q: Optional[str] = None, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    if q:
        return user_service.search_users(q, db)
    if role:
        return user_service.get_users_by_role(role, db)
    return user_service.get_all_users(db)

@router.post("", response_model=user_model.User, status_code=status.HTTP_201_CREATED, summary="Create a User")
def create_user(user_create: user_model.UserCreate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return user_service.create_user(user_create, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))

@router.get("/statistics", response_model=user_model.UserStatistics, summary="Get User Counts")
def get_statistics(db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return user_service.get_user_statistics(db)

@router.get("/teachers", response_model=List[user_model.User], summary="List Teachers")
def list_teachers(db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return user_service.get_teachers(db)

@router.get("/students", response_model=List[user_model.User], summary="List Students")
def list_students(db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    return user_service.get_students(db)

# --- INDIVIDUAL USER ENDPOINTS (/api/users/{user_id}) ---

@router.get("/{user_id}", response_model=user_model.User, summary="Get a Single User")
def get_user(user_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    user = user_service.get_user_by_id(user_id, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")
    return user

@router.put("/{user_id}", response_model=user_model.User, summary="Update a User")
def update_user(user_id: str, user_update: user_model.UserUpdate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return user_service.update_user(user_id, user_update, db)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

@router.patch("/{user_id}/role", response_model=user_model.User, summary="Change a User's Role")
def update_role(user_id: str, role_update: user_model.UserRoleUpdate, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return user_service.update_user_role(user_id, role_update.role, db, is_teacher=role_update.isTeacher)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")

@router.post("/{user_id}/toggle-teacher", response_model=user_model.User, summary="Toggle the Teacher Flag")
def toggle_teacher(user_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        return user_service.toggle_teacher_status(user_id, db)
    except DocumentNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")

@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete a User")
def delete_user(user_id: str, db: database_service.DatabaseService = Depends(database_service.get_db_service)):
    try:
        deleted = user_service.delete_user(user_id, db)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID {user_id} not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
