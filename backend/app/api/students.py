"""
Student and guardian management API endpoints.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from pydantic import BaseModel, EmailStr
from typing import Optional, List
from datetime import date, datetime
from app.core.database import get_db
from app.core.auth import get_current_principal
from app.core.errors import AccessErrorCode, raise_for_reason
from app.models.profile import Profile
from app.services.access_policy import is_guardian_of
from app.services.guardian import (
    register_student,
    add_guardian,
    remove_guardian,
    set_primary_guardian,
    list_guardians,
    list_students_for_guardian,
)

router = APIRouter()


class RegisterStudentRequest(BaseModel):
    name: str
    birth_date: Optional[date] = None
    graduation_date: Optional[date] = None
    school_id: Optional[int] = None


class AddGuardianRequest(BaseModel):
    email: EmailStr


class StudentResponse(BaseModel):
    id: int
    student_id: str
    name: str
    birth_date: Optional[date]
    graduation_date: Optional[date]
    school_id: Optional[int]
    is_primary: bool  # Whether the current guardian is primary for this student

    class Config:
        from_attributes = True


class GuardianResponse(BaseModel):
    id: int
    student_id: int
    guardian_id: int
    email: str
    name: Optional[str]
    is_primary: bool
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class GuardianMutationResponse(BaseModel):
    message: Optional[str]
    guardian: Optional[GuardianResponse] = None
    guardians: List[GuardianResponse]


def _mutation_response(result) -> GuardianMutationResponse:
    if not result.success:
        raise_for_reason(result.reason, result.message)
    return GuardianMutationResponse(
        message=result.message,
        guardian=GuardianResponse.model_validate(result.guardian) if result.guardian else None,
        guardians=[GuardianResponse.model_validate(g) for g in result.guardians]
    )


@router.post("/students", response_model=StudentResponse, status_code=status.HTTP_201_CREATED)
async def create_student(
    request: RegisterStudentRequest,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Register a student; the caller becomes its primary guardian."""
    result = register_student(
        db,
        creator_id=current_user.id,
        name=request.name,
        birth_date=request.birth_date,
        graduation_date=request.graduation_date,
        school_id=request.school_id
    )
    if not result.success:
        raise_for_reason(result.reason, result.message)
    return StudentResponse.model_validate(result.student)


@router.get("/students", response_model=List[StudentResponse])
async def list_my_students(
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """List students the current guardian has access to."""
    students = list_students_for_guardian(db, current_user.id)
    return [StudentResponse.model_validate(s) for s in students]


@router.get("/students/{student_id}/guardians", response_model=List[GuardianResponse])
async def get_student_guardians(
    student_id: int,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """List a student's guardians, primary first."""
    if not is_guardian_of(db, current_user.id, student_id):
        raise_for_reason(AccessErrorCode.UNAUTHORIZED)
    return [GuardianResponse.model_validate(g) for g in list_guardians(db, student_id)]


@router.post(
    "/students/{student_id}/guardians",
    response_model=GuardianMutationResponse,
    status_code=status.HTTP_201_CREATED
)
async def add_student_guardian(
    student_id: int,
    request: AddGuardianRequest,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Link an existing guardian account to a student by email."""
    result = add_guardian(db, student_id, request.email, requested_by=current_user.id)
    return _mutation_response(result)


@router.delete("/students/{student_id}/guardians/{guardian_id}", response_model=GuardianMutationResponse)
async def remove_student_guardian(
    student_id: int,
    guardian_id: int,
    new_primary_id: Optional[int] = None,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """
    Remove a guardian from a student.

    Removing the primary guardian requires new_primary_id naming another
    current guardian.
    """
    result = remove_guardian(
        db,
        student_id,
        guardian_id,
        requested_by=current_user.id,
        new_primary_id=new_primary_id
    )
    return _mutation_response(result)


@router.put("/students/{student_id}/guardians/{guardian_id}/primary", response_model=GuardianMutationResponse)
async def make_primary_guardian(
    student_id: int,
    guardian_id: int,
    current_user: Profile = Depends(get_current_principal),
    db: Session = Depends(get_db)
):
    """Make a guardian the student's primary guardian."""
    result = set_primary_guardian(db, student_id, guardian_id, requested_by=current_user.id)
    return _mutation_response(result)
