from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.school import Student
from campushub.schemas.school import StudentCreate, StudentCreated, StudentOut
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.services import people
from campushub.settings import get_settings

router = APIRouter(prefix="/students", tags=["students"])


@router.get("", response_model=list[StudentOut])
def list_students(class_id: int | None = None, db: Session = Depends(get_db)) -> list[Student]:
    # Row visibility is applied transparently by campushub.db.filters (route scope: students).
    stmt = select(Student).order_by(Student.name, Student.id)
    if class_id is not None:
        stmt = stmt.where(Student.class_id == class_id)
    return list(db.scalars(stmt).all())


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: int, db: Session = Depends(get_db)) -> Student:
    student = db.scalars(select(Student).where(Student.id == student_id)).first()
    if student is None:
        # Students outside the caller's visibility look exactly like missing ones.
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Student not found")
    return student


@router.post("", response_model=StudentCreated)
def create_student(
    payload: StudentCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> StudentCreated:
    school_id = school_for(identity, payload.school_id)
    student = people.create_student(db, school_id, payload, get_settings().default_password)
    return StudentCreated(message="Student created successfully.", student_id=student.id, user_id=student.user_id)
