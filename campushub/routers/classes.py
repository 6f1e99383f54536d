from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.school import ClassSection
from campushub.schemas.common import ActionResult
from campushub.schemas.school import ClassCreate, ClassCreated, ClassOut, ClassStudentsAssign, ClassTeacherAssign
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.services import people

router = APIRouter(prefix="/classes", tags=["classes"])


@router.get("", response_model=list[ClassOut])
def list_classes(db: Session = Depends(get_db)) -> list[ClassSection]:
    return list(db.scalars(select(ClassSection).order_by(ClassSection.name, ClassSection.division)).all())


@router.post("", response_model=ClassCreated)
def create_class(
    payload: ClassCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ClassCreated:
    class_section = people.create_class(db, school_for(identity, payload.school_id), payload)
    return ClassCreated(message="Class created successfully.", class_id=class_section.id)


@router.post("/{class_id}/teacher", response_model=ActionResult)
def assign_teacher(
    class_id: int,
    payload: ClassTeacherAssign,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    people.assign_teacher_to_class(db, school_for(identity, None), class_id, payload.teacher_id)
    return ActionResult(message="Teacher assignment updated.")


@router.post("/{class_id}/students", response_model=ActionResult)
def assign_students(
    class_id: int,
    payload: ClassStudentsAssign,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    size = people.assign_students_to_class(db, school_for(identity, None), class_id, payload.student_ids)
    return ActionResult(message=f"Student assignments updated ({size} in class).")
