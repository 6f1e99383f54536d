from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.school import School
from campushub.schemas.common import ActionResult
from campushub.schemas.school import SchoolCreate, SchoolCreated, SchoolOut, SchoolStatusUpdate
from campushub.services import schools
from campushub.settings import get_settings

router = APIRouter(prefix="/schools", tags=["schools"])


@router.get("", response_model=list[SchoolOut])
def list_schools(db: Session = Depends(get_db)) -> list[School]:
    return schools.list_schools(db)


@router.post("", response_model=SchoolCreated)
def create_school(payload: SchoolCreate, db: Session = Depends(get_db)) -> SchoolCreated:
    school = schools.create_school_and_admin(db, payload, get_settings().default_password)
    return SchoolCreated(
        message=f"School {school.name!r} and admin account created.",
        school_id=school.id,
        admin_user_id=school.admin_user_id,
    )


@router.get("/{school_id}", response_model=SchoolOut)
def get_school(school_id: int, db: Session = Depends(get_db)) -> School:
    return schools.get_school(db, school_id)


@router.post("/{school_id}/status", response_model=ActionResult)
def set_school_status(school_id: int, payload: SchoolStatusUpdate, db: Session = Depends(get_db)) -> ActionResult:
    school = schools.set_school_status(db, school_id, payload.status)
    return ActionResult(message=f"School status set to {school.status.value}.")
