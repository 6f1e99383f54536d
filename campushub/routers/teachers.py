from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.school import Role, Teacher
from campushub.schemas.school import ClassOut, StudentOut, TeacherCreate, TeacherCreated, TeacherOut, TeacherRoster
from campushub.security.decorators import require_roles
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.services import people
from campushub.settings import get_settings

router = APIRouter(tags=["teachers"])


@router.get("/teachers", response_model=list[TeacherOut])
def list_teachers(
    school_id: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[Teacher]:
    target = school_id if identity.is_superadmin else identity.school_id
    return people.list_teachers(db, target)


@router.post("/teachers", response_model=TeacherCreated)
def create_teacher(
    payload: TeacherCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> TeacherCreated:
    school_id = school_for(identity, payload.school_id)
    teacher = people.create_teacher(db, school_id, payload, get_settings().default_password)
    return TeacherCreated(message="Teacher created successfully.", teacher_id=teacher.id, user_id=teacher.user_id)


@router.get("/teacher/my-students", response_model=TeacherRoster)
@require_roles([Role.TEACHER])
def my_students(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)) -> TeacherRoster:
    roster = people.teacher_roster(db, identity)
    return TeacherRoster(
        classes=[ClassOut.model_validate(c) for c in roster.classes],
        students=[StudentOut.model_validate(s) for s in roster.students],
    )
