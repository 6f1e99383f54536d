from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.communication import AttendanceRecord
from campushub.schemas.communication import AttendanceOut, AttendanceSave, AttendanceSaved
from campushub.security.dependencies import get_current_identity
from campushub.security.identity import Identity
from campushub.services import attendance

router = APIRouter(prefix="/attendance", tags=["attendance"])


@router.get("", response_model=list[AttendanceOut])
def list_attendance(
    class_id: int | None = None,
    student_id: int | None = None,
    on: date | None = None,
    db: Session = Depends(get_db),
) -> list[AttendanceRecord]:
    # Scoped by the route's YAML rule: a student sees their own history, a teacher their classes' students.
    stmt = select(AttendanceRecord).order_by(AttendanceRecord.attendance_date.desc(), AttendanceRecord.student_id)
    if class_id is not None:
        stmt = stmt.where(AttendanceRecord.class_id == class_id)
    if student_id is not None:
        stmt = stmt.where(AttendanceRecord.student_id == student_id)
    if on is not None:
        stmt = stmt.where(AttendanceRecord.attendance_date == on)
    return list(db.scalars(stmt).all())


@router.post("", response_model=AttendanceSaved)
def save_register(
    payload: AttendanceSave,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> AttendanceSaved:
    saved = attendance.save_attendance(db, identity, payload)
    return AttendanceSaved(message=f"Successfully saved {saved} attendance records.", saved_count=saved)
