"""
Class attendance registers.

One record per (student, class, day). Saving a register upserts every entry in
a single transaction; a teacher may only mark classes they own.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.errors import InvalidRequest, NotFound, Unauthorized
from campushub.models.communication import AttendanceRecord
from campushub.models.school import ClassSection, Role, Student
from campushub.schemas.communication import AttendanceSave
from campushub.security.identity import Identity

logger = logging.getLogger(__name__)


def _markable_class(db: Session, identity: Identity, class_id: int) -> ClassSection:
    if identity.school_id is None:
        raise Unauthorized("Attendance is recorded within a school.")

    class_section = db.scalars(
        select(ClassSection).where(ClassSection.id == class_id, ClassSection.school_id == identity.school_id)
    ).first()
    if class_section is None:
        raise NotFound("Class not found.")
    if identity.role is Role.TEACHER and class_section.teacher_id != identity.profile_id:
        raise Unauthorized("You can only take attendance for your own classes.")
    return class_section


def save_attendance(db: Session, identity: Identity, payload: AttendanceSave) -> int:
    """Create or update the register of one class for one day; returns the number of records saved."""

    class_section = _markable_class(db, identity, payload.class_id)

    student_ids = [entry.student_id for entry in payload.records]
    if len(set(student_ids)) != len(student_ids):
        raise InvalidRequest("Each student may appear only once in a register.")

    enrolled = set(
        db.scalars(select(Student.id).where(Student.class_id == class_section.id, Student.id.in_(student_ids))).all()
    )
    strangers = sorted(set(student_ids) - enrolled)
    if strangers:
        raise InvalidRequest(f"Students not enrolled in this class: {strangers}")

    existing = {
        record.student_id: record
        for record in db.scalars(
            select(AttendanceRecord).where(
                AttendanceRecord.class_id == class_section.id,
                AttendanceRecord.attendance_date == payload.attendance_date,
                AttendanceRecord.student_id.in_(student_ids),
            )
        ).all()
    }
    taken_by = identity.profile_id if identity.role is Role.TEACHER else None

    for entry in payload.records:
        record = existing.get(entry.student_id)
        if record is None:
            db.add(
                AttendanceRecord(
                    school_id=class_section.school_id,
                    student_id=entry.student_id,
                    class_id=class_section.id,
                    attendance_date=payload.attendance_date,
                    status=entry.status,
                    remarks=entry.remarks,
                    taken_by_teacher_id=taken_by,
                )
            )
        else:
            record.status = entry.status
            record.remarks = entry.remarks
            record.taken_by_teacher_id = taken_by

    db.commit()
    logger.info(
        "Attendance saved class_id=%s date=%s records=%d updated=%d by user_id=%s",
        class_section.id,
        payload.attendance_date,
        len(payload.records),
        len(existing),
        identity.user_id,
    )
    return len(payload.records)
