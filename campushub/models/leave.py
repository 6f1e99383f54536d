from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, Enum, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campushub.db.base import Base
from campushub.models.school import Student


class LeaveStatus(str, enum.Enum):
    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class ApplicantRole(str, enum.Enum):
    SUPERADMIN = "superadmin"
    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"
    GUEST = "guest"


class LeaveApplication(Base):
    __tablename__ = "leave_applications"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    student_profile_id: Mapped[int | None] = mapped_column(ForeignKey("students.id"), nullable=True, index=True)

    student_name: Mapped[str] = mapped_column(String(200), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    medical_notes_data_uri: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Null only for guest submissions.
    applicant_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True, index=True)
    applicant_role: Mapped[ApplicantRole] = mapped_column(
        Enum(ApplicantRole, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    # Set once (AI decision at submission or admin decision), never mutated afterwards.
    status: Mapped[LeaveStatus] = mapped_column(
        Enum(LeaveStatus, values_callable=lambda e: [m.value for m in e]),
        default=LeaveStatus.PENDING,
        nullable=False,
        index=True,
    )
    ai_reasoning: Mapped[str | None] = mapped_column(Text, nullable=True)

    submission_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    student: Mapped[Student | None] = relationship()
