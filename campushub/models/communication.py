from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import Date, DateTime, Enum, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campushub.db.base import Base
from campushub.models.school import ClassSection, Role


class Audience(str, enum.Enum):
    ALL = "all"
    STUDENTS = "students"
    TEACHERS = "teachers"


class AttendanceStatus(str, enum.Enum):
    PRESENT = "Present"
    ABSENT = "Absent"
    LATE = "Late"
    EXCUSED = "Excused"


class Announcement(Base):
    __tablename__ = "announcements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # Null for platform-wide announcements posted by a superadmin to every school admin.
    school_id: Mapped[int | None] = mapped_column(ForeignKey("schools.id"), nullable=True, index=True)

    title: Mapped[str] = mapped_column(String(200), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    author_name: Mapped[str] = mapped_column(String(200), nullable=False)
    posted_by_user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    posted_by_role: Mapped[Role] = mapped_column(
        Enum(Role, values_callable=lambda e: [m.value for m in e]), nullable=False
    )

    # A class-targeted announcement ignores `target_audience`.
    target_audience: Mapped[Audience] = mapped_column(
        Enum(Audience, values_callable=lambda e: [m.value for m in e]), default=Audience.ALL, nullable=False
    )
    target_class_id: Mapped[int | None] = mapped_column(ForeignKey("classes.id"), nullable=True, index=True)

    posted_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    target_class: Mapped[ClassSection | None] = relationship()


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("student_id", "class_id", "attendance_date"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    school_id: Mapped[int] = mapped_column(ForeignKey("schools.id"), nullable=False, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id"), nullable=False, index=True)
    class_id: Mapped[int] = mapped_column(ForeignKey("classes.id"), nullable=False, index=True)
    attendance_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    status: Mapped[AttendanceStatus] = mapped_column(
        Enum(AttendanceStatus, values_callable=lambda e: [m.value for m in e]), nullable=False
    )
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Null when an admin marked the register.
    taken_by_teacher_id: Mapped[int | None] = mapped_column(ForeignKey("teachers.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
