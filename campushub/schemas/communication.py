from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field

from campushub.models.communication import AttendanceStatus, Audience
from campushub.models.school import Role
from campushub.schemas.common import ActionResult


class AnnouncementOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int | None
    title: str
    content: str
    author_name: str
    posted_by_user_id: int
    posted_by_role: Role
    target_audience: Audience
    target_class_id: int | None
    posted_at: datetime


class AnnouncementCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    target_audience: Audience = Audience.ALL
    target_class_id: int | None = None


class AnnouncementPosted(ActionResult):
    announcement: AnnouncementOut


class AttendanceEntry(BaseModel):
    student_id: int
    status: AttendanceStatus
    remarks: str | None = None


class AttendanceSave(BaseModel):
    class_id: int
    attendance_date: date
    records: list[AttendanceEntry] = Field(min_length=1)


class AttendanceOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    student_id: int
    class_id: int
    attendance_date: date
    status: AttendanceStatus
    remarks: str | None
    taken_by_teacher_id: int | None


class AttendanceSaved(ActionResult):
    saved_count: int
