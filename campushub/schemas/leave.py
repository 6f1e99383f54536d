from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from campushub.models.leave import ApplicantRole, LeaveStatus
from campushub.schemas.common import ActionResult


class LeaveApplicationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    student_profile_id: int | None
    student_name: str
    reason: str
    applicant_user_id: int | None
    applicant_role: ApplicantRole
    status: LeaveStatus
    ai_reasoning: str | None
    submission_date: datetime


class LeaveApplicationCreate(BaseModel):
    reason: str = Field(min_length=1)
    student_profile_id: int | None = None
    student_name: str | None = None
    medical_notes_data_uri: str | None = None


class GuestLeaveApplicationCreate(BaseModel):
    school_id: int
    student_name: str = Field(min_length=1, max_length=200)
    reason: str = Field(min_length=1)
    medical_notes_data_uri: str | None = None


class LeaveSubmitted(ActionResult):
    application: LeaveApplicationOut


class LeaveDecision(BaseModel):
    status: LeaveStatus
