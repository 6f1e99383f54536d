from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from campushub.models.school import Role, SchoolStatus
from campushub.schemas.common import ActionResult


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    name: str
    role: Role
    school_id: int | None
    is_active: bool


class SchoolOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    address: str | None
    admin_email: str
    admin_name: str
    admin_user_id: int | None
    status: SchoolStatus
    contact_phone: str | None
    created_at: datetime


class SchoolCreate(BaseModel):
    school_name: str = Field(min_length=1, max_length=200)
    school_address: str | None = None
    admin_name: str = Field(min_length=1, max_length=200)
    admin_email: EmailStr
    contact_phone: str | None = None


class SchoolCreated(ActionResult):
    school_id: int
    admin_user_id: int


class SchoolStatusUpdate(BaseModel):
    status: SchoolStatus


class TeacherOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    school_id: int
    name: str
    email: str
    subject: str | None


class TeacherCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    subject: str | None = None
    school_id: int | None = None


class TeacherCreated(ActionResult):
    teacher_id: int
    user_id: int


class StudentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int | None
    school_id: int
    class_id: int | None
    name: str
    email: str
    guardian_name: str | None


class StudentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    email: EmailStr
    class_id: int
    guardian_name: str | None = None
    create_login: bool = True
    school_id: int | None = None


class StudentCreated(ActionResult):
    student_id: int
    user_id: int | None


class ClassOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    school_id: int
    teacher_id: int | None
    name: str
    division: str


class ClassCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    division: str = Field(min_length=1, max_length=20)
    teacher_id: int | None = None
    school_id: int | None = None


class ClassCreated(ActionResult):
    class_id: int


class ClassTeacherAssign(BaseModel):
    teacher_id: int | None = None


class ClassStudentsAssign(BaseModel):
    student_ids: list[int] = Field(default_factory=list)


class TeacherRoster(BaseModel):
    classes: list[ClassOut]
    students: list[StudentOut]
