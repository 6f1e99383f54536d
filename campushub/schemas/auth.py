from __future__ import annotations

from pydantic import BaseModel

from campushub.models.school import Role
from campushub.schemas.common import ActionResult
from campushub.schemas.school import UserOut


class LoginRequest(BaseModel):
    email: str
    password: str
    role: Role | None = None


class LoginResult(ActionResult):
    user: UserOut
    access_token: str
    token_type: str = "bearer"


class PasswordChange(BaseModel):
    new_password: str
