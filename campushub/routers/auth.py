from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.school import User
from campushub.schemas.auth import LoginRequest, LoginResult, PasswordChange
from campushub.schemas.common import ActionResult
from campushub.schemas.school import UserOut
from campushub.security.auth import authenticate, change_password
from campushub.security.dependencies import get_current_identity
from campushub.security.identity import Identity

router = APIRouter(tags=["auth"])


@router.post("/auth/login", response_model=LoginResult)
def login(payload: LoginRequest, db: Session = Depends(get_db)) -> LoginResult:
    user = authenticate(db, payload.email, payload.password, payload.role)
    return LoginResult(
        message="Login successful!",
        user=UserOut.model_validate(user),
        access_token=str(user.id),
    )


@router.get("/me", response_model=UserOut)
def me(identity: Identity = Depends(get_current_identity), db: Session = Depends(get_db)) -> User:
    return db.get(User, identity.user_id)


@router.post("/me/password", response_model=ActionResult)
def update_password(
    payload: PasswordChange,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    change_password(db, identity.user_id, payload.new_password)
    return ActionResult(message="Password updated successfully.")
