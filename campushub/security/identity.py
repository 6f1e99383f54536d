"""
Identity resolver: opaque user id -> school, role and profile id.

The profile id is the Teacher.id or Student.id linked to the user (distinct from
the login identity). Admins and superadmins have no profile row.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.errors import NotFound, Unlinked
from campushub.models.school import Role, Student, Teacher, User

logger = logging.getLogger(__name__)

_PROFILE_MODELS: dict[Role, type[Teacher] | type[Student]] = {
    Role.TEACHER: Teacher,
    Role.STUDENT: Student,
}


@dataclass(frozen=True)
class Identity:
    user_id: int
    role: Role
    school_id: int | None
    profile_id: int | None = None

    @property
    def is_superadmin(self) -> bool:
        return self.role is Role.SUPERADMIN


def resolve_identity(db: Session, user_id: int) -> Identity:
    """
    Resolve `user_id` to a fully-populated Identity.

    Raises:
        NotFound: no active user, or a teacher/student without a profile row.
        Unlinked: a school-bound role without a school, or a profile in another school.
    """

    user = db.execute(select(User).where(User.id == user_id)).scalar_one_or_none()
    if user is None or not user.is_active:
        raise NotFound(f"User {user_id} not found")

    if user.role is Role.SUPERADMIN:
        return Identity(user_id=user.id, role=user.role, school_id=user.school_id)

    if user.school_id is None:
        logger.warning("User has role requiring a school but no school link user_id=%s role=%s", user.id, user.role.value)
        raise Unlinked(f"User {user.id} is not associated with a school")

    profile_model = _PROFILE_MODELS.get(user.role)
    if profile_model is None:
        return Identity(user_id=user.id, role=user.role, school_id=user.school_id)

    profile = db.execute(
        select(profile_model.id, profile_model.school_id).where(profile_model.user_id == user.id)
    ).first()
    if profile is None:
        raise NotFound(f"{user.role.value.capitalize()} profile not found for user {user.id}")
    if profile.school_id != user.school_id:
        logger.warning(
            "Profile school mismatch user_id=%s user_school=%s profile_school=%s",
            user.id,
            user.school_id,
            profile.school_id,
        )
        raise Unlinked(f"{user.role.value.capitalize()} profile is linked to a different school")

    return Identity(user_id=user.id, role=user.role, school_id=user.school_id, profile_id=profile.id)
