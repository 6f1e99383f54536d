from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.errors import InvalidRequest, NotFound
from campushub.models.school import Role, School, SchoolStatus, User
from campushub.schemas.school import SchoolCreate
from campushub.security.auth import hash_password

logger = logging.getLogger(__name__)


def ensure_superadmin(db: Session, email: str, name: str, password: str) -> User:
    """Create the bootstrap superadmin account when it does not exist yet."""

    user = db.scalars(select(User).where(User.email == email)).first()
    if user is not None:
        if user.role is not Role.SUPERADMIN:
            logger.warning("User %s exists but is not superadmin; manual review needed", email)
        return user

    user = User(email=email, name=name, password_hash=hash_password(password), role=Role.SUPERADMIN)
    db.add(user)
    db.commit()
    logger.info("Superadmin account created email=%s", email)
    return user


def create_school_and_admin(db: Session, payload: SchoolCreate, default_password: str) -> School:
    """
    Create a school together with its admin login, in one transaction.

    The admin user is created first (school_id still null) so the school can
    reference it, then linked back to the new school.
    """

    admin_email = str(payload.admin_email).strip().lower()
    if db.scalars(select(User.id).where(User.email == admin_email)).first() is not None:
        raise InvalidRequest(f"An admin user with email {admin_email} already exists.")
    if db.scalars(select(School.id).where(School.admin_email == admin_email)).first() is not None:
        raise InvalidRequest(f"A school is already associated with admin email {admin_email}.")

    admin = User(
        email=admin_email,
        name=payload.admin_name.strip(),
        password_hash=hash_password(default_password),
        role=Role.ADMIN,
    )
    db.add(admin)
    db.flush()

    school = School(
        name=payload.school_name.strip(),
        address=payload.school_address,
        admin_email=admin_email,
        admin_name=payload.admin_name.strip(),
        admin_user_id=admin.id,
        contact_phone=payload.contact_phone,
        status=SchoolStatus.ACTIVE,
    )
    db.add(school)
    db.flush()

    admin.school_id = school.id
    db.commit()
    logger.info("School created school_id=%s admin_user_id=%s", school.id, admin.id)
    return school


def list_schools(db: Session) -> list[School]:
    return list(db.scalars(select(School).order_by(School.name)).all())


def get_school(db: Session, school_id: int) -> School:
    school = db.get(School, school_id)
    if school is None:
        raise NotFound("School not found.")
    return school


def set_school_status(db: Session, school_id: int, status: SchoolStatus) -> School:
    school = get_school(db, school_id)
    school.status = status
    db.commit()
    logger.info("School status changed school_id=%s status=%s", school_id, status.value)
    return school
