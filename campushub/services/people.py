"""
Teachers, students and classes of a school.

Creating a teacher or student also creates their login (role-bound User with
the configured default password) in the same transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from campushub.errors import InvalidRequest, NotFound
from campushub.models.school import ClassSection, Role, Student, Teacher, User
from campushub.schemas.school import ClassCreate, StudentCreate, TeacherCreate
from campushub.security.auth import hash_password
from campushub.security.identity import Identity
from campushub.security.visibility import Collection, evaluate_visibility

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Roster:
    classes: list[ClassSection]
    students: list[Student]


def _ensure_email_free(db: Session, email: str) -> None:
    if db.scalars(select(User.id).where(User.email == email)).first() is not None:
        raise InvalidRequest(f"A user with email {email} already exists.")


def _get_class(db: Session, school_id: int, class_id: int) -> ClassSection:
    class_section = db.scalars(
        select(ClassSection).where(ClassSection.id == class_id, ClassSection.school_id == school_id)
    ).first()
    if class_section is None:
        raise NotFound("Class not found.")
    return class_section


def _get_teacher(db: Session, school_id: int, teacher_id: int) -> Teacher:
    teacher = db.scalars(select(Teacher).where(Teacher.id == teacher_id, Teacher.school_id == school_id)).first()
    if teacher is None:
        raise NotFound("Teacher not found.")
    return teacher


def create_teacher(db: Session, school_id: int, payload: TeacherCreate, default_password: str) -> Teacher:
    email = str(payload.email).strip().lower()
    _ensure_email_free(db, email)

    user = User(
        email=email,
        name=payload.name.strip(),
        password_hash=hash_password(default_password),
        role=Role.TEACHER,
        school_id=school_id,
    )
    db.add(user)
    db.flush()

    teacher = Teacher(user_id=user.id, school_id=school_id, name=user.name, email=email, subject=payload.subject)
    db.add(teacher)
    db.commit()
    logger.info("Teacher created teacher_id=%s user_id=%s school_id=%s", teacher.id, user.id, school_id)
    return teacher


def list_teachers(db: Session, school_id: int | None) -> list[Teacher]:
    stmt = select(Teacher).order_by(Teacher.name)
    if school_id is not None:
        stmt = stmt.where(Teacher.school_id == school_id)
    return list(db.scalars(stmt).all())


def create_student(db: Session, school_id: int, payload: StudentCreate, default_password: str) -> Student:
    email = str(payload.email).strip().lower()
    _get_class(db, school_id, payload.class_id)

    user_id = None
    if payload.create_login:
        _ensure_email_free(db, email)
        user = User(
            email=email,
            name=payload.name.strip(),
            password_hash=hash_password(default_password),
            role=Role.STUDENT,
            school_id=school_id,
        )
        db.add(user)
        db.flush()
        user_id = user.id

    student = Student(
        user_id=user_id,
        school_id=school_id,
        class_id=payload.class_id,
        name=payload.name.strip(),
        email=email,
        guardian_name=payload.guardian_name,
    )
    db.add(student)
    db.commit()
    logger.info("Student created student_id=%s class_id=%s school_id=%s", student.id, student.class_id, school_id)
    return student


def create_class(db: Session, school_id: int, payload: ClassCreate) -> ClassSection:
    if payload.teacher_id is not None:
        _get_teacher(db, school_id, payload.teacher_id)

    class_section = ClassSection(
        school_id=school_id,
        name=payload.name.strip(),
        division=payload.division.strip(),
        teacher_id=payload.teacher_id,
    )
    db.add(class_section)
    db.commit()
    return class_section


def assign_teacher_to_class(db: Session, school_id: int, class_id: int, teacher_id: int | None) -> ClassSection:
    class_section = _get_class(db, school_id, class_id)
    if teacher_id is not None:
        _get_teacher(db, school_id, teacher_id)

    class_section.teacher_id = teacher_id
    db.commit()
    logger.info("Class teacher updated class_id=%s teacher_id=%s", class_id, teacher_id)
    return class_section


def assign_students_to_class(db: Session, school_id: int, class_id: int, student_ids: list[int]) -> int:
    """Replace the class membership with `student_ids`; returns the new class size."""

    _get_class(db, school_id, class_id)

    wanted = set(student_ids)
    if wanted:
        found = set(
            db.scalars(select(Student.id).where(Student.id.in_(wanted), Student.school_id == school_id)).all()
        )
        missing = wanted - found
        if missing:
            raise NotFound(f"Students not found: {sorted(missing)}")

    db.execute(
        update(Student)
        .where(Student.class_id == class_id, Student.school_id == school_id)
        .values(class_id=None)
        .execution_options(synchronize_session=False)
    )
    if wanted:
        db.execute(
            update(Student)
            .where(Student.id.in_(wanted), Student.school_id == school_id)
            .values(class_id=class_id)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    logger.info("Class students updated class_id=%s size=%d", class_id, len(wanted))
    return len(wanted)


def teacher_roster(db: Session, identity: Identity) -> Roster:
    """Classes a teacher owns and the students enrolled in them."""

    class_filter = evaluate_visibility(db, identity, Collection.CLASSES)
    if class_filter.is_empty:
        return Roster(classes=[], students=[])

    classes = list(db.scalars(class_filter.apply(select(ClassSection).order_by(ClassSection.name))).all())
    student_filter = evaluate_visibility(db, identity, Collection.STUDENTS)
    students = list(db.scalars(student_filter.apply(select(Student).order_by(Student.name))).all())
    return Roster(classes=classes, students=students)
