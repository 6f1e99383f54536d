"""Tests for school onboarding and the people/class services."""
from __future__ import annotations

import pytest

from campushub.errors import InvalidRequest, NotFound
from campushub.models.school import Role, SchoolStatus, Student, User
from campushub.schemas.school import ClassCreate, SchoolCreate, StudentCreate, TeacherCreate
from campushub.security.auth import verify_password
from campushub.security.identity import resolve_identity
from campushub.services import people, schools


def test_ensure_superadmin_is_idempotent(db_session):
    first = schools.ensure_superadmin(db_session, "root@x.example.com", "Root", "pw123456")
    second = schools.ensure_superadmin(db_session, "root@x.example.com", "Root", "other")

    assert first.id == second.id
    assert first.role is Role.SUPERADMIN
    assert db_session.query(User).count() == 1


def test_create_school_links_admin_both_ways(db_session, world):
    school = schools.create_school_and_admin(
        db_session,
        SchoolCreate(school_name="School C", admin_name="Carol", admin_email="Carol@C.example.com"),
        "password",
    )

    admin = db_session.get(User, school.admin_user_id)
    assert admin.school_id == school.id
    assert admin.role is Role.ADMIN
    assert admin.email == "carol@c.example.com"
    assert verify_password("password", admin.password_hash)
    assert school.status is SchoolStatus.ACTIVE


def test_create_school_duplicate_admin_email(db_session, world):
    with pytest.raises(InvalidRequest):
        schools.create_school_and_admin(
            db_session, SchoolCreate(school_name="Again", admin_name="A", admin_email="admin@a.example.com"), "password"
        )


def test_set_school_status(db_session, world):
    school = schools.set_school_status(db_session, world.school_b, SchoolStatus.INACTIVE)

    assert school.status is SchoolStatus.INACTIVE


def test_get_missing_school(db_session, world):
    with pytest.raises(NotFound):
        schools.get_school(db_session, 999)


def test_create_teacher_creates_login(db_session, world):
    teacher = people.create_teacher(
        db_session, world.school_a, TeacherCreate(name="Tina", email="tina@a.example.com", subject="Art"), "password"
    )

    identity = resolve_identity(db_session, teacher.user_id)
    assert identity.role is Role.TEACHER
    assert identity.profile_id == teacher.id


def test_create_teacher_duplicate_email(db_session, world):
    with pytest.raises(InvalidRequest):
        people.create_teacher(db_session, world.school_a, TeacherCreate(name="Dup", email="t1@a.example.com"), "password")


def test_create_student_without_login(db_session, world):
    student = people.create_student(
        db_session,
        world.school_a,
        StudentCreate(name="Nolan", email="nolan@a.example.com", class_id=world.class_a2, create_login=False),
        "password",
    )

    assert student.user_id is None
    assert student.class_id == world.class_a2


def test_create_student_in_other_school_class(db_session, world):
    with pytest.raises(NotFound):
        people.create_student(
            db_session,
            world.school_b,
            StudentCreate(name="X", email="x@b.example.com", class_id=world.class_a1),
            "password",
        )


def test_create_class_with_teacher(db_session, world):
    class_section = people.create_class(
        db_session, world.school_a, ClassCreate(name="Grade 4", division="C", teacher_id=world.teacher_with_class_profile)
    )

    assert class_section.teacher_id == world.teacher_with_class_profile


def test_assign_students_replaces_membership(db_session, world):
    size = people.assign_students_to_class(db_session, world.school_a, world.class_a1, [world.student_a3])

    assert size == 1
    db_session.expire_all()
    assert db_session.get(Student, world.student_a3).class_id == world.class_a1
    assert db_session.get(Student, world.student_a1).class_id is None


def test_assign_students_rejects_unknown_ids(db_session, world):
    with pytest.raises(NotFound):
        people.assign_students_to_class(db_session, world.school_a, world.class_a1, [world.student_b1])


def test_teacher_roster(db_session, world):
    identity = resolve_identity(db_session, world.teacher_with_class)

    roster = people.teacher_roster(db_session, identity)

    assert [c.id for c in roster.classes] == [world.class_a1]
    assert {s.id for s in roster.students} == {world.student_a1, world.student_a2}


def test_teacher_roster_empty_for_teacher_without_classes(db_session, world):
    identity = resolve_identity(db_session, world.teacher_no_class)

    roster = people.teacher_roster(db_session, identity)

    assert roster.classes == []
    assert roster.students == []
