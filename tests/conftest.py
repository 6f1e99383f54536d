"""
Pytest fixtures for the test suite.

Each test gets a fresh in-memory SQLite engine (StaticPool, so every session
and the API client share one connection) and a small two-school world.
"""
from __future__ import annotations

import os

# Must be set before campushub.settings is imported anywhere.
os.environ.setdefault("CAMPUSHUB_DB_URL", "sqlite://")

from dataclasses import dataclass
from decimal import Decimal
from pathlib import Path

import pytest
from fastapi import Request
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from campushub.db import filters as _filters  # noqa: F401  (register SQLAlchemy filters)
from campushub.db.base import Base
from campushub.models import communication as _communication  # noqa: F401  (register tables)
from campushub.models.fees import (
    Concession,
    FeeCategory,
    PaymentStatus,
    StudentFeeConcession,
    StudentFeePayment,
)
from campushub.models.leave import ApplicantRole, LeaveApplication, LeaveStatus
from campushub.models.school import ClassSection, Role, School, Student, Teacher, User
from campushub.security.auth import hash_password

CONFIG_PATH = Path(__file__).resolve().parents[1] / "config" / "security_config.yaml"
PASSWORD = "password"


@pytest.fixture
def engine():
    """Create a fresh in-memory SQLite engine for each test."""
    return create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )


@pytest.fixture
def tables(engine):
    """Create all ORM tables on the test engine."""
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture
def session_factory(tables):
    return sessionmaker(bind=tables, autocommit=False, autoflush=False, class_=Session)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@dataclass
class World:
    """Ids of the seeded rows, so tests can reload them from any session."""

    superadmin: int
    school_a: int
    school_b: int
    admin_a: int
    admin_b: int
    # Teacher users
    teacher_with_class: int
    teacher_empty_class: int
    teacher_no_class: int
    # Profiles
    teacher_with_class_profile: int
    class_a1: int
    class_a2: int
    class_a3: int
    student_a1: int
    student_a1_user: int
    student_a2: int
    student_a3: int
    student_b1: int
    student_b1_user: int
    # Fees
    category_a: int
    concession_a: int
    concession_b: int
    fee_a1: int
    fee_a2: int
    fee_b1: int
    applied_a1: int
    # Leave
    leave_a1: int
    leave_a2: int
    leave_a3: int
    leave_guest_a: int
    leave_b1: int


def _user(db: Session, email: str, role: Role, school_id: int | None, password_hash: str) -> User:
    user = User(email=email, name=email.split("@")[0], password_hash=password_hash, role=role, school_id=school_id)
    db.add(user)
    db.flush()
    return user


def _leave(db: Session, school_id: int, student: Student | None, name: str, role: ApplicantRole, user_id: int | None):
    application = LeaveApplication(
        school_id=school_id,
        student_profile_id=student.id if student is not None else None,
        student_name=name,
        reason="Family wedding",
        applicant_user_id=user_id,
        applicant_role=role,
        status=LeaveStatus.PENDING,
    )
    db.add(application)
    db.flush()
    return application


@pytest.fixture
def world(db_session) -> World:
    """
    School A:
      - class A1 (teacher T1) with students a1 (has login) and a2
      - class A2 (teacher T2) with no students
      - class A3 (no teacher) with student a3
      - teacher T3 owns no class
    School B:
      - student b1 (has login), no classes owned by anyone
    """

    db = db_session
    pw = hash_password(PASSWORD)

    superadmin = _user(db, "root@campushub.example.com", Role.SUPERADMIN, None, pw)

    schools = []
    for code in ("a", "b"):
        admin = _user(db, f"admin@{code}.example.com", Role.ADMIN, None, pw)
        school = School(
            name=f"School {code.upper()}",
            admin_email=admin.email,
            admin_name=admin.name,
            admin_user_id=admin.id,
        )
        db.add(school)
        db.flush()
        admin.school_id = school.id
        schools.append((school, admin))
    (school_a, admin_a), (school_b, admin_b) = schools

    t1_user = _user(db, "t1@a.example.com", Role.TEACHER, school_a.id, pw)
    t2_user = _user(db, "t2@a.example.com", Role.TEACHER, school_a.id, pw)
    t3_user = _user(db, "t3@a.example.com", Role.TEACHER, school_a.id, pw)
    t1, t2, t3 = (
        Teacher(user_id=u.id, school_id=school_a.id, name=u.name, email=u.email) for u in (t1_user, t2_user, t3_user)
    )
    db.add_all([t1, t2, t3])
    db.flush()

    class_a1 = ClassSection(school_id=school_a.id, teacher_id=t1.id, name="Grade 1", division="A")
    class_a2 = ClassSection(school_id=school_a.id, teacher_id=t2.id, name="Grade 2", division="A")
    class_a3 = ClassSection(school_id=school_a.id, teacher_id=None, name="Grade 3", division="A")
    class_b1 = ClassSection(school_id=school_b.id, teacher_id=None, name="Grade 1", division="B")
    db.add_all([class_a1, class_a2, class_a3, class_b1])
    db.flush()

    a1_user = _user(db, "a1@a.example.com", Role.STUDENT, school_a.id, pw)
    b1_user = _user(db, "b1@b.example.com", Role.STUDENT, school_b.id, pw)
    student_a1 = Student(user_id=a1_user.id, school_id=school_a.id, class_id=class_a1.id, name="Alice", email=a1_user.email)
    student_a2 = Student(school_id=school_a.id, class_id=class_a1.id, name="Arthur", email="a2@a.example.com")
    student_a3 = Student(school_id=school_a.id, class_id=class_a3.id, name="Amy", email="a3@a.example.com")
    student_b1 = Student(user_id=b1_user.id, school_id=school_b.id, class_id=class_b1.id, name="Bob", email=b1_user.email)
    db.add_all([student_a1, student_a2, student_a3, student_b1])
    db.flush()

    category_a = FeeCategory(school_id=school_a.id, name="Tuition", amount=Decimal("1000.00"))
    category_b = FeeCategory(school_id=school_b.id, name="Tuition", amount=Decimal("1000.00"))
    concession_a = Concession(school_id=school_a.id, title="Sibling discount")
    concession_b = Concession(school_id=school_b.id, title="Merit scholarship")
    db.add_all([category_a, category_b, concession_a, concession_b])
    db.flush()

    def fee(student: Student, category: FeeCategory, paid: str, status: PaymentStatus) -> StudentFeePayment:
        row = StudentFeePayment(
            school_id=student.school_id,
            student_id=student.id,
            fee_category_id=category.id,
            assigned_amount=Decimal("1000.00"),
            paid_amount=Decimal(paid),
            status=status,
        )
        db.add(row)
        db.flush()
        return row

    fee_a1 = fee(student_a1, category_a, "400.00", PaymentStatus.PARTIALLY_PAID)
    fee_a2 = fee(student_a2, category_a, "0.00", PaymentStatus.PENDING)
    fee_b1 = fee(student_b1, category_b, "0.00", PaymentStatus.PENDING)

    applied_a1 = StudentFeeConcession(
        school_id=school_a.id,
        student_id=student_a1.id,
        student_fee_payment_id=fee_a1.id,
        concession_id=concession_a.id,
        concession_amount=Decimal("100.00"),
        applied_by_user_id=admin_a.id,
    )
    db.add(applied_a1)
    db.flush()

    leave_a1 = _leave(db, school_a.id, student_a1, "Alice", ApplicantRole.STUDENT, a1_user.id)
    leave_a2 = _leave(db, school_a.id, student_a2, "Arthur", ApplicantRole.TEACHER, t1_user.id)
    leave_a3 = _leave(db, school_a.id, student_a3, "Amy", ApplicantRole.ADMIN, admin_a.id)
    leave_guest_a = _leave(db, school_a.id, None, "Guest Kid", ApplicantRole.GUEST, None)
    leave_b1 = _leave(db, school_b.id, student_b1, "Bob", ApplicantRole.STUDENT, b1_user.id)

    db.commit()

    return World(
        superadmin=superadmin.id,
        school_a=school_a.id,
        school_b=school_b.id,
        admin_a=admin_a.id,
        admin_b=admin_b.id,
        teacher_with_class=t1_user.id,
        teacher_empty_class=t2_user.id,
        teacher_no_class=t3_user.id,
        teacher_with_class_profile=t1.id,
        class_a1=class_a1.id,
        class_a2=class_a2.id,
        class_a3=class_a3.id,
        student_a1=student_a1.id,
        student_a1_user=a1_user.id,
        student_a2=student_a2.id,
        student_a3=student_a3.id,
        student_b1=student_b1.id,
        student_b1_user=b1_user.id,
        category_a=category_a.id,
        concession_a=concession_a.id,
        concession_b=concession_b.id,
        fee_a1=fee_a1.id,
        fee_a2=fee_a2.id,
        fee_b1=fee_b1.id,
        applied_a1=applied_a1.id,
        leave_a1=leave_a1.id,
        leave_a2=leave_a2.id,
        leave_a3=leave_a3.id,
        leave_guest_a=leave_guest_a.id,
        leave_b1=leave_b1.id,
    )


@pytest.fixture
def client(session_factory, world):
    """
    API client wired to the test database.

    The app lifespan (which would create the file database and seed it) is not
    run; the security config is loaded directly instead.
    """
    from campushub.db.session import attach_authz, get_db, get_security_db
    from campushub.main import create_app
    from campushub.routers.leave import get_evaluator, get_notifier
    from campushub.security.config import load_security_config
    from campushub.services.email import EmailSender
    from campushub.services.leave_evaluator import PolicyLeaveEvaluator

    app = create_app()
    app.state.security_config = load_security_config(CONFIG_PATH)

    def override_get_db(request: Request):
        db = attach_authz(session_factory(), request)
        try:
            yield db
        finally:
            db.close()

    def override_get_security_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_security_db] = override_get_security_db
    app.dependency_overrides[get_evaluator] = lambda: PolicyLeaveEvaluator()
    app.dependency_overrides[get_notifier] = lambda: EmailSender(
        api_url="http://email.test/emails", api_key=None, from_address="noreply@campushub.example.com"
    )
    return TestClient(app)
