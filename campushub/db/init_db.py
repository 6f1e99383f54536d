from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.base import Base
from campushub.db.session import SessionLocal, engine
from campushub.models import communication as _communication  # noqa: F401  (register tables)
from campushub.models import fees as _fees  # noqa: F401  (register tables)
from campushub.models import leave as _leave  # noqa: F401  (register tables)
from campushub.models.fees import Concession, FeeCategory, PaymentStatus, StudentFeePayment
from campushub.models.school import ClassSection, Role, School, Student, Teacher, User
from campushub.security.auth import hash_password
from campushub.services.schools import ensure_superadmin
from campushub.settings import get_settings


def init_db() -> None:
    """
    Create tables, the bootstrap superadmin and a small demo school.

    The demo data is deterministic so the role-based visibility rules can be
    tried without additional setup (log in with the default password).
    """

    Base.metadata.create_all(bind=engine)

    settings = get_settings()
    with SessionLocal() as db:
        ensure_superadmin(db, settings.superadmin_email, settings.superadmin_name, settings.default_password)
        if _has_seed_data(db):
            return
        _seed(db, settings.default_password)


def _has_seed_data(db: Session) -> bool:
    return db.execute(select(School.id).limit(1)).first() is not None


def _seed(db: Session, password: str) -> None:
    password_hash = hash_password(password)

    # School + admin
    admin = User(email="admin@greenfield.example.com", name="Grace Admin", password_hash=password_hash, role=Role.ADMIN)
    db.add(admin)
    db.flush()

    school = School(
        name="Greenfield Public School",
        address="12 Orchard Road",
        admin_email=admin.email,
        admin_name=admin.name,
        admin_user_id=admin.id,
    )
    db.add(school)
    db.flush()
    admin.school_id = school.id

    # Teachers: one with a class, one without (sees nothing)
    t_user1 = User(
        email="tom.teacher@greenfield.example.com",
        name="Tom Teacher",
        password_hash=password_hash,
        role=Role.TEACHER,
        school_id=school.id,
    )
    t_user2 = User(
        email="nina.new@greenfield.example.com",
        name="Nina New",
        password_hash=password_hash,
        role=Role.TEACHER,
        school_id=school.id,
    )
    db.add_all([t_user1, t_user2])
    db.flush()

    tom = Teacher(user_id=t_user1.id, school_id=school.id, name=t_user1.name, email=t_user1.email, subject="Mathematics")
    nina = Teacher(user_id=t_user2.id, school_id=school.id, name=t_user2.name, email=t_user2.email, subject="Science")
    db.add_all([tom, nina])
    db.flush()

    # Classes
    c5a = ClassSection(school_id=school.id, teacher_id=tom.id, name="Grade 5", division="A")
    c5b = ClassSection(school_id=school.id, teacher_id=None, name="Grade 5", division="B")
    db.add_all([c5a, c5b])
    db.flush()

    # Students (one with a login)
    s_user = User(
        email="sam.student@greenfield.example.com",
        name="Sam Student",
        password_hash=password_hash,
        role=Role.STUDENT,
        school_id=school.id,
    )
    db.add(s_user)
    db.flush()

    sam = Student(
        user_id=s_user.id,
        school_id=school.id,
        class_id=c5a.id,
        name=s_user.name,
        email=s_user.email,
        guardian_name="Sally Student",
    )
    bea = Student(
        school_id=school.id,
        class_id=c5b.id,
        name="Bea Other",
        email="bea.other@greenfield.example.com",
        guardian_name="Bob Other",
    )
    db.add_all([sam, bea])
    db.flush()

    # Fees
    tuition = FeeCategory(school_id=school.id, name="Tuition", description="Term tuition", amount=Decimal("1000.00"))
    db.add(tuition)
    db.add(Concession(school_id=school.id, title="Sibling discount", description="Second child in the school"))
    db.flush()

    db.add_all(
        [
            StudentFeePayment(
                school_id=school.id,
                student_id=sam.id,
                fee_category_id=tuition.id,
                assigned_amount=Decimal("1000.00"),
                paid_amount=Decimal("400.00"),
                status=PaymentStatus.PARTIALLY_PAID,
                due_date=date(2026, 7, 31),
            ),
            StudentFeePayment(
                school_id=school.id,
                student_id=bea.id,
                fee_category_id=tuition.id,
                assigned_amount=Decimal("1000.00"),
                paid_amount=Decimal("0.00"),
                status=PaymentStatus.PENDING,
                due_date=date(2026, 7, 31),
            ),
        ]
    )

    db.commit()
