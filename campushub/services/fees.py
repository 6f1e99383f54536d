"""
Fee records, payments and concessions.

Every credit against a fee record (payment or concession) goes through the same
guard: the amount must be positive and must not exceed the outstanding balance.
The guard runs twice: once against the loaded row, for a precise error, and
again inside the UPDATE itself (`paid_amount + :amount <= assigned_amount`), so
two concurrent credits can never both land on a stale `paid_amount`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
import logging

from sqlalchemy import case, delete, func, select, update
from sqlalchemy.orm import Session

from campushub.errors import ConflictingWrite, InvalidAmount, InvalidRequest, NotFound
from campushub.models.fees import (
    Concession,
    FeeCategory,
    FeeTypeGroup,
    PaymentStatus,
    StudentFeeConcession,
    StudentFeePayment,
)
from campushub.models.school import Student
from campushub.schemas.fees import (
    ClassFeeAssign,
    ConcessionCreate,
    FeeAssign,
    FeeCategoryCreate,
    FeeTypeGroupWrite,
)
from campushub.security.identity import Identity

logger = logging.getLogger(__name__)


# ---- Mutation guard ------------------------------------------------------------------


@dataclass(frozen=True)
class FeeUpdate:
    paid_amount: Decimal
    status: PaymentStatus


def _as_decimal(value: Decimal | int | float | str) -> Decimal:
    return value if isinstance(value, Decimal) else Decimal(str(value))


def check_credit(assigned_amount, paid_amount, proposed_amount, *, label: str = "Amount") -> FeeUpdate:
    """
    Validate a credit (payment or concession) against a fee record.

    Raises InvalidAmount when the credit is not positive or exceeds
    `assigned_amount - paid_amount`.
    """

    assigned = _as_decimal(assigned_amount)
    paid = _as_decimal(paid_amount)
    proposed = _as_decimal(proposed_amount)

    if proposed <= 0:
        raise InvalidAmount(f"{label} must be greater than zero.")
    if proposed > assigned - paid:
        raise InvalidAmount(f"{label} cannot be greater than the outstanding amount.")

    new_paid = paid + proposed
    status = PaymentStatus.PAID if new_paid >= assigned else PaymentStatus.PARTIALLY_PAID
    return FeeUpdate(paid_amount=new_paid, status=status)


def check_concession(assigned_amount, paid_amount, proposed_amount) -> FeeUpdate:
    return check_credit(assigned_amount, paid_amount, proposed_amount, label="Concession")


def _load_fee_payment(db: Session, fee_payment_id: int, school_id: int | None) -> StudentFeePayment:
    stmt = select(StudentFeePayment).where(StudentFeePayment.id == fee_payment_id)
    if school_id is not None:
        stmt = stmt.where(StudentFeePayment.school_id == school_id)
    fee = db.scalars(stmt).first()
    if fee is None:
        raise NotFound("Fee record not found.")
    return fee


def _cents(expr):
    # SQLite stores Numeric as REAL; compare and store money rounded to cents.
    return func.round(expr, 2)


def _credit_fee_payment(db: Session, fee_payment_id: int, amount: Decimal, **values) -> None:
    """
    Atomic conditional increment of `paid_amount`.

    The balance check is re-evaluated by the database at write time; zero
    affected rows means another write won the race.
    """

    new_paid = _cents(StudentFeePayment.paid_amount + amount)
    assigned = _cents(StudentFeePayment.assigned_amount)
    stmt = (
        update(StudentFeePayment)
        .where(
            StudentFeePayment.id == fee_payment_id,
            new_paid <= assigned,
        )
        .values(
            paid_amount=new_paid,
            status=case(
                (new_paid >= assigned, PaymentStatus.PAID.value),
                else_=PaymentStatus.PARTIALLY_PAID.value,
            ),
            **values,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount != 1:
        db.rollback()
        logger.warning("Fee credit lost a concurrent update fee_payment_id=%s amount=%s", fee_payment_id, amount)
        raise ConflictingWrite("The fee record was updated concurrently; reload and try again.")


def apply_concession(
    db: Session,
    identity: Identity,
    fee_payment_id: int,
    concession_id: int,
    amount: Decimal,
) -> StudentFeePayment:
    fee = _load_fee_payment(db, fee_payment_id, identity.school_id)
    amount = _as_decimal(amount)
    check_concession(fee.assigned_amount, fee.paid_amount, amount)

    concession = db.scalars(
        select(Concession).where(Concession.id == concession_id, Concession.school_id == fee.school_id)
    ).first()
    if concession is None:
        raise NotFound("Concession not found.")

    _credit_fee_payment(db, fee.id, amount, notes=f"Concession applied: {amount:.2f}")
    db.add(
        StudentFeeConcession(
            school_id=fee.school_id,
            student_id=fee.student_id,
            student_fee_payment_id=fee.id,
            concession_id=concession.id,
            concession_amount=amount,
            applied_by_user_id=identity.user_id,
        )
    )
    db.commit()

    logger.info(
        "Concession applied fee_payment_id=%s concession_id=%s amount=%s by user_id=%s",
        fee_payment_id,
        concession_id,
        amount,
        identity.user_id,
    )
    return _load_fee_payment(db, fee_payment_id, None)


def record_payment(
    db: Session,
    identity: Identity,
    fee_payment_id: int,
    amount: Decimal,
    payment_date: date,
) -> StudentFeePayment:
    fee = _load_fee_payment(db, fee_payment_id, identity.school_id)
    amount = _as_decimal(amount)
    check_credit(fee.assigned_amount, fee.paid_amount, amount, label="Payment")

    _credit_fee_payment(db, fee.id, amount, payment_date=payment_date)
    db.commit()

    logger.info("Payment recorded fee_payment_id=%s amount=%s by user_id=%s", fee_payment_id, amount, identity.user_id)
    return _load_fee_payment(db, fee_payment_id, None)


def reverse_concession(db: Session, identity: Identity, applied_concession_id: int) -> Decimal:
    """Undo an applied concession; returns the reversed amount."""

    stmt = select(StudentFeeConcession).where(StudentFeeConcession.id == applied_concession_id)
    if identity.school_id is not None:
        stmt = stmt.where(StudentFeeConcession.school_id == identity.school_id)
    applied = db.scalars(stmt).first()
    if applied is None:
        raise NotFound("Concession record not found.")

    amount = applied.concession_amount
    new_paid = _cents(StudentFeePayment.paid_amount - amount)
    result = db.execute(
        update(StudentFeePayment)
        .where(StudentFeePayment.id == applied.student_fee_payment_id, new_paid >= 0)
        .values(
            paid_amount=new_paid,
            status=case((new_paid <= 0, PaymentStatus.PENDING.value), else_=PaymentStatus.PARTIALLY_PAID.value),
            notes=f"Concession of {amount:.2f} reversed.",
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        raise ConflictingWrite("The fee record was updated concurrently; reload and try again.")

    db.delete(applied)
    db.commit()
    logger.info("Concession reversed applied_concession_id=%s amount=%s", applied_concession_id, amount)
    return amount


# ---- Fee assignment ------------------------------------------------------------------


def create_fee_category(db: Session, school_id: int, payload: FeeCategoryCreate) -> FeeCategory:
    category = FeeCategory(
        school_id=school_id,
        name=payload.name.strip(),
        description=payload.description,
        amount=payload.amount,
    )
    db.add(category)
    db.commit()
    return category


def list_fee_categories(db: Session, school_id: int | None) -> list[FeeCategory]:
    stmt = select(FeeCategory).order_by(FeeCategory.name)
    if school_id is not None:
        stmt = stmt.where(FeeCategory.school_id == school_id)
    return list(db.scalars(stmt).all())


def assign_fee(db: Session, school_id: int, payload: FeeAssign) -> StudentFeePayment:
    student = db.scalars(
        select(Student).where(Student.id == payload.student_id, Student.school_id == school_id)
    ).first()
    if student is None:
        raise NotFound("Student not found.")
    category = db.scalars(
        select(FeeCategory).where(FeeCategory.id == payload.fee_category_id, FeeCategory.school_id == school_id)
    ).first()
    if category is None:
        raise NotFound("Fee category not found.")

    fee = StudentFeePayment(
        school_id=school_id,
        student_id=student.id,
        fee_category_id=category.id,
        assigned_amount=payload.assigned_amount,
        paid_amount=Decimal("0"),
        status=PaymentStatus.PENDING,
        due_date=payload.due_date,
        notes=payload.notes,
    )
    db.add(fee)
    db.commit()
    logger.info("Fee assigned fee_payment_id=%s student_id=%s amount=%s", fee.id, student.id, fee.assigned_amount)
    return fee


def assign_fees_to_class(db: Session, school_id: int, payload: ClassFeeAssign) -> int:
    """Assign each selected category to every student of a class, skipping existing pairs."""

    student_ids = list(
        db.scalars(select(Student.id).where(Student.class_id == payload.class_id, Student.school_id == school_id)).all()
    )
    if not student_ids:
        raise InvalidRequest("No students found in the selected class.")

    categories = list(
        db.scalars(
            select(FeeCategory).where(FeeCategory.id.in_(payload.fee_category_ids), FeeCategory.school_id == school_id)
        ).all()
    )

    existing = set(
        db.execute(
            select(StudentFeePayment.student_id, StudentFeePayment.fee_category_id).where(
                StudentFeePayment.student_id.in_(student_ids),
                StudentFeePayment.fee_category_id.in_(payload.fee_category_ids),
                StudentFeePayment.school_id == school_id,
            )
        ).all()
    )

    created = 0
    for student_id in student_ids:
        for category in categories:
            if (student_id, category.id) in existing:
                continue
            db.add(
                StudentFeePayment(
                    school_id=school_id,
                    student_id=student_id,
                    fee_category_id=category.id,
                    assigned_amount=category.amount or Decimal("0"),
                    paid_amount=Decimal("0"),
                    status=PaymentStatus.PENDING,
                    due_date=payload.due_date,
                    notes=payload.notes,
                )
            )
            created += 1

    db.commit()
    logger.info("Class fees assigned class_id=%s created=%d", payload.class_id, created)
    return created


def delete_fee_assignment(db: Session, school_id: int | None, fee_payment_id: int) -> None:
    fee = _load_fee_payment(db, fee_payment_id, school_id)
    if fee.paid_amount > 0:
        raise InvalidRequest("Cannot delete: this fee has payments recorded.")

    db.execute(delete(StudentFeeConcession).where(StudentFeeConcession.student_fee_payment_id == fee.id))
    db.delete(fee)
    db.commit()
    logger.info("Fee assignment deleted fee_payment_id=%s", fee_payment_id)


# ---- Concession schemes ----------------------------------------------------------------


def create_concession(db: Session, school_id: int, payload: ConcessionCreate) -> Concession:
    concession = Concession(school_id=school_id, title=payload.title.strip(), description=payload.description)
    db.add(concession)
    db.commit()
    return concession


def list_concessions(db: Session, school_id: int | None) -> list[Concession]:
    stmt = select(Concession).order_by(Concession.title)
    if school_id is not None:
        stmt = stmt.where(Concession.school_id == school_id)
    return list(db.scalars(stmt).all())


def delete_concession(db: Session, school_id: int | None, concession_id: int) -> None:
    stmt = select(Concession).where(Concession.id == concession_id)
    if school_id is not None:
        stmt = stmt.where(Concession.school_id == school_id)
    concession = db.scalars(stmt).first()
    if concession is None:
        raise NotFound("Concession not found.")

    in_use = db.scalar(
        select(func.count(StudentFeeConcession.id)).where(StudentFeeConcession.concession_id == concession_id)
    )
    if in_use:
        raise InvalidRequest(f"Cannot delete: this concession is applied to {in_use} fee record(s).")

    db.delete(concession)
    db.commit()


# ---- Fee type groups -------------------------------------------------------------------


def _categories_in_school(db: Session, school_id: int, category_ids: list[int]) -> list[FeeCategory]:
    if not category_ids:
        return []
    categories = list(
        db.scalars(
            select(FeeCategory).where(FeeCategory.id.in_(category_ids), FeeCategory.school_id == school_id)
        ).all()
    )
    if len(categories) != len(set(category_ids)):
        raise NotFound("One or more fee categories were not found.")
    return categories


def list_fee_groups(db: Session, school_id: int | None) -> list[FeeTypeGroup]:
    stmt = select(FeeTypeGroup).order_by(FeeTypeGroup.name)
    if school_id is not None:
        stmt = stmt.where(FeeTypeGroup.school_id == school_id)
    return list(db.scalars(stmt).all())


def create_fee_group(db: Session, school_id: int, payload: FeeTypeGroupWrite) -> FeeTypeGroup:
    exists = db.scalars(
        select(FeeTypeGroup.id).where(FeeTypeGroup.school_id == school_id, FeeTypeGroup.name == payload.name.strip())
    ).first()
    if exists is not None:
        raise InvalidRequest(f"A fee group named {payload.name!r} already exists.")

    group = FeeTypeGroup(
        school_id=school_id,
        name=payload.name.strip(),
        fee_categories=_categories_in_school(db, school_id, payload.fee_category_ids),
    )
    db.add(group)
    db.commit()
    return group


def _load_fee_group(db: Session, school_id: int | None, group_id: int) -> FeeTypeGroup:
    stmt = select(FeeTypeGroup).where(FeeTypeGroup.id == group_id)
    if school_id is not None:
        stmt = stmt.where(FeeTypeGroup.school_id == school_id)
    group = db.scalars(stmt).first()
    if group is None:
        raise NotFound("Fee group not found.")
    return group


def update_fee_group(db: Session, school_id: int | None, group_id: int, payload: FeeTypeGroupWrite) -> FeeTypeGroup:
    group = _load_fee_group(db, school_id, group_id)
    group.name = payload.name.strip()
    group.fee_categories = _categories_in_school(db, group.school_id, payload.fee_category_ids)
    db.commit()
    return group


def delete_fee_group(db: Session, school_id: int | None, group_id: int) -> None:
    group = _load_fee_group(db, school_id, group_id)
    db.delete(group)
    db.commit()
