"""
Tests for the fee mutation guard and the atomic conditional update.
"""
from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from campushub.errors import ConflictingWrite, InvalidAmount, NotFound
from campushub.models.fees import PaymentStatus, StudentFeeConcession, StudentFeePayment
from campushub.security.identity import resolve_identity
from campushub.services import fees


def _reload(db, fee_id) -> StudentFeePayment:
    db.expire_all()
    return db.get(StudentFeePayment, fee_id)


def test_check_credit_rejects_amount_above_outstanding():
    with pytest.raises(InvalidAmount, match="outstanding"):
        fees.check_concession(Decimal("1000"), Decimal("400"), Decimal("700"))


def test_check_credit_full_outstanding_marks_paid():
    update = fees.check_concession(Decimal("1000"), Decimal("400"), Decimal("600"))

    assert update.paid_amount == Decimal("1000")
    assert update.status is PaymentStatus.PAID


def test_check_credit_partial():
    update = fees.check_credit(Decimal("1000"), Decimal("0"), Decimal("300"))

    assert update.paid_amount == Decimal("300")
    assert update.status is PaymentStatus.PARTIALLY_PAID


@pytest.mark.parametrize("amount", [Decimal("0"), Decimal("-5")])
def test_check_credit_rejects_non_positive(amount):
    with pytest.raises(InvalidAmount, match="greater than zero"):
        fees.check_credit(Decimal("1000"), Decimal("0"), amount)


def test_apply_concession_rejected_leaves_record_unchanged(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)

    with pytest.raises(InvalidAmount):
        fees.apply_concession(db_session, admin, world.fee_a1, world.concession_a, Decimal("700"))

    fee = _reload(db_session, world.fee_a1)
    assert fee.paid_amount == Decimal("400")
    assert fee.status is PaymentStatus.PARTIALLY_PAID


def test_apply_concession_pays_off_balance(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)

    fee = fees.apply_concession(db_session, admin, world.fee_a1, world.concession_a, Decimal("600"))

    assert fee.paid_amount == Decimal("1000")
    assert fee.status is PaymentStatus.PAID
    applied = db_session.query(StudentFeeConcession).filter_by(student_fee_payment_id=world.fee_a1).all()
    assert sorted(a.concession_amount for a in applied) == [Decimal("100"), Decimal("600")]


def test_record_payment_partial(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)

    fee = fees.record_payment(db_session, admin, world.fee_a2, Decimal("300"), date(2026, 5, 1))

    assert fee.paid_amount == Decimal("300")
    assert fee.status is PaymentStatus.PARTIALLY_PAID
    assert fee.payment_date == date(2026, 5, 1)


def test_admin_cannot_touch_other_school_fee(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)

    with pytest.raises(NotFound):
        fees.apply_concession(db_session, admin, world.fee_b1, world.concession_a, Decimal("10"))


def test_concession_scheme_must_belong_to_fee_school(db_session, world):
    superadmin = resolve_identity(db_session, world.superadmin)

    with pytest.raises(NotFound, match="Concession"):
        fees.apply_concession(db_session, superadmin, world.fee_a2, world.concession_b, Decimal("10"))


def test_second_credit_on_stale_snapshot_is_a_conflict(db_session, world, monkeypatch):
    """
    Two admins load the same record (1000 assigned, 500 paid) and both try a
    300 concession. Each passes the check against its snapshot; the database
    accepts only the first.
    """
    admin = resolve_identity(db_session, world.admin_a)
    fee = db_session.get(StudentFeePayment, world.fee_a2)
    fee.paid_amount = Decimal("500")
    fee.status = PaymentStatus.PARTIALLY_PAID
    db_session.commit()

    stale = StudentFeePayment(
        id=world.fee_a2,
        school_id=world.school_a,
        student_id=world.student_a2,
        fee_category_id=world.category_a,
        assigned_amount=Decimal("1000"),
        paid_amount=Decimal("500"),
        status=PaymentStatus.PARTIALLY_PAID,
    )

    fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("300"))

    monkeypatch.setattr(fees, "_load_fee_payment", lambda db, fee_payment_id, school_id: stale)
    with pytest.raises(ConflictingWrite):
        fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("300"))
    monkeypatch.undo()

    fee = _reload(db_session, world.fee_a2)
    assert fee.paid_amount == Decimal("800")
    assert db_session.query(StudentFeeConcession).filter_by(student_fee_payment_id=world.fee_a2).count() == 1


def test_concessions_never_push_paid_above_assigned(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)
    fee = db_session.get(StudentFeePayment, world.fee_a2)
    fee.paid_amount = Decimal("800")
    db_session.commit()

    for _ in range(2):
        with pytest.raises(InvalidAmount):
            fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("300"))

    assert _reload(db_session, world.fee_a2).paid_amount == Decimal("800")


def test_reverse_concession_restores_balance(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)

    amount = fees.reverse_concession(db_session, admin, world.applied_a1)

    assert amount == Decimal("100")
    fee = _reload(db_session, world.fee_a1)
    assert fee.paid_amount == Decimal("300")
    assert fee.status is PaymentStatus.PARTIALLY_PAID
    assert db_session.get(StudentFeeConcession, world.applied_a1) is None


def test_reverse_concession_to_zero_is_pending(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)
    fee = db_session.get(StudentFeePayment, world.fee_a1)
    fee.paid_amount = Decimal("100")
    db_session.commit()

    fees.reverse_concession(db_session, admin, world.applied_a1)

    fee = _reload(db_session, world.fee_a1)
    assert fee.paid_amount == Decimal("0")
    assert fee.status is PaymentStatus.PENDING


def _set_fee(db, fee_id, assigned: str, paid: str) -> None:
    fee = db.get(StudentFeePayment, fee_id)
    fee.assigned_amount = Decimal(assigned)
    fee.paid_amount = Decimal(paid)
    fee.status = PaymentStatus.PARTIALLY_PAID
    db.commit()


def test_payment_settling_balance_to_the_cent(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)
    _set_fee(db_session, world.fee_a2, "0.30", "0.10")

    fees.record_payment(db_session, admin, world.fee_a2, Decimal("0.20"), date(2024, 5, 1))

    fee = _reload(db_session, world.fee_a2)
    assert fee.paid_amount == Decimal("0.30")
    assert fee.status is PaymentStatus.PAID


def test_concession_settling_balance_to_the_cent(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)
    _set_fee(db_session, world.fee_a2, "0.30", "0.10")

    fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("0.20"))

    fee = _reload(db_session, world.fee_a2)
    assert fee.paid_amount == Decimal("0.30")
    assert fee.status is PaymentStatus.PAID


def test_reversing_cent_concessions_returns_to_zero(db_session, world):
    admin = resolve_identity(db_session, world.admin_a)
    _set_fee(db_session, world.fee_a2, "0.30", "0.00")
    fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("0.10"))
    fees.apply_concession(db_session, admin, world.fee_a2, world.concession_a, Decimal("0.20"))
    first, second = db_session.scalars(
        select(StudentFeeConcession.id)
        .where(StudentFeeConcession.student_fee_payment_id == world.fee_a2)
        .order_by(StudentFeeConcession.id)
    ).all()

    fees.reverse_concession(db_session, admin, second)
    fees.reverse_concession(db_session, admin, first)

    fee = _reload(db_session, world.fee_a2)
    assert fee.paid_amount == Decimal("0")
    assert fee.status is PaymentStatus.PENDING
