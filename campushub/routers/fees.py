from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.fees import FeeCategory, StudentFeePayment
from campushub.schemas.common import ActionResult
from campushub.schemas.fees import (
    ClassFeeAssign,
    ClassFeeAssigned,
    FeeAssign,
    FeeCategoryCreate,
    FeeCategoryOut,
    FeePaymentOut,
    FeePaymentResult,
    PaymentRecord,
)
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.services import fees

router = APIRouter(tags=["fees"])


@router.get("/fee-categories", response_model=list[FeeCategoryOut])
def list_categories(
    school_id: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[FeeCategory]:
    target = school_id if identity.is_superadmin else identity.school_id
    return fees.list_fee_categories(db, target)


@router.post("/fee-categories", response_model=FeeCategoryOut)
def create_category(
    payload: FeeCategoryCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeeCategory:
    return fees.create_fee_category(db, school_for(identity, payload.school_id), payload)


@router.get("/fees", response_model=list[FeePaymentOut])
def list_fee_payments(student_id: int | None = None, db: Session = Depends(get_db)) -> list[StudentFeePayment]:
    # Scoped by the route's YAML rule: a student sees only their own records.
    stmt = select(StudentFeePayment).order_by(StudentFeePayment.due_date, StudentFeePayment.id)
    if student_id is not None:
        stmt = stmt.where(StudentFeePayment.student_id == student_id)
    return list(db.scalars(stmt).all())


@router.post("/fees", response_model=FeePaymentResult)
def assign_fee(
    payload: FeeAssign,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeePaymentResult:
    fee = fees.assign_fee(db, school_for(identity, None), payload)
    return FeePaymentResult(message="Fee assigned successfully.", fee_payment=FeePaymentOut.model_validate(fee))


@router.post("/fees/class", response_model=ClassFeeAssigned)
def assign_class_fees(
    payload: ClassFeeAssign,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ClassFeeAssigned:
    created = fees.assign_fees_to_class(db, school_for(identity, None), payload)
    return ClassFeeAssigned(message=f"Assigned {created} fee record(s).", assignments_created=created)


@router.post("/fees/{fee_payment_id}/payments", response_model=FeePaymentResult)
def record_payment(
    fee_payment_id: int,
    payload: PaymentRecord,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeePaymentResult:
    fee = fees.record_payment(db, identity, fee_payment_id, payload.payment_amount, payload.payment_date)
    return FeePaymentResult(message="Payment recorded successfully.", fee_payment=FeePaymentOut.model_validate(fee))


@router.delete("/fees/{fee_payment_id}", response_model=ActionResult)
def delete_fee(
    fee_payment_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    fees.delete_fee_assignment(db, identity.school_id, fee_payment_id)
    return ActionResult(message="Fee assignment deleted.")
