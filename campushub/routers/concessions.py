from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.fees import Concession, StudentFeeConcession
from campushub.models.school import Role
from campushub.schemas.common import ActionResult
from campushub.schemas.fees import (
    AppliedConcessionOut,
    ConcessionApply,
    ConcessionCreate,
    ConcessionOut,
    FeePaymentOut,
    FeePaymentResult,
)
from campushub.security.decorators import require_roles, scoped
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.security.visibility import Collection
from campushub.services import fees

router = APIRouter(prefix="/concessions", tags=["concessions"])


@router.get("", response_model=list[ConcessionOut])
def list_concessions(
    school_id: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[Concession]:
    target = school_id if identity.is_superadmin else identity.school_id
    return fees.list_concessions(db, target)


@router.post("", response_model=ConcessionOut)
def create_concession(
    payload: ConcessionCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> Concession:
    return fees.create_concession(db, school_for(identity, payload.school_id), payload)


@router.delete("/{concession_id}", response_model=ActionResult)
def delete_concession(
    concession_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    fees.delete_concession(db, identity.school_id, concession_id)
    return ActionResult(message="Concession deleted.")


@router.get("/applied", response_model=list[AppliedConcessionOut])
@require_roles([Role.ADMIN, Role.SUPERADMIN, Role.STUDENT])
@scoped(Collection.FEE_CONCESSIONS)
def list_applied(db: Session = Depends(get_db)) -> list[StudentFeeConcession]:
    return list(db.scalars(select(StudentFeeConcession).order_by(StudentFeeConcession.id)).all())


@router.post("/apply", response_model=FeePaymentResult)
def apply_concession(
    payload: ConcessionApply,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeePaymentResult:
    fee = fees.apply_concession(db, identity, payload.fee_payment_id, payload.concession_id, payload.amount)
    return FeePaymentResult(message="Concession applied successfully.", fee_payment=FeePaymentOut.model_validate(fee))


@router.delete("/applied/{applied_concession_id}", response_model=ActionResult)
def reverse_concession(
    applied_concession_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    amount = fees.reverse_concession(db, identity, applied_concession_id)
    return ActionResult(message=f"Concession of {amount:.2f} reversed.")
