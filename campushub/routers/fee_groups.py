from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.fees import FeeTypeGroup
from campushub.schemas.common import ActionResult
from campushub.schemas.fees import FeeTypeGroupOut, FeeTypeGroupWrite
from campushub.security.dependencies import get_current_identity, school_for
from campushub.security.identity import Identity
from campushub.services import fees

router = APIRouter(prefix="/fee-groups", tags=["fee-groups"])


@router.get("", response_model=list[FeeTypeGroupOut])
def list_groups(
    school_id: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[FeeTypeGroup]:
    target = school_id if identity.is_superadmin else identity.school_id
    return fees.list_fee_groups(db, target)


@router.post("", response_model=FeeTypeGroupOut)
def create_group(
    payload: FeeTypeGroupWrite,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeeTypeGroup:
    return fees.create_fee_group(db, school_for(identity, payload.school_id), payload)


@router.put("/{group_id}", response_model=FeeTypeGroupOut)
def update_group(
    group_id: int,
    payload: FeeTypeGroupWrite,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> FeeTypeGroup:
    return fees.update_fee_group(db, identity.school_id, group_id, payload)


@router.delete("/{group_id}", response_model=ActionResult)
def delete_group(
    group_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    fees.delete_fee_group(db, identity.school_id, group_id)
    return ActionResult(message="Fee group deleted.")
