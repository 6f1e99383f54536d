"""
Leave application endpoints.

Listing evaluates visibility explicitly in the service layer (not through the
route's YAML scope) so the same call also serves the superadmin's
`school_id` filter.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.leave import ApplicantRole, LeaveApplication, LeaveStatus
from campushub.schemas.leave import (
    GuestLeaveApplicationCreate,
    LeaveApplicationCreate,
    LeaveApplicationOut,
    LeaveDecision,
    LeaveSubmitted,
)
from campushub.security.dependencies import get_current_identity
from campushub.security.identity import Identity
from campushub.services import leave
from campushub.services.email import EmailSender
from campushub.services.leave_evaluator import LeaveEvaluator, get_leave_evaluator
from campushub.settings import get_settings

router = APIRouter(prefix="/leave-applications", tags=["leave"])


def get_evaluator() -> LeaveEvaluator:
    return get_leave_evaluator(get_settings())


def get_notifier() -> EmailSender:
    return EmailSender.from_settings(get_settings())


def _submitted(application: LeaveApplication) -> LeaveSubmitted:
    if application.status is LeaveStatus.PENDING:
        message = "Leave application submitted for review."
    else:
        message = f"Leave application {application.status.value.lower()}."
    return LeaveSubmitted(message=message, application=LeaveApplicationOut.model_validate(application))


@router.get("", response_model=list[LeaveApplicationOut])
def list_applications(
    applicant_role: ApplicantRole | None = None,
    status: LeaveStatus | None = None,
    school_id: int | None = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[LeaveApplication]:
    return leave.list_leave_applications(
        db, identity, applicant_role=applicant_role, status=status, target_school_id=school_id
    )


@router.get("/mine", response_model=list[LeaveApplicationOut])
def list_my_applications(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> list[LeaveApplication]:
    return leave.list_own_leave_applications(db, identity)


@router.post("", response_model=LeaveSubmitted)
def submit_for_review(
    payload: LeaveApplicationCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    notifier: EmailSender = Depends(get_notifier),
) -> LeaveSubmitted:
    application = leave.submit_leave_application(
        db, identity, payload, mode=leave.SubmissionMode.REVIEW, notifier=notifier
    )
    return _submitted(application)


@router.post("/ai", response_model=LeaveSubmitted)
def submit_for_ai_decision(
    payload: LeaveApplicationCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    evaluator: LeaveEvaluator = Depends(get_evaluator),
) -> LeaveSubmitted:
    application = leave.submit_leave_application(
        db, identity, payload, mode=leave.SubmissionMode.AI, evaluator=evaluator
    )
    return _submitted(application)


@router.post("/guest", response_model=LeaveSubmitted)
def submit_as_guest(
    payload: GuestLeaveApplicationCreate,
    db: Session = Depends(get_db),
    notifier: EmailSender = Depends(get_notifier),
) -> LeaveSubmitted:
    return _submitted(leave.submit_guest_leave_application(db, payload, notifier))


@router.post("/{application_id}/status", response_model=LeaveSubmitted)
def decide(
    application_id: int,
    payload: LeaveDecision,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    notifier: EmailSender = Depends(get_notifier),
) -> LeaveSubmitted:
    application = leave.decide_leave_application(db, identity, application_id, payload.status, notifier)
    return _submitted(application)
