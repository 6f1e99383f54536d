"""
Leave applications: submission, scoped listing and the one-time admin decision.

Submission has two named variants of the same action:
- SubmissionMode.REVIEW: stored as Pending, decided later by an admin.
- SubmissionMode.AI: decided immediately by a LeaveEvaluator; status and
  reasoning are stored with the application.
"""

from __future__ import annotations

import enum
import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from campushub.errors import ConflictingWrite, InvalidRequest, NotFound, Unauthorized
from campushub.models.leave import ApplicantRole, LeaveApplication, LeaveStatus
from campushub.models.school import Role, School, Student, User
from campushub.schemas.leave import GuestLeaveApplicationCreate, LeaveApplicationCreate
from campushub.security.identity import Identity
from campushub.security.visibility import Collection, evaluate_visibility
from campushub.services.email import EmailSender, school_user_emails, teacher_email
from campushub.services.leave_evaluator import LeaveEvaluator

logger = logging.getLogger(__name__)


class SubmissionMode(str, enum.Enum):
    REVIEW = "review"
    AI = "ai"


def _resolve_student(db: Session, identity: Identity, payload: LeaveApplicationCreate) -> Student | None:
    if identity.role is Role.STUDENT:
        return db.get(Student, identity.profile_id)

    if payload.student_profile_id is None:
        return None

    student = db.scalars(
        select(Student).where(Student.id == payload.student_profile_id, Student.school_id == identity.school_id)
    ).first()
    if student is None:
        raise NotFound("Student not found.")

    # Teachers may only apply on behalf of students in their own classes.
    if not evaluate_visibility(db, identity, Collection.STUDENTS).permits(student):
        raise Unauthorized("You can only submit leave for students in your classes.")
    return student


def submit_leave_application(
    db: Session,
    identity: Identity,
    payload: LeaveApplicationCreate,
    *,
    mode: SubmissionMode = SubmissionMode.REVIEW,
    evaluator: LeaveEvaluator | None = None,
    notifier: EmailSender | None = None,
) -> LeaveApplication:
    if identity.school_id is None:
        raise Unauthorized("Leave applications must be submitted within a school.")

    student = _resolve_student(db, identity, payload)
    student_name = payload.student_name or (student.name if student is not None else None)
    if not student_name:
        raise InvalidRequest("student_name is required when no student profile is given.")

    application = LeaveApplication(
        school_id=identity.school_id,
        student_profile_id=student.id if student is not None else None,
        student_name=student_name,
        reason=payload.reason,
        medical_notes_data_uri=payload.medical_notes_data_uri,
        applicant_user_id=identity.user_id,
        applicant_role=ApplicantRole(identity.role.value),
        status=LeaveStatus.PENDING,
    )

    if mode is SubmissionMode.AI:
        if evaluator is None:
            raise ValueError("An evaluator is required for AI submissions")
        evaluation = evaluator.evaluate(payload.reason, payload.medical_notes_data_uri)
        application.status = LeaveStatus.APPROVED if evaluation.approved else LeaveStatus.REJECTED
        application.ai_reasoning = evaluation.reasoning

    db.add(application)
    db.commit()
    logger.info(
        "Leave application submitted id=%s mode=%s status=%s applicant_user_id=%s",
        application.id,
        mode.value,
        application.status.value,
        identity.user_id,
    )

    if notifier is not None and application.status is LeaveStatus.PENDING:
        _notify_reviewers(db, notifier, application, student)
    return application


def submit_guest_leave_application(
    db: Session,
    payload: GuestLeaveApplicationCreate,
    notifier: EmailSender | None = None,
) -> LeaveApplication:
    """Guest submissions are always Pending and carry no applicant user."""

    if db.get(School, payload.school_id) is None:
        raise NotFound("School not found.")

    application = LeaveApplication(
        school_id=payload.school_id,
        student_profile_id=None,
        student_name=payload.student_name,
        reason=payload.reason,
        medical_notes_data_uri=payload.medical_notes_data_uri,
        applicant_user_id=None,
        applicant_role=ApplicantRole.GUEST,
        status=LeaveStatus.PENDING,
    )
    db.add(application)
    db.commit()
    logger.info("Guest leave application submitted id=%s school_id=%s", application.id, application.school_id)

    if notifier is not None:
        _notify_reviewers(db, notifier, application, None)
    return application


def list_leave_applications(
    db: Session,
    identity: Identity,
    *,
    applicant_role: ApplicantRole | None = None,
    status: LeaveStatus | None = None,
    target_school_id: int | None = None,
) -> list[LeaveApplication]:
    row_filter = evaluate_visibility(db, identity, Collection.LEAVE_APPLICATIONS, target_school_id)
    if row_filter.is_empty:
        return []

    stmt = row_filter.apply(
        select(LeaveApplication).order_by(LeaveApplication.submission_date.desc(), LeaveApplication.id.desc())
    )
    if applicant_role is not None:
        stmt = stmt.where(LeaveApplication.applicant_role == applicant_role)
    if status is not None:
        stmt = stmt.where(LeaveApplication.status == status)
    return list(db.scalars(stmt).all())


def list_own_leave_applications(db: Session, identity: Identity) -> list[LeaveApplication]:
    """Applications the caller submitted themselves (e.g. a teacher's own leave)."""

    stmt = (
        select(LeaveApplication)
        .where(LeaveApplication.applicant_user_id == identity.user_id)
        .order_by(LeaveApplication.submission_date.desc(), LeaveApplication.id.desc())
    )
    return list(db.scalars(stmt).all())


def decide_leave_application(
    db: Session,
    identity: Identity,
    application_id: int,
    status: LeaveStatus,
    notifier: EmailSender | None = None,
) -> LeaveApplication:
    """Set the status of a Pending application once; later decisions are rejected."""

    if status is LeaveStatus.PENDING:
        raise InvalidRequest("A decision must be Approved or Rejected.")

    criteria = [LeaveApplication.id == application_id]
    if identity.school_id is not None:
        criteria.append(LeaveApplication.school_id == identity.school_id)

    result = db.execute(
        update(LeaveApplication)
        .where(*criteria, LeaveApplication.status == LeaveStatus.PENDING)
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        db.rollback()
        exists = db.scalars(select(LeaveApplication.id).where(*criteria)).first()
        if exists is None:
            raise NotFound("Leave application not found.")
        raise ConflictingWrite("This leave application has already been decided.")

    db.commit()
    application = db.scalars(select(LeaveApplication).where(LeaveApplication.id == application_id)).one()
    logger.info("Leave application decided id=%s status=%s by user_id=%s", application_id, status.value, identity.user_id)

    if notifier is not None and application.applicant_user_id is not None:
        applicant = db.get(User, application.applicant_user_id)
        if applicant is not None:
            sent = notifier.send(
                applicant.email,
                f"Leave application {status.value.lower()}",
                f"<p>The leave application for {application.student_name} has been "
                f"<strong>{status.value.lower()}</strong>.</p>",
            )
            if not sent.ok:
                logger.warning("Leave decision email failed id=%s: %s", application_id, sent.message)
    return application


def _notify_reviewers(
    db: Session,
    notifier: EmailSender,
    application: LeaveApplication,
    student: Student | None,
) -> None:
    recipients = school_user_emails(db, application.school_id, [Role.ADMIN])
    class_teacher_id = student.class_section.teacher_id if student is not None and student.class_section else None
    if class_teacher_id is not None:
        email = teacher_email(db, class_teacher_id)
        if email:
            recipients.append(email)

    result = notifier.send(
        recipients,
        f"New leave application: {application.student_name}",
        f"<p>A leave application for {application.student_name} is awaiting review.</p>"
        f"<p>Reason: {application.reason}</p>",
    )
    if not result.ok:
        logger.warning("Leave review email failed id=%s: %s", application.id, result.message)
