"""
Announcements posted to a school, one of its classes, or (superadmin) every
school admin.

Who may read which announcement is decided by the `announcements` visibility
rule; this module only covers posting, deleting and the notification email.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.errors import InvalidRequest, NotFound, Unauthorized
from campushub.models.communication import Announcement, Audience
from campushub.models.school import ClassSection, Role, User
from campushub.schemas.communication import AnnouncementCreate
from campushub.security.identity import Identity
from campushub.services.email import (
    EmailSender,
    admin_emails,
    class_student_emails,
    school_user_emails,
    teacher_email,
)

logger = logging.getLogger(__name__)

_AUDIENCE_ROLES: dict[Audience, list[Role]] = {
    Audience.ALL: [Role.STUDENT, Role.TEACHER, Role.ADMIN],
    Audience.STUDENTS: [Role.STUDENT],
    Audience.TEACHERS: [Role.TEACHER],
}


def _target_class(db: Session, identity: Identity, class_id: int | None) -> ClassSection | None:
    if identity.role is Role.SUPERADMIN:
        if class_id is not None:
            raise InvalidRequest("Platform announcements cannot target a class.")
        return None

    if class_id is None:
        if identity.role is Role.TEACHER:
            raise InvalidRequest("Teachers must address an announcement to one of their classes.")
        return None

    class_section = db.scalars(
        select(ClassSection).where(ClassSection.id == class_id, ClassSection.school_id == identity.school_id)
    ).first()
    if class_section is None:
        raise NotFound("Class not found.")
    if identity.role is Role.TEACHER and class_section.teacher_id != identity.profile_id:
        raise Unauthorized("You can only post announcements to your own classes.")
    return class_section


def post_announcement(
    db: Session,
    identity: Identity,
    payload: AnnouncementCreate,
    notifier: EmailSender | None = None,
) -> Announcement:
    target_class = _target_class(db, identity, payload.target_class_id)
    author = db.get(User, identity.user_id)

    announcement = Announcement(
        school_id=identity.school_id,
        title=payload.title.strip(),
        content=payload.content,
        author_name=author.name if author is not None else "",
        posted_by_user_id=identity.user_id,
        posted_by_role=identity.role,
        target_audience=payload.target_audience,
        target_class_id=target_class.id if target_class is not None else None,
    )
    db.add(announcement)
    db.commit()
    logger.info(
        "Announcement posted id=%s school_id=%s class_id=%s by user_id=%s",
        announcement.id,
        announcement.school_id,
        announcement.target_class_id,
        identity.user_id,
    )

    if notifier is not None:
        _notify_audience(db, notifier, announcement, target_class)
    return announcement


def delete_announcement(db: Session, identity: Identity, announcement_id: int) -> None:
    """Admins remove any announcement of their school; teachers only their own."""

    stmt = select(Announcement).where(Announcement.id == announcement_id)
    if identity.role is Role.TEACHER:
        stmt = stmt.where(Announcement.posted_by_user_id == identity.user_id)
    if identity.school_id is not None:
        stmt = stmt.where(Announcement.school_id == identity.school_id)

    announcement = db.scalars(stmt).first()
    if announcement is None:
        raise NotFound("Announcement not found.")

    db.delete(announcement)
    db.commit()
    logger.info("Announcement deleted id=%s by user_id=%s", announcement_id, identity.user_id)


def announcement_recipients(db: Session, announcement: Announcement, target_class: ClassSection | None) -> list[str]:
    if announcement.school_id is None:
        recipients = admin_emails(db)
    elif target_class is not None:
        recipients = class_student_emails(db, target_class.id)
        if announcement.posted_by_role is Role.ADMIN and target_class.teacher_id is not None:
            email = teacher_email(db, target_class.teacher_id)
            if email:
                recipients.append(email)
    else:
        recipients = school_user_emails(db, announcement.school_id, _AUDIENCE_ROLES[announcement.target_audience])
    return list(dict.fromkeys(recipients))


def _notify_audience(
    db: Session,
    notifier: EmailSender,
    announcement: Announcement,
    target_class: ClassSection | None,
) -> None:
    recipients = announcement_recipients(db, announcement, target_class)
    if not recipients:
        return

    if target_class is not None:
        scope = f"<p><strong>For class:</strong> {target_class.name} - {target_class.division}</p>"
    elif announcement.school_id is not None:
        scope = "<p>This is a general announcement for the school.</p>"
    else:
        scope = "<p>This is a platform announcement for all school administrators.</p>"

    result = notifier.send(
        recipients,
        f"New Announcement: {announcement.title}",
        f"<h1>{announcement.title}</h1>"
        f"<p><strong>Posted by:</strong> {announcement.author_name} ({announcement.posted_by_role.value})</p>"
        f"{scope}<p>{announcement.content}</p>",
    )
    if not result.ok:
        logger.warning("Announcement email failed id=%s: %s", announcement.id, result.message)
