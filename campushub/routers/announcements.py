from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.db.session import get_db
from campushub.models.communication import Announcement
from campushub.routers.leave import get_notifier
from campushub.schemas.common import ActionResult
from campushub.schemas.communication import AnnouncementCreate, AnnouncementOut, AnnouncementPosted
from campushub.security.dependencies import get_current_identity
from campushub.security.identity import Identity
from campushub.services import announcements
from campushub.services.email import EmailSender

router = APIRouter(prefix="/announcements", tags=["communication"])


@router.get("", response_model=list[AnnouncementOut])
def list_announcements(
    class_id: int | None = None,
    school_id: int | None = None,
    db: Session = Depends(get_db),
) -> list[Announcement]:
    # Audience matching is applied by campushub.db.filters (route scope: announcements).
    stmt = select(Announcement).order_by(Announcement.posted_at.desc(), Announcement.id.desc())
    if class_id is not None:
        stmt = stmt.where(Announcement.target_class_id == class_id)
    if school_id is not None:
        stmt = stmt.where(Announcement.school_id == school_id)
    return list(db.scalars(stmt).all())


@router.post("", response_model=AnnouncementPosted)
def post_announcement(
    payload: AnnouncementCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    notifier: EmailSender = Depends(get_notifier),
) -> AnnouncementPosted:
    announcement = announcements.post_announcement(db, identity, payload, notifier)
    return AnnouncementPosted(
        message="Announcement posted successfully.",
        announcement=AnnouncementOut.model_validate(announcement),
    )


@router.delete("/{announcement_id}", response_model=ActionResult)
def delete_announcement(
    announcement_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> ActionResult:
    announcements.delete_announcement(db, identity, announcement_id)
    return ActionResult(message="Announcement deleted.")
