"""
Transactional email sender.

Posts to a Resend-compatible HTTP API (`POST /emails` with a bearer API key).
Without an API key, messages are written to the log instead of being sent.
When a sandbox recipient is configured, every message is redirected to it.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging

import requests
from sqlalchemy import select
from sqlalchemy.orm import Session

from campushub.models.school import Role, Student, Teacher, User
from campushub.settings import Settings

logger = logging.getLogger(__name__)

# Recipients per API call.
BATCH_SIZE = 50


@dataclass(frozen=True)
class EmailResult:
    ok: bool
    message: str


class EmailSender:
    def __init__(
        self,
        api_url: str,
        api_key: str | None,
        from_address: str,
        sandbox_recipient: str | None = None,
        timeout_seconds: float = 15.0,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._from = from_address
        self._sandbox = sandbox_recipient
        self._timeout = timeout_seconds

    @classmethod
    def from_settings(cls, settings: Settings) -> EmailSender:
        return cls(
            api_url=settings.email_api_url,
            api_key=settings.email_api_key,
            from_address=settings.email_from,
            sandbox_recipient=settings.email_sandbox_recipient,
            timeout_seconds=settings.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def send(self, to: str | list[str], subject: str, html: str) -> EmailResult:
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            return EmailResult(True, "No recipients.")

        if not self.configured:
            logger.info("Email not configured; logging instead recipients=%d subject=%r", len(recipients), subject)
            logger.debug("Email body (first 200 chars): %s", html[:200])
            return EmailResult(True, "Email sending is mocked; check server logs.")

        if self._sandbox:
            recipients = [self._sandbox]

        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        for start in range(0, len(recipients), BATCH_SIZE):
            batch = recipients[start : start + BATCH_SIZE]
            try:
                resp = requests.post(
                    self._api_url,
                    json={"from": self._from, "to": batch, "subject": subject, "html": html},
                    headers=headers,
                    timeout=self._timeout,
                )
            except requests.RequestException as e:
                logger.warning("Email request failed: %s", type(e).__name__, exc_info=False)
                return EmailResult(False, "Email service is unavailable.")
            if resp.status_code >= 400:
                logger.warning("Email API returned status=%s", resp.status_code)
                return EmailResult(False, f"Email API error (status {resp.status_code}).")

        logger.info("Email sent recipients=%d subject=%r", len(recipients), subject)
        return EmailResult(True, "Email(s) sent successfully.")


# ---- Recipient lookups ---------------------------------------------------------------


def teacher_email(db: Session, teacher_id: int) -> str | None:
    return db.scalars(select(Teacher.email).where(Teacher.id == teacher_id)).first()


def school_user_emails(db: Session, school_id: int, roles: list[Role] | None = None) -> list[str]:
    stmt = select(User.email).where(User.school_id == school_id, User.is_active.is_(True))
    if roles:
        stmt = stmt.where(User.role.in_(roles))
    return [e for e in db.scalars(stmt).all() if e]


def class_student_emails(db: Session, class_id: int) -> list[str]:
    return [e for e in db.scalars(select(Student.email).where(Student.class_id == class_id)).all() if e]


def admin_emails(db: Session) -> list[str]:
    """Every active school admin, across schools."""

    stmt = select(User.email).where(User.role == Role.ADMIN, User.is_active.is_(True))
    return [e for e in db.scalars(stmt).all() if e]
