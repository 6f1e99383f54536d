"""
Leave approval evaluators.

Anything with `evaluate(reason, attachment) -> LeaveEvaluation` can decide a
leave application: the local school-policy rules below, a remote model service
over HTTP, or a test double. The data model does not care which.

School policy applied by `PolicyLeaveEvaluator`:
- Absences due to illness are approved, provided a medical note is attached.
- Other absences are approved case by case; recognised personal reasons are
  approved, anything else is rejected so it can be resubmitted for admin review.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, Protocol

import requests

from campushub.errors import UpstreamFailure
from campushub.settings import Settings

logger = logging.getLogger(__name__)

_ILLNESS_RE = re.compile(
    r"\b(ill|illness|sick|sickness|fever|flu|cold|covid|infection|injur(y|ed)|hospital|doctor|medical|surgery)\b",
    re.IGNORECASE,
)
_PERSONAL_RE = re.compile(
    r"\b(funeral|bereavement|family emergency|emergency|wedding|religious|festival)\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class LeaveEvaluation:
    approved: bool
    reasoning: str


class LeaveEvaluator(Protocol):
    def evaluate(self, reason: str, attachment: str | None = None) -> LeaveEvaluation: ...


class PolicyLeaveEvaluator:
    """Deterministic, local implementation of the school leave policy."""

    def evaluate(self, reason: str, attachment: str | None = None) -> LeaveEvaluation:
        if _ILLNESS_RE.search(reason):
            if attachment:
                return LeaveEvaluation(True, "Absence due to illness with a medical note attached.")
            return LeaveEvaluation(False, "Absences due to illness require a medical note.")

        if _PERSONAL_RE.search(reason):
            return LeaveEvaluation(True, "Personal reason accepted under school policy.")

        return LeaveEvaluation(
            False,
            "The reason could not be approved automatically; please submit it for admin review.",
        )


class HttpLeaveEvaluator:
    """
    Calls an external model service.

    Request:  POST <url> {"reason": ..., "medicalNotesDataUri": ...}
    Response: {"approved": bool, "reasoning": str}
    """

    def __init__(self, url: str, timeout_seconds: float) -> None:
        self._url = url
        self._timeout = timeout_seconds

    def evaluate(self, reason: str, attachment: str | None = None) -> LeaveEvaluation:
        payload: dict[str, Any] = {"reason": reason}
        if attachment:
            payload["medicalNotesDataUri"] = attachment

        try:
            resp = requests.post(self._url, json=payload, timeout=self._timeout)
            resp.raise_for_status()
            body = resp.json()
        except requests.RequestException as e:
            logger.warning("Leave evaluator request failed: %s", type(e).__name__, exc_info=False)
            raise UpstreamFailure("Leave evaluation service is unavailable.") from e
        except ValueError as e:
            raise UpstreamFailure("Leave evaluation service returned invalid JSON.") from e

        approved = body.get("approved") if isinstance(body, dict) else None
        reasoning = body.get("reasoning") if isinstance(body, dict) else None
        if not isinstance(approved, bool) or not isinstance(reasoning, str):
            logger.warning("Leave evaluator returned an unexpected body keys=%s", sorted(body) if isinstance(body, dict) else None)
            raise UpstreamFailure("Leave evaluation service returned an unexpected response.")

        return LeaveEvaluation(approved=approved, reasoning=reasoning)


def get_leave_evaluator(settings: Settings) -> LeaveEvaluator:
    if settings.leave_evaluator == "http":
        if not settings.leave_evaluator_url:
            raise ValueError("CAMPUSHUB_LEAVE_EVALUATOR_URL must be set when leave_evaluator is 'http'")
        return HttpLeaveEvaluator(settings.leave_evaluator_url, settings.http_timeout_seconds)
    return PolicyLeaveEvaluator()
