from __future__ import annotations

from pydantic import BaseModel


class ActionResult(BaseModel):
    """Result value of a state-changing action; errors use the same shape with ok=False."""

    ok: bool = True
    message: str
