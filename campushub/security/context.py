from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

from campushub.security.identity import Identity
from campushub.security.visibility import Collection, RowFilter


@dataclass(frozen=True)
class AuthzContext:
    """
    Per-request authorization context.

    Attached to:
    - request.state (FastAPI request lifetime)
    - Session.info (SQLAlchemy session lifetime), where `campushub.db.filters` reads it
    """

    identity: Identity

    # Row filters for the collections this route is scoped to (config / decorators).
    filters: Mapping[Collection, RowFilter] = field(default_factory=dict)

    @property
    def user_id(self) -> int:
        return self.identity.user_id

    @property
    def school_id(self) -> int | None:
        return self.identity.school_id
