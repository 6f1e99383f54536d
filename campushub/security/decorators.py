"""
Decorator-style route security, an alternative to a `routes:` entry in YAML.

The decorators perform no checks themselves. They attach metadata that
`enforce_security` reads from the matched endpoint after routing, merged with
the YAML rule for the same route. Place them below the router decorator:

    @router.get("/teacher/my-students")
    @require_roles([Role.TEACHER])
    def my_students(...): ...
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from campushub.models.school import Role
from campushub.security.visibility import Collection

ROLES_ATTR = "__security_required_roles__"
SCOPE_ATTR = "__security_scope__"


def _extend(fn: Callable, attr: str, values: Iterable[Any]) -> Callable:
    setattr(fn, attr, set(getattr(fn, attr, set())) | set(values))
    return fn


def require_roles(roles: list[Role]) -> Callable:
    """Caller must hold one of `roles`."""

    return lambda fn: _extend(fn, ROLES_ATTR, roles)


def scoped(*collections: Collection) -> Callable:
    """Restrict SELECTs on `collections` to the caller's rows."""

    return lambda fn: _extend(fn, SCOPE_ATTR, collections)
