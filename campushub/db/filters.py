"""
Transparent row scoping for ORM SELECTs.

Registered once (importing this module is enough). For every SELECT run by a
session whose `info["authz"]` carries row filters, each filtered collection
gets a `with_loader_criteria` option, so joins, relationship loads and plain
`select(Model)` calls in routers all see only the caller's rows.

Pass `execution_options(skip_visibility=True)` for lookups that must see
every row regardless of the route scope.
"""

from __future__ import annotations

from sqlalchemy import event
from sqlalchemy.orm import ORMExecuteState, Session, with_loader_criteria

from campushub.security.context import AuthzContext


def _authz(execute_state: ORMExecuteState) -> AuthzContext | None:
    if not execute_state.is_select or execute_state.execution_options.get("skip_visibility", False):
        return None
    return execute_state.session.info.get("authz")


@event.listens_for(Session, "do_orm_execute")
def _apply_visibility_filters(execute_state: ORMExecuteState) -> None:
    authz = _authz(execute_state)
    if authz is None or not authz.filters:
        return

    options = []
    for row_filter in authz.filters.values():
        criteria = row_filter.criteria()
        if criteria is not None:
            options.append(with_loader_criteria(row_filter.model, criteria, include_aliases=True))

    if options:
        execute_state.statement = execute_state.statement.options(*options)
