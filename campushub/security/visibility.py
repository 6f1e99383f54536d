"""
Visibility rule evaluator.

Given a resolved Identity and a target collection, compute the RowFilter that
must be applied before querying that collection:

    student     -> only rows referencing the student's own profile id
    teacher     -> classes they own, students enrolled in them, and rows
                   referencing those students (empty when either set is empty)
    admin       -> every row of their school
    superadmin  -> every row of the target school, or of all schools

Announcements are matched by audience instead: class-targeted rows for the
caller's class(es), school-wide rows addressed to their role; admins also see
platform-wide rows.

Dispatch is a closed mapping of one evaluator per role so the rules can be
audited side by side.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import enum
import logging

from sqlalchemy import Select, and_, false, or_, select
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from campushub.models.communication import Announcement, AttendanceRecord, Audience
from campushub.models.fees import StudentFeeConcession, StudentFeePayment
from campushub.models.leave import LeaveApplication
from campushub.models.school import ClassSection, Role, Student
from campushub.security.identity import Identity

logger = logging.getLogger(__name__)


class Collection(str, enum.Enum):
    STUDENTS = "students"
    CLASSES = "classes"
    LEAVE_APPLICATIONS = "leave_applications"
    FEE_PAYMENTS = "fee_payments"
    FEE_CONCESSIONS = "fee_concessions"
    ANNOUNCEMENTS = "announcements"
    ATTENDANCE = "attendance"


COLLECTION_MODELS: dict[Collection, type] = {
    Collection.STUDENTS: Student,
    Collection.CLASSES: ClassSection,
    Collection.LEAVE_APPLICATIONS: LeaveApplication,
    Collection.FEE_PAYMENTS: StudentFeePayment,
    Collection.FEE_CONCESSIONS: StudentFeeConcession,
    Collection.ANNOUNCEMENTS: Announcement,
    Collection.ATTENDANCE: AttendanceRecord,
}

# Column on each collection that references a student profile.
_STUDENT_REFERENCE: dict[Collection, str] = {
    Collection.STUDENTS: "id",
    Collection.LEAVE_APPLICATIONS: "student_profile_id",
    Collection.FEE_PAYMENTS: "student_id",
    Collection.FEE_CONCESSIONS: "student_id",
    Collection.ATTENDANCE: "student_id",
}


@dataclass(frozen=True)
class RowFilter:
    """
    Row restriction for one collection.

    `school_id=None` means no tenant restriction (superadmin only).
    `allowed=None` means no foreign-key restriction; an empty frozenset means
    nothing is visible.
    """

    collection: Collection
    school_id: int | None
    column: str | None = None
    allowed: frozenset[int] | None = None

    @classmethod
    def empty(cls, collection: Collection, school_id: int | None) -> RowFilter:
        return cls(collection=collection, school_id=school_id, column="id", allowed=frozenset())

    @property
    def model(self) -> type:
        return COLLECTION_MODELS[self.collection]

    @property
    def is_empty(self) -> bool:
        return self.allowed is not None and not self.allowed

    @property
    def is_unrestricted(self) -> bool:
        return self.school_id is None and self.allowed is None

    def criteria(self) -> ColumnElement[bool] | None:
        """SQL criteria for this filter; None when unrestricted."""

        if self.is_empty:
            return false()

        model = self.model
        clauses: list[ColumnElement[bool]] = []
        if self.school_id is not None:
            clauses.append(model.school_id == self.school_id)
        if self.allowed is not None and self.column is not None:
            clauses.append(getattr(model, self.column).in_(sorted(self.allowed)))

        if not clauses:
            return None
        return and_(*clauses)

    def apply(self, stmt: Select) -> Select:
        criteria = self.criteria()
        return stmt if criteria is None else stmt.where(criteria)

    def permits(self, row: object) -> bool:
        """In-memory check of a loaded row against this filter."""

        if self.is_empty:
            return False
        if self.school_id is not None and getattr(row, "school_id", None) != self.school_id:
            return False
        if self.allowed is not None and self.column is not None:
            return getattr(row, self.column) in self.allowed
        return True


@dataclass(frozen=True)
class AudienceFilter(RowFilter):
    """
    Row restriction for announcements.

    Class-targeted rows are visible when their class is in `class_ids`;
    untargeted rows when their audience is in `audiences` (None: any row of
    the school). `include_platform` adds rows that belong to no school.
    """

    class_ids: frozenset[int] = frozenset()
    audiences: frozenset[Audience] | None = None
    include_platform: bool = False

    def criteria(self) -> ColumnElement[bool] | None:
        clauses: list[ColumnElement[bool]] = []
        if self.school_id is not None:
            tenant = Announcement.school_id == self.school_id
            if self.include_platform:
                tenant = or_(tenant, Announcement.school_id.is_(None))
            clauses.append(tenant)

        if self.audiences is not None:
            targeting = [
                and_(
                    Announcement.target_class_id.is_(None),
                    Announcement.target_audience.in_(sorted(self.audiences, key=lambda a: a.value)),
                )
            ]
            if self.class_ids:
                targeting.append(Announcement.target_class_id.in_(sorted(self.class_ids)))
            clauses.append(or_(*targeting))

        if not clauses:
            return None
        return and_(*clauses)

    def permits(self, row: object) -> bool:
        school_id = getattr(row, "school_id", None)
        if self.school_id is not None and school_id != self.school_id:
            if not (self.include_platform and school_id is None):
                return False
        if self.audiences is None:
            return True
        if row.target_class_id is not None:
            return row.target_class_id in self.class_ids
        return row.target_audience in self.audiences


# ---- Shared lookups ------------------------------------------------------------------


def owned_class_ids(db: Session, school_id: int | None, teacher_id: int | None) -> frozenset[int]:
    stmt = select(ClassSection.id).where(ClassSection.teacher_id == teacher_id).execution_options(skip_visibility=True)
    if school_id is not None:
        stmt = stmt.where(ClassSection.school_id == school_id)
    return frozenset(db.scalars(stmt).all())


def enrolled_student_ids(db: Session, school_id: int | None, class_ids: frozenset[int]) -> frozenset[int]:
    if not class_ids:
        return frozenset()
    stmt = select(Student.id).where(Student.class_id.in_(sorted(class_ids))).execution_options(skip_visibility=True)
    if school_id is not None:
        stmt = stmt.where(Student.school_id == school_id)
    return frozenset(db.scalars(stmt).all())


# ---- Per-role evaluators -------------------------------------------------------------


def _student_rule(db: Session, identity: Identity, collection: Collection, target_school_id: int | None) -> RowFilter:
    if collection in (Collection.CLASSES, Collection.ANNOUNCEMENTS):
        class_id = db.scalars(
            select(Student.class_id).where(Student.id == identity.profile_id).execution_options(skip_visibility=True)
        ).first()
        own_class = frozenset() if class_id is None else frozenset({class_id})
        if collection is Collection.ANNOUNCEMENTS:
            return AudienceFilter(
                collection, identity.school_id, class_ids=own_class, audiences=frozenset({Audience.ALL, Audience.STUDENTS})
            )
        return RowFilter(collection, identity.school_id, "id", own_class)

    return RowFilter(collection, identity.school_id, _STUDENT_REFERENCE[collection], frozenset({identity.profile_id}))


def _teacher_rule(db: Session, identity: Identity, collection: Collection, target_school_id: int | None) -> RowFilter:
    class_ids = owned_class_ids(db, identity.school_id, identity.profile_id)
    if collection is Collection.ANNOUNCEMENTS:
        # School-wide notices reach teachers whether or not they own a class.
        return AudienceFilter(
            collection, identity.school_id, class_ids=class_ids, audiences=frozenset({Audience.ALL, Audience.TEACHERS})
        )
    if not class_ids:
        logger.debug("Teacher owns no classes teacher_id=%s collection=%s", identity.profile_id, collection.value)
        return RowFilter.empty(collection, identity.school_id)

    if collection is Collection.CLASSES:
        return RowFilter(collection, identity.school_id, "id", class_ids)
    if collection is Collection.STUDENTS:
        return RowFilter(collection, identity.school_id, "class_id", class_ids)

    # Classes without enrolled students still yield an empty filter, never an unfiltered one.
    student_ids = enrolled_student_ids(db, identity.school_id, class_ids)
    return RowFilter(collection, identity.school_id, _STUDENT_REFERENCE[collection], student_ids)


def _admin_rule(db: Session, identity: Identity, collection: Collection, target_school_id: int | None) -> RowFilter:
    if collection is Collection.ANNOUNCEMENTS:
        return AudienceFilter(collection, identity.school_id, include_platform=True)
    return RowFilter(collection, identity.school_id)


def _superadmin_rule(db: Session, identity: Identity, collection: Collection, target_school_id: int | None) -> RowFilter:
    return RowFilter(collection, target_school_id)


_RoleRule = Callable[[Session, Identity, Collection, int | None], RowFilter]

_RULES: dict[Role, _RoleRule] = {
    Role.STUDENT: _student_rule,
    Role.TEACHER: _teacher_rule,
    Role.ADMIN: _admin_rule,
    Role.SUPERADMIN: _superadmin_rule,
}


def evaluate_visibility(
    db: Session,
    identity: Identity,
    collection: Collection,
    target_school_id: int | None = None,
) -> RowFilter:
    """Return the RowFilter `identity` is restricted to for `collection`."""

    rule = _RULES[identity.role]
    row_filter = rule(db, identity, Collection(collection), target_school_id)
    logger.debug(
        "Visibility evaluated user_id=%s role=%s collection=%s school_id=%s allowed=%s",
        identity.user_id,
        identity.role.value,
        row_filter.collection.value,
        row_filter.school_id,
        None if row_filter.allowed is None else len(row_filter.allowed),
    )
    return row_filter
