"""
Tests for the per-role visibility rules and the transparent SELECT filter.
"""
from __future__ import annotations

from datetime import date

from sqlalchemy import event, select

from campushub.models.communication import Announcement, AttendanceRecord, AttendanceStatus, Audience
from campushub.models.fees import StudentFeeConcession, StudentFeePayment
from campushub.models.leave import LeaveApplication
from campushub.models.school import ClassSection, Role, Student
from campushub.security.context import AuthzContext
from campushub.security.identity import resolve_identity
from campushub.security.visibility import AudienceFilter, Collection, RowFilter, evaluate_visibility


def _visible(db, identity, collection, model, target_school_id=None):
    row_filter = evaluate_visibility(db, identity, collection, target_school_id)
    return {row.id for row in db.scalars(row_filter.apply(select(model))).all()}


def test_student_sees_only_own_fee_records(db_session, world):
    identity = resolve_identity(db_session, world.student_a1_user)

    assert _visible(db_session, identity, Collection.FEE_PAYMENTS, StudentFeePayment) == {world.fee_a1}
    assert _visible(db_session, identity, Collection.LEAVE_APPLICATIONS, LeaveApplication) == {world.leave_a1}
    assert _visible(db_session, identity, Collection.FEE_CONCESSIONS, StudentFeeConcession) == {world.applied_a1}


def test_student_sees_own_class_only(db_session, world):
    identity = resolve_identity(db_session, world.student_a1_user)

    assert _visible(db_session, identity, Collection.CLASSES, ClassSection) == {world.class_a1}


def test_teacher_sees_students_of_owned_classes(db_session, world):
    identity = resolve_identity(db_session, world.teacher_with_class)

    assert _visible(db_session, identity, Collection.STUDENTS, Student) == {world.student_a1, world.student_a2}
    assert _visible(db_session, identity, Collection.CLASSES, ClassSection) == {world.class_a1}
    assert _visible(db_session, identity, Collection.FEE_PAYMENTS, StudentFeePayment) == {world.fee_a1, world.fee_a2}
    # Guest application has no student profile; a3 is in a class T1 does not own.
    assert _visible(db_session, identity, Collection.LEAVE_APPLICATIONS, LeaveApplication) == {
        world.leave_a1,
        world.leave_a2,
    }


def test_teacher_without_classes_gets_empty_filter_without_further_queries(engine, db_session, world):
    identity = resolve_identity(db_session, world.teacher_no_class)

    statements: list[str] = []

    def count(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", count)
    try:
        row_filter = evaluate_visibility(db_session, identity, Collection.FEE_PAYMENTS)
    finally:
        event.remove(engine, "before_cursor_execute", count)

    assert row_filter.is_empty
    assert not row_filter.is_unrestricted
    # Only the owned-classes lookup ran; no student or fee query followed.
    assert len(statements) == 1


def test_teacher_with_empty_class_sees_nothing(db_session, world):
    identity = resolve_identity(db_session, world.teacher_empty_class)

    row_filter = evaluate_visibility(db_session, identity, Collection.LEAVE_APPLICATIONS)

    assert row_filter.is_empty
    assert _visible(db_session, identity, Collection.LEAVE_APPLICATIONS, LeaveApplication) == set()
    assert _visible(db_session, identity, Collection.STUDENTS, Student) == set()
    # The class itself is still visible to its owner.
    assert _visible(db_session, identity, Collection.CLASSES, ClassSection) == {world.class_a2}


def test_admin_sees_whole_school_only(db_session, world):
    identity = resolve_identity(db_session, world.admin_a)

    visible = _visible(db_session, identity, Collection.LEAVE_APPLICATIONS, LeaveApplication)

    assert visible == {world.leave_a1, world.leave_a2, world.leave_a3, world.leave_guest_a}
    assert world.leave_b1 not in visible


def test_superadmin_sees_all_schools_or_the_target_school(db_session, world):
    identity = resolve_identity(db_session, world.superadmin)

    everything = _visible(db_session, identity, Collection.FEE_PAYMENTS, StudentFeePayment)
    only_b = _visible(db_session, identity, Collection.FEE_PAYMENTS, StudentFeePayment, world.school_b)

    assert everything == {world.fee_a1, world.fee_a2, world.fee_b1}
    assert only_b == {world.fee_b1}
    assert evaluate_visibility(db_session, identity, Collection.FEE_PAYMENTS).is_unrestricted


def test_permits_checks_school_and_reference(db_session, world):
    identity = resolve_identity(db_session, world.teacher_with_class)
    row_filter = evaluate_visibility(db_session, identity, Collection.STUDENTS)

    assert row_filter.permits(db_session.get(Student, world.student_a1))
    assert not row_filter.permits(db_session.get(Student, world.student_a3))
    assert not row_filter.permits(db_session.get(Student, world.student_b1))


def test_empty_filter_permits_nothing():
    row_filter = RowFilter.empty(Collection.STUDENTS, school_id=1)

    assert row_filter.is_empty
    assert not row_filter.permits(Student(id=1, school_id=1))


def test_plain_select_is_filtered_transparently(db_session, world):
    identity = resolve_identity(db_session, world.teacher_with_class)
    filters = {Collection.STUDENTS: evaluate_visibility(db_session, identity, Collection.STUDENTS)}
    db_session.info["authz"] = AuthzContext(identity=identity, filters=filters)

    students = db_session.scalars(select(Student).order_by(Student.id)).all()

    assert [s.id for s in students] == [world.student_a1, world.student_a2]


def test_transparent_filter_with_empty_visibility_returns_no_rows(db_session, world):
    identity = resolve_identity(db_session, world.teacher_no_class)
    filters = {Collection.FEE_PAYMENTS: evaluate_visibility(db_session, identity, Collection.FEE_PAYMENTS)}
    db_session.info["authz"] = AuthzContext(identity=identity, filters=filters)

    assert db_session.scalars(select(StudentFeePayment)).all() == []
    # Collections outside the route scope are untouched.
    assert len(db_session.scalars(select(Student)).all()) == 4


def test_skip_visibility_option_bypasses_transparent_filter(db_session, world):
    identity = resolve_identity(db_session, world.teacher_no_class)
    filters = {Collection.STUDENTS: evaluate_visibility(db_session, identity, Collection.STUDENTS)}
    db_session.info["authz"] = AuthzContext(identity=identity, filters=filters)

    assert db_session.scalars(select(Student)).all() == []
    assert len(db_session.scalars(select(Student).execution_options(skip_visibility=True)).all()) == 4
    # Rule evaluation itself is not affected by an active filter.
    teacher = resolve_identity(db_session, world.teacher_with_class)
    assert evaluate_visibility(db_session, teacher, Collection.CLASSES).allowed == frozenset({world.class_a1})


def _announcement(db, world, school_id, **fields):
    row = Announcement(
        school_id=school_id,
        title=fields.pop("title", "Notice"),
        content="Details follow.",
        author_name="Admin",
        posted_by_user_id=world.admin_a,
        posted_by_role=Role.ADMIN,
        **fields,
    )
    db.add(row)
    db.commit()
    return row.id


def test_teacher_without_classes_still_gets_school_wide_announcements(db_session, world):
    for_teachers = _announcement(db_session, world, world.school_a, target_audience=Audience.TEACHERS)
    _announcement(db_session, world, world.school_a, target_audience=Audience.STUDENTS)
    _announcement(db_session, world, world.school_a, target_class_id=world.class_a1)
    identity = resolve_identity(db_session, world.teacher_no_class)

    row_filter = evaluate_visibility(db_session, identity, Collection.ANNOUNCEMENTS)

    assert isinstance(row_filter, AudienceFilter)
    assert not row_filter.is_empty
    assert _visible(db_session, identity, Collection.ANNOUNCEMENTS, Announcement) == {for_teachers}


def test_admin_announcements_include_platform_rows(db_session, world):
    own = _announcement(db_session, world, world.school_a)
    platform = _announcement(db_session, world, None)
    _announcement(db_session, world, world.school_b)
    identity = resolve_identity(db_session, world.admin_a)

    assert _visible(db_session, identity, Collection.ANNOUNCEMENTS, Announcement) == {own, platform}


def test_audience_filter_permits_matches_sql(db_session, world):
    class_row = _announcement(db_session, world, world.school_a, target_class_id=world.class_a1)
    other_class = _announcement(db_session, world, world.school_a, target_class_id=world.class_a3)
    identity = resolve_identity(db_session, world.student_a1_user)
    row_filter = evaluate_visibility(db_session, identity, Collection.ANNOUNCEMENTS)

    assert row_filter.permits(db_session.get(Announcement, class_row))
    assert not row_filter.permits(db_session.get(Announcement, other_class))


def test_teacher_sees_attendance_of_own_students_only(db_session, world):
    for student_id, class_id in ((world.student_a1, world.class_a1), (world.student_a3, world.class_a3)):
        db_session.add(
            AttendanceRecord(
                school_id=world.school_a,
                student_id=student_id,
                class_id=class_id,
                attendance_date=date(2024, 5, 6),
                status=AttendanceStatus.PRESENT,
            )
        )
    db_session.commit()
    identity = resolve_identity(db_session, world.teacher_with_class)

    visible = db_session.scalars(
        evaluate_visibility(db_session, identity, Collection.ATTENDANCE).apply(select(AttendanceRecord.student_id))
    ).all()

    assert visible == [world.student_a1]
