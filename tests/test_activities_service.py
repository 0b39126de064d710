from datetime import UTC, date, datetime, timedelta

import pytest

from ardn.core.errors import ConflictError, NotFoundError, ValidationError
from ardn.models.activity import Activity
from ardn.models.common import ensure_utc
from ardn.models.participation import Participation
from ardn.models.student import Student
from ardn.schemas.activities import ActivityCreateRequest, ActivityUpdateRequest
from ardn.schemas.participations import ParticipationCreateRequest
from ardn.services.activities import create_activities, list_series, update_activity
from ardn.services.enrollment import auto_enroll
from ardn.services.participation import record_participation
from tests.conftest import make_activity, make_program, make_student

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _request(program, **overrides) -> ActivityCreateRequest:
    fields = {
        "title": "Sabah Namazi",
        "activity_date": START.date(),
        "start_time": START,
        "end_time": START + timedelta(hours=1),
        "points": 10,
        "program_id": program.id,
    }
    fields.update(overrides)
    return ActivityCreateRequest(**fields)


def test_weekly_recurring_creates_one_row_per_occurrence(db_session, tenant):
    program = make_program(db_session, tenant)

    result = create_activities(
        db_session,
        tenant,
        _request(program, is_recurring=True, recurrence_type="WEEKLY", recurrence_end_date=date(2026, 3, 23)),
    )

    assert [activity.activity_date for activity in result.activities] == [
        date(2026, 3, 2),
        date(2026, 3, 9),
        date(2026, 3, 16),
        date(2026, 3, 23),
    ]
    for activity in result.activities:
        assert activity.is_recurring is True
        assert activity.recurrence_type == "WEEKLY"
        assert activity.start_time.hour == 9
        assert activity.end_time.hour == 10
    assert result.enrollments == []


def test_recurring_without_end_date_creates_single_row(db_session, tenant):
    program = make_program(db_session, tenant)
    result = create_activities(db_session, tenant, _request(program, is_recurring=True, recurrence_type="DAILY"))
    assert len(result.activities) == 1


@pytest.mark.parametrize("points", [0, 101])
def test_points_out_of_range_rejected(db_session, tenant, points):
    program = make_program(db_session, tenant)
    with pytest.raises(ValidationError):
        create_activities(db_session, tenant, _request(program, points=points))
    assert db_session.query(Activity).count() == 0


def test_end_time_must_follow_start_time(db_session, tenant):
    program = make_program(db_session, tenant)
    with pytest.raises(ValidationError):
        create_activities(db_session, tenant, _request(program, end_time=START))


def test_recurrence_end_before_start_rejected(db_session, tenant):
    program = make_program(db_session, tenant)
    with pytest.raises(ValidationError):
        create_activities(
            db_session,
            tenant,
            _request(program, is_recurring=True, recurrence_type="DAILY", recurrence_end_date=date(2026, 3, 1)),
        )


def test_occurrence_limit(db_session, tenant, monkeypatch):
    from ardn.core.config import get_settings

    monkeypatch.setattr(get_settings(), "max_recurrence_occurrences", 5)
    program = make_program(db_session, tenant)
    with pytest.raises(ValidationError):
        create_activities(
            db_session,
            tenant,
            _request(program, is_recurring=True, recurrence_type="DAILY", recurrence_end_date=date(2026, 3, 31)),
        )
    assert db_session.query(Activity).count() == 0


def test_program_from_other_tenant_not_found(db_session, tenant, other_tenant):
    program = make_program(db_session, tenant)
    with pytest.raises(NotFoundError):
        create_activities(db_session, other_tenant, _request(program))


def test_auto_include_enrolls_active_program_students(db_session, tenant):
    program = make_program(db_session, tenant)
    other_program = make_program(db_session, tenant, name="Kis Okulu")
    first = make_student(db_session, tenant, program, "1001")
    second = make_student(db_session, tenant, program, "1002")
    inactive = make_student(db_session, tenant, program, "1003")
    outsider = make_student(db_session, tenant, other_program, "2001")
    db_session.get(Student, inactive.id).is_active = False
    db_session.commit()

    result = create_activities(
        db_session,
        tenant,
        _request(
            program,
            points=15,
            is_recurring=True,
            recurrence_type="DAILY",
            recurrence_end_date=date(2026, 3, 4),
            auto_include_all_students=True,
        ),
    )

    assert len(result.activities) == 3
    assert [item.students_enrolled for item in result.enrollments] == [2, 2, 2]
    assert all(item.success for item in result.enrollments)
    assert result.students_enrolled == 6
    assert result.points_distributed == 90
    assert db_session.get(Student, first.id).total_points == 45
    assert db_session.get(Student, second.id).total_points == 45
    assert db_session.get(Student, inactive.id).total_points == 0
    assert db_session.get(Student, outsider.id).total_points == 0


def test_auto_enroll_skips_existing_participants(db_session, tenant):
    program = make_program(db_session, tenant)
    first = make_student(db_session, tenant, program, "1001")
    second = make_student(db_session, tenant, program, "1002")
    activity = make_activity(db_session, tenant, program)
    record_participation(
        db_session,
        tenant,
        ParticipationCreateRequest(student_id=first.id, activity_id=activity.id, is_late=True),
        now=START,
    )

    result = auto_enroll(db_session, tenant, activity)

    assert result.students_enrolled == 1
    assert result.points_distributed == 10
    assert db_session.get(Student, first.id).total_points == 8
    assert db_session.get(Student, second.id).total_points == 10
    assert db_session.query(Participation).count() == 2

    again = auto_enroll(db_session, tenant, activity)
    assert again.success is True
    assert again.students_enrolled == 0
    assert again.message == "No students found to include"


def test_auto_enroll_without_students_reports_empty(db_session, tenant):
    program = make_program(db_session, tenant)
    result = create_activities(db_session, tenant, _request(program, auto_include_all_students=True))
    assert len(result.activities) == 1
    assert result.enrollments[0].success is True
    assert result.enrollments[0].students_enrolled == 0


def test_auto_enroll_failure_keeps_created_activities(db_session, tenant, monkeypatch):
    from ardn.services import activities as activity_service
    from ardn.core.errors import TransactionError

    program = make_program(db_session, tenant)
    make_student(db_session, tenant, program, "1001")

    def failing_enroll(db, ctx, activity, now=None):
        raise TransactionError("Auto-enrollment was aborted, no students were enrolled")

    monkeypatch.setattr(activity_service, "auto_enroll", failing_enroll)
    result = create_activities(db_session, tenant, _request(program, auto_include_all_students=True))

    assert db_session.query(Activity).count() == 1
    assert result.enrollments[0].success is False
    assert result.students_enrolled == 0


def test_update_activity_rejects_inverted_schedule(db_session, tenant):
    program = make_program(db_session, tenant)
    activity = make_activity(db_session, tenant, program)

    with pytest.raises(ValidationError):
        update_activity(db_session, tenant, activity.id, ActivityUpdateRequest(end_time=START - timedelta(hours=1)))

    updated = update_activity(db_session, tenant, activity.id, ActivityUpdateRequest(title="Yatsi", points=20))
    assert updated.title == "Yatsi"
    assert updated.points == 20


def test_list_series_groups_recurring_rows(db_session, tenant):
    program = make_program(db_session, tenant)
    create_activities(
        db_session,
        tenant,
        _request(program, is_recurring=True, recurrence_type="DAILY", recurrence_end_date=date(2026, 3, 4)),
    )
    make_activity(db_session, tenant, program, title="Tek Seferlik")

    series = list_series(db_session, tenant)

    assert len(series) == 1
    assert series[0].title == "Sabah Namazi"
    assert series[0].occurrences == 3


def test_duplicate_program_name_conflicts(db_session, tenant):
    make_program(db_session, tenant)
    with pytest.raises(ConflictError):
        make_program(db_session, tenant)


def _competing_enrollment(tenant, monkeypatch, student_id):
    from ardn.db.session import session_scope
    from ardn.services import enrollment

    original = enrollment.eligible_student_ids
    inserted = []

    def eligible_then_competing_insert(db, activity):
        student_ids = original(db, activity)
        if not inserted:
            # A manual recording for one of the students lands before the bulk insert.
            with session_scope() as other:
                other.add(
                    Participation(
                        student_id=student_id,
                        activity_id=activity.id,
                        participated_at=START,
                        points_earned=activity.points,
                        recorded_by_id=tenant.user_id,
                    )
                )
                other.commit()
            inserted.append(student_id)
        return student_ids

    monkeypatch.setattr(enrollment, "eligible_student_ids", eligible_then_competing_insert)


def test_auto_enroll_conflict_rolls_back_every_student(db_session, tenant, monkeypatch):
    from ardn.core.errors import TransactionError

    program = make_program(db_session, tenant)
    first = make_student(db_session, tenant, program, "1001")
    second = make_student(db_session, tenant, program, "1002")
    activity = make_activity(db_session, tenant, program)
    _competing_enrollment(tenant, monkeypatch, first.id)

    with pytest.raises(TransactionError):
        auto_enroll(db_session, tenant, activity)

    assert db_session.get(Student, first.id).total_points == 0
    assert db_session.get(Student, second.id).total_points == 0
    assert db_session.query(Participation).count() == 1


def test_auto_include_conflict_reported_and_activity_kept(db_session, tenant, monkeypatch):
    program = make_program(db_session, tenant)
    first = make_student(db_session, tenant, program, "1001")
    second = make_student(db_session, tenant, program, "1002")
    _competing_enrollment(tenant, monkeypatch, first.id)

    result = create_activities(db_session, tenant, _request(program, auto_include_all_students=True))

    assert db_session.query(Activity).count() == 1
    assert result.enrollments[0].success is False
    assert result.students_enrolled == 0
    assert db_session.get(Student, second.id).total_points == 0


def test_unknown_recurrence_type_rejected_by_schema(db_session, tenant):
    from pydantic import ValidationError as SchemaValidationError

    program = make_program(db_session, tenant)
    with pytest.raises(SchemaValidationError):
        _request(program, is_recurring=True, recurrence_type="weekly", recurrence_end_date=date(2026, 3, 30))
    with pytest.raises(SchemaValidationError):
        ActivityUpdateRequest(recurrence_type="YEARLY")


def test_recurrence_type_check_constraint(db_session, tenant):
    from sqlalchemy.exc import IntegrityError

    program = make_program(db_session, tenant)
    db_session.add(
        Activity(
            organization_id=tenant.organization_id,
            program_id=program.id,
            title="Gecersiz",
            activity_date=START.date(),
            start_time=START,
            points=10,
            is_recurring=True,
            recurrence_type="weekly",
            created_by_id=tenant.user_id,
        )
    )
    with pytest.raises(IntegrityError):
        db_session.commit()
    db_session.rollback()


def test_moving_activity_date_shifts_its_times(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    moved = update_activity(db_session, tenant, activity.id, ActivityUpdateRequest(activity_date=date(2026, 3, 9)))

    assert moved.activity_date == date(2026, 3, 9)
    assert ensure_utc(moved.start_time) == START + timedelta(days=7)
    assert ensure_utc(moved.end_time) == START + timedelta(days=7, hours=1)

    result = record_participation(
        db_session,
        tenant,
        ParticipationCreateRequest(student_id=student.id, activity_id=activity.id),
        now=START + timedelta(days=7, minutes=30),
    )
    assert result.points_earned == 10


def test_moving_activity_date_keeps_explicit_start_time(db_session, tenant):
    program = make_program(db_session, tenant)
    activity = make_activity(db_session, tenant, program, end_time=None)
    new_start = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)

    moved = update_activity(
        db_session,
        tenant,
        activity.id,
        ActivityUpdateRequest(activity_date=date(2026, 3, 10), start_time=new_start),
    )

    assert ensure_utc(moved.start_time) == new_start
    assert moved.end_time is None
