from datetime import UTC, datetime, timedelta

import pytest

from ardn.core.errors import ConflictError, ExpiredWindowError, NotFoundError
from ardn.models.student import Student
from ardn.schemas.adjustments import PointAdjustmentRequest
from ardn.schemas.participations import ParticipationCreateRequest
from ardn.services.adjustments import create_adjustment
from ardn.services.ledger import ledger_total
from ardn.services.participation import (
    compute_earned_points,
    effective_end_time,
    record_participation,
    remove_participation,
)
from tests.conftest import make_activity, make_program, make_student

START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _record(db, ctx, student, activity, at, **fields):
    payload = ParticipationCreateRequest(student_id=student.id, activity_id=activity.id, **fields)
    return record_participation(db, ctx, payload, now=at)


def test_compute_earned_points_late_penalty():
    assert compute_earned_points(10, is_late=True, penalty_factor=0.8) == 8
    assert compute_earned_points(30, is_late=True, penalty_factor=0.8) == 24
    assert compute_earned_points(7, is_late=True, penalty_factor=0.8) == 5
    assert compute_earned_points(1, is_late=True, penalty_factor=0.8) == 1
    assert compute_earned_points(10, provided_points=0, is_late=True, penalty_factor=0.8) == 0
    assert compute_earned_points(10, provided_points=-3) == 0
    assert compute_earned_points(10, provided_points=4) == 4


def test_effective_end_time_defaults_to_window_after_start(db_session, tenant):
    program = make_program(db_session, tenant)
    open_ended = make_activity(db_session, tenant, program, end_time=None)
    assert effective_end_time(open_ended, window_hours=3) == START + timedelta(hours=3)

    bounded = make_activity(db_session, tenant, program, title="Okuma")
    assert effective_end_time(bounded) == START + timedelta(hours=1)


def test_record_updates_balance(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    result = _record(db_session, tenant, student, activity, START + timedelta(minutes=10))

    assert result.points_earned == 10
    assert result.old_total_points == 0
    assert result.new_total_points == 10
    assert db_session.get(Student, student.id).total_points == 10


def test_late_participation_earns_penalized_points(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    result = _record(db_session, tenant, student, activity, START + timedelta(minutes=50), is_late=True)

    assert result.points_earned == 8
    assert result.participation.is_late is True
    assert result.new_total_points == 8


def test_record_at_exact_end_time_is_accepted(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    result = _record(db_session, tenant, student, activity, START + timedelta(hours=1))
    assert result.points_earned == 10


def test_record_after_end_time_is_rejected(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    with pytest.raises(ExpiredWindowError):
        _record(db_session, tenant, student, activity, START + timedelta(hours=1, seconds=1))

    assert db_session.get(Student, student.id).total_points == 0


def test_open_ended_activity_closes_after_window(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program, end_time=None)

    _record(db_session, tenant, student, activity, START + timedelta(hours=2, minutes=59))

    other = make_student(db_session, tenant, program, "1002")
    with pytest.raises(ExpiredWindowError):
        _record(db_session, tenant, other, activity, START + timedelta(hours=3, minutes=1))


def test_duplicate_participation_conflicts_without_changing_balance(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)
    _record(db_session, tenant, student, activity, START)

    with pytest.raises(ConflictError):
        _record(db_session, tenant, student, activity, START + timedelta(minutes=5))

    assert db_session.get(Student, student.id).total_points == 10


def test_duplicate_reported_before_expiry(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)
    _record(db_session, tenant, student, activity, START)

    with pytest.raises(ConflictError):
        _record(db_session, tenant, student, activity, START + timedelta(days=2))


def test_cross_tenant_records_are_not_found(db_session, tenant, other_tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)

    with pytest.raises(NotFoundError):
        _record(db_session, other_tenant, student, activity, START)


def test_remove_participation_floors_balance_at_zero(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)
    recorded = _record(db_session, tenant, student, activity, START)
    create_adjustment(db_session, tenant, student.id, PointAdjustmentRequest(delta=-4, reason="Disiplin"))
    assert db_session.get(Student, student.id).total_points == 6

    removal = remove_participation(db_session, tenant, recorded.participation.id)

    assert removal.points_removed == 10
    assert removal.new_total_points == 0
    assert db_session.get(Student, student.id).total_points == 0


def test_remove_unknown_participation(db_session, tenant, other_tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)
    recorded = _record(db_session, tenant, student, activity, START)

    with pytest.raises(NotFoundError):
        remove_participation(db_session, other_tenant, recorded.participation.id)
    with pytest.raises(NotFoundError):
        remove_participation(db_session, tenant, "missing")


def test_balance_matches_ledger_after_mixed_operations(db_session, tenant):
    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    first = make_activity(db_session, tenant, program, title="Birinci")
    second = make_activity(db_session, tenant, program, title="Ikinci", points=25)
    third = make_activity(db_session, tenant, program, title="Ucuncu", points=7)

    _record(db_session, tenant, student, first, START)
    kept = _record(db_session, tenant, student, second, START, is_late=True)
    dropped = _record(db_session, tenant, student, third, START)
    remove_participation(db_session, tenant, dropped.participation.id)
    create_adjustment(db_session, tenant, student.id, PointAdjustmentRequest(delta=5, reason="Bonus"))

    assert kept.points_earned == 20
    stored = db_session.get(Student, student.id).total_points
    assert stored == 35
    assert stored == ledger_total(db_session, tenant.organization_id, student.id)


def test_concurrent_duplicate_caught_by_unique_constraint(db_session, tenant, monkeypatch):
    from ardn.db.session import session_scope
    from ardn.models.participation import Participation
    from ardn.services import participation as participation_service

    program = make_program(db_session, tenant)
    student = make_student(db_session, tenant, program, "1001")
    activity = make_activity(db_session, tenant, program)
    student_id, activity_id = student.id, activity.id
    original_end_time = participation_service.effective_end_time

    def end_time_with_competing_insert(activity, window_hours=None):
        # Another request commits the same pair after the duplicate lookup.
        with session_scope() as other:
            other.add(
                Participation(
                    student_id=student_id,
                    activity_id=activity_id,
                    participated_at=START,
                    points_earned=10,
                    recorded_by_id=tenant.user_id,
                )
            )
            other.commit()
        return original_end_time(activity, window_hours)

    monkeypatch.setattr(participation_service, "effective_end_time", end_time_with_competing_insert)

    with pytest.raises(ConflictError):
        _record(db_session, tenant, student, activity, START)

    assert db_session.get(Student, student_id).total_points == 0
    assert db_session.query(Participation).filter(Participation.student_id == student_id).count() == 1
