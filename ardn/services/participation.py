"""Participation recording and removal.

A participation is one ledger row per (student, activity). Recording and
removal write the ledger row and shift the student's cached total in the
same transaction. The database unique constraint on (student_id,
activity_id) is the real duplicate guard; the lookup below only exits early.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from fractions import Fraction

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ardn.core.config import get_settings
from ardn.core.context import TenantContext
from ardn.core.errors import ConflictError, ExpiredWindowError, NotFoundError
from ardn.db.transaction import run_atomic
from ardn.models.activity import Activity
from ardn.models.common import ensure_utc, utcnow
from ardn.models.participation import Participation
from ardn.models.student import Student
from ardn.schemas.participations import ParticipationCreateRequest
from ardn.services.ledger import apply_balance_delta, current_balance

logger = logging.getLogger(__name__)

ALREADY_RECORDED = "Participation is already recorded for this student and activity"


@dataclass
class RecordResult:
    participation: Participation
    points_earned: int
    old_total_points: int
    new_total_points: int


@dataclass
class RemovalResult:
    participation_id: str
    student_id: str
    points_removed: int
    new_total_points: int


def compute_earned_points(
    activity_points: int,
    provided_points: int | None = None,
    is_late: bool = False,
    penalty_factor: float | None = None,
) -> int:
    """Points credited for one participation.

    A late arrival keeps ``penalty_factor`` of the points, rounded down but
    never below 1 when anything was earned. The result is never negative.
    """
    if penalty_factor is None:
        penalty_factor = get_settings().late_penalty_factor
    earned = activity_points if provided_points is None else provided_points
    if is_late and earned > 0:
        earned = max(1, math.floor(earned * Fraction(str(penalty_factor))))
    return max(0, earned)


def effective_end_time(activity: Activity, window_hours: int | None = None) -> datetime:
    """Last moment a participation can be recorded for the activity."""
    if activity.end_time is not None:
        return ensure_utc(activity.end_time)
    if window_hours is None:
        window_hours = get_settings().participation_window_hours
    return ensure_utc(activity.start_time) + timedelta(hours=window_hours)


def _scoped_student(db: Session, ctx: TenantContext, student_id: str) -> Student:
    student = db.scalar(
        select(Student).where(Student.id == student_id, Student.organization_id == ctx.organization_id)
    )
    if student is None:
        raise NotFoundError("Student not found")
    return student


def _scoped_activity(db: Session, ctx: TenantContext, activity_id: str) -> Activity:
    activity = db.scalar(
        select(Activity).where(Activity.id == activity_id, Activity.organization_id == ctx.organization_id)
    )
    if activity is None:
        raise NotFoundError("Activity not found")
    return activity


def record_participation(
    db: Session,
    ctx: TenantContext,
    payload: ParticipationCreateRequest,
    now: datetime | None = None,
) -> RecordResult:
    student = _scoped_student(db, ctx, payload.student_id)
    activity = _scoped_activity(db, ctx, payload.activity_id)

    # Duplicate detection wins over expiry so a double submit reads "already recorded".
    existing = db.scalar(
        select(Participation.id).where(
            Participation.student_id == student.id,
            Participation.activity_id == activity.id,
        )
    )
    if existing:
        raise ConflictError(ALREADY_RECORDED)

    now = ensure_utc(now) if now is not None else utcnow()
    deadline = effective_end_time(activity)
    if now > deadline:
        raise ExpiredWindowError(
            "Participation window for this activity has closed",
            details={"closed_at": deadline.isoformat()},
        )

    earned = compute_earned_points(activity.points, payload.points_earned, payload.is_late)
    student_id = student.id
    activity_id = activity.id

    def _work() -> RecordResult:
        old_total = current_balance(db, ctx.organization_id, student_id)
        participation = Participation(
            student_id=student_id,
            activity_id=activity_id,
            participated_at=now,
            points_earned=earned,
            is_late=payload.is_late,
            notes=(payload.notes or "").strip() or None,
            recorded_by_id=ctx.user_id,
        )
        db.add(participation)
        db.flush()
        apply_balance_delta(db, ctx.organization_id, student_id, earned)
        new_total = current_balance(db, ctx.organization_id, student_id)
        return RecordResult(
            participation=participation,
            points_earned=earned,
            old_total_points=old_total,
            new_total_points=new_total,
        )

    try:
        result = run_atomic(db, _work, label="record_participation")
    except IntegrityError as exc:
        raise ConflictError(ALREADY_RECORDED) from exc

    logger.info(
        "Participation %s recorded: student=%s activity=%s points=%d total %d->%d",
        result.participation.id,
        student_id,
        activity_id,
        earned,
        result.old_total_points,
        result.new_total_points,
    )
    return result


def remove_participation(db: Session, ctx: TenantContext, participation_id: str) -> RemovalResult:
    participation = db.scalar(
        select(Participation)
        .join(Student, Student.id == Participation.student_id)
        .where(Participation.id == participation_id, Student.organization_id == ctx.organization_id)
    )
    if participation is None:
        raise NotFoundError("Participation not found")

    student_id = participation.student_id
    points = participation.points_earned

    def _work() -> int:
        db.delete(participation)
        db.flush()
        apply_balance_delta(db, ctx.organization_id, student_id, -points)
        return current_balance(db, ctx.organization_id, student_id)

    new_total = run_atomic(db, _work, label="remove_participation")
    logger.info(
        "Participation %s removed: student=%s points=-%d new_total=%d",
        participation_id,
        student_id,
        points,
        new_total,
    )
    return RemovalResult(
        participation_id=participation_id,
        student_id=student_id,
        points_removed=points,
        new_total_points=new_total,
    )


def list_participations(
    db: Session,
    ctx: TenantContext,
    student_id: str | None = None,
    activity_id: str | None = None,
    program_id: str | None = None,
) -> list[tuple[Participation, Student, Activity]]:
    stmt = (
        select(Participation, Student, Activity)
        .join(Student, Student.id == Participation.student_id)
        .join(Activity, Activity.id == Participation.activity_id)
        .where(Student.organization_id == ctx.organization_id)
        .order_by(Participation.participated_at.desc())
    )
    if student_id:
        stmt = stmt.where(Participation.student_id == student_id)
    if activity_id:
        stmt = stmt.where(Participation.activity_id == activity_id)
    if program_id:
        stmt = stmt.where(Activity.program_id == program_id)
    return [tuple(row) for row in db.execute(stmt).all()]
