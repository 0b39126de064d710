"""Bulk enrollment of a program's students into one activity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ardn.core.context import TenantContext
from ardn.core.errors import NotFoundError, TransactionError
from ardn.db.transaction import run_atomic
from ardn.models.activity import Activity
from ardn.models.common import ensure_utc, utcnow
from ardn.models.participation import Participation
from ardn.models.student import Student
from ardn.services.ledger import apply_balance_delta

logger = logging.getLogger(__name__)


@dataclass
class EnrollmentResult:
    activity_id: str
    activity_date: date
    success: bool = True
    students_enrolled: int = 0
    points_distributed: int = 0
    message: str = ""


def eligible_student_ids(db: Session, activity: Activity) -> list[str]:
    """Active students of the activity's program without a participation for it."""
    already_enrolled = (
        select(Participation.id)
        .where(Participation.activity_id == activity.id, Participation.student_id == Student.id)
        .exists()
    )
    return list(
        db.scalars(
            select(Student.id)
            .where(
                Student.organization_id == activity.organization_id,
                Student.program_id == activity.program_id,
                Student.is_active.is_(True),
                ~already_enrolled,
            )
            .order_by(Student.created_at, Student.id)
        ).all()
    )


def auto_enroll(
    db: Session,
    ctx: TenantContext,
    activity: Activity,
    now: datetime | None = None,
) -> EnrollmentResult:
    """Enroll every eligible student at the activity's full point value.

    Ledger rows and balance increments commit together or not at all.
    """
    if activity.organization_id != ctx.organization_id:
        raise NotFoundError("Activity not found")

    activity_id = activity.id
    activity_date = activity.activity_date
    points = activity.points
    participated_at = ensure_utc(now) if now is not None else utcnow()

    def _work() -> list[str]:
        student_ids = eligible_student_ids(db, activity)
        if not student_ids:
            return []
        db.add_all(
            [
                Participation(
                    student_id=student_id,
                    activity_id=activity_id,
                    participated_at=participated_at,
                    points_earned=points,
                    is_late=False,
                    recorded_by_id=ctx.user_id,
                )
                for student_id in student_ids
            ]
        )
        db.flush()
        apply_balance_delta(db, ctx.organization_id, student_ids, points)
        return student_ids

    try:
        enrolled = run_atomic(db, _work, label="auto_enroll")
    except IntegrityError as exc:
        logger.warning("Auto-enrollment for activity %s aborted by a concurrent participation: %s", activity_id, exc)
        raise TransactionError("Auto-enrollment was aborted, no students were enrolled") from exc

    if not enrolled:
        return EnrollmentResult(
            activity_id=activity_id,
            activity_date=activity_date,
            message="No students found to include",
        )

    logger.info(
        "Auto-enrolled %d student(s) into activity %s (%d points each)",
        len(enrolled),
        activity_id,
        points,
    )
    return EnrollmentResult(
        activity_id=activity_id,
        activity_date=activity_date,
        students_enrolled=len(enrolled),
        points_distributed=len(enrolled) * points,
        message=f"{len(enrolled)} student(s) automatically included",
    )
