import logging
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ardn.core.config import get_settings
from ardn.core.context import TenantContext
from ardn.core.errors import ArdnError, NotFoundError, ValidationError
from ardn.db.transaction import run_atomic
from ardn.models.activity import MAX_ACTIVITY_POINTS, MIN_ACTIVITY_POINTS, Activity
from ardn.models.common import ensure_utc
from ardn.models.participation import Participation
from ardn.schemas.activities import ActivityCreateRequest, ActivityUpdateRequest
from ardn.services.enrollment import EnrollmentResult, auto_enroll
from ardn.services.programs import get_program
from ardn.services.recurrence import ActivitySeries, expand_dates, group_series, occurrence_times

logger = logging.getLogger(__name__)


@dataclass
class ActivityCreationResult:
    activities: list[Activity]
    enrollments: list[EnrollmentResult] = field(default_factory=list)

    @property
    def students_enrolled(self) -> int:
        return sum(item.students_enrolled for item in self.enrollments)

    @property
    def points_distributed(self) -> int:
        return sum(item.points_distributed for item in self.enrollments)


def validate_points(points: int) -> None:
    if points < MIN_ACTIVITY_POINTS or points > MAX_ACTIVITY_POINTS:
        raise ValidationError(f"ARDN points must be between {MIN_ACTIVITY_POINTS} and {MAX_ACTIVITY_POINTS}")


def validate_schedule(start_time: datetime, end_time: datetime | None) -> None:
    if end_time is not None and ensure_utc(end_time) <= ensure_utc(start_time):
        raise ValidationError("End time must be after start time")


def validate_max_participants(max_participants: int | None) -> None:
    if max_participants is not None and max_participants < 1:
        raise ValidationError("Maximum participants must be a positive number")


def get_activity(db: Session, ctx: TenantContext, activity_id: str) -> Activity:
    activity = db.scalar(
        select(Activity)
        .where(Activity.id == activity_id, Activity.organization_id == ctx.organization_id)
        .options(selectinload(Activity.program))
    )
    if activity is None:
        raise NotFoundError("Activity not found")
    return activity


def participant_counts(db: Session, ctx: TenantContext, activity_ids: list[str]) -> dict[str, int]:
    if not activity_ids:
        return {}
    rows = db.execute(
        select(Participation.activity_id, func.count(Participation.id))
        .join(Activity, Activity.id == Participation.activity_id)
        .where(Activity.organization_id == ctx.organization_id, Participation.activity_id.in_(activity_ids))
        .group_by(Participation.activity_id)
    ).all()
    return dict(rows)


def list_activities(db: Session, ctx: TenantContext, program_id: str | None = None) -> list[Activity]:
    stmt = (
        select(Activity)
        .where(Activity.organization_id == ctx.organization_id)
        .options(selectinload(Activity.program))
        .order_by(Activity.is_active.desc(), Activity.activity_date.desc())
    )
    if program_id:
        stmt = stmt.where(Activity.program_id == program_id)
    return list(db.scalars(stmt).all())


def list_series(db: Session, ctx: TenantContext, program_id: str | None = None) -> list[ActivitySeries]:
    stmt = (
        select(Activity)
        .where(Activity.organization_id == ctx.organization_id, Activity.is_recurring.is_(True))
        .order_by(Activity.activity_date.asc(), Activity.created_at.asc())
    )
    if program_id:
        stmt = stmt.where(Activity.program_id == program_id)
    return group_series(db.scalars(stmt).all())


def _build_activities(ctx: TenantContext, payload: ActivityCreateRequest, title: str) -> list[Activity]:
    common = dict(
        organization_id=ctx.organization_id,
        program_id=payload.program_id,
        title=title,
        description=(payload.description or "").strip() or None,
        points=payload.points,
        max_participants=payload.max_participants,
        is_active=True,
        created_by_id=ctx.user_id,
    )

    if payload.is_recurring and payload.recurrence_type and payload.recurrence_end_date:
        if payload.recurrence_end_date < payload.activity_date:
            raise ValidationError("Recurrence end date must not be before the activity date")
        dates = expand_dates(payload.activity_date, payload.recurrence_end_date, payload.recurrence_type)
        limit = get_settings().max_recurrence_occurrences
        if len(dates) > limit:
            raise ValidationError(f"Recurring activity would create {len(dates)} occurrences, the limit is {limit}")

        activities = []
        for day in dates:
            start_time, end_time = occurrence_times(day, payload.start_time, payload.end_time)
            activities.append(
                Activity(
                    activity_date=day,
                    start_time=ensure_utc(start_time),
                    end_time=ensure_utc(end_time),
                    is_recurring=True,
                    recurrence_type=payload.recurrence_type,
                    **common,
                )
            )
        return activities

    return [
        Activity(
            activity_date=payload.activity_date,
            start_time=ensure_utc(payload.start_time),
            end_time=ensure_utc(payload.end_time),
            is_recurring=payload.is_recurring,
            recurrence_type=payload.recurrence_type if payload.is_recurring else None,
            **common,
        )
    ]


def create_activities(db: Session, ctx: TenantContext, payload: ActivityCreateRequest) -> ActivityCreationResult:
    """Create one activity, or one row per occurrence for a recurring request.

    Rows are committed together. Auto-enrollment runs afterwards, one
    transaction per created activity; its failures are reported in the
    result and never undo the created activities.
    """
    title = payload.title.strip()
    if not title:
        raise ValidationError("Title is required")
    validate_points(payload.points)
    get_program(db, ctx, payload.program_id)
    validate_schedule(payload.start_time, payload.end_time)
    validate_max_participants(payload.max_participants)

    activities = _build_activities(ctx, payload, title)

    def _work() -> list[Activity]:
        db.add_all(activities)
        db.flush()
        return activities

    run_atomic(db, _work, label="create_activities")
    logger.info(
        "Created %d activity row(s) '%s' in program %s (recurring=%s)",
        len(activities),
        title,
        payload.program_id,
        payload.is_recurring,
    )

    result = ActivityCreationResult(activities=activities)
    if payload.auto_include_all_students:
        for activity in activities:
            try:
                result.enrollments.append(auto_enroll(db, ctx, activity))
            except ArdnError as exc:
                logger.warning("Auto-enrollment failed for activity %s: %s", activity.id, exc.message)
                result.enrollments.append(
                    EnrollmentResult(
                        activity_id=activity.id,
                        activity_date=activity.activity_date,
                        success=False,
                        message=exc.message,
                    )
                )
    return result


def update_activity(db: Session, ctx: TenantContext, activity_id: str, payload: ActivityUpdateRequest) -> Activity:
    activity = get_activity(db, ctx, activity_id)
    changes = payload.model_dump(exclude_unset=True)

    title = changes.get("title")
    if title is not None:
        title = title.strip()
        if not title:
            raise ValidationError("Title cannot be empty")
    if changes.get("points") is not None:
        validate_points(changes["points"])
    if "max_participants" in changes:
        validate_max_participants(changes["max_participants"])

    start_time = ensure_utc(changes.get("start_time") or activity.start_time)
    end_time = ensure_utc(changes["end_time"] if "end_time" in changes else activity.end_time)
    new_date = changes.get("activity_date")
    if new_date is not None and new_date != activity.activity_date:
        # Timestamps left out of the patch move with the activity to its new day.
        shift = new_date - activity.activity_date
        if changes.get("start_time") is None:
            start_time = start_time + shift
        if "end_time" not in changes and end_time is not None:
            end_time = end_time + shift
    validate_schedule(start_time, end_time)

    if title is not None:
        activity.title = title
    if "description" in changes:
        activity.description = (changes["description"] or "").strip() or None
    if new_date is not None:
        activity.activity_date = new_date
    activity.start_time = start_time
    activity.end_time = end_time
    if changes.get("points") is not None:
        activity.points = changes["points"]
    if "max_participants" in changes:
        activity.max_participants = changes["max_participants"]
    if changes.get("is_active") is not None:
        activity.is_active = changes["is_active"]
    if changes.get("is_recurring") is not None:
        activity.is_recurring = changes["is_recurring"]
    if "recurrence_type" in changes or "is_recurring" in changes:
        if activity.is_recurring:
            activity.recurrence_type = changes.get("recurrence_type", activity.recurrence_type)
        else:
            activity.recurrence_type = None

    def _work() -> Activity:
        db.add(activity)
        db.flush()
        return activity

    run_atomic(db, _work, label="update_activity")
    return get_activity(db, ctx, activity_id)


def deactivate_activity(db: Session, ctx: TenantContext, activity_id: str) -> None:
    activity = get_activity(db, ctx, activity_id)
    activity.is_active = False

    def _work() -> None:
        db.add(activity)
        db.flush()

    run_atomic(db, _work, label="deactivate_activity")
    logger.info("Activity %s deactivated in organization %s", activity_id, ctx.organization_id)
