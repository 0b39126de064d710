"""Read-only rollups over the ledger and the balance cache."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from ardn.core.context import TenantContext
from ardn.core.errors import ValidationError
from ardn.models.activity import Activity
from ardn.models.participation import Participation
from ardn.models.program import Program
from ardn.models.student import Student
from ardn.schemas.reports import (
    ActivitySummaryItem,
    DashboardStats,
    LeaderboardEntry,
    ParticipationByDateItem,
    RecentActivity,
    SummaryReport,
    TopStudent,
)
from ardn.services.activities import participant_counts

TOP_STUDENTS_LIMIT = 5
RECENT_ACTIVITIES_LIMIT = 3


def _check_range(start_date: date | None, end_date: date | None) -> None:
    if start_date and end_date and end_date < start_date:
        raise ValidationError("Report end date must not be before its start date")


def _day_bounds(start_date: date | None, end_date: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive calendar-day range as [start 00:00 UTC, day after end 00:00 UTC)."""
    lower = datetime.combine(start_date, time.min, tzinfo=UTC) if start_date else None
    upper = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=UTC) if end_date else None
    return lower, upper


def leaderboard(
    db: Session,
    ctx: TenantContext,
    program_id: str | None = None,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[LeaderboardEntry]:
    """Active students ranked by all-time total, with points earned in the period.

    Ties keep creation order.
    """
    _check_range(start_date, end_date)
    stmt = (
        select(Student)
        .where(Student.organization_id == ctx.organization_id, Student.is_active.is_(True))
        .options(selectinload(Student.program))
        .order_by(Student.created_at.asc(), Student.id.asc())
    )
    if program_id:
        stmt = stmt.where(Student.program_id == program_id)
    if class_name:
        stmt = stmt.where(Student.class_name == class_name)
    students = db.scalars(stmt).all()

    period_stmt = (
        select(
            Participation.student_id,
            func.count(Participation.id),
            func.coalesce(func.sum(Participation.points_earned), 0),
        )
        .join(Student, Student.id == Participation.student_id)
        .where(Student.organization_id == ctx.organization_id)
        .group_by(Participation.student_id)
    )
    lower, upper = _day_bounds(start_date, end_date)
    if lower is not None:
        period_stmt = period_stmt.where(Participation.participated_at >= lower)
    if upper is not None:
        period_stmt = period_stmt.where(Participation.participated_at < upper)
    period = {student_id: (count, int(points)) for student_id, count, points in db.execute(period_stmt).all()}

    ranked = sorted(students, key=lambda student: -student.total_points)
    entries = []
    for index, student in enumerate(ranked, start=1):
        count, points = period.get(student.id, (0, 0))
        entries.append(
            LeaderboardEntry(
                rank=index,
                id=student.id,
                name=student.name,
                student_number=student.student_number,
                class_name=student.class_name,
                photo_url=student.photo_url,
                program_name=student.program.name if student.program else None,
                total_points=student.total_points,
                participations_in_period=count,
                points_in_period=points,
            )
        )
    return entries


def activity_summary(
    db: Session,
    ctx: TenantContext,
    program_id: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ActivitySummaryItem]:
    _check_range(start_date, end_date)
    stmt = (
        select(Activity)
        .where(Activity.organization_id == ctx.organization_id)
        .options(selectinload(Activity.program))
        .order_by(Activity.activity_date.asc(), Activity.start_time.asc())
    )
    if program_id:
        stmt = stmt.where(Activity.program_id == program_id)
    if start_date:
        stmt = stmt.where(Activity.activity_date >= start_date)
    if end_date:
        stmt = stmt.where(Activity.activity_date <= end_date)
    activities = db.scalars(stmt).all()

    totals: dict[str, tuple[int, int]] = {}
    if activities:
        rows = db.execute(
            select(
                Participation.activity_id,
                func.count(Participation.id),
                func.coalesce(func.sum(Participation.points_earned), 0),
            )
            .where(Participation.activity_id.in_([activity.id for activity in activities]))
            .group_by(Participation.activity_id)
        ).all()
        totals = {activity_id: (count, int(points)) for activity_id, count, points in rows}

    items = []
    for activity in activities:
        participants, awarded = totals.get(activity.id, (0, 0))
        items.append(
            ActivitySummaryItem(
                id=activity.id,
                title=activity.title,
                date=activity.activity_date,
                program_name=activity.program.name if activity.program else None,
                total_participants=participants,
                max_participants=activity.max_participants,
                participation_rate=(
                    participants / activity.max_participants * 100 if activity.max_participants else None
                ),
                points_awarded=awarded,
                average_points=awarded / participants if participants else 0.0,
            )
        )
    return items


def participation_by_date(
    db: Session,
    ctx: TenantContext,
    program_id: str | None = None,
    class_name: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[ParticipationByDateItem]:
    _check_range(start_date, end_date)
    stmt = (
        select(Activity.activity_date, Participation.student_id)
        .join(Activity, Activity.id == Participation.activity_id)
        .join(Student, Student.id == Participation.student_id)
        .where(Student.organization_id == ctx.organization_id)
    )
    if program_id:
        stmt = stmt.where(Activity.program_id == program_id)
    if class_name:
        stmt = stmt.where(Student.class_name == class_name)
    if start_date:
        stmt = stmt.where(Activity.activity_date >= start_date)
    if end_date:
        stmt = stmt.where(Activity.activity_date <= end_date)

    totals: dict[date, int] = {}
    unique: dict[date, set[str]] = {}
    for activity_date, student_id in db.execute(stmt).all():
        totals[activity_date] = totals.get(activity_date, 0) + 1
        unique.setdefault(activity_date, set()).add(student_id)

    return [
        ParticipationByDateItem(
            date=day,
            total_participations=totals[day],
            unique_students=len(unique[day]),
            average_participations_per_student=totals[day] / len(unique[day]),
        )
        for day in sorted(totals)
    ]


def _top_students(db: Session, ctx: TenantContext, limit: int) -> list[TopStudent]:
    students = db.scalars(
        select(Student)
        .where(Student.organization_id == ctx.organization_id, Student.is_active.is_(True))
        .options(selectinload(Student.program))
        .order_by(Student.total_points.desc(), Student.created_at.asc(), Student.id.asc())
        .limit(limit)
    ).all()
    return [
        TopStudent(
            rank=index,
            id=student.id,
            name=student.name,
            class_name=student.class_name,
            total_points=student.total_points,
            program_name=student.program.name if student.program else None,
        )
        for index, student in enumerate(students, start=1)
    ]


def _count(db: Session, stmt) -> int:
    return db.scalar(stmt) or 0


def summary(db: Session, ctx: TenantContext) -> SummaryReport:
    org = ctx.organization_id
    total_students = _count(
        db, select(func.count(Student.id)).where(Student.organization_id == org, Student.is_active.is_(True))
    )
    total_activities = _count(
        db, select(func.count(Activity.id)).where(Activity.organization_id == org, Activity.is_active.is_(True))
    )
    total_participations = _count(
        db,
        select(func.count(Participation.id))
        .join(Student, Student.id == Participation.student_id)
        .where(Student.organization_id == org),
    )
    total_points = _count(
        db,
        select(func.coalesce(func.sum(Participation.points_earned), 0))
        .join(Student, Student.id == Participation.student_id)
        .where(Student.organization_id == org),
    )
    active_programs = _count(
        db, select(func.count(Program.id)).where(Program.organization_id == org, Program.is_active.is_(True))
    )

    return SummaryReport(
        total_students=total_students,
        total_activities=total_activities,
        total_participations=total_participations,
        total_points_awarded=int(total_points),
        active_programs=active_programs,
        average_points_per_student=total_points / total_students if total_students else 0.0,
        average_participations_per_activity=(
            total_participations / total_activities if total_activities else 0.0
        ),
        top_students=_top_students(db, ctx, TOP_STUDENTS_LIMIT),
    )


def dashboard(db: Session, ctx: TenantContext) -> DashboardStats:
    org = ctx.organization_id
    recent = db.scalars(
        select(Activity)
        .where(Activity.organization_id == org, Activity.is_active.is_(True))
        .options(selectinload(Activity.program))
        .order_by(Activity.created_at.desc())
        .limit(RECENT_ACTIVITIES_LIMIT)
    ).all()
    counts = participant_counts(db, ctx, [activity.id for activity in recent])

    return DashboardStats(
        total_students=_count(
            db, select(func.count(Student.id)).where(Student.organization_id == org, Student.is_active.is_(True))
        ),
        active_programs=_count(
            db, select(func.count(Program.id)).where(Program.organization_id == org, Program.is_active.is_(True))
        ),
        total_activities=_count(
            db, select(func.count(Activity.id)).where(Activity.organization_id == org, Activity.is_active.is_(True))
        ),
        total_points=int(
            _count(
                db,
                select(func.coalesce(func.sum(Student.total_points), 0)).where(
                    Student.organization_id == org, Student.is_active.is_(True)
                ),
            )
        ),
        recent_activities=[
            RecentActivity(
                id=activity.id,
                title=activity.title,
                program_name=activity.program.name if activity.program else None,
                participant_count=counts.get(activity.id, 0),
                activity_date=activity.activity_date,
                start_time=activity.start_time,
                is_recurring=activity.is_recurring,
                points=activity.points,
            )
            for activity in recent
        ],
    )
