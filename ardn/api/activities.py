from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ardn.api.deps import get_tenant
from ardn.core.context import TenantContext
from ardn.db.session import get_db
from ardn.models.activity import Activity
from ardn.schemas.activities import (
    ActivityCreateRequest,
    ActivityCreateResponse,
    ActivityOut,
    ActivitySeriesOut,
    ActivityUpdateRequest,
    EnrollmentResultOut,
)
from ardn.services import activities as activity_service
from ardn.services.enrollment import auto_enroll

router = APIRouter(prefix="/activities", tags=["activities"])


def _activity_out(activity: Activity, participant_count: int) -> ActivityOut:
    return ActivityOut(
        id=activity.id,
        title=activity.title,
        description=activity.description,
        activity_date=activity.activity_date,
        start_time=activity.start_time,
        end_time=activity.end_time,
        points=activity.points,
        max_participants=activity.max_participants,
        program_id=activity.program_id,
        program_name=activity.program.name if activity.program else None,
        is_recurring=activity.is_recurring,
        recurrence_type=activity.recurrence_type,
        is_active=activity.is_active,
        participant_count=participant_count,
        created_at=activity.created_at,
    )


def _enrollment_out(result) -> EnrollmentResultOut:
    return EnrollmentResultOut(
        activity_id=result.activity_id,
        activity_date=result.activity_date,
        success=result.success,
        students_enrolled=result.students_enrolled,
        points_distributed=result.points_distributed,
        message=result.message,
    )


@router.get("", response_model=list[ActivityOut])
def list_activities(
    program_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    rows = activity_service.list_activities(db, ctx, program_id=program_id)
    counts = activity_service.participant_counts(db, ctx, [activity.id for activity in rows])
    return [_activity_out(activity, counts.get(activity.id, 0)) for activity in rows]


@router.post("", response_model=ActivityCreateResponse, status_code=status.HTTP_201_CREATED)
def create_activities(
    payload: ActivityCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    result = activity_service.create_activities(db, ctx, payload)
    counts = activity_service.participant_counts(db, ctx, [activity.id for activity in result.activities])
    return ActivityCreateResponse(
        activities_created=len(result.activities),
        activities=[
            _activity_out(activity_service.get_activity(db, ctx, activity.id), counts.get(activity.id, 0))
            for activity in result.activities
        ],
        auto_inclusion_results=[_enrollment_out(item) for item in result.enrollments],
        students_enrolled=result.students_enrolled,
        points_distributed=result.points_distributed,
    )


@router.get("/series", response_model=list[ActivitySeriesOut])
def list_series(
    program_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return [
        ActivitySeriesOut.model_validate(series, from_attributes=True)
        for series in activity_service.list_series(db, ctx, program_id=program_id)
    ]


@router.get("/{activity_id}", response_model=ActivityOut)
def get_activity(activity_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    activity = activity_service.get_activity(db, ctx, activity_id)
    counts = activity_service.participant_counts(db, ctx, [activity.id])
    return _activity_out(activity, counts.get(activity.id, 0))


@router.patch("/{activity_id}", response_model=ActivityOut)
def update_activity(
    activity_id: str,
    payload: ActivityUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    activity = activity_service.update_activity(db, ctx, activity_id, payload)
    counts = activity_service.participant_counts(db, ctx, [activity.id])
    return _activity_out(activity, counts.get(activity.id, 0))


@router.delete("/{activity_id}")
def delete_activity(activity_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    activity_service.deactivate_activity(db, ctx, activity_id)
    return {"ok": True}


@router.post("/{activity_id}/auto-enroll", response_model=EnrollmentResultOut)
def enroll_all_students(activity_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    activity = activity_service.get_activity(db, ctx, activity_id)
    return _enrollment_out(auto_enroll(db, ctx, activity))
