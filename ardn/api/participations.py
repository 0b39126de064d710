from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ardn.api.deps import get_tenant
from ardn.core.context import TenantContext
from ardn.db.session import get_db
from ardn.schemas.participations import (
    ParticipationCreateRequest,
    ParticipationDeleteResponse,
    ParticipationListItem,
    ParticipationOut,
    ParticipationRecordResponse,
)
from ardn.services import participation as participation_service

router = APIRouter(prefix="/participations", tags=["participations"])


@router.post("", response_model=ParticipationRecordResponse, status_code=status.HTTP_201_CREATED)
def record_participation(
    payload: ParticipationCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    result = participation_service.record_participation(db, ctx, payload)
    return ParticipationRecordResponse(
        participation=ParticipationOut.model_validate(result.participation),
        points_earned=result.points_earned,
        old_total_points=result.old_total_points,
        new_total_points=result.new_total_points,
    )


@router.get("", response_model=list[ParticipationListItem])
def list_participations(
    student_id: str | None = Query(default=None),
    activity_id: str | None = Query(default=None),
    program_id: str | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    rows = participation_service.list_participations(
        db, ctx, student_id=student_id, activity_id=activity_id, program_id=program_id
    )
    return [
        ParticipationListItem(
            **ParticipationOut.model_validate(participation).model_dump(),
            student_name=student.name,
            student_number=student.student_number,
            class_name=student.class_name,
            activity_title=activity.title,
            activity_date=activity.activity_date,
        )
        for participation, student, activity in rows
    ]


@router.delete("/{participation_id}", response_model=ParticipationDeleteResponse)
def delete_participation(
    participation_id: str,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    result = participation_service.remove_participation(db, ctx, participation_id)
    return ParticipationDeleteResponse(
        ok=True,
        points_removed=result.points_removed,
        new_total_points=result.new_total_points,
    )
