from datetime import date, datetime

from pydantic import BaseModel, Field


class ParticipationCreateRequest(BaseModel):
    student_id: str
    activity_id: str
    points_earned: int | None = None
    is_late: bool = False
    notes: str | None = Field(default=None, max_length=2000)


class ParticipationOut(BaseModel):
    id: str
    student_id: str
    activity_id: str
    participated_at: datetime
    points_earned: int
    is_late: bool
    notes: str | None
    recorded_by_id: str

    model_config = {"from_attributes": True}


class ParticipationRecordResponse(BaseModel):
    participation: ParticipationOut
    points_earned: int
    old_total_points: int
    new_total_points: int


class ParticipationListItem(ParticipationOut):
    student_name: str
    student_number: str
    class_name: str
    activity_title: str
    activity_date: date


class ParticipationDeleteResponse(BaseModel):
    ok: bool
    points_removed: int
    new_total_points: int
