from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

RecurrenceType = Literal["DAILY", "WEEKLY", "MONTHLY"]


class ActivityCreateRequest(BaseModel):
    title: str = Field(..., max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    activity_date: date
    start_time: datetime
    end_time: datetime | None = None
    points: int
    max_participants: int | None = None
    program_id: str
    is_recurring: bool = False
    recurrence_type: RecurrenceType | None = None
    recurrence_end_date: date | None = None
    auto_include_all_students: bool = False


class ActivityUpdateRequest(BaseModel):
    title: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    activity_date: date | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    points: int | None = None
    max_participants: int | None = None
    is_active: bool | None = None
    is_recurring: bool | None = None
    recurrence_type: RecurrenceType | None = None


class ActivityOut(BaseModel):
    id: str
    title: str
    description: str | None
    activity_date: date
    start_time: datetime
    end_time: datetime | None
    points: int
    max_participants: int | None
    program_id: str
    program_name: str | None = None
    is_recurring: bool
    recurrence_type: str | None
    is_active: bool
    participant_count: int = 0
    created_at: datetime


class EnrollmentResultOut(BaseModel):
    activity_id: str
    activity_date: date
    success: bool
    students_enrolled: int
    points_distributed: int
    message: str


class ActivityCreateResponse(BaseModel):
    activities_created: int
    activities: list[ActivityOut]
    auto_inclusion_results: list[EnrollmentResultOut]
    students_enrolled: int
    points_distributed: int


class ActivitySeriesOut(BaseModel):
    title: str
    program_id: str
    points: int
    recurrence_type: str | None
    occurrences: int
    activity_ids: list[str]
    dates: list[date]

    model_config = {"from_attributes": True}
