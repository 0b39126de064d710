from datetime import date, datetime

from pydantic import BaseModel, Field


class ProgramCreateRequest(BaseModel):
    name: str = Field(..., max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    start_date: date
    end_date: date


class ProgramUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    description: str | None = Field(default=None, max_length=2000)
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool | None = None


class ProgramOut(BaseModel):
    id: str
    name: str
    description: str | None
    start_date: date
    end_date: date
    is_active: bool
    student_count: int = 0
    activity_count: int = 0
    created_at: datetime
