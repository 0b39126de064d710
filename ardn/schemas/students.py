from datetime import datetime

from pydantic import BaseModel, Field


class StudentCreateRequest(BaseModel):
    name: str = Field(..., max_length=255)
    student_number: str = Field(..., max_length=64)
    class_name: str = Field(..., max_length=64)
    program_id: str
    photo_url: str | None = Field(default=None, max_length=1024)


class StudentUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=255)
    student_number: str | None = Field(default=None, max_length=64)
    class_name: str | None = Field(default=None, max_length=64)
    program_id: str | None = None
    photo_url: str | None = Field(default=None, max_length=1024)
    is_active: bool | None = None


class StudentOut(BaseModel):
    id: str
    student_number: str
    name: str
    class_name: str
    program_id: str
    program_name: str | None = None
    photo_url: str | None
    total_points: int
    is_active: bool
    created_at: datetime


class PhotoUploadResponse(BaseModel):
    photo_url: str
