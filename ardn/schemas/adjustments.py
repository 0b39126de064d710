from datetime import datetime

from pydantic import BaseModel, Field


class PointAdjustmentRequest(BaseModel):
    delta: int = Field(..., ge=-1000, le=1000)
    reason: str = Field(..., max_length=512)


class PointAdjustmentOut(BaseModel):
    id: str
    student_id: str
    delta: int
    reason: str
    created_at: datetime
    created_by_id: str

    model_config = {"from_attributes": True}


class PointAdjustmentResponse(BaseModel):
    adjustment: PointAdjustmentOut
    old_total_points: int
    new_total_points: int


class BalanceCorrectionOut(BaseModel):
    student_id: str
    stored: int
    actual: int
    diff: int

    model_config = {"from_attributes": True}
