from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from ardn.api.deps import get_tenant
from ardn.core.context import TenantContext
from ardn.db.session import get_db
from ardn.models.student import Student
from ardn.schemas.adjustments import PointAdjustmentOut, PointAdjustmentRequest, PointAdjustmentResponse
from ardn.schemas.students import PhotoUploadResponse, StudentCreateRequest, StudentOut, StudentUpdateRequest
from ardn.services import adjustments as adjustment_service
from ardn.services import students as student_service
from ardn.services.storage import StorageImageError, StorageService

router = APIRouter(prefix="/students", tags=["students"])

storage_service = StorageService()


def _student_out(student: Student) -> StudentOut:
    return StudentOut(
        id=student.id,
        student_number=student.student_number,
        name=student.name,
        class_name=student.class_name,
        program_id=student.program_id,
        program_name=student.program.name if student.program else None,
        photo_url=student.photo_url,
        total_points=student.total_points,
        is_active=student.is_active,
        created_at=student.created_at,
    )


@router.get("", response_model=list[StudentOut])
def list_students(
    program_id: str | None = Query(default=None),
    active_only: bool = Query(default=False),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    rows = student_service.list_students(db, ctx, program_id=program_id, include_inactive=not active_only)
    return [_student_out(student) for student in rows]


@router.post("", response_model=StudentOut, status_code=status.HTTP_201_CREATED)
def create_student(
    payload: StudentCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return _student_out(student_service.create_student(db, ctx, payload))


@router.get("/{student_id}", response_model=StudentOut)
def get_student(student_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    return _student_out(student_service.get_student(db, ctx, student_id))


@router.patch("/{student_id}", response_model=StudentOut)
def update_student(
    student_id: str,
    payload: StudentUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return _student_out(student_service.update_student(db, ctx, student_id, payload))


@router.delete("/{student_id}")
def delete_student(student_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    student_service.deactivate_student(db, ctx, student_id)
    return {"ok": True}


@router.post("/{student_id}/photo", response_model=PhotoUploadResponse)
async def upload_photo(
    student_id: str,
    photo: UploadFile = File(...),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    student_service.get_student(db, ctx, student_id)
    try:
        photo_url = await storage_service.save_student_photo(photo, ctx.organization_id, student_id)
    except StorageImageError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    student = student_service.set_student_photo(db, ctx, student_id, photo_url)
    return PhotoUploadResponse(photo_url=student.photo_url)


@router.post(
    "/{student_id}/adjustments",
    response_model=PointAdjustmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_adjustment(
    student_id: str,
    payload: PointAdjustmentRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    result = adjustment_service.create_adjustment(db, ctx, student_id, payload)
    return PointAdjustmentResponse(
        adjustment=PointAdjustmentOut.model_validate(result.adjustment),
        old_total_points=result.old_total_points,
        new_total_points=result.new_total_points,
    )


@router.get("/{student_id}/adjustments", response_model=list[PointAdjustmentOut])
def list_adjustments(student_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    return adjustment_service.list_adjustments(db, ctx, student_id)
