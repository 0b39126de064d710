from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ardn.api.deps import get_tenant
from ardn.core.context import TenantContext
from ardn.db.session import get_db
from ardn.models.program import Program
from ardn.schemas.programs import ProgramCreateRequest, ProgramOut, ProgramUpdateRequest
from ardn.services import programs as program_service

router = APIRouter(prefix="/programs", tags=["programs"])


def _program_out(program: Program, counts: tuple[int, int]) -> ProgramOut:
    return ProgramOut(
        id=program.id,
        name=program.name,
        description=program.description,
        start_date=program.start_date,
        end_date=program.end_date,
        is_active=program.is_active,
        student_count=counts[0],
        activity_count=counts[1],
        created_at=program.created_at,
    )


@router.get("", response_model=list[ProgramOut])
def list_programs(db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    rows = program_service.list_programs(db, ctx)
    counts = program_service.program_counts(db, ctx, [program.id for program in rows])
    return [_program_out(program, counts[program.id]) for program in rows]


@router.post("", response_model=ProgramOut, status_code=status.HTTP_201_CREATED)
def create_program(
    payload: ProgramCreateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    program = program_service.create_program(db, ctx, payload)
    return _program_out(program, (0, 0))


@router.patch("/{program_id}", response_model=ProgramOut)
def update_program(
    program_id: str,
    payload: ProgramUpdateRequest,
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    program = program_service.update_program(db, ctx, program_id, payload)
    return _program_out(program, program_service.program_counts(db, ctx, [program.id])[program.id])


@router.delete("/{program_id}")
def delete_program(program_id: str, db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    program_service.delete_program(db, ctx, program_id)
    return {"ok": True}
