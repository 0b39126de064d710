import logging

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ardn.core.context import TenantContext
from ardn.core.errors import ConflictError, NotFoundError, ValidationError
from ardn.db.transaction import run_atomic
from ardn.models.activity import Activity
from ardn.models.program import Program
from ardn.models.student import Student
from ardn.schemas.programs import ProgramCreateRequest, ProgramUpdateRequest

logger = logging.getLogger(__name__)


def get_program(db: Session, ctx: TenantContext, program_id: str) -> Program:
    program = db.scalar(
        select(Program).where(Program.id == program_id, Program.organization_id == ctx.organization_id)
    )
    if program is None:
        raise NotFoundError("Program not found")
    return program


def program_counts(db: Session, ctx: TenantContext, program_ids: list[str]) -> dict[str, tuple[int, int]]:
    if not program_ids:
        return {}
    students = dict(
        db.execute(
            select(Student.program_id, func.count(Student.id))
            .where(Student.organization_id == ctx.organization_id, Student.program_id.in_(program_ids))
            .group_by(Student.program_id)
        ).all()
    )
    activities = dict(
        db.execute(
            select(Activity.program_id, func.count(Activity.id))
            .where(Activity.organization_id == ctx.organization_id, Activity.program_id.in_(program_ids))
            .group_by(Activity.program_id)
        ).all()
    )
    return {pid: (students.get(pid, 0), activities.get(pid, 0)) for pid in program_ids}


def list_programs(db: Session, ctx: TenantContext) -> list[Program]:
    return list(
        db.scalars(
            select(Program)
            .where(Program.organization_id == ctx.organization_id)
            .order_by(Program.is_active.desc(), Program.start_date.desc())
        ).all()
    )


def _ensure_unique_name(db: Session, ctx: TenantContext, name: str, exclude_id: str | None = None) -> None:
    stmt = select(Program.id).where(Program.organization_id == ctx.organization_id, Program.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Program.id != exclude_id)
    if db.scalar(stmt):
        raise ConflictError("Program name is already in use")


def create_program(db: Session, ctx: TenantContext, payload: ProgramCreateRequest) -> Program:
    name = payload.name.strip()
    if not name:
        raise ValidationError("Program name is required")
    if payload.start_date >= payload.end_date:
        raise ValidationError("Program end date must be after its start date")
    _ensure_unique_name(db, ctx, name)

    program = Program(
        organization_id=ctx.organization_id,
        name=name,
        description=(payload.description or "").strip() or None,
        start_date=payload.start_date,
        end_date=payload.end_date,
        is_active=True,
        created_by_id=ctx.user_id,
    )

    def _work() -> Program:
        db.add(program)
        db.flush()
        return program

    try:
        run_atomic(db, _work, label="create_program")
    except IntegrityError as exc:
        raise ConflictError("Program name is already in use") from exc
    db.refresh(program)
    return program


def update_program(db: Session, ctx: TenantContext, program_id: str, payload: ProgramUpdateRequest) -> Program:
    program = get_program(db, ctx, program_id)
    changes = payload.model_dump(exclude_unset=True)

    start_date = changes.get("start_date") or program.start_date
    end_date = changes.get("end_date") or program.end_date
    if start_date >= end_date:
        raise ValidationError("Program end date must be after its start date")

    name = changes.get("name")
    if name is not None:
        name = name.strip()
        if not name:
            raise ValidationError("Program name cannot be empty")
        if name != program.name:
            _ensure_unique_name(db, ctx, name, exclude_id=program.id)

    if name is not None:
        program.name = name
    if "description" in changes:
        program.description = (changes["description"] or "").strip() or None
    program.start_date = start_date
    program.end_date = end_date
    if changes.get("is_active") is not None:
        program.is_active = changes["is_active"]

    def _work() -> Program:
        db.add(program)
        db.flush()
        return program

    try:
        run_atomic(db, _work, label="update_program")
    except IntegrityError as exc:
        raise ConflictError("Program name is already in use") from exc
    db.refresh(program)
    return program


def delete_program(db: Session, ctx: TenantContext, program_id: str) -> None:
    program = get_program(db, ctx, program_id)
    students, activities = program_counts(db, ctx, [program.id])[program.id]
    if students or activities:
        raise ValidationError(
            f"Program cannot be deleted: it has {students} student(s) and {activities} activity(ies)",
            details={"students": students, "activities": activities},
        )

    def _work() -> None:
        db.delete(program)
        db.flush()

    run_atomic(db, _work, label="delete_program")
    logger.info("Program %s deleted from organization %s", program_id, ctx.organization_id)
