import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from ardn.core.context import TenantContext
from ardn.core.errors import ConflictError, NotFoundError, ValidationError
from ardn.db.transaction import run_atomic
from ardn.models.student import Student
from ardn.schemas.students import StudentCreateRequest, StudentUpdateRequest
from ardn.services.programs import get_program

logger = logging.getLogger(__name__)


def get_student(db: Session, ctx: TenantContext, student_id: str) -> Student:
    student = db.scalar(
        select(Student)
        .where(Student.id == student_id, Student.organization_id == ctx.organization_id)
        .options(selectinload(Student.program))
    )
    if student is None:
        raise NotFoundError("Student not found")
    return student


def list_students(
    db: Session,
    ctx: TenantContext,
    program_id: str | None = None,
    include_inactive: bool = True,
) -> list[Student]:
    stmt = (
        select(Student)
        .where(Student.organization_id == ctx.organization_id)
        .options(selectinload(Student.program))
        .order_by(Student.is_active.desc(), Student.name.asc())
    )
    if program_id:
        stmt = stmt.where(Student.program_id == program_id)
    if not include_inactive:
        stmt = stmt.where(Student.is_active.is_(True))
    return list(db.scalars(stmt).all())


def _ensure_unique_number(db: Session, ctx: TenantContext, number: str, exclude_id: str | None = None) -> None:
    stmt = select(Student.id).where(
        Student.organization_id == ctx.organization_id,
        Student.student_number == number,
    )
    if exclude_id is not None:
        stmt = stmt.where(Student.id != exclude_id)
    if db.scalar(stmt):
        raise ConflictError("Student number is already in use")


def _required(value: str, field: str) -> str:
    value = value.strip()
    if not value:
        raise ValidationError(f"{field} is required")
    return value


def create_student(db: Session, ctx: TenantContext, payload: StudentCreateRequest) -> Student:
    name = _required(payload.name, "Student name")
    number = _required(payload.student_number, "Student number")
    class_name = _required(payload.class_name, "Class")
    program = get_program(db, ctx, payload.program_id)
    _ensure_unique_number(db, ctx, number)

    student = Student(
        organization_id=ctx.organization_id,
        program_id=program.id,
        student_number=number,
        name=name,
        class_name=class_name,
        photo_url=(payload.photo_url or "").strip() or None,
        total_points=0,
        is_active=True,
    )

    def _work() -> Student:
        db.add(student)
        db.flush()
        return student

    try:
        run_atomic(db, _work, label="create_student")
    except IntegrityError as exc:
        raise ConflictError("Student number is already in use") from exc
    return get_student(db, ctx, student.id)


def update_student(db: Session, ctx: TenantContext, student_id: str, payload: StudentUpdateRequest) -> Student:
    student = get_student(db, ctx, student_id)
    changes = payload.model_dump(exclude_unset=True)

    number = changes.get("student_number")
    if number is not None:
        number = _required(number, "Student number")
        if number != student.student_number:
            _ensure_unique_number(db, ctx, number, exclude_id=student.id)

    program_id = changes.get("program_id")
    if program_id and program_id != student.program_id:
        get_program(db, ctx, program_id)

    name = _required(changes["name"], "Student name") if changes.get("name") is not None else None
    class_name = _required(changes["class_name"], "Class") if changes.get("class_name") is not None else None

    if name is not None:
        student.name = name
    if number is not None:
        student.student_number = number
    if class_name is not None:
        student.class_name = class_name
    if program_id:
        student.program_id = program_id
    if "photo_url" in changes:
        student.photo_url = (changes["photo_url"] or "").strip() or None
    if changes.get("is_active") is not None:
        student.is_active = changes["is_active"]

    def _work() -> Student:
        db.add(student)
        db.flush()
        return student

    try:
        run_atomic(db, _work, label="update_student")
    except IntegrityError as exc:
        raise ConflictError("Student number is already in use") from exc
    return get_student(db, ctx, student_id)


def deactivate_student(db: Session, ctx: TenantContext, student_id: str) -> None:
    student = get_student(db, ctx, student_id)
    student.is_active = False

    def _work() -> None:
        db.add(student)
        db.flush()

    run_atomic(db, _work, label="deactivate_student")
    logger.info("Student %s deactivated in organization %s", student_id, ctx.organization_id)


def set_student_photo(db: Session, ctx: TenantContext, student_id: str, photo_url: str) -> Student:
    student = get_student(db, ctx, student_id)
    student.photo_url = photo_url

    def _work() -> Student:
        db.add(student)
        db.flush()
        return student

    run_atomic(db, _work, label="set_student_photo")
    return student
