import logging
from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from ardn.core.context import TenantContext
from ardn.core.errors import ValidationError
from ardn.db.transaction import run_atomic
from ardn.models.point_adjustment import PointAdjustment
from ardn.schemas.adjustments import PointAdjustmentRequest
from ardn.services.ledger import apply_balance_delta, current_balance
from ardn.services.students import get_student

logger = logging.getLogger(__name__)


@dataclass
class AdjustmentResult:
    adjustment: PointAdjustment
    old_total_points: int
    new_total_points: int


def create_adjustment(
    db: Session,
    ctx: TenantContext,
    student_id: str,
    payload: PointAdjustmentRequest,
) -> AdjustmentResult:
    """Apply a manual correction to a student's balance, floored at zero."""
    student = get_student(db, ctx, student_id)
    reason = payload.reason.strip()
    if payload.delta == 0:
        raise ValidationError("Adjustment must change the balance")
    if not reason:
        raise ValidationError("Adjustment reason is required")

    def _work() -> AdjustmentResult:
        old_total = current_balance(db, ctx.organization_id, student.id)
        adjustment = PointAdjustment(
            student_id=student.id,
            delta=payload.delta,
            reason=reason,
            created_by_id=ctx.user_id,
        )
        db.add(adjustment)
        db.flush()
        apply_balance_delta(db, ctx.organization_id, student.id, payload.delta)
        return AdjustmentResult(
            adjustment=adjustment,
            old_total_points=old_total,
            new_total_points=current_balance(db, ctx.organization_id, student.id),
        )

    result = run_atomic(db, _work, label="create_adjustment")
    logger.info(
        "Point adjustment %+d applied to student %s: %s (total %d->%d)",
        payload.delta,
        student_id,
        reason,
        result.old_total_points,
        result.new_total_points,
    )
    return result


def list_adjustments(db: Session, ctx: TenantContext, student_id: str) -> list[PointAdjustment]:
    get_student(db, ctx, student_id)
    return list(
        db.scalars(
            select(PointAdjustment)
            .where(PointAdjustment.student_id == student_id)
            .order_by(PointAdjustment.created_at.desc())
        ).all()
    )
