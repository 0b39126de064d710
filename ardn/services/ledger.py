"""Student balance cache over the point ledger.

``Student.total_points`` is a materialized projection of the ledger
(participations plus manual adjustments). Every writer goes through
``apply_balance_delta`` inside its own transaction; ``reconcile_balances``
recomputes the projection from scratch and fixes drift.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import case, func, select, update
from sqlalchemy.orm import Session

from ardn.core.context import TenantContext
from ardn.db.transaction import run_atomic
from ardn.models.participation import Participation
from ardn.models.point_adjustment import PointAdjustment
from ardn.models.student import Student

logger = logging.getLogger(__name__)


def apply_balance_delta(db: Session, organization_id: str, student_ids: list[str] | str, delta: int) -> None:
    """Shift cached totals by ``delta`` in SQL, flooring at zero.

    Issued as a single UPDATE so concurrent writers never lose an increment.
    Does not commit.
    """
    if isinstance(student_ids, str):
        student_ids = [student_ids]
    if not student_ids or delta == 0:
        return

    shifted = Student.total_points + delta
    new_value = shifted if delta > 0 else case((shifted < 0, 0), else_=shifted)
    db.execute(
        update(Student)
        .where(Student.organization_id == organization_id, Student.id.in_(student_ids))
        .values(total_points=new_value)
        .execution_options(synchronize_session=False)
    )


def current_balance(db: Session, organization_id: str, student_id: str) -> int:
    value = db.scalar(
        select(Student.total_points).where(Student.id == student_id, Student.organization_id == organization_id)
    )
    return value or 0


def ledger_total(db: Session, organization_id: str, student_id: str) -> int:
    """Recompute a student's total from the ledger rows."""
    earned = db.scalar(
        select(func.coalesce(func.sum(Participation.points_earned), 0))
        .join(Student, Student.id == Participation.student_id)
        .where(Student.organization_id == organization_id, Participation.student_id == student_id)
    )
    adjusted = db.scalar(
        select(func.coalesce(func.sum(PointAdjustment.delta), 0))
        .join(Student, Student.id == PointAdjustment.student_id)
        .where(Student.organization_id == organization_id, PointAdjustment.student_id == student_id)
    )
    return max(0, int(earned or 0) + int(adjusted or 0))


@dataclass
class BalanceCorrection:
    student_id: str
    stored: int
    actual: int

    @property
    def diff(self) -> int:
        return self.actual - self.stored


def reconcile_balances(db: Session, ctx: TenantContext) -> list[BalanceCorrection]:
    """Compare every cached total in the organization against the ledger and fix drift."""

    def _work() -> list[BalanceCorrection]:
        earned_rows = db.execute(
            select(Participation.student_id, func.sum(Participation.points_earned))
            .join(Student, Student.id == Participation.student_id)
            .where(Student.organization_id == ctx.organization_id)
            .group_by(Participation.student_id)
        ).all()
        adjusted_rows = db.execute(
            select(PointAdjustment.student_id, func.sum(PointAdjustment.delta))
            .join(Student, Student.id == PointAdjustment.student_id)
            .where(Student.organization_id == ctx.organization_id)
            .group_by(PointAdjustment.student_id)
        ).all()
        truth: dict[str, int] = {}
        for student_id, total in [*earned_rows, *adjusted_rows]:
            truth[student_id] = truth.get(student_id, 0) + int(total or 0)

        stored_rows = db.execute(
            select(Student.id, Student.total_points).where(Student.organization_id == ctx.organization_id)
        ).all()

        corrections: list[BalanceCorrection] = []
        for student_id, stored in stored_rows:
            actual = max(0, truth.get(student_id, 0))
            if stored != actual:
                corrections.append(BalanceCorrection(student_id=student_id, stored=stored, actual=actual))
                db.execute(
                    update(Student)
                    .where(Student.id == student_id, Student.organization_id == ctx.organization_id)
                    .values(total_points=actual)
                    .execution_options(synchronize_session=False)
                )
        return corrections

    corrections = run_atomic(db, _work, label="reconcile_balances")
    if corrections:
        logger.warning(
            "Balance reconciliation for organization %s corrected %d student total(s): %s",
            ctx.organization_id,
            len(corrections),
            [(c.student_id, c.stored, c.actual) for c in corrections],
        )
    else:
        logger.info("Balance reconciliation for organization %s: no drift", ctx.organization_id)
    return corrections
