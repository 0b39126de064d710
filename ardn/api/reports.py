from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ardn.api.deps import get_tenant, require_admin
from ardn.core.context import TenantContext
from ardn.db.session import get_db
from ardn.schemas.adjustments import BalanceCorrectionOut
from ardn.schemas.reports import (
    ActivitySummaryItem,
    DashboardStats,
    LeaderboardEntry,
    ParticipationByDateItem,
    SummaryReport,
)
from ardn.services import ledger, reports

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/leaderboard", response_model=list[LeaderboardEntry])
def leaderboard(
    program_id: str | None = Query(default=None),
    class_name: str | None = Query(default=None, alias="class"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return reports.leaderboard(
        db, ctx, program_id=program_id, class_name=class_name, start_date=start_date, end_date=end_date
    )


@router.get("/activity-summary", response_model=list[ActivitySummaryItem])
def activity_summary(
    program_id: str | None = Query(default=None),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return reports.activity_summary(db, ctx, program_id=program_id, start_date=start_date, end_date=end_date)


@router.get("/participation", response_model=list[ParticipationByDateItem])
def participation_by_date(
    program_id: str | None = Query(default=None),
    class_name: str | None = Query(default=None, alias="class"),
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    db: Session = Depends(get_db),
    ctx: TenantContext = Depends(get_tenant),
):
    return reports.participation_by_date(
        db, ctx, program_id=program_id, class_name=class_name, start_date=start_date, end_date=end_date
    )


@router.get("/summary", response_model=SummaryReport)
def summary(db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    return reports.summary(db, ctx)


@router.get("/dashboard", response_model=DashboardStats)
def dashboard(db: Session = Depends(get_db), ctx: TenantContext = Depends(get_tenant)):
    return reports.dashboard(db, ctx)


@router.post("/balances/reconcile", response_model=list[BalanceCorrectionOut])
def reconcile_balances(db: Session = Depends(get_db), ctx: TenantContext = Depends(require_admin)):
    return [
        BalanceCorrectionOut.model_validate(correction, from_attributes=True)
        for correction in ledger.reconcile_balances(db, ctx)
    ]
