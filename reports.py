from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy import select, func
from sqlalchemy.orm import Session

import timeutil
from access import OfficeScope
from loans import _loan_to_schema, build_loans_query
from models import DashboardCounters, DashboardStats, LoanStatus, LoanTrend, TrendDataset
from orm import AssetORM, CategoryORM, LoanORM

RECENT_LOANS = 10
TREND_DAYS = 7


def _loan_count(db: Session, scope: OfficeScope, *conditions) -> int:
    stmt = select(func.count(LoanORM.id)).join(LoanORM.asset)
    clause = scope.asset_clause()
    if clause is not None:
        stmt = stmt.where(clause)
    if conditions:
        stmt = stmt.where(*conditions)
    return int(db.execute(stmt).scalar_one())


def _active_assets_stmt(scope: OfficeScope):
    stmt = select(AssetORM.is_available, func.count(AssetORM.id)).where(AssetORM.is_active.is_(True))
    clause = scope.asset_clause()
    if clause is not None:
        stmt = stmt.where(clause)
    return stmt.group_by(AssetORM.is_available)


def dashboard_stats(db: Session, *, scope: OfficeScope, today: Optional[date] = None) -> DashboardStats:
    start, end = timeutil.day_bounds(today or timeutil.today())

    total_categories = int(
        db.execute(select(func.count(CategoryORM.id)).where(CategoryORM.is_active.is_(True))).scalar_one()
    )

    split = {bool(flag): int(n) for flag, n in db.execute(_active_assets_stmt(scope)).all()}
    available = split.get(True, 0)
    unavailable = split.get(False, 0)

    counters = DashboardCounters(
        total_categories=total_categories,
        total_assets=available + unavailable,
        loans_today=_loan_count(db, scope, LoanORM.loan_date >= start, LoanORM.loan_date < end),
        active_loan_count=_loan_count(db, scope, LoanORM.status == LoanStatus.BORROWED),
        returned_today_count=_loan_count(
            db,
            scope,
            LoanORM.status == LoanStatus.RETURNED,
            LoanORM.actual_return_date >= start,
            LoanORM.actual_return_date < end,
        ),
        overdue_loan_count=_loan_count(db, scope, LoanORM.status == LoanStatus.OVERDUE),
        available_assets=available,
        unavailable_assets=unavailable,
    )

    recent_stmt = (
        build_loans_query(scope=scope)
        .order_by(LoanORM.created_at.desc(), LoanORM.id.desc())
        .limit(RECENT_LOANS)
    )
    recent = [_loan_to_schema(l) for l in db.execute(recent_stmt).unique().scalars().all()]
    return DashboardStats(stats=counters, recent_loans=recent)


def loan_trend(db: Session, *, scope: OfficeScope, today: Optional[date] = None) -> LoanTrend:
    """Loans created per day over the trailing week, oldest first."""
    today = today or timeutil.today()
    labels: list[str] = []
    dates: list[str] = []
    counts: list[int] = []
    for back in range(TREND_DAYS - 1, -1, -1):
        day = today - timedelta(days=back)
        start, end = timeutil.day_bounds(day)
        counts.append(_loan_count(db, scope, LoanORM.loan_date >= start, LoanORM.loan_date < end))
        labels.append(day.strftime("%d %b"))
        dates.append(day.isoformat())

    return LoanTrend(
        labels=labels,
        dates=dates,
        datasets=[TrendDataset(label="Daily loans", data=counts)],
    )


def export_rows(
    db: Session,
    *,
    status: Optional[LoanStatus] = None,
    user_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    scope: OfficeScope,
) -> list[LoanORM]:
    stmt = build_loans_query(status=status, user_id=user_id, scope=scope)

    # inclusive on both ends, unlike the listing endpoint
    if start_date and end_date:
        stmt = stmt.where(LoanORM.loan_date >= start_date, LoanORM.loan_date <= end_date)

    stmt = stmt.order_by(LoanORM.loan_date.desc(), LoanORM.id.desc())
    return list(db.execute(stmt).unique().scalars().all())
