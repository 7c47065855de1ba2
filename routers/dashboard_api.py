from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import reports
from access import scope_for
from dependencies import get_current_user, get_db
from filter_helpers import parse_optional_int
from models import DashboardStats, LoanTrend
from orm import UserORM

router = APIRouter()


@router.get("/dashboard/stats", response_model=DashboardStats)
def dashboard_stats_api(
    office_id: Optional[str] = Query(None, alias="officeId"),
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    scope = scope_for(user, parse_optional_int(office_id, "officeId"))
    return reports.dashboard_stats(db, scope=scope)


@router.get("/dashboard/chart/loans", response_model=LoanTrend)
def loan_trend_api(
    office_id: Optional[str] = Query(None, alias="officeId"),
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    scope = scope_for(user, parse_optional_int(office_id, "officeId"))
    return reports.loan_trend(db, scope=scope)
