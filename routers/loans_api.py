from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import loans
import reports
import timeutil
from access import scope_for
from dependencies import get_current_user, get_db
from export_utils import loans_to_xlsx_response
from filter_helpers import (
    blank_to_none,
    normalize_limit,
    normalize_page,
    normalize_status,
    parse_date_param,
    parse_optional_int,
    total_pages,
)
from models import Loan, LoanIn, LoanList, LoanMessage, LoanReturn, Pagination
from orm import UserORM

router = APIRouter()


@router.get("/loans", response_model=LoanList)
def list_loans_api(
    search: Optional[str] = None,
    status: Optional[str] = None,
    asset_id: Optional[str] = Query(None, alias="assetId"),
    office_id: Optional[str] = Query(None, alias="officeId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    page = normalize_page(page)
    limit = normalize_limit(limit)
    scope = scope_for(user, parse_optional_int(office_id, "officeId"))

    items, total = loans.list_loans(
        db,
        q=blank_to_none(search),
        status=normalize_status(status),
        asset_id=parse_optional_int(asset_id, "assetId"),
        user_id=parse_optional_int(user_id, "userId"),
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate"),
        scope=scope,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return LoanList(
        loans=items,
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=total_pages(total, limit)),
    )


# declared before /loans/{loan_id}
@router.get("/loans/export/xlsx")
def export_loans_api(
    status: Optional[str] = None,
    office_id: Optional[str] = Query(None, alias="officeId"),
    user_id: Optional[str] = Query(None, alias="userId"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    scope = scope_for(user, parse_optional_int(office_id, "officeId"))
    rows = reports.export_rows(
        db,
        status=normalize_status(status),
        user_id=parse_optional_int(user_id, "userId"),
        start_date=parse_date_param(start_date, "startDate"),
        end_date=parse_date_param(end_date, "endDate"),
        scope=scope,
    )
    return loans_to_xlsx_response(rows, today=timeutil.today())


@router.get("/loans/{loan_id}", response_model=Loan)
def get_loan_api(
    loan_id: int,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    return loans.get_loan(db, loan_id, scope=scope_for(user))


@router.post("/loans", response_model=LoanMessage, status_code=201)
def create_loan_api(
    body: LoanIn,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    loan = loans.create_loan(db, user, body)
    return LoanMessage(message="loan created", loan=loan)


@router.patch("/loans/{loan_id}/return", response_model=LoanMessage)
def return_loan_api(
    loan_id: int,
    body: Optional[LoanReturn] = None,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    loan = loans.return_loan(db, loan_id, body or LoanReturn(), scope=scope_for(user))
    return LoanMessage(message="asset returned", loan=loan)


@router.patch("/loans/{loan_id}/overdue", response_model=LoanMessage)
def mark_overdue_api(
    loan_id: int,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    loan = loans.mark_overdue(db, loan_id, scope=scope_for(user))
    return LoanMessage(message="loan marked overdue", loan=loan)
