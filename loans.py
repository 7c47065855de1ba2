"""Loan ledger.

A loan is BORROWED when created and leaves that state exactly once, to
RETURNED or to OVERDUE. The ledger is the only writer of
``AssetORM.is_available`` for loan transitions: every flip is a conditional
UPDATE executed in the same transaction as the loan write, and an UPDATE
that matches no row means another request got there first.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, or_, update
from sqlalchemy.orm import Session

import timeutil
from access import OfficeScope, role_allowed
from crud import count_rows
from errors import AuthorizationError, ConflictError, NotFoundError
from models import Loan, LoanIn, LoanReturn, LoanStatus, Role
from orm import AssetORM, LoanORM, UserORM

logger = logging.getLogger(__name__)


def _loan_to_schema(l: LoanORM) -> Loan:
    return Loan.model_validate(l)


def _scoped(stmt, scope: OfficeScope):
    clause = scope.asset_clause()
    if clause is None:
        return stmt
    return stmt.join(LoanORM.asset).where(clause)


def get_loan_orm(db: Session, loan_id: int, scope: OfficeScope) -> Optional[LoanORM]:
    stmt = _scoped(select(LoanORM).where(LoanORM.id == loan_id), scope)
    return db.execute(stmt).unique().scalars().first()


def get_loan(db: Session, loan_id: int, *, scope: OfficeScope) -> Loan:
    loan = get_loan_orm(db, loan_id, scope)
    if not loan:
        raise NotFoundError("loan not found")
    return _loan_to_schema(loan)


def get_active_loan(db: Session, asset_id: int) -> Optional[Loan]:
    stmt = (
        select(LoanORM)
        .where(LoanORM.asset_id == asset_id, LoanORM.status == LoanStatus.BORROWED)
        .order_by(LoanORM.loan_date.desc())
        .limit(1)
    )
    row = db.execute(stmt).unique().scalars().first()
    return _loan_to_schema(row) if row else None


# ---------- Listing ----------
def build_loans_query(
    *,
    q: Optional[str] = None,
    status: Optional[LoanStatus] = None,
    asset_id: Optional[int] = None,
    user_id: Optional[int] = None,
    scope: OfficeScope,
):
    stmt = select(LoanORM).join(LoanORM.asset)

    clause = scope.asset_clause()
    if clause is not None:
        stmt = stmt.where(clause)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                LoanORM.borrower_name.ilike(like),
                LoanORM.borrower_phone.ilike(like),
                LoanORM.purpose.ilike(like),
                AssetORM.name.ilike(like),
                AssetORM.code.ilike(like),
            )
        )
    if status:
        stmt = stmt.where(LoanORM.status == status)
    if asset_id:
        stmt = stmt.where(LoanORM.asset_id == asset_id)
    if user_id:
        stmt = stmt.where(LoanORM.user_id == user_id)
    return stmt


def list_loans(
    db: Session,
    *,
    q: Optional[str] = None,
    status: Optional[LoanStatus] = None,
    asset_id: Optional[int] = None,
    user_id: Optional[int] = None,
    start_date: Optional[datetime] = None,
    end_date: Optional[datetime] = None,
    scope: OfficeScope,
    limit: int,
    offset: int,
) -> tuple[list[Loan], int]:
    stmt = build_loans_query(q=q, status=status, asset_id=asset_id, user_id=user_id, scope=scope)

    # both bounds or neither; the end day is included by extending one day
    if start_date and end_date:
        stmt = stmt.where(
            LoanORM.loan_date >= start_date,
            LoanORM.loan_date < end_date + timedelta(days=1),
        )

    total = count_rows(db, stmt)
    stmt = stmt.order_by(LoanORM.created_at.desc(), LoanORM.id.desc()).limit(limit).offset(offset)
    rows = db.execute(stmt).unique().scalars().all()
    return [_loan_to_schema(l) for l in rows], total


# ---------- Transitions ----------
def create_loan(db: Session, user: UserORM, body: LoanIn, *, now: Optional[datetime] = None) -> Loan:
    asset = db.get(AssetORM, body.asset_id)
    if not asset:
        raise NotFoundError("asset not found")
    if not asset.is_active:
        raise ConflictError("asset is not active")
    if not asset.is_available:
        raise ConflictError("asset is not available for loan")
    if user.role == Role.SECURITY_GUARD and asset.office_id != user.office_id:
        raise AuthorizationError("you can only record loans for assets in your own office")
    if not role_allowed(asset.category.allowed_roles, user.role):
        raise AuthorizationError("your role is not allowed to borrow assets in this category")

    if get_active_loan(db, asset.id):
        raise ConflictError("asset is currently borrowed")

    now = now or timeutil.now()
    try:
        claimed = db.execute(
            update(AssetORM)
            .where(
                AssetORM.id == asset.id,
                AssetORM.is_available.is_(True),
                AssetORM.is_active.is_(True),
            )
            .values(is_available=False, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount != 1:
            raise ConflictError("asset is currently borrowed")

        loan = LoanORM(
            asset_id=asset.id,
            user_id=user.id,
            borrower_name=body.borrower_name,
            borrower_phone=body.borrower_phone or None,
            purpose=body.purpose or None,
            loan_date=now,
            return_date=body.return_date,
            status=LoanStatus.BORROWED,
            is_third_party=body.is_third_party,
            third_party_name=body.third_party_name if body.is_third_party else None,
            third_party_address=body.third_party_address if body.is_third_party else None,
            loan_photo=body.loan_photo or None,
            created_at=now,
            updated_at=now,
        )
        db.add(loan)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    db.refresh(asset)
    logger.info("loan created loan_id=%s asset_id=%s user_id=%s", loan.id, asset.id, user.id)
    return _loan_to_schema(loan)


def return_loan(
    db: Session,
    loan_id: int,
    body: LoanReturn,
    *,
    scope: OfficeScope,
    now: Optional[datetime] = None,
) -> Loan:
    loan = get_loan_orm(db, loan_id, scope)
    if not loan:
        raise NotFoundError("loan not found")

    now = now or timeutil.now()
    try:
        closed = db.execute(
            update(LoanORM)
            .where(LoanORM.id == loan.id, LoanORM.status == LoanStatus.BORROWED)
            .values(
                status=LoanStatus.RETURNED,
                actual_return_date=now,
                notes=body.notes or None,
                return_photo=body.return_photo or None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        if closed.rowcount != 1:
            logger.info("return refused loan_id=%s status=%s", loan.id, loan.status.value)
            raise ConflictError("loan is not currently borrowed")

        db.execute(
            update(AssetORM)
            .where(AssetORM.id == loan.asset_id)
            .values(is_available=True, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    db.refresh(loan.asset)
    logger.info("loan returned loan_id=%s asset_id=%s", loan.id, loan.asset_id)
    return _loan_to_schema(loan)


def mark_overdue(db: Session, loan_id: int, *, scope: OfficeScope, now: Optional[datetime] = None) -> Loan:
    """BORROWED -> OVERDUE. The asset stays unavailable."""
    loan = get_loan_orm(db, loan_id, scope)
    if not loan:
        raise NotFoundError("loan not found")

    now = now or timeutil.now()
    try:
        marked = db.execute(
            update(LoanORM)
            .where(LoanORM.id == loan.id, LoanORM.status == LoanStatus.BORROWED)
            .values(status=LoanStatus.OVERDUE, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if marked.rowcount != 1:
            logger.info("overdue refused loan_id=%s status=%s", loan.id, loan.status.value)
            raise ConflictError("loan is not currently borrowed")
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(loan)
    logger.info("loan marked overdue loan_id=%s asset_id=%s", loan.id, loan.asset_id)
    return _loan_to_schema(loan)


def find_overdue_candidates(db: Session, *, now: Optional[datetime] = None) -> list[int]:
    """Ids of BORROWED loans whose target return date has passed."""
    now = now or timeutil.now()
    stmt = (
        select(LoanORM.id)
        .where(
            LoanORM.status == LoanStatus.BORROWED,
            LoanORM.return_date.is_not(None),
            LoanORM.return_date < now,
        )
        .order_by(LoanORM.return_date.asc())
    )
    return [r[0] for r in db.execute(stmt).all()]
