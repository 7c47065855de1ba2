from __future__ import annotations

import logging
from typing import Iterable, Optional

from sqlalchemy import select, func, or_
from sqlalchemy.orm import Session

import timeutil
from access import OfficeScope, category_visible_clause, role_allowed
from errors import AuthorizationError, ConflictError, NotFoundError, ValidationError
from models import (
    ALL_ROLES,
    Asset,
    AssetDetail,
    AssetIn,
    AssetUpdate,
    Category,
    CategoryIn,
    CategoryType,
    CategoryUpdate,
    LoanStatus,
    LoanSummary,
    Office,
    OfficeDetail,
    OfficeIn,
    OfficeUpdate,
    Role,
    User,
    UserIn,
    UserUpdate,
)
from orm import AssetORM, CategoryORM, CategoryRoleORM, LoanORM, OfficeORM, UserORM
from security import hash_password

logger = logging.getLogger(__name__)


def persist(db: Session, *, commit: bool) -> None:
    if commit:
        db.commit()
    else:
        db.flush()


def _office_to_schema(o: OfficeORM) -> Office:
    return Office.model_validate(o)


def _category_to_schema(c: CategoryORM, asset_count: int = 0) -> Category:
    roles = c.allowed_roles
    return Category(
        id=c.id,
        name=c.name,
        type=c.type,
        description=c.description,
        is_active=c.is_active,
        allowed_roles=[r for r in ALL_ROLES if r in roles],
        asset_count=asset_count,
        created_at=c.created_at,
        updated_at=c.updated_at,
    )


def _user_to_schema(u: UserORM) -> User:
    return User.model_validate(u)


def _asset_to_schema(a: AssetORM) -> Asset:
    return Asset.model_validate(a)


def count_rows(db: Session, stmt) -> int:
    return int(db.execute(select(func.count()).select_from(stmt.subquery())).scalar_one())


# ---------- Office ----------
def office_name_exists(db: Session, name: str, exclude_office_id: Optional[int] = None) -> bool:
    stmt = select(OfficeORM.id).where(OfficeORM.name == name)
    if exclude_office_id:
        stmt = stmt.where(OfficeORM.id != exclude_office_id)
    return db.execute(stmt).first() is not None


def _office_counts_stmt():
    user_count = (
        select(func.count(UserORM.id)).where(UserORM.office_id == OfficeORM.id).scalar_subquery()
    )
    asset_count = (
        select(func.count(AssetORM.id)).where(AssetORM.office_id == OfficeORM.id).scalar_subquery()
    )
    return select(OfficeORM, user_count, asset_count)


def _office_detail(row) -> OfficeDetail:
    o, users, assets = row
    return OfficeDetail(
        **Office.model_validate(o).model_dump(),
        user_count=int(users or 0),
        asset_count=int(assets or 0),
    )


def list_offices(db: Session, *, q: Optional[str] = None, is_active: Optional[bool] = None) -> list[OfficeDetail]:
    stmt = _office_counts_stmt()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(OfficeORM.name.ilike(like), OfficeORM.address.ilike(like)))
    if is_active is not None:
        stmt = stmt.where(OfficeORM.is_active == is_active)
    stmt = stmt.order_by(OfficeORM.name.asc())
    return [_office_detail(r) for r in db.execute(stmt).all()]


def get_office(db: Session, office_id: int) -> OfficeDetail:
    row = db.execute(_office_counts_stmt().where(OfficeORM.id == office_id)).first()
    if not row:
        raise NotFoundError("office not found")
    return _office_detail(row)


def create_office(db: Session, body: OfficeIn, *, commit: bool = True) -> Office:
    if office_name_exists(db, body.name):
        raise ConflictError("an office with this name already exists")

    now = timeutil.now()
    o = OfficeORM(
        name=body.name,
        address=body.address or None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(o)
    persist(db, commit=commit)
    logger.info("office created office_id=%s", o.id)
    return _office_to_schema(o)


def update_office(db: Session, office_id: int, body: OfficeUpdate, *, commit: bool = True) -> Office:
    o = db.get(OfficeORM, office_id)
    if not o:
        raise NotFoundError("office not found")

    data = body.model_dump(exclude_unset=True)
    if data.get("name") and office_name_exists(db, data["name"], exclude_office_id=office_id):
        raise ConflictError("an office with this name already exists")

    if data.get("name"):
        o.name = data["name"]
    if "address" in data:
        o.address = data["address"] or None
    if data.get("is_active") is not None:
        o.is_active = data["is_active"]
    o.updated_at = timeutil.now()

    persist(db, commit=commit)
    return _office_to_schema(o)


def delete_office(db: Session, office_id: int, *, commit: bool = True) -> None:
    o = db.get(OfficeORM, office_id)
    if not o:
        raise NotFoundError("office not found")

    users = db.execute(select(func.count()).select_from(UserORM).where(UserORM.office_id == office_id)).scalar_one()
    if int(users) > 0:
        raise ConflictError("cannot delete an office that still has users; reassign or delete them first")

    assets = db.execute(select(func.count()).select_from(AssetORM).where(AssetORM.office_id == office_id)).scalar_one()
    if int(assets) > 0:
        raise ConflictError("cannot delete an office that still has assets; reassign or delete them first")

    db.delete(o)
    persist(db, commit=commit)
    logger.info("office deleted office_id=%s", office_id)


# ---------- Category ----------
def category_name_exists(db: Session, name: str, exclude_category_id: Optional[int] = None) -> bool:
    stmt = select(CategoryORM.id).where(CategoryORM.name == name)
    if exclude_category_id:
        stmt = stmt.where(CategoryORM.id != exclude_category_id)
    return db.execute(stmt).first() is not None


def _category_counts_stmt():
    asset_count = (
        select(func.count(AssetORM.id)).where(AssetORM.category_id == CategoryORM.id).scalar_subquery()
    )
    return select(CategoryORM, asset_count)


def list_categories(
    db: Session,
    *,
    q: Optional[str] = None,
    type: Optional[CategoryType] = None,
    is_active: Optional[bool] = None,
) -> list[Category]:
    stmt = _category_counts_stmt()
    if q:
        like = f"%{q}%"
        stmt = stmt.where(or_(CategoryORM.name.ilike(like), CategoryORM.description.ilike(like)))
    if type:
        stmt = stmt.where(CategoryORM.type == type)
    if is_active is not None:
        stmt = stmt.where(CategoryORM.is_active == is_active)
    stmt = stmt.order_by(CategoryORM.name.asc())
    return [_category_to_schema(c, int(n or 0)) for c, n in db.execute(stmt).all()]


def get_category(db: Session, category_id: int) -> Category:
    row = db.execute(_category_counts_stmt().where(CategoryORM.id == category_id)).first()
    if not row:
        raise NotFoundError("category not found")
    c, n = row
    return _category_to_schema(c, int(n or 0))


def _set_category_roles(c: CategoryORM, roles: Iterable[Role]) -> None:
    wanted = set(roles)
    # keep surviving rows so the (category_id, role) unique key is never hit mid-flush
    c.role_rows = [r for r in c.role_rows if r.role in wanted]
    present = {r.role for r in c.role_rows}
    for role in ALL_ROLES:
        if role in wanted and role not in present:
            c.role_rows.append(CategoryRoleORM(role=role))


def create_category(db: Session, body: CategoryIn, *, commit: bool = True) -> Category:
    if category_name_exists(db, body.name):
        raise ConflictError("a category with this name already exists")

    now = timeutil.now()
    c = CategoryORM(
        name=body.name,
        type=body.type,
        description=body.description or None,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    roles = body.allowed_roles if body.allowed_roles else ALL_ROLES
    _set_category_roles(c, roles)
    db.add(c)
    persist(db, commit=commit)
    logger.info("category created category_id=%s", c.id)
    return _category_to_schema(c)


def update_category(db: Session, category_id: int, body: CategoryUpdate, *, commit: bool = True) -> Category:
    c = db.get(CategoryORM, category_id)
    if not c:
        raise NotFoundError("category not found")

    data = body.model_dump(exclude_unset=True)
    if data.get("name") and category_name_exists(db, data["name"], exclude_category_id=category_id):
        raise ConflictError("a category with this name already exists")

    if data.get("name"):
        c.name = data["name"]
    if data.get("type"):
        c.type = data["type"]
    if "description" in data:
        c.description = data["description"] or None
    if data.get("is_active") is not None:
        c.is_active = data["is_active"]
    if "allowed_roles" in data:
        _set_category_roles(c, data["allowed_roles"] or ())
    c.updated_at = timeutil.now()

    persist(db, commit=commit)
    return get_category(db, category_id)


def delete_category(db: Session, category_id: int, *, commit: bool = True) -> None:
    c = db.get(CategoryORM, category_id)
    if not c:
        raise NotFoundError("category not found")

    used = db.execute(
        select(func.count()).select_from(AssetORM).where(AssetORM.category_id == category_id)
    ).scalar_one()
    if int(used) > 0:
        raise ConflictError("cannot delete a category that still has assets; move or delete them first")

    db.delete(c)
    persist(db, commit=commit)
    logger.info("category deleted category_id=%s", category_id)


# ---------- User ----------
def get_user(db: Session, user_id: int) -> User:
    u = db.get(UserORM, user_id)
    if not u:
        raise NotFoundError("user not found")
    return _user_to_schema(u)


def find_login_user(db: Session, identifier: str) -> Optional[UserORM]:
    stmt = select(UserORM).where(
        or_(UserORM.username == identifier, UserORM.nik == identifier),
        UserORM.is_active.is_(True),
    )
    return db.execute(stmt).scalars().first()


def user_identity_taken(
    db: Session,
    *,
    nik: Optional[str],
    username: Optional[str],
    exclude_user_id: Optional[int] = None,
) -> bool:
    conditions = []
    if nik:
        conditions.append(UserORM.nik == nik)
    if username:
        conditions.append(UserORM.username == username)
    if not conditions:
        return False
    stmt = select(UserORM.id).where(or_(*conditions))
    if exclude_user_id:
        stmt = stmt.where(UserORM.id != exclude_user_id)
    return db.execute(stmt).first() is not None


def _check_office_assignment(db: Session, role: Role, office_id: Optional[int]) -> None:
    if office_id is not None and not db.get(OfficeORM, office_id):
        raise ValidationError(errors=[{"field": "officeId", "message": "office not found"}])
    if role == Role.SECURITY_GUARD and office_id is None:
        raise ValidationError(errors=[{"field": "officeId", "message": "a security guard must be assigned to an office"}])


def list_users(
    db: Session,
    *,
    q: Optional[str] = None,
    role: Optional[Role] = None,
    office_id: Optional[int] = None,
    limit: int,
    offset: int,
) -> tuple[list[User], int]:
    stmt = select(UserORM)
    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                UserORM.full_name.ilike(like),
                UserORM.username.ilike(like),
                UserORM.nik.ilike(like),
            )
        )
    if role:
        stmt = stmt.where(UserORM.role == role)
    if office_id:
        stmt = stmt.where(UserORM.office_id == office_id)

    total = count_rows(db, stmt)
    stmt = stmt.order_by(UserORM.created_at.desc(), UserORM.id.desc()).limit(limit).offset(offset)
    rows = db.execute(stmt).scalars().all()
    return [_user_to_schema(u) for u in rows], total


def create_user(db: Session, body: UserIn, *, commit: bool = True) -> User:
    if user_identity_taken(db, nik=body.nik, username=body.username):
        raise ConflictError("a user with this NIK or username already exists")
    _check_office_assignment(db, body.role, body.office_id)

    now = timeutil.now()
    u = UserORM(
        nik=body.nik,
        username=body.username,
        password_hash=hash_password(body.password),
        full_name=body.full_name,
        role=body.role,
        office_id=body.office_id,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(u)
    persist(db, commit=commit)
    if commit:
        db.refresh(u)
    logger.info("user created user_id=%s role=%s", u.id, u.role.value)
    return _user_to_schema(u)


def update_user(db: Session, user_id: int, body: UserUpdate, *, commit: bool = True) -> User:
    u = db.get(UserORM, user_id)
    if not u:
        raise NotFoundError("user not found")

    data = body.model_dump(exclude_unset=True)
    nik = data.get("nik") if data.get("nik") != u.nik else None
    username = data.get("username") if data.get("username") != u.username else None
    if user_identity_taken(db, nik=nik, username=username, exclude_user_id=user_id):
        raise ConflictError("a user with this NIK or username already exists")

    role = data.get("role") or u.role
    office_id = data["office_id"] if "office_id" in data else u.office_id
    _check_office_assignment(db, role, office_id)

    if data.get("nik"):
        u.nik = data["nik"]
    if data.get("username"):
        u.username = data["username"]
    if data.get("full_name"):
        u.full_name = data["full_name"]
    if data.get("role"):
        u.role = data["role"]
    if "office_id" in data:
        u.office_id = data["office_id"]
    if data.get("is_active") is not None:
        u.is_active = data["is_active"]
    if data.get("password"):
        u.password_hash = hash_password(data["password"])
    u.updated_at = timeutil.now()

    persist(db, commit=commit)
    if commit:
        db.refresh(u)
    return _user_to_schema(u)


def delete_user(db: Session, user_id: int, *, acting_user_id: int, commit: bool = True) -> None:
    u = db.get(UserORM, user_id)
    if not u:
        raise NotFoundError("user not found")
    if u.id == acting_user_id:
        raise ConflictError("you cannot delete your own account")

    open_loans = db.execute(
        select(func.count())
        .select_from(LoanORM)
        .where(LoanORM.user_id == user_id, LoanORM.status == LoanStatus.BORROWED)
    ).scalar_one()
    if int(open_loans) > 0:
        raise ConflictError("cannot delete a user with active loans; process all returns first")

    # loan history is permanent and references the recording user
    recorded = db.execute(
        select(func.count()).select_from(LoanORM).where(LoanORM.user_id == user_id)
    ).scalar_one()
    if int(recorded) > 0:
        raise ConflictError("cannot delete a user who has recorded loans; deactivate the account instead")

    db.delete(u)
    persist(db, commit=commit)
    logger.info("user deleted user_id=%s", user_id)


# ---------- Asset ----------
def code_exists(db: Session, code: str, exclude_asset_id: Optional[int] = None) -> bool:
    stmt = select(AssetORM.id).where(AssetORM.code == code.upper())
    if exclude_asset_id:
        stmt = stmt.where(AssetORM.id != exclude_asset_id)
    return db.execute(stmt).first() is not None


def has_borrowed_loan(db: Session, asset_id: int) -> bool:
    stmt = select(LoanORM.id).where(LoanORM.asset_id == asset_id, LoanORM.status == LoanStatus.BORROWED)
    return db.execute(stmt).first() is not None


def build_assets_query(
    *,
    q: Optional[str],
    category_id: Optional[int],
    is_available: Optional[bool],
    is_active: Optional[bool],
    scope: OfficeScope,
    role: Role,
):
    stmt = select(AssetORM).where(category_visible_clause(role))

    office_clause = scope.asset_clause()
    if office_clause is not None:
        stmt = stmt.where(office_clause)

    if q:
        like = f"%{q}%"
        stmt = stmt.where(
            or_(
                AssetORM.name.ilike(like),
                AssetORM.code.ilike(like),
                AssetORM.description.ilike(like),
            )
        )
    if category_id:
        stmt = stmt.where(AssetORM.category_id == category_id)
    if is_available is not None:
        stmt = stmt.where(AssetORM.is_available == is_available)
    if is_active is not None:
        stmt = stmt.where(AssetORM.is_active == is_active)
    return stmt


def list_assets(
    db: Session,
    *,
    q: Optional[str] = None,
    category_id: Optional[int] = None,
    is_available: Optional[bool] = None,
    is_active: Optional[bool] = None,
    scope: OfficeScope,
    role: Role,
    limit: int,
    offset: int,
) -> tuple[list[Asset], int]:
    stmt = build_assets_query(
        q=q,
        category_id=category_id,
        is_available=is_available,
        is_active=is_active,
        scope=scope,
        role=role,
    )
    total = count_rows(db, stmt)

    stmt = stmt.order_by(AssetORM.created_at.desc(), AssetORM.id.desc()).limit(limit).offset(offset)
    rows = db.execute(stmt).unique().scalars().all()
    return [_asset_to_schema(a) for a in rows], total


def get_asset_detail(db: Session, asset_id: int, *, role: Role, scope: OfficeScope) -> AssetDetail:
    a = db.get(AssetORM, asset_id)
    if not a or not scope.allows(a.office_id):
        raise NotFoundError("asset not found")
    if not role_allowed(a.category.allowed_roles, role):
        raise AuthorizationError("you do not have access to this asset")

    base = _asset_to_schema(a)
    return AssetDetail(
        **base.model_dump(),
        loans=[LoanSummary.model_validate(l) for l in a.loans],
    )


def _check_asset_refs(db: Session, category_id: Optional[int], office_id: Optional[int]) -> None:
    errors = []
    if category_id is not None and not db.get(CategoryORM, category_id):
        errors.append({"field": "categoryId", "message": "category not found"})
    if office_id is not None and not db.get(OfficeORM, office_id):
        errors.append({"field": "officeId", "message": "office not found"})
    if errors:
        raise ValidationError(errors=errors)


def create_asset(db: Session, body: AssetIn, *, commit: bool = True) -> Asset:
    code = body.code.upper()
    if code_exists(db, code):
        raise ConflictError("an asset with this code already exists")
    _check_asset_refs(db, body.category_id, body.office_id)

    now = timeutil.now()
    a = AssetORM(
        name=body.name,
        code=code,
        description=body.description or None,
        category_id=body.category_id,
        office_id=body.office_id,
        is_available=True,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    db.add(a)
    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    logger.info("asset created asset_id=%s code=%s", a.id, a.code)
    return _asset_to_schema(a)


def update_asset(db: Session, asset_id: int, body: AssetUpdate, *, commit: bool = True) -> Asset:
    a = db.get(AssetORM, asset_id)
    if not a:
        raise NotFoundError("asset not found")

    data = body.model_dump(exclude_unset=True)
    if data.get("code") and code_exists(db, data["code"], exclude_asset_id=asset_id):
        raise ConflictError("an asset with this code already exists")
    _check_asset_refs(db, data.get("category_id"), data.get("office_id"))

    if data.get("is_available") and not a.is_available and has_borrowed_loan(db, asset_id):
        raise ConflictError("asset has an active loan; return it instead of marking it available")
    if data.get("is_available") is False and a.is_available and not has_borrowed_loan(db, asset_id):
        raise ConflictError("asset has no active loan; record a loan instead of marking it unavailable")

    if data.get("name"):
        a.name = data["name"]
    if data.get("code"):
        a.code = data["code"].upper()
    if data.get("category_id"):
        a.category_id = data["category_id"]
    if data.get("office_id"):
        a.office_id = data["office_id"]
    if "description" in data:
        a.description = data["description"] or None
    if data.get("is_available") is not None:
        a.is_available = data["is_available"]
    if data.get("is_active") is not None:
        a.is_active = data["is_active"]
    a.updated_at = timeutil.now()

    persist(db, commit=commit)
    if commit:
        db.refresh(a)
    return _asset_to_schema(a)


def delete_asset(db: Session, asset_id: int, *, commit: bool = True) -> None:
    a = db.get(AssetORM, asset_id)
    if not a:
        raise NotFoundError("asset not found")

    if has_borrowed_loan(db, asset_id):
        raise ConflictError("cannot delete an asset with active loans; process all returns first")

    db.delete(a)
    persist(db, commit=commit)
    logger.info("asset deleted asset_id=%s", asset_id)
