from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import crud
from access import scope_for
from dependencies import get_current_user, get_db, require_admin_or_management
from filter_helpers import (
    blank_to_none,
    normalize_limit,
    normalize_page,
    parse_optional_bool,
    parse_optional_int,
    total_pages,
)
from models import AssetDetail, AssetIn, AssetList, AssetMessage, AssetUpdate, Message, Pagination
from orm import UserORM

router = APIRouter()


@router.get("/assets", response_model=AssetList)
def list_assets_api(
    search: Optional[str] = None,
    category_id: Optional[str] = Query(None, alias="categoryId"),
    is_available: Optional[str] = Query(None, alias="isAvailable"),
    is_active: Optional[str] = Query(None, alias="isActive"),
    office_id: Optional[str] = Query(None, alias="officeId"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    page = normalize_page(page)
    limit = normalize_limit(limit)
    scope = scope_for(user, parse_optional_int(office_id, "officeId"))

    assets, total = crud.list_assets(
        db,
        q=blank_to_none(search),
        category_id=parse_optional_int(category_id, "categoryId"),
        is_available=parse_optional_bool(is_available, "isAvailable"),
        is_active=parse_optional_bool(is_active, "isActive"),
        scope=scope,
        role=user.role,
        limit=limit,
        offset=(page - 1) * limit,
    )
    return AssetList(
        assets=assets,
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=total_pages(total, limit)),
    )


@router.get("/assets/{asset_id}", response_model=AssetDetail)
def get_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    return crud.get_asset_detail(db, asset_id, role=user.role, scope=scope_for(user))


@router.post("/assets", response_model=AssetMessage, status_code=201)
def create_asset_api(
    body: AssetIn,
    db: Session = Depends(get_db),
    _user=Depends(require_admin_or_management),
):
    asset = crud.create_asset(db, body)
    return AssetMessage(message="asset created", asset=asset)


@router.put("/assets/{asset_id}", response_model=AssetMessage)
def update_asset_api(
    asset_id: int,
    body: AssetUpdate,
    db: Session = Depends(get_db),
    _user=Depends(require_admin_or_management),
):
    asset = crud.update_asset(db, asset_id, body)
    return AssetMessage(message="asset updated", asset=asset)


@router.delete("/assets/{asset_id}", response_model=Message)
def delete_asset_api(
    asset_id: int,
    db: Session = Depends(get_db),
    _user=Depends(require_admin_or_management),
):
    crud.delete_asset(db, asset_id)
    return Message(message="asset deleted")
