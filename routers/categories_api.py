from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import crud
from dependencies import get_current_user, get_db, require_admin
from errors import ValidationError
from filter_helpers import blank_to_none, parse_optional_bool
from models import Category, CategoryIn, CategoryMessage, CategoryType, CategoryUpdate, Message

router = APIRouter()


def _parse_type(value: Optional[str]) -> Optional[CategoryType]:
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        return CategoryType(value.upper())
    except ValueError:
        raise ValidationError(errors=[{"field": "type", "message": "unknown category type"}])


@router.get("/categories", response_model=list[Category])
def list_categories_api(
    search: Optional[str] = None,
    type: Optional[str] = None,
    is_active: Optional[str] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
    _user=Depends(get_current_user),
):
    return crud.list_categories(
        db,
        q=blank_to_none(search),
        type=_parse_type(type),
        is_active=parse_optional_bool(is_active, "isActive"),
    )


@router.get("/categories/{category_id}", response_model=Category)
def get_category_api(
    category_id: int,
    db: Session = Depends(get_db),
    _user=Depends(get_current_user),
):
    return crud.get_category(db, category_id)


@router.post("/categories", response_model=CategoryMessage, status_code=201)
def create_category_api(
    body: CategoryIn,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    category = crud.create_category(db, body)
    return CategoryMessage(message="category created", category=category)


@router.put("/categories/{category_id}", response_model=CategoryMessage)
def update_category_api(
    category_id: int,
    body: CategoryUpdate,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    category = crud.update_category(db, category_id, body)
    return CategoryMessage(message="category updated", category=category)


@router.delete("/categories/{category_id}", response_model=Message)
def delete_category_api(
    category_id: int,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    crud.delete_category(db, category_id)
    return Message(message="category deleted")
