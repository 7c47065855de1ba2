from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import crud
from dependencies import get_current_user, get_db, require_admin, require_admin_or_management
from errors import ValidationError
from filter_helpers import blank_to_none, normalize_limit, normalize_page, parse_optional_int, total_pages
from models import Message, Pagination, Role, User, UserIn, UserList, UserMessage, UserUpdate
from orm import UserORM

router = APIRouter()


def _parse_role(value: Optional[str]) -> Optional[Role]:
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        return Role(value.upper())
    except ValueError:
        raise ValidationError(errors=[{"field": "role", "message": "unknown role"}])


@router.get("/users", response_model=UserList)
def list_users_api(
    search: Optional[str] = None,
    role: Optional[str] = None,
    office_id: Optional[str] = Query(None, alias="officeId"),
    page: int = 1,
    limit: int = 10,
    db: Session = Depends(get_db),
    _user=Depends(require_admin_or_management),
):
    page = normalize_page(page)
    limit = normalize_limit(limit)

    users, total = crud.list_users(
        db,
        q=blank_to_none(search),
        role=_parse_role(role),
        office_id=parse_optional_int(office_id, "officeId"),
        limit=limit,
        offset=(page - 1) * limit,
    )
    return UserList(
        users=users,
        pagination=Pagination(total=total, page=page, limit=limit, total_pages=total_pages(total, limit)),
    )


# declared before /users/{user_id} so "profile" is not taken for an id
@router.get("/users/profile", response_model=User)
def profile_api(
    db: Session = Depends(get_db),
    user: UserORM = Depends(get_current_user),
):
    return crud.get_user(db, user.id)


@router.get("/users/{user_id}", response_model=User)
def get_user_api(
    user_id: int,
    db: Session = Depends(get_db),
    _user=Depends(require_admin_or_management),
):
    return crud.get_user(db, user_id)


@router.post("/users", response_model=UserMessage, status_code=201)
def create_user_api(
    body: UserIn,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    user = crud.create_user(db, body)
    return UserMessage(message="user created", user=user)


@router.put("/users/{user_id}", response_model=UserMessage)
def update_user_api(
    user_id: int,
    body: UserUpdate,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    user = crud.update_user(db, user_id, body)
    return UserMessage(message="user updated", user=user)


@router.delete("/users/{user_id}", response_model=Message)
def delete_user_api(
    user_id: int,
    db: Session = Depends(get_db),
    admin: UserORM = Depends(require_admin),
):
    crud.delete_user(db, user_id, acting_user_id=admin.id)
    return Message(message="user deleted")
