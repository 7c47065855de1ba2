from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

import crud
from dependencies import get_current_user, get_db, require_admin
from filter_helpers import blank_to_none, parse_optional_bool
from models import Message, OfficeDetail, OfficeIn, OfficeMessage, OfficeUpdate

router = APIRouter()


@router.get("/offices", response_model=list[OfficeDetail])
def list_offices_api(
    search: Optional[str] = None,
    is_active: Optional[str] = Query(None, alias="isActive"),
    db: Session = Depends(get_db),
    _user=Depends(get_current_user),
):
    return crud.list_offices(
        db,
        q=blank_to_none(search),
        is_active=parse_optional_bool(is_active, "isActive"),
    )


@router.get("/offices/{office_id}", response_model=OfficeDetail)
def get_office_api(
    office_id: int,
    db: Session = Depends(get_db),
    _user=Depends(get_current_user),
):
    return crud.get_office(db, office_id)


@router.post("/offices", response_model=OfficeMessage, status_code=201)
def create_office_api(
    body: OfficeIn,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    office = crud.create_office(db, body)
    return OfficeMessage(message="office created", office=office)


@router.put("/offices/{office_id}", response_model=OfficeMessage)
def update_office_api(
    office_id: int,
    body: OfficeUpdate,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    office = crud.update_office(db, office_id, body)
    return OfficeMessage(message="office updated", office=office)


@router.delete("/offices/{office_id}", response_model=Message)
def delete_office_api(
    office_id: int,
    db: Session = Depends(get_db),
    _admin=Depends(require_admin),
):
    crud.delete_office(db, office_id)
    return Message(message="office deleted")
