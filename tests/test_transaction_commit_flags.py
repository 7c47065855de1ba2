import pytest
from sqlalchemy import select

import crud
from errors import NotFoundError
from models import AssetIn, CategoryIn, CategoryType, OfficeIn, OfficeUpdate
from orm import AssetORM, CategoryORM, OfficeORM


def test_create_asset_commit_false_requires_manual_commit(db_session, seed):
    body = AssetIn(name="Tablet", code="t-001", category_id=seed.vehicles.id, office_id=seed.pusat.id)
    created = crud.create_asset(db_session, body, commit=False)

    db_session.commit()
    db_session.expire_all()

    loaded = db_session.get(AssetORM, created.id)
    assert loaded is not None
    assert loaded.code == "T-001"


def test_create_asset_commit_false_rollback_discards_change(db_session, seed):
    body = AssetIn(name="Tablet", code="T-002", category_id=seed.vehicles.id, office_id=seed.pusat.id)
    created = crud.create_asset(db_session, body, commit=False)

    db_session.rollback()
    db_session.expire_all()

    assert db_session.get(AssetORM, created.id) is None


def test_update_office_commit_false_rollback_discards_change(db_session):
    office = crud.create_office(db_session, OfficeIn(name="Kantor Lama"))

    renamed = crud.update_office(db_session, office.id, OfficeUpdate(name="Kantor Baru"), commit=False)
    assert renamed.name == "Kantor Baru"

    db_session.rollback()
    db_session.expire_all()

    stored = db_session.get(OfficeORM, office.id)
    assert stored is not None
    assert stored.name == "Kantor Lama"


def test_delete_category_commit_false_rollback_discards_delete(db_session):
    created = crud.create_category(db_session, CategoryIn(name="Tripod", type=CategoryType.DEVICE))

    crud.delete_category(db_session, created.id, commit=False)

    db_session.rollback()
    db_session.expire_all()

    category = db_session.get(CategoryORM, created.id)
    assert category is not None
    assert category.name == "Tripod"
    assert len(category.role_rows) == 3


def test_delete_office_commit_false_requires_manual_commit(db_session):
    office = crud.create_office(db_session, OfficeIn(name="Rak A"))

    crud.delete_office(db_session, office.id, commit=False)

    db_session.commit()
    db_session.expire_all()

    assert db_session.execute(select(OfficeORM).where(OfficeORM.name == "Rak A")).first() is None
    with pytest.raises(NotFoundError):
        crud.get_office(db_session, office.id)
