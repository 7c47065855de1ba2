import os
import tempfile
from types import SimpleNamespace

# main builds a module-level app on import; keep its default sqlite file out of the repo
os.environ.setdefault("APP_DB_PATH", os.path.join(tempfile.gettempdir(), "loans_import_default.db"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete

import crud
from config import Settings
from db import Database
from main import create_app
from models import AssetIn, CategoryIn, CategoryType, OfficeIn, Role, UserIn
from orm import AssetORM, CategoryORM, CategoryRoleORM, LoanORM, OfficeORM, UserORM
from security import issue_token

TEST_SECRET = "test-secret-key"
PASSWORD = "password123"


@pytest.fixture(scope="session")
def database(tmp_path_factory):
    tmp_dir = tmp_path_factory.mktemp("loans_app")
    db_path = tmp_dir / "test_loans.db"
    database = Database(f"sqlite:///{db_path.as_posix()}").open()
    yield database
    database.close()


@pytest.fixture(scope="session")
def app(database):
    settings = Settings(database_url=database.url, secret_key=TEST_SECRET, token_hours=1)
    return create_app(settings=settings, database=database)


@pytest.fixture()
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture()
def db_session(database):
    db = database.session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def clean_db(db_session):
    # children first: loans -> assets -> category roles -> categories -> users -> offices
    db_session.execute(delete(LoanORM))
    db_session.execute(delete(AssetORM))
    db_session.execute(delete(CategoryRoleORM))
    db_session.execute(delete(CategoryORM))
    db_session.execute(delete(UserORM))
    db_session.execute(delete(OfficeORM))
    db_session.commit()
    yield


def _user(db, nik, username, full_name, role, office_id=None):
    return crud.create_user(
        db,
        UserIn(
            nik=nik,
            username=username,
            password=PASSWORD,
            full_name=full_name,
            role=role,
            office_id=office_id,
        ),
    )


@pytest.fixture()
def seed(db_session):
    """Two offices, an open and a restricted category, one user per role and three assets."""
    pusat = crud.create_office(db_session, OfficeIn(name="Kantor Pusat", address="Jl. Ahmad Yani No. 1"))
    timur = crud.create_office(db_session, OfficeIn(name="Kantor Timur", address="Jl. Veteran No. 15"))

    vehicles = crud.create_category(db_session, CategoryIn(name="Kendaraan Operasional", type=CategoryType.VEHICLE))
    server_keys = crud.create_category(
        db_session,
        CategoryIn(
            name="Kunci Ruang Server",
            type=CategoryType.ROOM_KEY,
            allowed_roles=[Role.ADMIN, Role.MANAGEMENT],
        ),
    )

    admin = _user(db_session, "0000000001", "admin", "Administrator Sistem", Role.ADMIN)
    manager = _user(db_session, "0000000002", "manager", "Manajer Operasional", Role.MANAGEMENT, pusat.id)
    guard = _user(db_session, "0000000003", "satpam_pusat", "Satpam Kantor Pusat", Role.SECURITY_GUARD, pusat.id)
    guard_timur = _user(db_session, "0000000004", "satpam_timur", "Satpam Kantor Timur", Role.SECURITY_GUARD, timur.id)

    car = crud.create_asset(
        db_session,
        AssetIn(name="Toyota Avanza", code="l 1234 ab", category_id=vehicles.id, office_id=pusat.id),
    )
    van = crud.create_asset(
        db_session,
        AssetIn(name="Daihatsu Gran Max", code="S 9999 ZZ", category_id=vehicles.id, office_id=timur.id),
    )
    server_key = crud.create_asset(
        db_session,
        AssetIn(name="Kunci Server Room A", code="SRV-A-001", category_id=server_keys.id, office_id=pusat.id),
    )

    return SimpleNamespace(
        pusat=pusat,
        timur=timur,
        vehicles=vehicles,
        server_keys=server_keys,
        admin=admin,
        manager=manager,
        guard=guard,
        guard_timur=guard_timur,
        car=car,
        van=van,
        server_key=server_key,
    )


def auth_headers(user) -> dict:
    token = issue_token(user.id, user.role.value, secret_key=TEST_SECRET, hours=1)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def as_admin(seed):
    return auth_headers(seed.admin)


@pytest.fixture()
def as_manager(seed):
    return auth_headers(seed.manager)


@pytest.fixture()
def as_guard(seed):
    return auth_headers(seed.guard)


@pytest.fixture()
def as_guard_timur(seed):
    return auth_headers(seed.guard_timur)


def borrow(client, headers, asset_id, **extra):
    body = {"assetId": asset_id, "borrowerName": "Budi", **extra}
    r = client.post("/loans", json=body, headers=headers)
    assert r.status_code == 201, r.text
    return r.json()["loan"]
