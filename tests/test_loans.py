from datetime import timedelta

import pytest
from sqlalchemy import func, select, update

import loans
import timeutil
from access import UNRESTRICTED
from conftest import borrow
from errors import ConflictError
from models import LoanIn, LoanReturn, LoanStatus
from orm import AssetORM, LoanORM, UserORM


def _asset(client, headers, asset_id):
    r = client.get(f"/assets/{asset_id}", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()


def test_guard_borrows_and_returns_asset_in_own_office(client, seed, as_guard):
    loan = borrow(client, as_guard, seed.car.id, borrowerPhone="08123", purpose="patroli")
    assert loan["status"] == "BORROWED"
    assert loan["borrowerName"] == "Budi"
    assert loan["userId"] == seed.guard.id
    assert loan["asset"]["isAvailable"] is False
    assert loan["actualReturnDate"] is None

    assert _asset(client, as_guard, seed.car.id)["isAvailable"] is False

    r = client.patch(f"/loans/{loan['id']}/return", json={"notes": "ok"}, headers=as_guard)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["message"]
    returned = body["loan"]
    assert returned["status"] == "RETURNED"
    assert returned["notes"] == "ok"
    assert returned["actualReturnDate"] is not None
    assert returned["asset"]["isAvailable"] is True

    assert _asset(client, as_guard, seed.car.id)["isAvailable"] is True


def test_second_loan_on_borrowed_asset_is_conflict(client, db_session, seed, as_guard, as_admin):
    borrow(client, as_guard, seed.car.id)

    r = client.post("/loans", json={"assetId": seed.car.id, "borrowerName": "Budi"}, headers=as_admin)
    assert r.status_code == 409
    assert "error" in r.json()

    count = db_session.execute(select(func.count(LoanORM.id)).where(LoanORM.asset_id == seed.car.id)).scalar_one()
    assert count == 1


def test_return_twice_is_conflict(client, seed, as_admin):
    loan = borrow(client, as_admin, seed.car.id)
    r = client.patch(f"/loans/{loan['id']}/return", json={}, headers=as_admin)
    assert r.status_code == 200

    r = client.patch(f"/loans/{loan['id']}/return", json={}, headers=as_admin)
    assert r.status_code == 409
    assert _asset(client, as_admin, seed.car.id)["isAvailable"] is True


def test_return_without_body(client, seed, as_admin):
    loan = borrow(client, as_admin, seed.car.id)
    r = client.patch(f"/loans/{loan['id']}/return", headers=as_admin)
    assert r.status_code == 200, r.text
    assert r.json()["loan"]["status"] == "RETURNED"


def test_inactive_asset_cannot_be_borrowed(client, seed, as_admin):
    r = client.put(f"/assets/{seed.car.id}", json={"isActive": False}, headers=as_admin)
    assert r.status_code == 200, r.text

    r = client.post("/loans", json={"assetId": seed.car.id, "borrowerName": "Budi"}, headers=as_admin)
    assert r.status_code == 409


def test_unknown_asset_is_not_found(client, seed, as_admin):
    r = client.post("/loans", json={"assetId": 999999, "borrowerName": "Budi"}, headers=as_admin)
    assert r.status_code == 404
    assert r.json() == {"error": "asset not found"}


def test_guard_cannot_borrow_from_other_office(client, seed, as_guard):
    r = client.post("/loans", json={"assetId": seed.van.id, "borrowerName": "Budi"}, headers=as_guard)
    assert r.status_code == 403
    assert _asset(client, as_guard, seed.car.id)["isAvailable"] is True


def test_category_policy_blocks_loan(client, seed, as_guard, as_manager):
    r = client.post("/loans", json={"assetId": seed.server_key.id, "borrowerName": "Budi"}, headers=as_guard)
    assert r.status_code == 403

    # management is on the allow list
    borrow(client, as_manager, seed.server_key.id)


def test_missing_borrower_name_is_field_error(client, seed, as_admin):
    r = client.post("/loans", json={"assetId": seed.car.id}, headers=as_admin)
    assert r.status_code == 400
    fields = [e["field"] for e in r.json()["errors"]]
    assert "borrowerName" in fields


def test_third_party_details_kept_only_for_third_party(client, seed, as_admin):
    loan = borrow(
        client,
        as_admin,
        seed.car.id,
        isThirdParty=True,
        thirdPartyName="PT Maju",
        thirdPartyAddress="Jl. Merdeka 5",
    )
    assert loan["isThirdParty"] is True
    assert loan["thirdPartyName"] == "PT Maju"

    loan2 = borrow(client, as_admin, seed.van.id, thirdPartyName="ignored")
    assert loan2["isThirdParty"] is False
    assert loan2["thirdPartyName"] is None


def test_mark_overdue_keeps_asset_unavailable(client, seed, as_admin):
    loan = borrow(client, as_admin, seed.car.id)

    r = client.patch(f"/loans/{loan['id']}/overdue", headers=as_admin)
    assert r.status_code == 200, r.text
    assert r.json()["loan"]["status"] == "OVERDUE"
    assert _asset(client, as_admin, seed.car.id)["isAvailable"] is False

    # an overdue loan cannot be returned or marked again
    assert client.patch(f"/loans/{loan['id']}/return", json={}, headers=as_admin).status_code == 409
    assert client.patch(f"/loans/{loan['id']}/overdue", headers=as_admin).status_code == 409


def test_availability_matches_open_loans(client, db_session, seed, as_admin, as_manager):
    first = borrow(client, as_admin, seed.car.id)
    borrow(client, as_manager, seed.server_key.id)
    client.patch(f"/loans/{first['id']}/return", json={}, headers=as_admin)
    borrow(client, as_admin, seed.van.id)

    db_session.expire_all()
    for asset in db_session.execute(select(AssetORM)).unique().scalars():
        open_loans = db_session.execute(
            select(func.count(LoanORM.id)).where(
                LoanORM.asset_id == asset.id,
                LoanORM.status == LoanStatus.BORROWED,
            )
        ).scalar_one()
        assert asset.is_available == (open_loans == 0)


def test_guard_cannot_see_loan_from_other_office(client, seed, as_admin, as_guard):
    loan = borrow(client, as_admin, seed.van.id)

    assert client.get(f"/loans/{loan['id']}", headers=as_guard).status_code == 404
    assert client.patch(f"/loans/{loan['id']}/return", json={}, headers=as_guard).status_code == 404
    assert client.get(f"/loans/{loan['id']}", headers=as_admin).status_code == 200


def test_list_loans_scope_and_filters(client, seed, as_admin, as_guard, as_guard_timur):
    a = borrow(client, as_admin, seed.car.id, borrowerName="Andi")
    borrow(client, as_admin, seed.van.id, borrowerName="Sari")
    client.patch(f"/loans/{a['id']}/return", json={}, headers=as_admin)

    r = client.get("/loans", headers=as_admin)
    assert r.status_code == 200
    assert r.json()["pagination"]["total"] == 2

    r = client.get("/loans", headers=as_guard)
    names = [l["borrowerName"] for l in r.json()["loans"]]
    assert names == ["Andi"]

    # officeId is ignored for guards
    r = client.get(f"/loans?officeId={seed.pusat.id}", headers=as_guard_timur)
    assert [l["borrowerName"] for l in r.json()["loans"]] == ["Sari"]

    r = client.get(f"/loans?officeId={seed.timur.id}", headers=as_admin)
    assert [l["borrowerName"] for l in r.json()["loans"]] == ["Sari"]

    r = client.get("/loans?status=returned", headers=as_admin)
    assert [l["borrowerName"] for l in r.json()["loans"]] == ["Andi"]

    r = client.get("/loans?search=gran max", headers=as_admin)
    assert [l["borrowerName"] for l in r.json()["loans"]] == ["Sari"]

    r = client.get(f"/loans?assetId={seed.car.id}", headers=as_admin)
    assert r.json()["pagination"]["total"] == 1

    r = client.get("/loans?status=LOST", headers=as_admin)
    assert r.status_code == 400


def test_list_loans_date_range_includes_end_day(client, seed, as_admin):
    borrow(client, as_admin, seed.car.id)
    today = timeutil.today()

    r = client.get(f"/loans?startDate={today}&endDate={today}", headers=as_admin)
    assert r.json()["pagination"]["total"] == 1

    yesterday = today - timedelta(days=1)
    r = client.get(f"/loans?startDate={yesterday}&endDate={yesterday}", headers=as_admin)
    assert r.json()["pagination"]["total"] == 0

    # a lone bound is ignored
    r = client.get(f"/loans?startDate={today + timedelta(days=3)}", headers=as_admin)
    assert r.json()["pagination"]["total"] == 1

    r = client.get("/loans?startDate=yesterday&endDate=today", headers=as_admin)
    assert r.status_code == 400


def test_conditional_claim_loses_race(database, db_session, seed):
    user = db_session.get(UserORM, seed.admin.id)
    asset = db_session.get(AssetORM, seed.car.id)
    assert asset.is_available is True

    # another writer takes the asset after we read it
    other = database.session()
    try:
        other.execute(update(AssetORM).where(AssetORM.id == seed.car.id).values(is_available=False))
        other.commit()
    finally:
        other.close()

    with pytest.raises(ConflictError):
        loans.create_loan(db_session, user, LoanIn(asset_id=seed.car.id, borrower_name="Budi"))

    count = db_session.execute(select(func.count(LoanORM.id))).scalar_one()
    assert count == 0


def test_return_of_closed_loan_changes_nothing(database, db_session, seed):
    user = db_session.get(UserORM, seed.admin.id)
    loan = loans.create_loan(db_session, user, LoanIn(asset_id=seed.car.id, borrower_name="Budi"))
    loans.return_loan(db_session, loan.id, LoanReturn(), scope=UNRESTRICTED)

    with pytest.raises(ConflictError):
        loans.return_loan(db_session, loan.id, LoanReturn(notes="again"), scope=UNRESTRICTED)

    db_session.expire_all()
    stored = db_session.get(LoanORM, loan.id)
    assert stored.notes is None
    assert stored.asset.is_available is True


def test_find_overdue_candidates(db_session, seed):
    user = db_session.get(UserORM, seed.admin.id)
    now = timeutil.now()
    late = loans.create_loan(
        db_session,
        user,
        LoanIn(asset_id=seed.car.id, borrower_name="Budi", return_date=now - timedelta(hours=2)),
    )
    loans.create_loan(
        db_session,
        user,
        LoanIn(asset_id=seed.van.id, borrower_name="Sari", return_date=now + timedelta(days=1)),
    )
    loans.create_loan(db_session, user, LoanIn(asset_id=seed.server_key.id, borrower_name="Joko"))

    assert loans.find_overdue_candidates(db_session, now=now) == [late.id]
