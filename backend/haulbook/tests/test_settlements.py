"""
Tests for monthly settlements.
"""
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from haulbook.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from haulbook.models.audit_log import AuditAction, AuditLog
from haulbook.models.settlement import Settlement, SettlementItemType
from haulbook.services import settlement_service


@pytest.fixture
def month_of_work(make_driver, make_loading_point, make_charter):
    """Driver with three May charters and one June charter."""
    driver = make_driver()
    loading_point = make_loading_point()
    make_charter(loading_point, charter_date=date(2024, 5, 3), driver_id=driver.id, driver_fare=130000)
    make_charter(loading_point, charter_date=date(2024, 5, 10), driver_id=driver.id, extra_fare=10000)
    make_charter(
        loading_point, charter_date=date(2024, 5, 20), driver_id=driver.id, driver_fare=90000,
        is_negotiated=True, negotiated_fare=100000, notes="단골",
    )
    make_charter(loading_point, charter_date=date(2024, 6, 1), driver_id=driver.id, driver_fare=70000)
    return driver


def test_calculate_monthly_settlement(db, month_of_work):
    calculation = settlement_service.calculate_monthly_settlement(db, month_of_work.id, "2024-05")
    assert calculation.total_trips == 3
    # driver fare, then the charter fare without its 10000 extra when driver fare is missing
    assert calculation.total_base_fare == Decimal(130000 + 150000 + 90000)
    assert calculation.total_additions == Decimal(10000)
    assert calculation.total_deductions == 0
    assert calculation.final_amount == Decimal(380000)
    additions = [item for item in calculation.items if item.type == SettlementItemType.ADDITION]
    assert sorted(item.amount for item in additions) == [0, 10000]


def test_trip_excludes_extra_when_driver_fare_missing(db, make_driver, make_loading_point, make_charter):
    driver = make_driver()
    loading_point = make_loading_point()
    make_charter(loading_point, charter_date=date(2024, 5, 3), driver_id=driver.id, extra_fare=10000)
    make_charter(
        loading_point, charter_date=date(2024, 5, 4), driver_id=driver.id,
        is_negotiated=True, negotiated_fare=99000, extra_fare=5000,
    )

    calculation = settlement_service.calculate_monthly_settlement(db, driver.id, "2024-05")
    trips = [item.amount for item in calculation.items if item.type == SettlementItemType.TRIP]
    assert trips == [150000, 99000]
    assert calculation.total_additions == Decimal(15000)
    assert calculation.final_amount == Decimal(150000 + 99000 + 15000)


def test_calculation_writes_nothing(db, month_of_work):
    settlement_service.calculate_monthly_settlement(db, month_of_work.id, "2024-05")
    assert db.query(Settlement).count() == 0


def test_calculate_unknown_driver(db):
    with pytest.raises(NotFoundError):
        settlement_service.calculate_monthly_settlement(db, 999, "2024-05")


def test_preview(auth_client, month_of_work):
    response = auth_client.post("/api/settlements/preview", json={"driver_id": month_of_work.id, "year_month": "2024-05"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total_trips"] == 3
    assert float(data["final_amount"]) == 380000
    assert data["existing_status"] is None
    assert data["can_confirm"] is True
    assert any("no driver fare" in warning for warning in data["warnings"])


def test_preview_future_month(auth_client, make_driver):
    driver = make_driver()
    response = auth_client.post("/api/settlements/preview", json={"driver_id": driver.id, "year_month": "2999-01"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_MONTH"


def test_invalid_year_month_format(auth_client, make_driver):
    response = auth_client.post("/api/settlements/preview", json={"driver_id": make_driver().id, "year_month": "2024-13"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_create_is_idempotent(auth_client, db, month_of_work):
    payload = {"driver_id": month_of_work.id, "year_month": "2024-05"}
    first = auth_client.post("/api/settlements", json=payload).json()["data"]
    second = auth_client.post("/api/settlements", json=payload).json()["data"]

    assert first["id"] == second["id"]
    assert first["status"] == "DRAFT"
    assert float(second["final_amount"]) == 380000
    assert len(second["items"]) == len(first["items"])
    assert db.query(Settlement).count() == 1


def test_manual_item_survives_recalculation(auth_client, month_of_work):
    payload = {"driver_id": month_of_work.id, "year_month": "2024-05"}
    settlement_id = auth_client.post("/api/settlements", json=payload).json()["data"]["id"]

    response = auth_client.post(f"/api/settlements/{settlement_id}/items", json={
        "type": "DEDUCTION", "description": "유류비 선지급", "amount": 40000, "date": "2024-05-31",
    })
    assert response.status_code == 201
    assert float(response.json()["data"]["final_amount"]) == 340000

    data = auth_client.post("/api/settlements", json=payload).json()["data"]
    assert float(data["total_deductions"]) == 40000
    assert float(data["final_amount"]) == 340000
    assert [item["is_manual"] for item in data["items"]].count(True) == 1


def test_manual_item_outside_month(auth_client, month_of_work):
    settlement_id = auth_client.post(
        "/api/settlements", json={"driver_id": month_of_work.id, "year_month": "2024-05"}
    ).json()["data"]["id"]
    response = auth_client.post(f"/api/settlements/{settlement_id}/items", json={
        "type": "ADDITION", "description": "보너스", "amount": 10000, "date": "2024-06-01",
    })
    assert response.status_code == 400


def test_manual_trip_rejected(auth_client, month_of_work):
    settlement_id = auth_client.post(
        "/api/settlements", json={"driver_id": month_of_work.id, "year_month": "2024-05"}
    ).json()["data"]["id"]
    response = auth_client.post(f"/api/settlements/{settlement_id}/items", json={
        "type": "TRIP", "description": "수기", "amount": 10000,
    })
    assert response.status_code == 400


def test_finalize(auth_client, db, month_of_work):
    payload = {"driver_id": month_of_work.id, "year_month": "2024-05", "remarks": "5월 정산"}
    response = auth_client.post("/api/settlements/finalize", json=payload)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "CONFIRMED"
    assert data["confirmed_at"] is not None
    assert data["remarks"] == "5월 정산"
    assert float(data["final_amount"]) == 380000

    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.CONFIRM).one()
    assert audit.entity_id == str(data["id"])
    assert audit.changes["previous_status"] == "NONE"

    second = auth_client.post("/api/settlements/finalize", json=payload)
    assert second.status_code == 409
    assert second.json()["error"]["code"] == "ALREADY_CONFIRMED"


def test_concurrent_draft_insert_is_a_plain_conflict(db, monkeypatch, month_of_work):
    def lost_race():
        raise IntegrityError("INSERT INTO settlements", {}, Exception("UNIQUE constraint failed"))

    monkeypatch.setattr(db, "commit", lost_race)
    with pytest.raises(ConflictError) as exc_info:
        settlement_service.create_or_update_settlement(db, month_of_work.id, "2024-05")
    assert exc_info.value.code == "CONFLICT"


def test_finalize_without_charters(auth_client, make_driver):
    response = auth_client.post("/api/settlements/finalize", json={"driver_id": make_driver().id, "year_month": "2024-05"})
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NO_DATA"


def test_finalize_future_month(db, make_driver):
    with pytest.raises(BusinessRuleError) as exc_info:
        settlement_service.finalize_settlement(db, make_driver().id, "2999-12")
    assert exc_info.value.code == "INVALID_MONTH"


def test_confirmed_settlement_is_locked(auth_client, month_of_work):
    payload = {"driver_id": month_of_work.id, "year_month": "2024-05"}
    settlement_id = auth_client.post("/api/settlements/finalize", json=payload).json()["data"]["id"]

    response = auth_client.post("/api/settlements", json=payload)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "ALREADY_CONFIRMED"

    response = auth_client.patch(f"/api/settlements/{settlement_id}", json={"remarks": "수정"})
    assert response.status_code == 409

    response = auth_client.delete(f"/api/settlements/{settlement_id}")
    assert response.status_code == 409


def test_charter_in_confirmed_settlement_is_locked(auth_client, db, make_driver, make_loading_point, make_charter):
    driver = make_driver()
    charter = make_charter(make_loading_point(), charter_date=date(2024, 5, 3), driver_id=driver.id)
    auth_client.post("/api/settlements/finalize", json={"driver_id": driver.id, "year_month": "2024-05"})

    response = auth_client.put(f"/api/charters/{charter.id}", json={"extra_fare": 5000})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "SETTLEMENT_LOCKED"
    assert auth_client.delete(f"/api/charters/{charter.id}").status_code == 409


def test_confirm_reopen_paid(auth_client, month_of_work):
    settlement_id = auth_client.post(
        "/api/settlements", json={"driver_id": month_of_work.id, "year_month": "2024-05"}
    ).json()["data"]["id"]

    assert auth_client.post(f"/api/settlements/{settlement_id}/paid").status_code == 409

    data = auth_client.post(f"/api/settlements/{settlement_id}/confirm").json()["data"]
    assert data["status"] == "CONFIRMED"
    assert auth_client.post(f"/api/settlements/{settlement_id}/confirm").status_code == 409

    data = auth_client.post(f"/api/settlements/{settlement_id}/reopen").json()["data"]
    assert data["status"] == "DRAFT"
    assert data["confirmed_at"] is None

    auth_client.post(f"/api/settlements/{settlement_id}/confirm")
    data = auth_client.post(f"/api/settlements/{settlement_id}/paid").json()["data"]
    assert data["status"] == "PAID"
    assert data["paid_at"] is not None
    assert auth_client.post(f"/api/settlements/{settlement_id}/reopen").status_code == 409


def test_confirm_empty_draft(auth_client, make_driver):
    settlement_id = auth_client.post(
        "/api/settlements", json={"driver_id": make_driver().id, "year_month": "2024-05"}
    ).json()["data"]["id"]
    response = auth_client.post(f"/api/settlements/{settlement_id}/confirm")
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "NO_DATA"


def test_update_remarks_and_delete_draft(auth_client, month_of_work):
    settlement_id = auth_client.post(
        "/api/settlements", json={"driver_id": month_of_work.id, "year_month": "2024-05"}
    ).json()["data"]["id"]
    data = auth_client.patch(f"/api/settlements/{settlement_id}", json={"remarks": "확인 필요"}).json()["data"]
    assert data["remarks"] == "확인 필요"

    assert auth_client.delete(f"/api/settlements/{settlement_id}").status_code == 200
    assert auth_client.get(f"/api/settlements/{settlement_id}").status_code == 404


def test_bulk_collects_errors(auth_client, month_of_work, make_driver):
    other = make_driver(name="박기사")
    response = auth_client.post("/api/settlements/bulk", json={
        "driver_ids": [month_of_work.id, other.id, 999], "year_month": "2024-05",
    })
    data = response.json()["data"]
    assert data["success"] == 2
    assert data["failed"] == 1
    assert data["errors"][0]["driver_id"] == 999
    assert {s["driver_id"] for s in data["settlements"]} == {month_of_work.id, other.id}


def test_list_filters(auth_client, month_of_work, make_driver):
    other = make_driver(name="박기사")
    auth_client.post("/api/settlements/finalize", json={"driver_id": month_of_work.id, "year_month": "2024-05"})
    auth_client.post("/api/settlements", json={"driver_id": other.id, "year_month": "2024-05"})

    response = auth_client.get("/api/settlements", params={"status": "CONFIRMED"})
    items = response.json()["data"]["items"]
    assert [item["driver_id"] for item in items] == [month_of_work.id]

    response = auth_client.get("/api/settlements", params={"search": "박기사"})
    assert response.json()["data"]["pagination"]["total"] == 1


def test_export(auth_client, month_of_work):
    auth_client.post("/api/settlements/finalize", json={"driver_id": month_of_work.id, "year_month": "2024-05"})
    response = auth_client.get("/api/settlements/export", params={"format": "csv"})
    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]
    assert "김기사" in response.content.decode("utf-8-sig")
