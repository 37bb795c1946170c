"""
Tests for fixed contracts and their monthly estimate.
"""
from datetime import date

import pytest

from haulbook.models.fixed_contract import ContractType
from haulbook.services.fixed_contract_service import count_operating_days, monthly_amount

MAY_START, MAY_END = date(2024, 5, 1), date(2024, 5, 31)


@pytest.mark.parametrize("days, expected", [
    ([1, 3, 5], 14),  # May 2024 starts on a Wednesday
    ([0], 4),
    ([0, 1, 2, 3, 4, 5, 6], 31),
    ([], 0),
])
def test_count_operating_days(days, expected):
    assert count_operating_days(days, MAY_START, MAY_END) == expected


def test_count_operating_days_partial_and_reversed():
    assert count_operating_days([1, 3, 5], date(2024, 5, 15), MAY_END) == 8
    assert count_operating_days([1], MAY_END, MAY_START) == 0


@pytest.mark.parametrize("contract_type, amount, days, expected", [
    (ContractType.FIXED_DAILY, 100000, 14, 1400000),
    (ContractType.FIXED_MONTHLY, 3000000, 14, 3000000),
    (ContractType.CONSIGNED_MONTHLY, 2500000, 0, 2500000),
    (ContractType.CHARTER_PER_RIDE, 150000, 14, 0),
    (None, 100000, 14, 0),
    (ContractType.FIXED_DAILY, None, 14, 0),
])
def test_monthly_amount(contract_type, amount, days, expected):
    assert monthly_amount(contract_type, amount, days) == expected


def _contract(loading_point_id, **overrides):
    payload = {
        "loading_point_id": loading_point_id,
        "route_name": "이천-강남 A코스",
        "center_contract_type": "FIXED_DAILY",
        "center_amount": 100000,
        "driver_contract_type": "FIXED_DAILY",
        "driver_amount": 80000,
        "operating_days": [5, 1, 3, 3],
    }
    payload.update(overrides)
    return payload


def test_create_and_get(auth_client, make_loading_point, make_driver):
    loading_point = make_loading_point()
    driver = make_driver()
    response = auth_client.post("/api/fixed-contracts", json=_contract(loading_point.id, driver_id=driver.id))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["operating_days"] == [1, 3, 5]
    assert data["driver"]["id"] == driver.id

    response = auth_client.get(f"/api/fixed-contracts/{data['id']}")
    assert response.json()["data"]["route_name"] == "이천-강남 A코스"


def test_invalid_weekday(auth_client, make_loading_point):
    response = auth_client.post("/api/fixed-contracts", json=_contract(make_loading_point().id, operating_days=[7]))
    assert response.status_code == 400


def test_end_before_start(auth_client, make_loading_point):
    loading_point = make_loading_point()
    response = auth_client.post("/api/fixed-contracts", json=_contract(
        loading_point.id, start_date="2024-05-10", end_date="2024-05-01"
    ))
    assert response.status_code == 400

    contract_id = auth_client.post(
        "/api/fixed-contracts", json=_contract(loading_point.id, start_date="2024-05-10")
    ).json()["data"]["id"]
    response = auth_client.put(f"/api/fixed-contracts/{contract_id}", json={"end_date": "2024-05-01"})
    assert response.status_code == 400


def test_unknown_loading_point(auth_client):
    response = auth_client.post("/api/fixed-contracts", json=_contract(999))
    assert response.status_code == 404


def test_inactive_driver_rejected(auth_client, make_loading_point, make_driver):
    driver = make_driver()
    auth_client.delete(f"/api/drivers/{driver.id}")
    response = auth_client.post("/api/fixed-contracts", json=_contract(make_loading_point().id, driver_id=driver.id))
    assert response.json()["error"]["code"] == "INACTIVE_DRIVER"


def test_stats(auth_client, make_loading_point, make_driver):
    loading_point = make_loading_point()
    driver = make_driver()
    auth_client.post("/api/fixed-contracts", json=_contract(loading_point.id, driver_id=driver.id))
    auth_client.post("/api/fixed-contracts", json=_contract(
        loading_point.id, route_name="월대 노선", center_contract_type="FIXED_MONTHLY", center_amount=3000000,
        driver_contract_type="CONSIGNED_MONTHLY", driver_amount=2500000, operating_days=[1],
    ))
    inactive_id = auth_client.post("/api/fixed-contracts", json=_contract(
        loading_point.id, route_name="용차 노선", center_contract_type="CHARTER_PER_RIDE",
    )).json()["data"]["id"]
    auth_client.patch(f"/api/fixed-contracts/{inactive_id}/toggle")

    data = auth_client.get("/api/fixed-contracts/stats", params={"year_month": "2024-05"}).json()["data"]
    assert data["total_contracts"] == 3
    assert data["active_contracts"] == 2
    assert data["inactive_contracts"] == 1
    assert data["assigned_contracts"] == 1
    assert data["recent_contracts"] == 2
    assert data["monthly_revenue"] == 1400000 + 3000000
    assert data["monthly_cost"] == 1120000 + 2500000
    assert data["monthly_margin"] == 780000
    assert data["by_contract_type"] == {"FIXED_DAILY": 1, "FIXED_MONTHLY": 1}


def test_stats_respects_contract_period(auth_client, make_loading_point):
    auth_client.post("/api/fixed-contracts", json=_contract(make_loading_point().id, start_date="2024-05-15"))
    data = auth_client.get("/api/fixed-contracts/stats", params={"year_month": "2024-05"}).json()["data"]
    assert data["monthly_revenue"] == 8 * 100000


def test_list_filters_and_delete(auth_client, make_loading_point, make_driver):
    loading_point = make_loading_point()
    driver = make_driver(name="홍길동")
    first_id = auth_client.post(
        "/api/fixed-contracts", json=_contract(loading_point.id, driver_id=driver.id)
    ).json()["data"]["id"]
    auth_client.post("/api/fixed-contracts", json=_contract(
        loading_point.id, route_name="월대 노선", center_contract_type="FIXED_MONTHLY"
    ))

    response = auth_client.get("/api/fixed-contracts", params={"search": "홍길동"})
    assert [item["id"] for item in response.json()["data"]["items"]] == [first_id]
    response = auth_client.get("/api/fixed-contracts", params={"contract_type": "FIXED_MONTHLY"})
    assert response.json()["data"]["pagination"]["total"] == 1

    auth_client.delete(f"/api/fixed-contracts/{first_id}")
    assert auth_client.get(f"/api/fixed-contracts/{first_id}").json()["data"]["is_active"] is False

    auth_client.delete(f"/api/fixed-contracts/{first_id}", params={"hard": "true"})
    assert auth_client.get(f"/api/fixed-contracts/{first_id}").status_code == 404
