"""
Tests for center fare endpoints.
"""
from haulbook.models.center_fare import FareType


def _basic(loading_point_id, **overrides):
    payload = {
        "loading_point_id": loading_point_id,
        "vehicle_type": "2.5톤",
        "region": "강남",
        "fare_type": "BASIC",
        "base_fare": 120000,
    }
    payload.update(overrides)
    return payload


def _stop_fee(loading_point_id, **overrides):
    payload = {
        "loading_point_id": loading_point_id,
        "vehicle_type": "2.5톤",
        "fare_type": "STOP_FEE",
        "extra_stop_fee": 15000,
        "extra_region_fee": 20000,
    }
    payload.update(overrides)
    return payload


def test_create_basic_fare(auth_client, make_loading_point):
    loading_point = make_loading_point()
    response = auth_client.post("/api/center-fares", json=_basic(loading_point.id, region="강남구"))
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["region"] == "강남"
    assert data["center_name"] == "C"


def test_basic_requires_region(auth_client, make_loading_point):
    loading_point = make_loading_point()
    response = auth_client.post("/api/center-fares", json=_basic(loading_point.id, region=None))
    assert response.status_code == 400
    assert "BASIC fare requires a region" in response.json()["error"]["details"][0]["message"]


def test_stop_fee_must_not_have_region(auth_client, make_loading_point):
    loading_point = make_loading_point()
    response = auth_client.post("/api/center-fares", json=_stop_fee(loading_point.id, region="강남"))
    assert response.status_code == 400


def test_duplicate_stop_fee_conflicts(auth_client, make_loading_point):
    loading_point = make_loading_point()
    assert auth_client.post("/api/center-fares", json=_stop_fee(loading_point.id)).status_code == 201

    response = auth_client.post("/api/center-fares", json=_stop_fee(loading_point.id, extra_stop_fee=10000))
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE"


def test_unknown_loading_point(auth_client):
    response = auth_client.post("/api/center-fares", json=_basic(999))
    assert response.status_code == 404


def test_update_rechecks_fare_type_rule(auth_client, make_loading_point, make_fare):
    fare = make_fare(make_loading_point(), region="강남", base_fare=120000)

    response = auth_client.put(f"/api/center-fares/{fare.id}", json={"fare_type": "STOP_FEE"})
    assert response.status_code == 400

    response = auth_client.put(f"/api/center-fares/{fare.id}", json={"base_fare": 130000})
    assert response.status_code == 200
    assert response.json()["data"]["base_fare"] == 130000


def test_toggle_and_delete(auth_client, make_loading_point, make_fare):
    fare = make_fare(make_loading_point(), region="강남", base_fare=120000)
    response = auth_client.patch(f"/api/center-fares/{fare.id}/toggle")
    assert response.json()["data"]["is_active"] is False

    fare_id = fare.id
    assert auth_client.delete(f"/api/center-fares/{fare_id}").status_code == 200
    assert auth_client.get(f"/api/center-fares/{fare_id}").status_code == 404


def test_list_filters(auth_client, make_loading_point, make_fare):
    c_center = make_loading_point("C", "이천")
    d_center = make_loading_point("D", "용인")
    make_fare(c_center, region="강남", base_fare=120000)
    make_fare(c_center, fare_type=FareType.STOP_FEE, extra_stop_fee=10000, extra_region_fee=20000)
    make_fare(d_center, region="수원", base_fare=90000)

    response = auth_client.get("/api/center-fares", params={"center_name": "C"})
    assert response.json()["data"]["pagination"]["total"] == 2

    response = auth_client.get("/api/center-fares", params={"fare_type": "BASIC", "search": "수원"})
    items = response.json()["data"]["items"]
    assert [f["region"] for f in items] == ["수원"]


def test_stats(auth_client, make_loading_point, make_fare):
    loading_point = make_loading_point()
    make_fare(loading_point, region="강남", base_fare=120000)
    make_fare(loading_point, region="서초", base_fare=125000)
    make_fare(loading_point, fare_type=FareType.STOP_FEE, extra_stop_fee=10000, extra_region_fee=20000)

    data = auth_client.get("/api/center-fares/stats").json()["data"]
    assert data["total"] == 3
    assert data["basic"] == 2
    assert data["stop_fee"] == 1
    assert data["centers"] == 1
    assert data["by_vehicle_type"] == {"3.5톤": 3}


def test_validate_reports_duplicates(auth_client, make_loading_point, make_fare):
    loading_point = make_loading_point()
    existing = make_fare(loading_point, region="강남", base_fare=120000)
    rows = [
        {"loading_point_id": loading_point.id, "vehicle_type": "3.5톤", "region": "강남구", "fare_type": "BASIC"},
        {"loading_point_id": loading_point.id, "vehicle_type": "3.5톤", "region": "서초", "fare_type": "BASIC"},
        {"loading_point_id": loading_point.id, "vehicle_type": "3.5톤", "region": "서초", "fare_type": "BASIC"},
    ]
    data = auth_client.post("/api/center-fares/validate", json={"rows": rows}).json()["data"]
    assert data["valid"] is False
    assert data["duplicates"] == [
        {"index": 0, "reason": "already exists", "existing_id": existing.id},
        {"index": 2, "reason": "duplicate in request", "duplicate_of": 1},
    ]


def test_export_xlsx(auth_client, make_loading_point, make_fare):
    from io import BytesIO
    from openpyxl import load_workbook

    make_fare(make_loading_point(), region="강남", base_fare=120000)
    response = auth_client.get("/api/center-fares/export")
    assert response.status_code == 200
    sheet = load_workbook(BytesIO(response.content)).active
    assert sheet.cell(row=1, column=1).value == "센터명"
    assert sheet.cell(row=2, column=1).value == "C"
