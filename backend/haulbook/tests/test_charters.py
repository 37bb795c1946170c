"""
Tests for charter endpoints.
"""
from datetime import date

from sqlalchemy.exc import OperationalError

from haulbook.models.center_fare import FareType
from haulbook.models.charter import CharterRequest
from haulbook.services import fare_calculation_service


def _charter(loading_point_id, **overrides):
    payload = {
        "loading_point_id": loading_point_id,
        "date": "2024-05-10",
        "vehicle_ton": 3.5,
        "destinations": [{"region": "서울", "order": 1}],
    }
    payload.update(overrides)
    return payload


def test_create_prices_from_rate(auth_client, make_loading_point, make_fare):
    loading_point = make_loading_point("C")
    make_fare(loading_point, region="서울", base_fare=170000)
    make_fare(loading_point, fare_type=FareType.STOP_FEE, extra_stop_fee=10000, extra_region_fee=25000)

    response = auth_client.post("/api/charters", json=_charter(
        loading_point.id,
        destinations=[{"region": "성남시", "order": 2}, {"region": "서울", "order": 1}],
        extra_fare=5000,
    ))
    assert response.status_code == 201
    data = response.json()["data"]
    charter = data["charter"]
    assert [d["region"] for d in charter["destinations"]] == ["서울", "성남"]
    assert charter["vehicle_type"] == "3.5톤"
    assert charter["stops"] == 2
    assert charter["base_fare"] == 170000
    assert charter["stop_fare"] == 10000
    assert charter["region_fare"] == 25000
    assert charter["total_fare"] == 210000
    assert charter["is_estimated"] is False
    assert data["fare"]["applied_rate"]["base_fare"] == 170000


def test_create_without_rate_is_estimated(auth_client, make_loading_point):
    loading_point = make_loading_point("C")
    response = auth_client.post("/api/charters", json=_charter(loading_point.id))
    data = response.json()["data"]
    assert data["charter"]["total_fare"] == 150000
    assert data["charter"]["is_estimated"] is True
    assert data["fare"]["warnings"]


def test_strict_create_writes_nothing(auth_client, make_loading_point, db):
    loading_point = make_loading_point("C")
    response = auth_client.post("/api/charters", json=_charter(loading_point.id, strict=True))
    assert response.status_code == 422
    assert db.query(CharterRequest).count() == 0


def test_negotiated_fare_overrides_total(auth_client, make_loading_point):
    loading_point = make_loading_point("C")
    response = auth_client.post("/api/charters", json=_charter(
        loading_point.id, is_negotiated=True, negotiated_fare=99000, notes="단골 할인"
    ))
    charter = response.json()["data"]["charter"]
    assert charter["total_fare"] == 99000
    assert charter["base_fare"] == 150000


def test_negotiated_requires_amount(auth_client, make_loading_point):
    response = auth_client.post("/api/charters", json=_charter(make_loading_point().id, is_negotiated=True))
    assert response.status_code == 400


def test_destination_orders_must_be_contiguous(auth_client, make_loading_point):
    response = auth_client.post("/api/charters", json=_charter(
        make_loading_point().id,
        destinations=[{"region": "서울", "order": 1}, {"region": "수원", "order": 3}],
    ))
    assert response.status_code == 400


def test_inactive_center_rejected(auth_client, make_loading_point):
    loading_point = make_loading_point()
    auth_client.patch(f"/api/loading-points/{loading_point.id}/toggle")
    response = auth_client.post("/api/charters", json=_charter(loading_point.id))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INACTIVE_CENTER"


def test_quote_does_not_save(auth_client, make_loading_point, db):
    loading_point = make_loading_point("C")
    response = auth_client.post("/api/charters/quote", json={
        "loading_point_id": loading_point.id, "vehicle_ton": 2.5, "regions": ["수원", "용인"],
    })
    data = response.json()["data"]
    assert data["base_fare"] == 120000
    assert data["extra_stop_fare"] == 15000
    assert data["extra_region_fare"] == 20000
    assert db.query(CharterRequest).count() == 0


def test_update_reprices(auth_client, make_loading_point, make_charter):
    charter = make_charter(make_loading_point("C"), regions=("서울",))
    response = auth_client.put(f"/api/charters/{charter.id}", json={"vehicle_ton": 1})
    data = response.json()["data"]
    assert data["charter"]["vehicle_type"] == "1톤"
    assert data["charter"]["total_fare"] == 80000
    assert data["fare"]["is_fallback"] is True


def test_update_notes_keeps_fare(auth_client, make_loading_point, make_charter):
    charter = make_charter(make_loading_point("C"))
    response = auth_client.put(f"/api/charters/{charter.id}", json={"notes": "오전 상차"})
    data = response.json()["data"]
    assert data["fare"] is None
    assert data["charter"]["total_fare"] == 150000


def test_update_survives_rate_lookup_error(auth_client, db, monkeypatch, make_loading_point, make_charter):
    charter = make_charter(make_loading_point("C"), regions=("서울",))

    def broken_lookup(*args, **kwargs):
        raise OperationalError("SELECT center_fares", {}, Exception("database is locked"))

    monkeypatch.setattr(fare_calculation_service, "find_applicable_rate", broken_lookup)
    response = auth_client.put(f"/api/charters/{charter.id}", json={"extra_fare": 7000, "notes": "대기"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["fare"]["is_fallback"] is True
    assert data["fare"]["warnings"]

    db.expire_all()
    stored = db.query(CharterRequest).filter(CharterRequest.id == charter.id).one()
    assert stored.extra_fare == 7000
    assert stored.notes == "대기"
    assert stored.total_fare == 157000


def test_assign_driver(auth_client, make_loading_point, make_charter, make_driver):
    charter = make_charter(make_loading_point())
    driver = make_driver()
    response = auth_client.post(f"/api/charters/{charter.id}/assign", json={"driver_id": driver.id, "driver_fare": 130000})
    data = response.json()["data"]
    assert data["driver"]["id"] == driver.id
    assert data["driver_fare"] == 130000


def test_assign_inactive_driver_rejected(auth_client, make_loading_point, make_charter, make_driver):
    charter = make_charter(make_loading_point())
    driver = make_driver()
    auth_client.delete(f"/api/drivers/{driver.id}")
    response = auth_client.post(f"/api/charters/{charter.id}/assign", json={"driver_id": driver.id})
    assert response.json()["error"]["code"] == "INACTIVE_DRIVER"


def test_recalculate_after_rate_added(auth_client, make_loading_point, make_charter, make_fare):
    loading_point = make_loading_point("C")
    charter = make_charter(loading_point, regions=("서울",))
    make_fare(loading_point, region="서울", base_fare=175000)

    response = auth_client.post("/api/charters/recalculate", json={"ids": [charter.id, 999]})
    data = response.json()["data"]
    assert data["success"] == 1
    assert data["failed"] == 1

    charter_data = auth_client.get(f"/api/charters/{charter.id}").json()["data"]
    assert charter_data["total_fare"] == 175000
    assert charter_data["is_estimated"] is False


def test_list_filters(auth_client, make_loading_point, make_charter, make_driver):
    loading_point = make_loading_point()
    driver = make_driver(name="정기사")
    make_charter(loading_point, charter_date=date(2024, 5, 1), driver_id=driver.id)
    make_charter(loading_point, charter_date=date(2024, 6, 1))

    response = auth_client.get("/api/charters", params={"date_from": "2024-05-01", "date_to": "2024-05-31"})
    assert response.json()["data"]["pagination"]["total"] == 1

    response = auth_client.get("/api/charters", params={"search": "정기사"})
    assert response.json()["data"]["pagination"]["total"] == 1


def test_delete(auth_client, make_loading_point, make_charter):
    charter_id = make_charter(make_loading_point()).id
    assert auth_client.delete(f"/api/charters/{charter_id}").status_code == 200
    assert auth_client.get(f"/api/charters/{charter_id}").status_code == 404
