"""
Tests for loading point endpoints.
"""
from haulbook.models.center_fare import CenterFare


def test_create_and_duplicate(auth_client):
    payload = {"center_name": " C ", "loading_point_name": "이천 1센터", "manager1": "김담당", "phone2": ""}
    response = auth_client.post("/api/loading-points", json=payload)
    assert response.status_code == 201
    data = response.json()["data"]
    assert data["center_name"] == "C"
    assert data["phone2"] is None

    response = auth_client.post("/api/loading-points", json=payload)
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "DUPLICATE"


def test_centers_lists_active_names(auth_client, make_loading_point):
    make_loading_point("C", "이천 1센터")
    make_loading_point("C", "이천 2센터")
    make_loading_point("A", "용인")
    hidden = make_loading_point("Z", "폐쇄")
    auth_client.patch(f"/api/loading-points/{hidden.id}/toggle")

    response = auth_client.get("/api/loading-points/centers")
    assert response.json()["data"] == ["A", "C"]


def test_hard_delete_refused_with_charters(auth_client, make_loading_point, make_charter):
    loading_point = make_loading_point()
    make_charter(loading_point)
    response = auth_client.delete(f"/api/loading-points/{loading_point.id}", params={"hard": "true"})
    assert response.status_code == 409
    assert response.json()["error"]["code"] == "HAS_DEPENDANTS"


def test_hard_delete_removes_fares(auth_client, db, make_loading_point, make_fare):
    loading_point = make_loading_point()
    make_fare(loading_point, region="강남", base_fare=150000)
    response = auth_client.delete(f"/api/loading-points/{loading_point.id}", params={"hard": "true"})
    assert response.status_code == 200
    assert db.query(CenterFare).count() == 0


def test_soft_delete(auth_client, make_loading_point):
    loading_point = make_loading_point()
    auth_client.delete(f"/api/loading-points/{loading_point.id}")
    data = auth_client.get(f"/api/loading-points/{loading_point.id}").json()["data"]
    assert data["is_active"] is False
