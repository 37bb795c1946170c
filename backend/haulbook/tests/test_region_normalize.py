"""
Tests for region normalization and the alias table.
"""
import pytest

from haulbook.models.region_alias import RegionAlias
from haulbook.services.region_normalize_service import (
    COMMON_ALIASES, add_region_alias, apply_rules, initialize_common_aliases, normalize_region, normalize_regions,
)


@pytest.mark.parametrize("raw, expected", [
    ("강남구", "강남"),
    ("수원시", "수원"),
    ("가평군", "가평"),
    (" 서울 ", "서울"),
    ("Gangnam", "강남"),
    ("SUWON", "수원"),
    ("구", "구"),
])
def test_rules(raw, expected):
    assert apply_rules(raw) == expected


def test_empty_input(db):
    assert normalize_region(db, "") == ""
    assert normalize_region(db, "   ") == ""
    assert normalize_region(db, None) == ""


def test_alias_wins_over_rules(db):
    add_region_alias(db, "판교", "성남")
    db.commit()
    assert normalize_region(db, "판교") == "성남"
    assert normalize_region(db, "판교") == normalize_region(db, "성남")


def test_alias_raw_lookup_is_case_insensitive(db):
    initialize_common_aliases(db)
    db.commit()
    assert normalize_region(db, "gangnam") == "강남"
    assert normalize_region(db, "Incheon") == "인천"


def test_idempotent_over_common_aliases(db):
    initialize_common_aliases(db)
    db.commit()
    for raw, _ in COMMON_ALIASES:
        once = normalize_region(db, raw)
        assert normalize_region(db, once) == once


def test_normalize_regions_drops_empty(db):
    assert normalize_regions(db, ["강남구", "", "수원시"]) == ["강남", "수원"]


def test_alias_target_is_resolved(db):
    add_region_alias(db, "강남구", "강남")
    alias = add_region_alias(db, "강남역", "강남구")
    db.commit()
    assert alias.normalized_text == "강남"


def test_aliases_are_repointed(db):
    add_region_alias(db, "역삼", "역삼지구")
    add_region_alias(db, "역삼지구", "강남")
    db.commit()

    moved = db.query(RegionAlias).filter(RegionAlias.raw_text == "역삼").one()
    assert moved.normalized_text == "강남"
    assert normalize_region(db, "역삼") == "강남"


def test_normalize_endpoint(auth_client):
    response = auth_client.post("/api/regions/normalize", json={"regions": ["강남구", "서울"]})
    assert response.status_code == 200
    assert response.json()["data"] == [
        {"original": "강남구", "normalized": "강남", "changed": True},
        {"original": "서울", "normalized": "서울", "changed": False},
    ]


def test_seed_is_repeatable(auth_client):
    first = auth_client.post("/api/regions/aliases/seed").json()["data"]
    second = auth_client.post("/api/regions/aliases/seed").json()["data"]
    assert first["added"] == len(COMMON_ALIASES)
    assert second["added"] == 0

    response = auth_client.get("/api/regions/aliases", params={"search": "강남"})
    raw_texts = {item["raw_text"] for item in response.json()["data"]["items"]}
    assert raw_texts == {"강남구", "GANGNAM"}


def test_add_alias_endpoint(auth_client):
    response = auth_client.post("/api/regions/aliases", json={"raw_text": " 판교 ", "normalized_text": "성남"})
    assert response.status_code == 201
    assert response.json()["data"]["raw_text"] == "판교"

    data = auth_client.post("/api/regions/normalize", json={"regions": ["판교"]}).json()["data"]
    assert data[0]["normalized"] == "성남"


def test_stats(auth_client, make_loading_point, make_charter):
    auth_client.post("/api/regions/aliases/seed")
    loading_point = make_loading_point()
    make_charter(loading_point, regions=("강남구", "수원시"))
    make_charter(loading_point, regions=("GANGNAM",))

    data = auth_client.get("/api/regions/stats").json()["data"]
    assert data["total_aliases"] == len(COMMON_ALIASES)
    assert data["active_aliases"] == len(COMMON_ALIASES)
    assert data["top_regions"][0] == {"region": "강남", "count": 2}
