"""
Shared fixtures: in-memory SQLite database, API clients and sample data.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("FARE_STRICT_MODE", "false")

from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import haulbook.models  # noqa: F401
from haulbook.db.base import Base
from haulbook.db.session import get_db
from haulbook.main import app
from haulbook.models.center_fare import FareType
from haulbook.models.user import User
from haulbook.schemas.center_fare import CenterFareCreate
from haulbook.schemas.charter import CharterCreate
from haulbook.schemas.driver import DriverCreate
from haulbook.schemas.loading_point import LoadingPointCreate
from haulbook.services import center_fare_service, charter_service, driver_service, loading_point_service

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# Let SQLAlchemy emit BEGIN itself so SAVEPOINT works under pysqlite.
@event.listens_for(engine, "connect")
def _disable_pysqlite_begin(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(engine, "begin")
def _emit_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

USERNAME = "dispatcher"
PASSWORD = "dispatch-pass-123"


@pytest.fixture
def db():
    """Fresh schema per test; the API shares this session."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        try:
            yield db
        finally:
            db.rollback()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def auth_client(client):
    """Client carrying a bearer token obtained through signup and login."""
    client.post(
        "/api/auth/signup",
        json={"username": USERNAME, "email": "dispatcher@example.com", "name": "배차담당", "password": PASSWORD},
    )
    response = client.post("/api/auth/login", json={"username": USERNAME, "password": PASSWORD})
    token = response.json()["data"]["access_token"]
    client.headers.update({"Authorization": f"Bearer {token}"})
    return client


@pytest.fixture
def user(db, auth_client):
    return db.query(User).filter(User.username == USERNAME).one()


# Sample data

@pytest.fixture
def make_driver(db):
    counter = {"n": 0}

    def _make(name="김기사", phone=None, **kwargs):
        counter["n"] += 1
        data = DriverCreate(
            name=name,
            phone=phone or f"0101234{counter['n']:04d}",
            vehicle_number=kwargs.pop("vehicle_number", f"경기12가{counter['n']:04d}"),
            **kwargs,
        )
        return driver_service.create_driver(db, data)

    return _make


@pytest.fixture
def make_loading_point(db):
    def _make(center_name="C", loading_point_name="이천 1센터", **kwargs):
        data = LoadingPointCreate(center_name=center_name, loading_point_name=loading_point_name, **kwargs)
        return loading_point_service.create_loading_point(db, data)

    return _make


@pytest.fixture
def make_fare(db):
    def _make(loading_point, vehicle_type="3.5톤", region=None, fare_type=FareType.BASIC, **kwargs):
        data = CenterFareCreate(
            loading_point_id=loading_point.id,
            vehicle_type=vehicle_type,
            region=region,
            fare_type=fare_type,
            **kwargs,
        )
        return center_fare_service.create_center_fare(db, data)

    return _make


@pytest.fixture
def make_charter(db):
    def _make(loading_point, regions=("강남",), charter_date=None, vehicle_ton="3.5", **kwargs):
        data = CharterCreate(
            loading_point_id=loading_point.id,
            date=charter_date or date(2024, 5, 10),
            vehicle_ton=Decimal(vehicle_ton),
            destinations=[{"region": r, "order": i} for i, r in enumerate(regions, 1)],
            **kwargs,
        )
        charter, _ = charter_service.create_charter(db, data)
        return charter

    return _make
