"""
Tests for spreadsheet imports.
"""
import io

from openpyxl import Workbook, load_workbook

from haulbook.models.audit_log import AuditAction, AuditLog
from haulbook.models.center_fare import CenterFare, FareType
from haulbook.models.driver import Driver
from haulbook.models.fixed_contract import ContractType, FixedContract

DRIVER_HEADER = "성함,연락처,차량번호,계좌은행,계좌번호,특이사항\n"


def _upload(client, entity, text, filename="upload.csv", **params):
    files = {"file": (filename, text.encode("utf-8"), "text/csv")}
    return client.post(f"/api/imports/{entity}", files=files, params=params)


def test_import_drivers_reports_bad_rows(auth_client, db):
    content = DRIVER_HEADER + (
        "김기사,010-1111-2222,경기12가0001,국민은행,123-456-789,\n"
        "이기사,12,경기12가0002,,,\n"
        "박기사,010-3333-4444,경기12가0003,,,야간 전용\n"
    )
    response = _upload(auth_client, "drivers", content)
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["total"] == 3
    assert data["created"] == 2
    assert data["updated"] == 0
    assert [e["row"] for e in data["errors"]] == [3]

    driver = db.query(Driver).filter(Driver.phone == "01011112222").one()
    assert driver.account_number == "123456789"
    assert db.query(Driver).count() == 2


def test_import_updates_existing(auth_client, db, make_driver):
    make_driver(name="김기사", phone="010-1111-2222", vehicle_number="경기12가0001")
    content = DRIVER_HEADER + "김기사,01011112222,경기12가0001,신한은행,,\n"
    data = _upload(auth_client, "drivers", content).json()["data"]
    assert data["created"] == 0
    assert data["updated"] == 1
    assert db.query(Driver).one().bank_name == "신한은행"


def test_duplicate_rows_in_one_file(auth_client):
    content = DRIVER_HEADER + (
        "김기사,010-1111-2222,경기12가0001,,,\n"
        "김기사,010-1111-2222,경기12가0001,,,\n"
    )
    data = _upload(auth_client, "drivers", content).json()["data"]
    assert data["created"] == 1
    assert data["errors"] == [{"row": 3, "message": "Duplicate of an earlier row in this file"}]


def test_dry_run_writes_nothing(auth_client, db):
    content = DRIVER_HEADER + "김기사,010-1111-2222,경기12가0001,,,\n"
    data = _upload(auth_client, "drivers", content, dry_run="true").json()["data"]
    assert data["dry_run"] is True
    assert data["created"] == 1
    assert db.query(Driver).count() == 0
    assert db.query(AuditLog).filter(AuditLog.action == AuditAction.IMPORT).count() == 0


def test_import_is_audited(auth_client, db):
    _upload(auth_client, "drivers", DRIVER_HEADER + "김기사,010-1111-2222,경기12가0001,,,\n")
    audit = db.query(AuditLog).filter(AuditLog.action == AuditAction.IMPORT).one()
    assert audit.entity_type == "Driver"
    assert audit.changes == {"created": 1, "updated": 0, "failed": 0}
    assert audit.context["filename"] == "upload.csv"


def test_missing_required_columns(auth_client):
    response = _upload(auth_client, "drivers", "성함,계좌은행\n김기사,국민은행\n")
    assert response.status_code == 400
    assert response.json()["error"]["details"]["missing"] == ["연락처", "차량번호"]


def test_unknown_entity(auth_client):
    response = _upload(auth_client, "trucks", DRIVER_HEADER)
    assert response.status_code == 404


def test_unsupported_extension(auth_client):
    response = _upload(auth_client, "drivers", DRIVER_HEADER, filename="drivers.txt")
    assert response.status_code == 400


def test_empty_file(auth_client):
    response = _upload(auth_client, "drivers", "")
    assert response.status_code == 400


def test_import_center_fares_xlsx(auth_client, db, make_loading_point):
    make_loading_point(center_name="C")
    workbook = Workbook()
    sheet = workbook.active
    sheet.append(["센터명", "차량톤수", "지역", "요율종류", "기본운임", "경유운임", "지역운임"])
    sheet.append(["C", "2.5", "강남구", "기본운임", 120000, None, None])
    sheet.append(["C", "2.5톤", None, "경유", None, "10,000", "20,000원"])
    sheet.append(["Z", "2.5", "강남", "기본운임", 100000, None, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    files = {"file": ("fares.xlsx", buffer.getvalue(), "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet")}
    data = auth_client.post("/api/imports/center-fares", files=files).json()["data"]
    assert data["created"] == 2
    assert data["errors"] == [{"row": 4, "message": "Center not found: Z"}]

    basic = db.query(CenterFare).filter(CenterFare.fare_type == FareType.BASIC).one()
    assert (basic.vehicle_type, basic.region, basic.base_fare) == ("2.5톤", "강남", 120000)
    stop_fee = db.query(CenterFare).filter(CenterFare.fare_type == FareType.STOP_FEE).one()
    assert (stop_fee.extra_stop_fee, stop_fee.extra_region_fee) == (10000, 20000)


def test_import_fixed_contracts(auth_client, db, make_loading_point, make_driver):
    make_loading_point(center_name="C", loading_point_name="이천 1센터")
    driver = make_driver(name="홍길동")
    content = (
        "센터명,상차지명,노선명,기사명,운행요일,센터계약,센터금액,기사계약,기사금액,시작일자\n"
        "C,이천 1센터,이천-강남 A코스,홍길동,\"월,수,금\",고정(일대),150000,고정(일대),130000,2025-01-01\n"
        "C,이천 1센터,이천-수원 B코스,홍길동,월,없는계약,0,,,\n"
    )
    data = _upload(auth_client, "fixed-contracts", content).json()["data"]
    assert data["created"] == 1
    assert [e["row"] for e in data["errors"]] == [3]

    contract = db.query(FixedContract).one()
    assert contract.driver_id == driver.id
    assert contract.operating_days == [1, 3, 5]
    assert contract.center_contract_type == ContractType.FIXED_DAILY


def test_template_download(auth_client):
    response = auth_client.get("/api/imports/templates/drivers")
    assert response.status_code == 200
    assert "drivers_template.xlsx" in response.headers["content-disposition"]
    sheet = load_workbook(io.BytesIO(response.content)).active
    assert [cell.value for cell in sheet[1]][:3] == ["성함", "연락처", "차량번호"]


def test_template_unknown_entity(auth_client):
    assert auth_client.get("/api/imports/templates/trucks").status_code == 404
