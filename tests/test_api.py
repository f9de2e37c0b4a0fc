import io

from fastapi.testclient import TestClient

from conftest import PNG_BYTES, auth_header, create_admin, create_driver, create_report
from core.errors import InvalidTransition, ValidationFailed
from models.truck import Truck
from services.assignment_service import AssignmentService
from services.report_service import ReportService
from services.storage_service import ImageStorage

REPORT_FORM = {
    "reporter_phone": "+2348012345678",
    "description": "Pile near market",
    "location_name": "Behind Market",
    "location_state": "Oyo",
    "location_city": "Ibadan",
}


def png(name: str = "pile.png"):
    return (name, io.BytesIO(PNG_BYTES), "image/png")


def submit_report(client: TestClient) -> dict:
    response = client.post("/api/reports", data=REPORT_FORM, files={"image": png()})
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_health(client: TestClient):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


# ==================== ACCOUNTS ====================
def test_admin_register_login_and_me(client: TestClient):
    response = client.post(
        "/api/auth/register",
        json={"username": "ada", "email": "ada@example.com", "password": "adminpass1"},
    )
    assert response.status_code == 201, response.text
    assert response.json()["success"] is True

    response = client.post("/api/auth/login", json={"username": "ada", "password": "adminpass1"})
    assert response.status_code == 200, response.text
    token = response.json()["data"]["access_token"]

    response = client.get("/api/auth/me", headers=auth_header(token))
    assert response.status_code == 200
    me = response.json()["data"]
    assert me["user"]["role"] == "admin"
    assert me["truck"] is None


def test_admin_registration_can_be_disabled(client: TestClient, monkeypatch):
    monkeypatch.setenv("ADMIN_REGISTRATION_ENABLED", "false")

    response = client.post(
        "/api/auth/register",
        json={"username": "ada", "email": "ada@example.com", "password": "adminpass1"},
    )
    assert response.status_code == 403
    assert response.json()["success"] is False


def test_duplicate_registration_is_conflict(client: TestClient):
    payload = {"username": "ada", "email": "ada@example.com", "password": "adminpass1"}
    assert client.post("/api/auth/register", json=payload).status_code == 201

    response = client.post("/api/auth/register", json=payload)
    assert response.status_code == 409
    assert response.json()["code"] == "DuplicateIdentity"


def test_bad_login_is_invalid_credentials(client: TestClient, db_session):
    create_admin(db_session, username="ada", password="adminpass1")

    response = client.post("/api/auth/login", json={"username": "ada", "password": "nope-nope"})
    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Invalid credentials", "code": "InvalidCredentials"}


def test_driver_onboarding(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    form = {
        "username": "kunle",
        "email": "kunle@example.com",
        "password": "driverpass1",
        "license_plate": "oyo 552 kj",
        "capacity_tons": 6,
    }

    response = client.post("/api/drivers/auth/register", json=form)
    assert response.status_code == 201, response.text
    registered = response.json()["data"]
    driver_id = registered["user"]["id"]
    truck_id = registered["truck"]["id"]
    assert registered["truck"]["license_plate"] == "OYO 552 KJ"
    assert registered["truck"]["is_approved"] is False

    login = {"email": "kunle@example.com", "password": "driverpass1"}
    response = client.post("/api/drivers/auth/login", json=login)
    assert response.status_code == 403
    assert response.json()["code"] == "PendingApproval"

    response = client.get("/api/users/drivers/pending", headers=auth_header(admin_token))
    assert [user["id"] for user in response.json()["data"]] == [driver_id]

    response = client.patch(f"/api/users/{driver_id}/approve", headers=auth_header(admin_token))
    assert response.status_code == 200
    assert response.json()["data"]["is_approved"] is True

    response = client.post("/api/drivers/auth/login", json=login)
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["truck"]["id"] == truck_id
    driver_token = data["access_token"]

    response = client.get("/api/trucks?available=true", headers=auth_header(admin_token))
    assert response.json()["data"] == []

    response = client.patch(f"/api/trucks/{truck_id}/approve", headers=auth_header(admin_token))
    assert response.json()["data"]["is_approved"] is True

    response = client.get("/api/trucks?available=true", headers=auth_header(admin_token))
    assert [truck["id"] for truck in response.json()["data"]] == [truck_id]

    response = client.get("/api/drivers/auth/profile", headers=auth_header(driver_token))
    assert response.json()["data"]["truck"]["id"] == truck_id

    response = client.post(
        "/api/trucks",
        json={"license_plate": "KAN 1", "capacity_tons": 2},
        headers=auth_header(driver_token),
    )
    assert response.status_code == 409
    assert response.json()["code"] == "DriverAlreadyHasUnit"


def test_request_validation_uses_error_envelope(client: TestClient):
    response = client.post("/api/drivers/auth/register", json={"username": "x", "email": "not-an-email"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "ValidationFailed"
    fields = {err["field"] for err in body["errors"]}
    assert {"username", "email", "password", "license_plate", "capacity_tons"} <= fields


# ==================== REPORTS ====================
def test_citizen_submission_stores_image(client: TestClient, upload_root):
    report = submit_report(client)

    assert report["status"] == "Pending"
    assert report["location"] == {"name": "Behind Market", "state": "Oyo", "city": "Ibadan"}
    assert report["image_url"].startswith("/uploads/reports/")
    stored = upload_root / report["image_url"][len("/uploads/"):]
    assert stored.read_bytes() == PNG_BYTES


def test_submission_without_image_is_rejected(client: TestClient):
    response = client.post("/api/reports", data=REPORT_FORM)

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "image"


def test_submission_with_bad_fields_stores_nothing(client: TestClient, upload_root):
    form = {**REPORT_FORM, "reporter_phone": "abc", "location_city": ""}

    response = client.post("/api/reports", data=form, files={"image": png()})

    assert response.status_code == 400
    fields = {err["field"] for err in response.json()["errors"]}
    assert {"reporter_phone", "location.city"} <= fields
    assert not (upload_root / "reports").exists()


def test_submission_rejects_non_image_upload(client: TestClient):
    files = {"image": ("notes.txt", io.BytesIO(b"hello"), "text/plain")}

    response = client.post("/api/reports", data=REPORT_FORM, files=files)

    assert response.status_code == 400
    assert response.json()["code"] == "ValidationFailed"


def test_full_pickup_workflow_over_http(client: TestClient, db_session, upload_root):
    _, admin_token = create_admin(db_session)
    driver, truck, driver_token = create_driver(db_session)
    truck_id = str(truck.id)
    report = submit_report(client)
    report_id = report["id"]

    response = client.put(
        f"/api/reports/{report_id}/assign",
        json={"truck_id": truck_id},
        headers=auth_header(admin_token),
    )
    assert response.status_code == 200, response.text
    assert response.json()["data"]["status"] == "Assigned"

    response = client.get("/api/reports/driver/assigned", headers=auth_header(driver_token))
    assert [r["id"] for r in response.json()["data"]] == [report_id]

    response = client.patch(f"/api/reports/{report_id}/confirm-pickup", headers=auth_header(driver_token))
    assert response.status_code == 200, response.text
    assert response.json()["data"]["status"] == "In-Progress"

    response = client.post(
        f"/api/reports/{report_id}/clear",
        data={"notes": "Taken to Aba-Eku landfill"},
        files={"proof_image": png("proof.png")},
        headers=auth_header(driver_token),
    )
    assert response.status_code == 200, response.text
    cleared = response.json()["data"]
    assert cleared["status"] == "Cleared"
    assert cleared["date_cleared"] is not None
    assert cleared["proof_notes"] == "Taken to Aba-Eku landfill"
    assert cleared["proof_image_url"].startswith(f"/uploads/proofs/{report_id}/")

    db_session.expire_all()
    assert db_session.get(Truck, truck.id).is_busy is False

    response = client.get("/api/reports?status=cleared", headers=auth_header(admin_token))
    assert [r["id"] for r in response.json()["data"]] == [report_id]

    response = client.get("/api/reports/stats", headers=auth_header(admin_token))
    assert response.json()["data"]["cleared"] == 1


def test_assigning_a_busy_truck_is_conflict(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    _, truck, _ = create_driver(db_session)
    first = create_report(db_session)
    second = create_report(db_session)

    response = client.put(
        f"/api/reports/{first.id}/assign", json={"truck_id": str(truck.id)}, headers=auth_header(admin_token)
    )
    assert response.status_code == 200

    response = client.put(
        f"/api/reports/{second.id}/assign", json={"truck_id": str(truck.id)}, headers=auth_header(admin_token)
    )
    assert response.status_code == 409
    assert response.json()["success"] is False
    assert response.json()["code"] == "UnitBusy"


def test_other_driver_clearance_is_forbidden_and_stores_nothing(client: TestClient, db_session, upload_root):
    _, admin_token = create_admin(db_session)
    owner, truck, owner_token = create_driver(db_session)
    _, _, stranger_token = create_driver(db_session)
    report = create_report(db_session)
    client.put(f"/api/reports/{report.id}/assign", json={"truck_id": str(truck.id)}, headers=auth_header(admin_token))
    client.patch(f"/api/reports/{report.id}/confirm-pickup", headers=auth_header(owner_token))

    response = client.post(
        f"/api/reports/{report.id}/clear",
        files={"proof_image": png("proof.png")},
        headers=auth_header(stranger_token),
    )

    assert response.status_code == 403
    assert response.json()["code"] == "NotAuthorizedForReport"
    assert not (upload_root / "proofs").exists()


def test_clearance_without_proof_is_rejected(client: TestClient, db_session):
    _, _, driver_token = create_driver(db_session)
    report = create_report(db_session)

    response = client.post(f"/api/reports/{report.id}/clear", data={"notes": "done"}, headers=auth_header(driver_token))

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "proof_image"


def test_unassign_and_delete_over_http(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    _, truck, _ = create_driver(db_session)
    report = create_report(db_session)
    headers = auth_header(admin_token)
    client.put(f"/api/reports/{report.id}/assign", json={"truck_id": str(truck.id)}, headers=headers)

    response = client.put(f"/api/reports/{report.id}/unassign", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"]["status"] == "Pending"

    response = client.put(f"/api/reports/{report.id}/unassign", headers=headers)
    assert response.status_code == 409
    assert response.json()["code"] == "NotAssigned"

    client.put(f"/api/reports/{report.id}/assign", json={"truck_id": str(truck.id)}, headers=headers)
    response = client.delete(f"/api/reports/{report.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] is None

    response = client.get(f"/api/reports/{report.id}", headers=headers)
    assert response.status_code == 404
    assert response.json()["code"] == "ReportNotFound"

    db_session.expire_all()
    assert db_session.get(Truck, truck.id).is_busy is False


def test_admin_edit_cannot_change_status(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    report = create_report(db_session)

    response = client.put(f"/api/reports/{report.id}", json={"status": "Cleared"}, headers=auth_header(admin_token))
    assert response.status_code == 400

    response = client.put(
        f"/api/reports/{report.id}", json={"description": "Bigger pile"}, headers=auth_header(admin_token)
    )
    assert response.status_code == 200
    assert response.json()["data"]["description"] == "Bigger pile"
    assert response.json()["data"]["status"] == "Pending"


def test_unknown_status_filter_is_validation_error(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)

    response = client.get("/api/reports?status=finished", headers=auth_header(admin_token))

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "status"


# ==================== FLEET ====================
def test_rejecting_a_truck_removes_driver(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    driver, truck, driver_token = create_driver(db_session)
    truck_id = truck.id

    response = client.delete(f"/api/trucks/{truck_id}", headers=auth_header(admin_token))
    assert response.status_code == 200

    response = client.get(f"/api/trucks/{truck_id}", headers=auth_header(admin_token))
    assert response.status_code == 404
    assert response.json()["code"] == "UnitNotFound"

    response = client.get("/api/auth/me", headers=auth_header(driver_token))
    assert response.status_code == 401
    assert response.json()["code"] == "PrincipalGone"


def test_truck_update_rejects_unknown_fields(client: TestClient, db_session):
    _, admin_token = create_admin(db_session)
    _, truck, _ = create_driver(db_session)

    response = client.put(f"/api/trucks/{truck.id}", json={"is_busy": True}, headers=auth_header(admin_token))
    assert response.status_code == 400

    response = client.put(f"/api/trucks/{truck.id}", json={"capacity_tons": 9.5}, headers=auth_header(admin_token))
    assert response.status_code == 200
    assert response.json()["data"]["capacity_tons"] == 9.5


def test_submission_reports_missing_image_with_field_errors(client: TestClient):
    form = {**REPORT_FORM, "reporter_phone": "abc"}

    response = client.post("/api/reports", data=form)

    assert response.status_code == 400
    fields = {err["field"] for err in response.json()["errors"]}
    assert {"reporter_phone", "image"} <= fields


def test_failed_report_write_removes_stored_image(client: TestClient, upload_root, monkeypatch):
    def _refuse(*args, **kwargs):
        raise ValidationFailed("Database refused the report")

    monkeypatch.setattr(ReportService, "create_report", staticmethod(_refuse))

    response = client.post("/api/reports", data=REPORT_FORM, files={"image": png()})

    assert response.status_code == 400
    assert list((upload_root / "reports").iterdir()) == []


def test_failed_clearance_removes_stored_proof(client: TestClient, db_session, upload_root, monkeypatch):
    driver, truck, token = create_driver(db_session)
    report = create_report(db_session)
    AssignmentService.assign(report.id, truck.id, db_session)
    AssignmentService.confirm_pickup(report.id, driver.id, db_session)

    def _refuse(*args, **kwargs):
        raise InvalidTransition("Report changed while clearing")

    monkeypatch.setattr(AssignmentService, "submit_clearance", staticmethod(_refuse))

    response = client.post(
        f"/api/reports/{report.id}/clear",
        files={"proof_image": png("proof.png")},
        headers=auth_header(token),
    )

    assert response.status_code == 409
    assert list((upload_root / "proofs" / str(report.id)).iterdir()) == []


def test_discard_only_touches_files_under_the_upload_root(tmp_path, upload_root):
    storage = ImageStorage(upload_root)
    kept = upload_root / "reports" / "kept.png"
    kept.parent.mkdir()
    kept.write_bytes(PNG_BYTES)
    outside = tmp_path / "outside.png"
    outside.write_bytes(PNG_BYTES)

    storage.discard("/uploads/../outside.png")
    storage.discard("https://cdn.example.com/reports/kept.png")
    assert outside.exists()
    assert kept.exists()

    storage.discard("/uploads/reports/kept.png")
    assert not kept.exists()
    storage.discard("/uploads/reports/kept.png")
