import itertools
import os
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-not-for-production")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="wastealert-uploads-"))

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

from main import app
from core.database import Base, build_engine, get_db
from models.user import ROLE_ADMIN
from schemas.user import AdminRegister, DriverRegister
from services.auth_service import AuthService
from services.fleet_service import FleetService
from services.report_service import ReportService
from services.storage_service import ImageStorage, get_image_storage

SAMPLE_REPORT = {
    "reporter_phone": "+2348012345678",
    "description": "Pile near market",
    "location": {"name": "Behind Market", "state": "Oyo", "city": "Ibadan"},
    "image_url": "img-1",
}

# Smallest valid PNG: enough bytes for the content-type checks.
PNG_BYTES = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x06\x00\x00\x00"
    b"\x1f\x15\xc4\x89\x00\x00\x00\rIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00\x05\x18\xd8N\x00"
    b"\x00\x00\x00IEND\xaeB`\x82"
)

_seq = itertools.count(1)


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def create_admin(db, username=None, password="adminpass1"):
    n = next(_seq)
    username = username or f"admin{n}"
    user = AuthService.register_user(
        AdminRegister(username=username, email=f"{username}@example.com", password=password),
        ROLE_ADMIN,
        db,
        approved=True,
    )
    return user, AuthService.create_access_token(user)


def create_driver(db, approved=True, truck_approved=True, password="driverpass1"):
    """Register a driver with a truck; both approved unless told otherwise."""
    n = next(_seq)
    data = DriverRegister(
        username=f"driver{n}",
        email=f"driver{n}@example.com",
        password=password,
        license_plate=f"OYO-{n:03d}-KJ",
        capacity_tons=5.5,
    )
    user, truck = FleetService.register_driver(data, db)
    if approved:
        AuthService.approve_user(user.id, db)
    if truck_approved:
        FleetService.approve(truck.id, db)
    return user, truck, AuthService.create_access_token(user)


def create_report(db, **overrides):
    return ReportService.create_report({**SAMPLE_REPORT, **overrides}, db)


@pytest.fixture(scope="function")
def db_session():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool
    )
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def file_sessionmaker(tmp_path):
    """Sessions on a file database, for tests that need real concurrent connections."""
    engine = build_engine(f"sqlite+pysqlite:///{tmp_path / 'wastealert.db'}", connect_args={"timeout": 30})
    Base.metadata.create_all(bind=engine)
    try:
        yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    finally:
        engine.dispose()


@pytest.fixture(scope="function")
def upload_root(tmp_path):
    root = tmp_path / "uploads"
    root.mkdir()
    return root


@pytest.fixture(scope="function")
def client(db_session, upload_root):
    def _override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_image_storage] = lambda: ImageStorage(upload_root)

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
