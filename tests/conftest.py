"""
Shared fixtures: an in-memory SQLite database, a FastAPI test client and
small builders for the rows most tests need.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["REDIS_URL"] = ""

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import ipd.models  # noqa: E402,F401
from ipd.api.v1.endpoints.auth import get_current_user  # noqa: E402
from ipd.core.database import get_db  # noqa: E402
from ipd.main import app  # noqa: E402
from ipd.models.base import Base  # noqa: E402
from ipd.models.user import RoleName  # noqa: E402
from ipd.schemas.bed import BedCreate  # noqa: E402
from ipd.schemas.bed_allocation import BedAllocationCreate  # noqa: E402
from ipd.schemas.medication import MedicationCreate  # noqa: E402
from ipd.schemas.patient import PatientCreate  # noqa: E402
from ipd.schemas.user import UserCreate  # noqa: E402
from ipd.services import (  # noqa: E402
    bed_allocation_service,
    bed_service,
    medication_service,
    patient_service,
    user_service,
)
from ipd.utils.datetime_utils import utc_now  # noqa: E402

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


@pytest.fixture
def admin(db):
    return user_service.create_user(
        db,
        UserCreate(
            email="admin@citycare.org",
            password="admin-pass-123",
            first_name="Asha",
            last_name="Admin",
            role=RoleName.ADMIN,
        ),
    )


@pytest.fixture
def doctor(db):
    return user_service.create_user(
        db,
        UserCreate(
            email="doctor@citycare.org",
            password="doctor-pass-123",
            first_name="Ravi",
            last_name="Menon",
            role=RoleName.DOCTOR,
            specialization="General Medicine",
            consultation_fee=500,
        ),
    )


@pytest.fixture
def make_patient(db):
    def _make(name="Meera Nair", **fields):
        return patient_service.register_patient(db, payload=PatientCreate(name=name, age=45, gender="female", **fields))

    return _make


@pytest.fixture
def patient(make_patient):
    return make_patient()


@pytest.fixture
def make_bed(db):
    def _make(bed_number="G-101", bed_type="general", daily_rate=1000):
        return bed_service.create_bed(
            db,
            payload=BedCreate(bed_number=bed_number, bed_type=bed_type, daily_rate=daily_rate),
        )

    return _make


@pytest.fixture
def bed(make_bed):
    return make_bed()


@pytest.fixture
def admit(db, doctor):
    """Admit a patient to a bed, `days_ago` days (plus an hour) before now."""

    def _admit(patient, bed, days_ago=2, **fields):
        payload = BedAllocationCreate(
            patient_id=patient.id,
            bed_id=bed.id,
            doctor_id=doctor.id,
            admission_date=utc_now() - timedelta(days=days_ago, hours=1),
            reason_for_admission="Fever for 3 days",
            **fields,
        )
        return bed_allocation_service.allocate_bed(db, payload=payload)

    return _admit


@pytest.fixture
def allocation(admit, patient, bed):
    return admit(patient, bed)


@pytest.fixture
def make_medication(db):
    def _make(name, selling_price=10, stock_quantity=100, **fields):
        return medication_service.create_medication(
            db,
            payload=MedicationCreate(name=name, selling_price=selling_price, stock_quantity=stock_quantity, **fields),
        )

    return _make


# ---------------------------------------------------------------------------
# API clients
# ---------------------------------------------------------------------------


@pytest.fixture
def anonymous_client(db):
    """Client with the test database but the real token authentication."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def client(anonymous_client, admin):
    """Client authenticated as the admin user."""
    app.dependency_overrides[get_current_user] = lambda: admin
    return anonymous_client
