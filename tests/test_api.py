import uuid
from datetime import timedelta

import pytest

from ipd.models.user import RoleName
from ipd.schemas.user import UserCreate
from ipd.services import user_service
from ipd.utils.datetime_utils import utc_now

API = "/api/v1"


def login(client, email, password):
    return client.post(f"{API}/auth/login", data={"username": email, "password": password})


def test_health(anonymous_client):
    response = anonymous_client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestAuth:
    def test_login_and_me(self, anonymous_client, admin):
        response = login(anonymous_client, "ADMIN@citycare.org", "admin-pass-123")
        assert response.status_code == 200
        token = response.json()["access_token"]

        me = anonymous_client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.status_code == 200
        assert me.json()["email"] == "admin@citycare.org"
        assert me.json()["role"] == "ADMIN"

    def test_wrong_password(self, anonymous_client, admin):
        assert login(anonymous_client, "admin@citycare.org", "nope-nope").status_code == 401

    def test_not_an_email(self, anonymous_client):
        assert login(anonymous_client, "admin", "whatever").status_code == 401

    def test_token_required(self, anonymous_client):
        assert anonymous_client.get(f"{API}/patients").status_code == 401

    def test_bad_token(self, anonymous_client):
        response = anonymous_client.get(f"{API}/auth/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_role_is_enforced(self, anonymous_client, db):
        user_service.create_user(
            db,
            UserCreate(email="nurse@citycare.org", password="nurse-pass-123", first_name="Lata", role=RoleName.NURSE),
        )
        token = login(anonymous_client, "nurse@citycare.org", "nurse-pass-123").json()["access_token"]

        response = anonymous_client.post(
            f"{API}/beds",
            json={"bed_number": "G-900"},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert response.status_code == 403


class TestErrors:
    def test_unknown_patient_is_404(self, client):
        assert client.get(f"{API}/patients/{uuid.uuid4()}").status_code == 404

    def test_duplicate_bed_is_409(self, client):
        assert client.post(f"{API}/beds", json={"bed_number": "G-1"}).status_code == 201
        assert client.post(f"{API}/beds", json={"bed_number": "G-1"}).status_code == 409

    def test_occupied_status_is_400(self, client, bed):
        response = client.patch(f"{API}/beds/{bed.id}/status", json={"status": "occupied"})
        assert response.status_code == 400

    def test_invalid_vitals_are_422(self, client, allocation):
        response = client.post(f"{API}/vitals/{allocation.id}", json={"spo2": 140})
        assert response.status_code == 422

    def test_no_bill_before_discharge(self, client, allocation):
        assert client.get(f"{API}/billing/{allocation.id}/bill").status_code == 404


class TestInpatientFlow:
    @pytest.fixture
    def admission(self, client):
        doctor = client.post(
            f"{API}/staff",
            json={
                "email": "dr.rao@citycare.org",
                "password": "doctor-pass-123",
                "first_name": "Kiran",
                "last_name": "Rao",
                "role": "DOCTOR",
                "consultation_fee": 600,
            },
        )
        assert doctor.status_code == 201
        patient = client.post(f"{API}/patients", json={"name": "Suresh Kumar", "age": 61, "gender": "Male"})
        assert patient.status_code == 201
        bed = client.post(f"{API}/beds", json={"bed_number": "P-1", "bed_type": "private", "daily_rate": 2000})
        assert bed.status_code == 201

        admitted_at = utc_now() - timedelta(days=1, hours=2)
        allocation = client.post(
            f"{API}/allocations",
            json={
                "patient_id": patient.json()["id"],
                "bed_id": bed.json()["id"],
                "doctor_id": doctor.json()["id"],
                "admission_date": admitted_at.isoformat(),
                "admission_type": "emergency",
            },
        )
        assert allocation.status_code == 201
        return allocation.json(), admitted_at

    def test_admission_response(self, client, admission):
        allocation, _ = admission
        assert allocation["patient_name"] == "Suresh Kumar"
        assert allocation["bed_number"] == "P-1"
        assert allocation["doctor_name"] == "Kiran Rao"
        assert allocation["status"] == "active"

        again = client.post(
            f"{API}/allocations",
            json={"patient_id": allocation["patient_id"], "bed_id": allocation["bed_id"]},
        )
        assert again.status_code == 409

    def test_discharge_and_documents(self, client, admission):
        allocation, admitted_at = admission
        allocation_id = allocation["id"]

        charge = client.post(
            f"{API}/billing/{allocation_id}/charges",
            json={"category": "radiology", "description": "Chest X-ray", "unit_rate": 700},
        )
        assert charge.status_code == 201

        statement = client.get(f"{API}/billing/{allocation_id}/statement")
        assert statement.status_code == 200
        assert statement.json()["category_totals"]["radiology"] == 700

        discharged_at = admitted_at + timedelta(days=1, hours=2)
        response = client.post(
            f"{API}/discharge/{allocation_id}/process",
            json={
                "discharge_date": discharged_at.isoformat(),
                "payments": [{"payment_type": "cash", "amount": 3000}],
                "summary": {"final_diagnosis": "Community acquired pneumonia", "condition_at_discharge": "improved"},
                "finalize_summary": True,
            },
        )
        assert response.status_code == 200
        result = response.json()

        # private bed 2 x 2000, consultation 2 x 600, X-ray 700
        assert result["statement"]["net_amount"] == 5900
        assert result["statement"]["pending_amount"] == 2900
        assert result["bill"]["payment_status"] == "partial"
        assert result["summary"]["status"] == "final"
        assert result["summary"]["lab_amount"] == 700
        assert result["allocation"]["status"] == "discharged"

        assert client.post(f"{API}/discharge/{allocation_id}/process", json={}).status_code == 409

        bill = client.get(f"{API}/billing/{allocation_id}/bill")
        assert bill.status_code == 200
        assert bill.json()["balance_amount"] == 2900

        pdf = client.get(f"{API}/discharge/{allocation_id}/summary/pdf")
        assert pdf.status_code == 200
        assert pdf.headers["content-type"] == "application/pdf"
        assert pdf.content.startswith(b"%PDF")

        dashboard = client.get(f"{API}/dashboard/ip")
        assert dashboard.status_code == 200
        body = dashboard.json()
        assert body["pending_collections"] == 2900
        assert body["pending_bills"] == 1
        assert body["discharges_today"] == 1
        assert body["bed_stats"]["available"] == 1

    def test_doctor_listing(self, client, admission):
        doctors = client.get(f"{API}/staff/doctors")
        assert doctors.status_code == 200
        assert [d["full_name"] for d in doctors.json()] == ["Kiran Rao"]
