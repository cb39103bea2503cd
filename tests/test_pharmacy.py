import uuid
from decimal import Decimal

import pytest

from ipd.models.billing import ChargeCategory
from ipd.models.pharmacy_recommendation import RecommendationPriority, RecommendationStatus
from ipd.schemas.pharmacy import ConvertToPrescriptionRequest, RecommendationRequest, RecommendationSaveRequest
from ipd.services import billing_service, medication_service
from ipd.services import pharmacy_recommendation_service as pharmacy
from ipd.services.errors import ConflictError, PatientNotFoundError


@pytest.fixture
def catalog(make_medication):
    return {
        "vitamin": make_medication("Vitamin B Complex", selling_price=20, dosage_form="tablet"),
        "ppi": make_medication("Pantoprazole 40mg", selling_price=15, generic_name="pantoprazole"),
    }


def save_all(db, patient, allocation=None, **request):
    drafts = pharmacy.generate_recommendations(db, request=RecommendationRequest(patient_id=patient.id, **request))
    return pharmacy.save_recommendations(
        db,
        payload=RecommendationSaveRequest(
            patient_id=patient.id,
            bed_allocation_id=allocation.id if allocation else None,
            recommendations=drafts,
        ),
    )


def by_name(recommendations, prefix):
    return next(rec for rec in recommendations if rec.medication_name.startswith(prefix))


class TestGenerate:
    def test_standard_regimen_from_catalog(self, db, patient, catalog):
        drafts = pharmacy.generate_recommendations(db, request=RecommendationRequest(patient_id=patient.id))

        assert [d.medication_name for d in drafts] == ["Vitamin B Complex", "Pantoprazole 40mg"]
        assert [d.priority for d in drafts] == [RecommendationPriority.MEDIUM, RecommendationPriority.LOW]
        assert [d.quantity for d in drafts] == [7, 7]
        assert drafts[1].instructions == "Take before food."
        assert drafts[0].unit_price == 20.0
        assert drafts[0].medication_id == catalog["vitamin"].id

    def test_nothing_in_catalog(self, db, patient):
        assert pharmacy.generate_recommendations(db, request=RecommendationRequest(patient_id=patient.id)) == []

    def test_allergies_are_skipped(self, db, patient, catalog):
        drafts = pharmacy.generate_recommendations(
            db, request=RecommendationRequest(patient_id=patient.id, allergies=["Pantoprazole"])
        )
        assert [d.medication_name for d in drafts] == ["Vitamin B Complex"]

    def test_recorded_patient_allergies_are_skipped(self, db, make_patient, catalog):
        allergic = make_patient("Allergic Patient", allergies="Penicillin, pantoprazole")
        drafts = pharmacy.generate_recommendations(db, request=RecommendationRequest(patient_id=allergic.id))
        assert [d.medication_name for d in drafts] == ["Vitamin B Complex"]

    def test_current_medications_are_skipped(self, db, patient, catalog):
        drafts = pharmacy.generate_recommendations(
            db, request=RecommendationRequest(patient_id=patient.id, current_medications=["vitamin b complex"])
        )
        assert [d.medication_name for d in drafts] == ["Pantoprazole 40mg"]

    def test_unknown_patient(self, db):
        with pytest.raises(PatientNotFoundError):
            pharmacy.generate_recommendations(db, request=RecommendationRequest(patient_id=uuid.uuid4()))

    @pytest.mark.parametrize(
        "name, form, expected",
        [
            ("Omeprazole", None, "Take before food."),
            ("Metformin", "tablet", "Take with or after food."),
            ("Ceftriaxone", "injection", "For injection use only."),
            ("Cough syrup", "syrup", "Shake well before use."),
            ("Vitamin C", None, "Take as prescribed."),
        ],
    )
    def test_instructions(self, name, form, expected):
        assert pharmacy.generate_instructions(name, form) == expected


class TestStatus:
    def test_approve_then_dispense_bills_the_stay(self, db, patient, allocation, catalog, doctor):
        rec = by_name(save_all(db, patient, allocation), "Vitamin")
        assert rec.status == RecommendationStatus.PENDING

        approved = pharmacy.update_recommendation_status(
            db, recommendation_id=rec.id, status=RecommendationStatus.APPROVED, user_id=doctor.id
        )
        assert approved.approved_by == doctor.id
        assert approved.approved_at is not None

        dispensed = pharmacy.update_recommendation_status(
            db, recommendation_id=rec.id, status=RecommendationStatus.DISPENSED
        )
        assert dispensed.status == RecommendationStatus.DISPENSED

        charges = billing_service.list_charges(db, allocation_id=allocation.id, category=ChargeCategory.PHARMACY)
        assert len(charges) == 1
        assert charges[0].amount == Decimal("140")
        assert medication_service.get_medication(db, medication_id=catalog["vitamin"].id).stock_quantity == 93

    def test_pending_cannot_be_dispensed(self, db, patient, allocation, catalog):
        rec = save_all(db, patient, allocation)[0]
        with pytest.raises(ConflictError):
            pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.DISPENSED)

    def test_rejected_is_final(self, db, patient, allocation, catalog):
        rec = save_all(db, patient, allocation)[0]
        pharmacy.update_recommendation_status(
            db, recommendation_id=rec.id, status=RecommendationStatus.REJECTED, notes="Not indicated"
        )
        with pytest.raises(ConflictError):
            pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.APPROVED)

    def test_dispense_needs_an_admission(self, db, patient, catalog):
        rec = save_all(db, patient)[0]
        pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.APPROVED)

        with pytest.raises(ConflictError):
            pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.DISPENSED)

        db.refresh(rec)
        assert rec.status == RecommendationStatus.APPROVED

    def test_dispense_needs_stock(self, db, patient, allocation, make_medication):
        make_medication("Vitamin B Complex", selling_price=20, stock_quantity=3)
        rec = save_all(db, patient, allocation)[0]
        pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.APPROVED)

        with pytest.raises(ConflictError):
            pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.DISPENSED)
        assert billing_service.list_charges(db, allocation_id=allocation.id) == []

    def test_list_by_status(self, db, patient, allocation, catalog):
        recs = save_all(db, patient, allocation)
        pharmacy.update_recommendation_status(db, recommendation_id=recs[0].id, status=RecommendationStatus.APPROVED)

        pending = pharmacy.list_recommendations(db, patient_id=patient.id, status=RecommendationStatus.PENDING)
        assert [r.id for r in pending] == [recs[1].id]


class TestConvert:
    def test_approved_recommendations_become_a_prescription(self, db, patient, allocation, catalog, doctor):
        recs = save_all(db, patient)
        for rec in recs:
            pharmacy.update_recommendation_status(db, recommendation_id=rec.id, status=RecommendationStatus.APPROVED)

        prescription = pharmacy.convert_to_prescription(
            db,
            payload=ConvertToPrescriptionRequest(
                patient_id=patient.id, doctor_id=doctor.id, recommendation_ids=[r.id for r in recs]
            ),
        )

        assert prescription.bed_allocation_id == allocation.id
        assert sorted(item.medicine_name for item in prescription.items) == ["Pantoprazole 40mg", "Vitamin B Complex"]
        for rec in recs:
            db.refresh(rec)
            assert rec.status == RecommendationStatus.DISPENSED
            assert rec.bed_allocation_id == allocation.id

        charges = billing_service.list_charges(db, allocation_id=allocation.id, category=ChargeCategory.PHARMACY)
        assert sorted(c.amount for c in charges) == [Decimal("105"), Decimal("140")]

    def test_only_approved_can_be_converted(self, db, patient, allocation, catalog):
        recs = save_all(db, patient, allocation)
        pharmacy.update_recommendation_status(db, recommendation_id=recs[0].id, status=RecommendationStatus.APPROVED)

        with pytest.raises(ConflictError):
            pharmacy.convert_to_prescription(
                db,
                payload=ConvertToPrescriptionRequest(patient_id=patient.id, recommendation_ids=[r.id for r in recs]),
            )

    def test_unknown_recommendation(self, db, patient):
        with pytest.raises(pharmacy.RecommendationNotFoundError):
            pharmacy.convert_to_prescription(
                db,
                payload=ConvertToPrescriptionRequest(patient_id=patient.id, recommendation_ids=[uuid.uuid4()]),
            )
