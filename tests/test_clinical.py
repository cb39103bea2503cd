from datetime import timedelta

import pytest
from pydantic import ValidationError

from ipd.models.medication_administration import AdministrationStatus
from ipd.models.prescription import PrescriptionStatus
from ipd.schemas.clinical import CaseSheetUpsert, DoctorOrderCreate, NurseRecordCreate, ProgressNoteCreate
from ipd.schemas.prescription import PrescriptionCreate, PrescriptionItemCreate
from ipd.schemas.vital import VitalCreate
from ipd.services import bed_allocation_service, clinical_service, prescription_service, vital_service
from ipd.services.errors import ConflictError
from ipd.utils.datetime_utils import utc_now, utc_today


class TestCaseSheet:
    def test_insert_skips_blank_fields(self, db, allocation, doctor):
        sheet = clinical_service.upsert_case_sheet(
            db,
            allocation_id=allocation.id,
            payload=CaseSheetUpsert(present_complaints="Fever, chills", past_history="   "),
            user_id=doctor.id,
        )
        assert sheet.present_complaints == "Fever, chills"
        assert sheet.past_history is None
        assert sheet.case_sheet_date == utc_today()
        assert sheet.patient_id == allocation.patient_id

    def test_same_day_updates_existing_sheet(self, db, allocation):
        first = clinical_service.upsert_case_sheet(
            db,
            allocation_id=allocation.id,
            payload=CaseSheetUpsert(present_complaints="Fever", provisional_diagnosis="Viral fever"),
        )
        second = clinical_service.upsert_case_sheet(
            db,
            allocation_id=allocation.id,
            payload=CaseSheetUpsert(provisional_diagnosis="Dengue", present_complaints=""),
        )
        assert second.id == first.id
        assert second.provisional_diagnosis == "Dengue"
        assert second.present_complaints is None

    def test_unsent_fields_are_kept(self, db, allocation):
        clinical_service.upsert_case_sheet(
            db,
            allocation_id=allocation.id,
            payload=CaseSheetUpsert(present_complaints="Fever", treatment_plan="IV fluids"),
        )
        sheet = clinical_service.upsert_case_sheet(
            db, allocation_id=allocation.id, payload=CaseSheetUpsert(treatment_plan="Oral fluids")
        )
        assert sheet.present_complaints == "Fever"
        assert sheet.treatment_plan == "Oral fluids"

    def test_one_sheet_per_day(self, db, allocation):
        yesterday = utc_today() - timedelta(days=1)
        clinical_service.upsert_case_sheet(
            db, allocation_id=allocation.id, payload=CaseSheetUpsert(case_sheet_date=yesterday, past_history="DM")
        )
        clinical_service.upsert_case_sheet(
            db, allocation_id=allocation.id, payload=CaseSheetUpsert(past_history="DM, HTN")
        )
        assert clinical_service.get_case_sheet(db, allocation_id=allocation.id, day=yesterday).past_history == "DM"
        assert clinical_service.get_latest_case_sheet(db, allocation_id=allocation.id).past_history == "DM, HTN"

    def test_discharged_stay_is_read_only(self, db, allocation):
        bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)
        with pytest.raises(ConflictError):
            clinical_service.upsert_case_sheet(
                db, allocation_id=allocation.id, payload=CaseSheetUpsert(present_complaints="Late entry")
            )


class TestNotesAndOrders:
    def test_doctor_order_needs_content(self, db, allocation):
        with pytest.raises(ValueError):
            clinical_service.create_doctor_order(
                db, allocation_id=allocation.id, payload=DoctorOrderCreate(assessment="  ")
            )

    def test_progress_notes_newest_first(self, db, allocation):
        earlier = utc_now() - timedelta(hours=5)
        clinical_service.create_progress_note(
            db, allocation_id=allocation.id, payload=ProgressNoteCreate(content="Admitted", note_date=earlier)
        )
        clinical_service.create_progress_note(
            db, allocation_id=allocation.id, payload=ProgressNoteCreate(content=" Afebrile ")
        )
        notes = clinical_service.list_progress_notes(db, allocation_id=allocation.id)
        assert [n.content for n in notes] == ["Afebrile", "Admitted"]

    def test_nurse_records_filtered_by_day(self, db, allocation):
        clinical_service.create_nurse_record(
            db,
            allocation_id=allocation.id,
            payload=NurseRecordCreate(remark="Night round", entry_time=utc_now() - timedelta(days=1)),
        )
        clinical_service.create_nurse_record(
            db, allocation_id=allocation.id, payload=NurseRecordCreate(remark="Morning round")
        )
        today = clinical_service.list_nurse_records(db, allocation_id=allocation.id, day=utc_today())
        assert [r.remark for r in today] == ["Morning round"]


class TestVitals:
    def test_reading_is_stored(self, db, allocation, doctor):
        vital = vital_service.add_vital_reading(
            db,
            allocation_id=allocation.id,
            recorded_by=doctor.id,
            payload=VitalCreate(temperature=101.2, pulse=96, spo2=97),
        )
        assert vital.temperature == 101.2
        assert vital.created_by == doctor.id
        assert len(vital_service.list_vitals(db, allocation_id=allocation.id)) == 1

    @pytest.mark.parametrize(
        "fields",
        [
            {"temperature": 120},
            {"spo2": 101},
            {"bp_systolic": 350},
            {"pulse": -1},
            {"urine_output": -5},
            {"notes": "patient asleep"},
        ],
    )
    def test_out_of_range_readings_rejected(self, fields):
        with pytest.raises(ValidationError):
            VitalCreate(**fields)

    def test_vitals_need_active_stay(self, db, allocation):
        bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)
        with pytest.raises(ConflictError):
            vital_service.add_vital_reading(
                db, allocation_id=allocation.id, recorded_by=None, payload=VitalCreate(pulse=80)
            )


class TestMedicationSchedule:
    @pytest.fixture
    def prescription(self, db, allocation, doctor, make_medication):
        paracetamol = make_medication("Paracetamol 500mg")
        return prescription_service.create_prescription(
            db,
            allocation_id=allocation.id,
            doctor_id=doctor.id,
            payload=PrescriptionCreate(
                items=[
                    PrescriptionItemCreate(
                        medication_id=paracetamol.id, dosage="500 mg", frequency="thrice daily", duration="5 days"
                    ),
                    PrescriptionItemCreate(medicine_name="Ondansetron", frequency="SOS", duration="3 days"),
                ]
            ),
        )

    def test_prescription_items(self, prescription):
        assert prescription.prescription_code.startswith("RX")
        names = {item.medicine_name: item for item in prescription.items}
        assert names["Paracetamol 500mg"].quantity == 15
        assert names["Ondansetron"].quantity == 3

    def test_item_needs_a_name(self, db, allocation):
        with pytest.raises(ValueError):
            prescription_service.create_prescription(
                db,
                allocation_id=allocation.id,
                doctor_id=None,
                payload=PrescriptionCreate(items=[PrescriptionItemCreate(frequency="BID")]),
            )

    def test_schedule_is_built_once(self, db, allocation, prescription):
        first = prescription_service.build_medication_schedule(db, allocation_id=allocation.id)
        second = prescription_service.build_medication_schedule(db, allocation_id=allocation.id)

        assert [entry.scheduled_time for entry in first] == ["08:00", "14:00", "20:00"]
        assert [entry.id for entry in second] == [entry.id for entry in first]

    def test_schedule_ends_with_duration(self, db, allocation, prescription):
        later = utc_today() + timedelta(days=5)
        assert prescription_service.build_medication_schedule(db, allocation_id=allocation.id, day=later) == []

    def test_cancelled_prescription_is_not_scheduled(self, db, allocation, prescription):
        prescription_service.update_prescription_status(
            db, prescription_id=prescription.id, status=PrescriptionStatus.CANCELLED
        )
        assert prescription_service.build_medication_schedule(db, allocation_id=allocation.id) == []

    def test_record_administration(self, db, allocation, prescription, admin):
        entry = prescription_service.build_medication_schedule(db, allocation_id=allocation.id)[0]

        given = prescription_service.record_administration(
            db, administration_id=entry.id, status=AdministrationStatus.ADMINISTERED, user_id=admin.id
        )
        assert given.administered_at is not None
        assert given.administered_by == admin.id

        with pytest.raises(ConflictError):
            prescription_service.record_administration(
                db, administration_id=entry.id, status=AdministrationStatus.SKIPPED
            )

    def test_delayed_dose_can_still_be_given(self, db, allocation, prescription):
        entry = prescription_service.build_medication_schedule(db, allocation_id=allocation.id)[1]
        prescription_service.record_administration(db, administration_id=entry.id, status=AdministrationStatus.DELAYED)
        given = prescription_service.record_administration(
            db, administration_id=entry.id, status=AdministrationStatus.ADMINISTERED
        )
        assert given.status == AdministrationStatus.ADMINISTERED


class TestTimeline:
    def test_events_grouped_by_day_newest_first(self, db, allocation):
        clinical_service.create_nurse_record(
            db,
            allocation_id=allocation.id,
            payload=NurseRecordCreate(remark="Shifted to ward", entry_time=utc_now() - timedelta(days=1)),
        )
        clinical_service.create_progress_note(
            db, allocation_id=allocation.id, payload=ProgressNoteCreate(content="Stable")
        )
        vital_service.add_vital_reading(
            db, allocation_id=allocation.id, recorded_by=None, payload=VitalCreate(pulse=88)
        )

        days = clinical_service.get_clinical_timeline(db, allocation_id=allocation.id)

        assert [day.date for day in days] == [
            utc_today().isoformat(),
            (utc_today() - timedelta(days=1)).isoformat(),
        ]
        assert {event.type for event in days[0].events} == {"progress_note", "vital_sign"}
        assert [event.type for event in days[1].events] == ["nurse_record"]
        assert days[0].events[0].timestamp >= days[0].events[-1].timestamp
