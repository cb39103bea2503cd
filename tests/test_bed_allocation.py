import re
import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from ipd.models.bed import BedStatus
from ipd.models.bed_allocation import AdmissionType, AllocationStatus
from ipd.models.billing import ChargeCategory, PaymentType
from ipd.models.user import RoleName
from ipd.schemas.bed_allocation import BedAllocationCreate
from ipd.schemas.billing import ChargeCreate, PaymentSplit
from ipd.schemas.user import UserCreate
from ipd.services import bed_allocation_service, bed_service, billing_service, user_service
from ipd.services.errors import BedNotFoundError, ConflictError, PatientNotFoundError
from ipd.utils.datetime_utils import utc_now


class TestAllocateBed:
    def test_admission_occupies_bed(self, db, allocation, bed, patient):
        assert re.fullmatch(r"IP\d{8}", allocation.ip_number)
        assert re.fullmatch(r"BA\d{12}", allocation.allocation_code)
        assert allocation.status == AllocationStatus.ACTIVE

        db.refresh(bed)
        db.refresh(patient)
        assert bed.status == BedStatus.OCCUPIED
        assert patient.is_admitted is True

    def test_patient_cannot_hold_two_beds(self, admit, patient, allocation, make_bed):
        with pytest.raises(ConflictError):
            admit(patient, make_bed(bed_number="G-102"))

    def test_occupied_bed_is_refused(self, admit, allocation, bed, make_patient):
        with pytest.raises(ConflictError):
            admit(make_patient("Second Patient"), bed)

    def test_bed_under_maintenance_is_refused(self, db, admit, patient, bed):
        bed_service.update_bed_status(db, bed_id=bed.id, status=BedStatus.MAINTENANCE)
        with pytest.raises(ConflictError):
            admit(patient, bed)

    def test_unknown_patient_or_bed(self, db, bed, patient):
        with pytest.raises(PatientNotFoundError):
            bed_allocation_service.allocate_bed(
                db, payload=BedAllocationCreate(patient_id=uuid.uuid4(), bed_id=bed.id)
            )
        with pytest.raises(BedNotFoundError):
            bed_allocation_service.allocate_bed(
                db, payload=BedAllocationCreate(patient_id=patient.id, bed_id=uuid.uuid4())
            )

    def test_doctor_must_be_a_doctor(self, db, bed, patient, admin):
        with pytest.raises(ValueError):
            bed_allocation_service.allocate_bed(
                db,
                payload=BedAllocationCreate(patient_id=patient.id, bed_id=bed.id, doctor_id=admin.id),
            )

    def test_supplied_ip_number_is_kept(self, admit, patient, bed):
        allocation = admit(patient, bed, ip_number=" IP-LEGACY-7 ")
        assert allocation.ip_number == "IP-LEGACY-7"

    def test_search_by_ip_number(self, db, allocation):
        found = bed_allocation_service.list_allocations(db, search=allocation.ip_number)
        assert [a.id for a in found] == [allocation.id]


class TestTransfer:
    def test_transfer_continues_the_episode(self, db, allocation, bed, make_bed):
        icu = make_bed(bed_number="ICU-1", bed_type="icu", daily_rate=3000)

        new_leg = bed_allocation_service.transfer_bed(
            db, allocation_id=allocation.id, new_bed_id=icu.id, reason="Needs monitoring"
        )

        assert new_leg.id != allocation.id
        assert new_leg.ip_number == allocation.ip_number
        assert new_leg.admission_type == AdmissionType.TRANSFER
        assert new_leg.status == AllocationStatus.ACTIVE

        old_leg = bed_allocation_service.get_allocation(db, allocation_id=allocation.id)
        assert old_leg.status == AllocationStatus.TRANSFERRED
        assert old_leg.discharge_date is not None
        assert "ICU-1" in old_leg.reason_for_admission

        db.refresh(bed)
        db.refresh(icu)
        assert bed.status == BedStatus.AVAILABLE
        assert icu.status == BedStatus.OCCUPIED

    def test_ledger_moves_to_new_leg(self, db, allocation, make_bed):
        bed_allocation_service.record_advance(db, allocation_id=allocation.id, amount=Decimal("500"))
        billing_service.add_charge(
            db,
            allocation_id=allocation.id,
            payload=ChargeCreate(category=ChargeCategory.LAB, description="CBC", unit_rate=Decimal("300")),
        )
        billing_service.record_payment(
            db,
            allocation_id=allocation.id,
            splits=[PaymentSplit(payment_type=PaymentType.CASH, amount=Decimal("200"))],
        )

        new_leg = bed_allocation_service.transfer_bed(
            db, allocation_id=allocation.id, new_bed_id=make_bed(bed_number="G-201").id
        )

        assert new_leg.advance_amount == Decimal("500")
        assert [c.description for c in billing_service.list_charges(db, allocation_id=new_leg.id)] == ["CBC"]
        assert billing_service.list_charges(db, allocation_id=allocation.id) == []
        assert len(billing_service.list_receipts(db, allocation_id=new_leg.id)) == 1

        old_leg = bed_allocation_service.get_allocation(db, allocation_id=allocation.id)
        assert old_leg.advance_amount == Decimal("0")

    def test_statement_bills_every_leg(self, db, allocation, make_bed):
        icu = make_bed(bed_number="ICU-1", bed_type="icu", daily_rate=3000)
        new_leg = bed_allocation_service.transfer_bed(db, allocation_id=allocation.id, new_bed_id=icu.id)

        statement = billing_service.get_billing_statement(db, allocation_id=new_leg.id)

        assert [rc.bed_number for rc in statement.room_charges] == ["G-101", "ICU-1"]
        assert [rc.days for rc in statement.room_charges] == [3, 1]
        assert statement.category_totals["bed"] == Decimal("6000")
        assert statement.consultation.days == 4

    def test_same_bed_is_rejected(self, db, allocation, bed):
        with pytest.raises(ValueError):
            bed_allocation_service.transfer_bed(db, allocation_id=allocation.id, new_bed_id=bed.id)

    def test_target_must_be_available(self, db, allocation, make_bed):
        target = make_bed(bed_number="G-300")
        bed_service.update_bed_status(db, bed_id=target.id, status=BedStatus.RESERVED)
        with pytest.raises(ConflictError):
            bed_allocation_service.transfer_bed(db, allocation_id=allocation.id, new_bed_id=target.id)

    def test_transferred_leg_is_closed_for_billing(self, db, allocation, make_bed):
        bed_allocation_service.transfer_bed(
            db, allocation_id=allocation.id, new_bed_id=make_bed(bed_number="G-201").id
        )
        with pytest.raises(ConflictError):
            billing_service.add_charge(
                db,
                allocation_id=allocation.id,
                payload=ChargeCreate(category=ChargeCategory.OTHER, description="Late", unit_rate=Decimal("10")),
            )


class TestPlainDischarge:
    def test_discharge_frees_bed(self, db, allocation, bed, patient):
        discharged = bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)

        assert discharged.status == AllocationStatus.DISCHARGED
        db.refresh(bed)
        db.refresh(patient)
        assert bed.status == BedStatus.AVAILABLE
        assert patient.is_admitted is False

    def test_discharge_twice_conflicts(self, db, allocation):
        bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)
        with pytest.raises(ConflictError):
            bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)

    def test_discharge_before_admission(self, db, allocation):
        with pytest.raises(ValueError):
            bed_allocation_service.discharge_bed(
                db, allocation_id=allocation.id, discharge_date=utc_now() - timedelta(days=30)
            )

    def test_readmission_after_discharge(self, db, admit, allocation, patient, bed):
        bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)
        again = admit(patient, bed, days_ago=0)
        assert again.ip_number != allocation.ip_number
        history = bed_allocation_service.get_patient_bed_history(db, patient_id=patient.id)
        assert len(history) == 2


class TestBedRules:
    def test_duplicate_bed_number(self, make_bed, bed):
        with pytest.raises(ConflictError):
            make_bed(bed_number="G-101")

    def test_occupied_is_set_by_allocation_only(self, db, bed):
        with pytest.raises(ValueError):
            bed_service.update_bed_status(db, bed_id=bed.id, status=BedStatus.OCCUPIED)

    def test_status_locked_while_allocated(self, db, allocation, bed):
        with pytest.raises(ConflictError):
            bed_service.update_bed_status(db, bed_id=bed.id, status=BedStatus.MAINTENANCE)

    def test_delete_unused_bed(self, db, make_bed):
        spare = make_bed(bed_number="SPARE-1")
        bed_service.delete_bed(db, bed_id=spare.id)
        with pytest.raises(BedNotFoundError):
            bed_service.get_bed(db, bed_id=spare.id)

    def test_delete_refused_with_history(self, db, allocation, bed):
        with pytest.raises(ConflictError):
            bed_service.delete_bed(db, bed_id=bed.id)
        bed_allocation_service.discharge_bed(db, allocation_id=allocation.id)
        with pytest.raises(ConflictError):
            bed_service.delete_bed(db, bed_id=bed.id)

    def test_bed_stats(self, db, allocation, make_bed):
        make_bed(bed_number="G-102")
        spare = make_bed(bed_number="G-103")
        bed_service.update_bed_status(db, bed_id=spare.id, status=BedStatus.MAINTENANCE)
        make_bed(bed_number="G-104")

        stats = bed_service.compute_bed_stats(db)

        assert stats.total == 4
        assert stats.occupied == 1
        assert stats.available == 2
        assert stats.maintenance == 1
        assert stats.occupancy_rate == 25.0

    def test_available_beds_by_type(self, db, bed, make_bed):
        make_bed(bed_number="ICU-1", bed_type="ICU")
        assert [b.bed_number for b in bed_service.get_available_beds(db, bed_type="icu")] == ["ICU-1"]


def test_doctor_listing_skips_other_roles(db, doctor, admin):
    user_service.create_user(
        db,
        UserCreate(
            email="nurse@citycare.org",
            password="nurse-pass-123",
            first_name="Lata",
            role=RoleName.NURSE,
        ),
    )
    assert [d.id for d in user_service.list_doctors(db)] == [doctor.id]
