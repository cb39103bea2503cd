import uuid
from datetime import timedelta
from decimal import Decimal

import pytest

from ipd.models.bed import BedStatus
from ipd.models.bed_allocation import AllocationStatus
from ipd.models.billing import ChargeCategory, IPCharge, PaymentStatus, PaymentType
from ipd.models.discharge_summary import DischargeCondition, SummaryStatus
from ipd.schemas.billing import ChargeCreate, PaymentSplit
from ipd.schemas.clinical import CaseSheetUpsert, DoctorOrderCreate
from ipd.schemas.discharge import (
    AdditionalService,
    DischargeProcessRequest,
    DischargeSummaryFields,
    DischargeSummarySave,
)
from ipd.services import bed_allocation_service, billing_service, clinical_service, discharge_service
from ipd.services.billing_service import ChargeNotFoundError
from ipd.services.dashboard_service import compute_ip_dashboard
from ipd.services.errors import ConflictError
from ipd.utils.datetime_utils import as_utc


def discharge_time(allocation):
    # three started days after admission
    return as_utc(allocation.admission_date) + timedelta(days=2, hours=1)


def add_lab_charge(db, allocation, amount="400"):
    return billing_service.add_charge(
        db,
        allocation_id=allocation.id,
        payload=ChargeCreate(category=ChargeCategory.LAB, description="CBC", unit_rate=Decimal(amount)),
    )


def pay(payment_type, amount):
    return PaymentSplit(payment_type=payment_type, amount=Decimal(amount))


class TestProcessDischarge:
    def test_full_reconciliation(self, db, allocation, bed, patient):
        bed_allocation_service.record_advance(db, allocation_id=allocation.id, amount=Decimal("1000"))
        add_lab_charge(db, allocation)

        discharged, summary, bill, statement = discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                additional_services=[
                    AdditionalService(description="Dressing", category=ChargeCategory.PROCEDURE, unit_rate=Decimal("100"))
                ],
                payments=[pay(PaymentType.CASH, "2500"), pay(PaymentType.UPI, "1500")],
            ),
        )

        # bed 3 x 1000, consultation 3 x 500, lab 400, dressing 100
        assert statement.gross_amount == Decimal("5000")
        assert statement.net_amount == Decimal("5000")
        assert statement.paid_amount == Decimal("5000")
        assert statement.pending_amount == Decimal("0")
        assert statement.payment_status == PaymentStatus.PAID

        assert discharged.status == AllocationStatus.DISCHARGED
        assert discharged.total_charges == Decimal("5000")
        db.refresh(bed)
        db.refresh(patient)
        assert bed.status == BedStatus.AVAILABLE
        assert patient.is_admitted is False

        assert summary.bed_days == 3
        assert summary.bed_total == Decimal("3000")
        assert summary.lab_amount == Decimal("400")
        assert summary.procedure_amount == Decimal("100")
        assert summary.pharmacy_amount == Decimal("0")
        assert summary.other_amount == Decimal("1500")
        assert summary.pending_amount == Decimal("0")
        assert summary.payment_splits == {"advance": 1000.0, "cash": 2500.0, "upi": 1500.0}
        assert summary.status == SummaryStatus.DRAFT

        assert bill.bill_number.startswith("IP-")
        assert bill.total_amount == Decimal("5000")
        assert bill.balance_amount == Decimal("0")
        assert bill.payment_status == PaymentStatus.PAID
        assert bill.payment_method == "split"
        assert len(bill.items) == 4

        assert len(billing_service.list_receipts(db, allocation_id=allocation.id)) == 2

    def test_tax_and_discount(self, db, allocation):
        _, summary, bill, statement = discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                tax_percentage=Decimal("5"),
                discount_percentage=Decimal("10"),
            ),
        )
        assert statement.gross_amount == Decimal("4500")
        assert statement.tax_amount == Decimal("225")
        assert statement.discount_amount == Decimal("450")
        assert statement.net_amount == Decimal("4275")
        assert statement.payment_status == PaymentStatus.PENDING
        assert bill.balance_amount == Decimal("4275")
        assert bill.payment_method is None
        assert summary.pending_amount == Decimal("4275")

    def test_single_payment_method(self, db, allocation):
        _, _, bill, _ = discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                payments=[pay(PaymentType.CARD, "1000")],
            ),
        )
        assert bill.payment_method == "card"
        assert bill.payment_status == PaymentStatus.PARTIAL

    def test_second_discharge_conflicts(self, db, allocation):
        request = DischargeProcessRequest(discharge_date=discharge_time(allocation))
        discharge_service.process_discharge(db, allocation_id=allocation.id, request=request)
        with pytest.raises(ConflictError):
            discharge_service.process_discharge(db, allocation_id=allocation.id, request=request)

    def test_overpayment_rolls_everything_back(self, db, allocation, bed):
        with pytest.raises(ValueError):
            discharge_service.process_discharge(
                db,
                allocation_id=allocation.id,
                request=DischargeProcessRequest(
                    discharge_date=discharge_time(allocation),
                    additional_services=[AdditionalService(description="Oxygen", unit_rate=Decimal("250"))],
                    payments=[pay(PaymentType.CASH, "100000")],
                ),
            )

        current = bed_allocation_service.get_allocation(db, allocation_id=allocation.id)
        assert current.status == AllocationStatus.ACTIVE
        db.refresh(bed)
        assert bed.status == BedStatus.OCCUPIED
        assert billing_service.list_charges(db, allocation_id=allocation.id) == []
        assert billing_service.list_receipts(db, allocation_id=allocation.id) == []
        assert billing_service.get_bill(db, allocation_id=allocation.id) is None

    def test_discount_larger_than_bill(self, db, allocation):
        with pytest.raises(ValueError):
            discharge_service.process_discharge(
                db,
                allocation_id=allocation.id,
                request=DischargeProcessRequest(
                    discharge_date=discharge_time(allocation), discount_amount=Decimal("999999")
                ),
            )
        assert bed_allocation_service.get_allocation(db, allocation_id=allocation.id).status == AllocationStatus.ACTIVE

    def test_discharge_before_admission(self, db, allocation):
        with pytest.raises(ValueError):
            discharge_service.process_discharge(
                db,
                allocation_id=allocation.id,
                request=DischargeProcessRequest(
                    discharge_date=as_utc(allocation.admission_date) - timedelta(hours=1)
                ),
            )

    def test_preview_saves_nothing(self, db, allocation):
        statement = discharge_service.preview_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                additional_services=[AdditionalService(description="Oxygen", unit_rate=Decimal("250"))],
            ),
        )
        assert statement.gross_amount == Decimal("4750")
        assert statement.category_totals[ChargeCategory.OTHER.value] == Decimal("250")
        assert billing_service.list_charges(db, allocation_id=allocation.id) == []
        assert bed_allocation_service.get_allocation(db, allocation_id=allocation.id).status == AllocationStatus.ACTIVE


class TestSummary:
    def test_prefill_from_the_stay(self, db, allocation, doctor, patient):
        clinical_service.upsert_case_sheet(
            db,
            allocation_id=allocation.id,
            payload=CaseSheetUpsert(present_complaints="High fever", provisional_diagnosis="Dengue"),
        )
        clinical_service.create_doctor_order(
            db, allocation_id=allocation.id, payload=DoctorOrderCreate(treatment_instructions="IV fluids")
        )

        prefill = discharge_service.prefill_discharge_summary(db, allocation_id=allocation.id)

        assert prefill.presenting_complaint == "High fever"
        assert prefill.final_diagnosis == "Dengue"
        assert prefill.treatment_given == "IV fluids"
        assert prefill.ip_number == allocation.ip_number
        assert prefill.uhid == patient.uhid
        assert prefill.consultant_name == doctor.full_name

    def test_prefill_falls_back_to_admission_reason(self, db, allocation):
        prefill = discharge_service.prefill_discharge_summary(db, allocation_id=allocation.id)
        assert prefill.presenting_complaint == "Fever for 3 days"

    def test_saved_values_win_over_prefill(self, db, allocation):
        clinical_service.upsert_case_sheet(
            db, allocation_id=allocation.id, payload=CaseSheetUpsert(provisional_diagnosis="Dengue")
        )
        discharge_service.save_discharge_summary(
            db,
            allocation_id=allocation.id,
            payload=DischargeSummarySave(final_diagnosis="Dengue, resolving"),
        )
        prefill = discharge_service.prefill_discharge_summary(db, allocation_id=allocation.id)
        assert prefill.final_diagnosis == "Dengue, resolving"

    def test_missing_summary(self, db, allocation):
        with pytest.raises(discharge_service.DischargeSummaryNotFoundError):
            discharge_service.get_discharge_summary(db, allocation_id=allocation.id)

    def test_final_summary_is_locked(self, db, allocation):
        summary = discharge_service.save_discharge_summary(
            db,
            allocation_id=allocation.id,
            payload=DischargeSummarySave(final_diagnosis="Dengue", finalize=True),
        )
        assert summary.status == SummaryStatus.FINAL
        assert summary.finalized_at is not None

        with pytest.raises(ConflictError):
            discharge_service.save_discharge_summary(
                db, allocation_id=allocation.id, payload=DischargeSummarySave(final_diagnosis="Changed")
            )
        with pytest.raises(ConflictError):
            discharge_service.process_discharge(
                db,
                allocation_id=allocation.id,
                request=DischargeProcessRequest(
                    discharge_date=discharge_time(allocation),
                    summary=DischargeSummaryFields(final_diagnosis="Changed"),
                ),
            )

        _, summary, _, _ = discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(discharge_date=discharge_time(allocation)),
        )
        assert summary.final_diagnosis == "Dengue"
        assert summary.net_amount == Decimal("4500")

    def test_summary_written_with_discharge(self, db, allocation):
        _, summary, _, _ = discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                summary=DischargeSummaryFields(
                    final_diagnosis="Dengue fever",
                    condition_at_discharge=DischargeCondition.IMPROVED,
                    follow_up_advice="Review after 1 week",
                ),
                finalize_summary=True,
            ),
        )
        assert summary.status == SummaryStatus.FINAL
        assert summary.condition_at_discharge == DischargeCondition.IMPROVED
        assert as_utc(summary.discharge_date) == discharge_time(allocation)

    def test_pdf(self, db, allocation):
        discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                summary=DischargeSummaryFields(final_diagnosis="Dengue <severe> & recovering"),
                payments=[pay(PaymentType.CASH, "500")],
            ),
        )
        pdf = discharge_service.render_discharge_pdf(db, allocation_id=allocation.id)
        assert pdf.getvalue().startswith(b"%PDF")


class TestSyncBilling:
    @pytest.fixture
    def discharged(self, db, allocation):
        discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                payments=[pay(PaymentType.CASH, "4500")],
            ),
        )
        return allocation

    def test_late_charge_reopens_the_balance(self, db, discharged):
        add_lab_charge(db, discharged, amount="300")

        bill = billing_service.get_bill(db, allocation_id=discharged.id)
        summary = discharge_service.get_discharge_summary(db, allocation_id=discharged.id)
        assert bill.total_amount == Decimal("4800")
        assert bill.balance_amount == Decimal("300")
        assert bill.payment_status == PaymentStatus.PARTIAL
        assert summary.lab_amount == Decimal("300")
        assert summary.pending_amount == Decimal("300")

    def test_late_payment_settles_the_bill(self, db, discharged):
        add_lab_charge(db, discharged, amount="300")
        billing_service.record_payment(db, allocation_id=discharged.id, splits=[pay(PaymentType.UPI, "300")])

        bill = billing_service.get_bill(db, allocation_id=discharged.id)
        assert bill.balance_amount == Decimal("0")
        assert bill.payment_status == PaymentStatus.PAID
        assert bill.payment_method == "split"

    def test_removing_late_charge_restores_the_bill(self, db, discharged, monkeypatch):
        charge = add_lab_charge(db, discharged, amount="300")
        invalidated = []
        monkeypatch.setattr(billing_service, "invalidate_occupancy_cache", lambda: invalidated.append(True))

        billing_service.delete_charge(db, charge_id=charge.id)

        bill = billing_service.get_bill(db, allocation_id=discharged.id)
        summary = discharge_service.get_discharge_summary(db, allocation_id=discharged.id)
        assert bill.total_amount == Decimal("4500")
        assert bill.balance_amount == Decimal("0")
        assert bill.payment_status == PaymentStatus.PAID
        assert summary.lab_amount == Decimal("0")
        assert invalidated == [True]

    def test_late_payment_refreshes_dashboard_cache(self, db, discharged, monkeypatch):
        add_lab_charge(db, discharged, amount="300")
        invalidated = []
        monkeypatch.setattr(billing_service, "invalidate_occupancy_cache", lambda: invalidated.append(True))

        billing_service.record_payment(db, allocation_id=discharged.id, splits=[pay(PaymentType.CASH, "300")])

        assert invalidated == [True]

    def test_statement_is_frozen_at_discharge(self, db, discharged):
        statement = billing_service.get_billing_statement(db, allocation_id=discharged.id)
        assert statement.is_discharged is True
        assert statement.bed_days == 3
        assert statement.net_amount == Decimal("4500")

    def test_active_allocation_is_not_synced(self, db, allocation):
        with pytest.raises(ConflictError):
            discharge_service.sync_billing(db, allocation_id=allocation.id)

    def test_dashboard_pending_collections(self, db, discharged):
        add_lab_charge(db, discharged, amount="300")
        dashboard = compute_ip_dashboard(db)
        assert dashboard.pending_collections == Decimal("300")
        assert dashboard.pending_bills == 1
        assert dashboard.active_admissions == 0


class TestDeleteCharge:
    def test_delete_on_active_stay(self, db, allocation):
        kept = add_lab_charge(db, allocation, amount="400")
        removed = add_lab_charge(db, allocation, amount="250")

        billing_service.delete_charge(db, charge_id=removed.id)

        assert [c.id for c in billing_service.list_charges(db, allocation_id=allocation.id)] == [kept.id]
        statement = billing_service.get_billing_statement(db, allocation_id=allocation.id)
        assert statement.category_totals[ChargeCategory.LAB.value] == Decimal("400")

    def test_unknown_charge(self, db, allocation):
        with pytest.raises(ChargeNotFoundError):
            billing_service.delete_charge(db, charge_id=uuid.uuid4())

    def test_transferred_leg_is_locked(self, db, allocation, make_bed):
        bed_allocation_service.transfer_bed(
            db, allocation_id=allocation.id, new_bed_id=make_bed(bed_number="G-201").id
        )
        stray = IPCharge(
            bed_allocation_id=allocation.id,
            category=ChargeCategory.LAB,
            description="Stray entry",
            quantity=Decimal("1"),
            unit_rate=Decimal("50"),
            amount=Decimal("50"),
        )
        db.add(stray)
        db.commit()

        with pytest.raises(ConflictError):
            billing_service.delete_charge(db, charge_id=stray.id)
        assert len(billing_service.list_charges(db, allocation_id=allocation.id)) == 1

    def test_failed_resync_keeps_charge_and_bill(self, db, allocation):
        charge = add_lab_charge(db, allocation, amount="5000")
        # gross 9500: beds 3000, consultation 1500, lab 5000
        discharge_service.process_discharge(
            db,
            allocation_id=allocation.id,
            request=DischargeProcessRequest(
                discharge_date=discharge_time(allocation),
                discount_amount=Decimal("9400"),
            ),
        )

        with pytest.raises(ValueError):
            billing_service.delete_charge(db, charge_id=charge.id)

        assert [c.id for c in billing_service.list_charges(db, allocation_id=allocation.id)] == [charge.id]
        bill = billing_service.get_bill(db, allocation_id=allocation.id)
        summary = discharge_service.get_discharge_summary(db, allocation_id=allocation.id)
        assert bill.total_amount == Decimal("100")
        assert summary.lab_amount == Decimal("5000")
        assert summary.net_amount == Decimal("100")


def test_other_amount_ignores_rounding_of_itemized_categories(db, allocation):
    for category in (ChargeCategory.LAB, ChargeCategory.PHARMACY):
        billing_service.add_charge(
            db,
            allocation_id=allocation.id,
            payload=ChargeCreate(category=category, description="Fractional", unit_rate=Decimal("10.40")),
        )

    _, summary, _, statement = discharge_service.process_discharge(
        db,
        allocation_id=allocation.id,
        request=DischargeProcessRequest(discharge_date=discharge_time(allocation)),
    )

    assert statement.gross_amount == Decimal("4521")
    assert summary.lab_amount == Decimal("10")
    assert summary.pharmacy_amount == Decimal("10")
    # consultation only
    assert summary.other_amount == Decimal("1500")
