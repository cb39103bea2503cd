"""initial_ipd_schema

Revision ID: 0001_initial_ipd
Revises:
Create Date: 2026-10-17 09:00:00.000000
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "0001_initial_ipd"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

UUID = postgresql.UUID(as_uuid=True)
NOW = sa.text("CURRENT_TIMESTAMP")


def _money(name: str, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(12, 2),
        nullable=nullable,
        server_default=sa.text("0") if default else None,
    )


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=NOW))
    return cols


def _user_fk(name: str) -> sa.Column:
    return sa.Column(name, UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)


def _allocation_fk(nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(
        "bed_allocation_id",
        UUID,
        sa.ForeignKey("bed_allocations.id", ondelete=ondelete),
        nullable=nullable,
        index=True,
    )


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("email", sa.String(255), nullable=False, unique=True, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column(
            "role",
            sa.Enum("ADMIN", "DOCTOR", "NURSE", "PHARMACIST", "BILLING", name="role_name_enum"),
            nullable=False,
            index=True,
        ),
        sa.Column("specialization", sa.String(100), nullable=True),
        sa.Column("license_number", sa.String(100), nullable=True),
        _money("consultation_fee", nullable=True, default=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    op.create_table(
        "patients",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("uhid", sa.String(30), nullable=False, unique=True, index=True),
        sa.Column("name", sa.String(200), nullable=False, index=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("medical_history", sa.Text(), nullable=True),
        sa.Column("diagnosis", sa.String(500), nullable=True),
        sa.Column("allergies", sa.String(500), nullable=True),
        sa.Column("is_critical", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_admitted", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )

    op.create_table(
        "beds",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("bed_number", sa.String(50), nullable=False, unique=True, index=True),
        sa.Column("room_number", sa.String(50), nullable=True),
        sa.Column("bed_type", sa.String(50), nullable=False, server_default=sa.text("'general'")),
        sa.Column("department_ward", sa.String(100), nullable=True, index=True),
        sa.Column("floor_number", sa.Integer(), nullable=True),
        _money("daily_rate", nullable=True, default=False),
        sa.Column("features", sa.JSON(), nullable=False, server_default=sa.text("'[]'")),
        sa.Column(
            "status",
            sa.Enum("available", "occupied", "maintenance", "reserved", name="bed_status_enum"),
            nullable=False,
            server_default=sa.text("'available'"),
            index=True,
        ),
        *_timestamps(),
    )

    op.create_table(
        "medications",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("name", sa.String(255), nullable=False, index=True),
        sa.Column("generic_name", sa.String(255), nullable=True),
        sa.Column("dosage_form", sa.String(50), nullable=True),
        sa.Column("strength", sa.String(50), nullable=True),
        _money("selling_price"),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
    )

    op.create_table(
        "bed_allocations",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("allocation_code", sa.String(30), nullable=False, unique=True, index=True),
        sa.Column("ip_number", sa.String(30), nullable=False, index=True),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("bed_id", UUID, sa.ForeignKey("beds.id", ondelete="RESTRICT"), nullable=False, index=True),
        sa.Column("doctor_id", UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        _user_fk("allocated_by"),
        sa.Column("admission_date", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("discharge_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "admission_type",
            sa.Enum("emergency", "elective", "scheduled", "referred", "transfer", name="admission_type_enum"),
            nullable=False,
        ),
        sa.Column("admission_category", sa.String(50), nullable=True),
        sa.Column("reason_for_admission", sa.Text(), nullable=True),
        sa.Column(
            "status",
            sa.Enum("active", "discharged", "transferred", name="allocation_status_enum"),
            nullable=False,
            server_default=sa.text("'active'"),
            index=True,
        ),
        _money("advance_amount"),
        _money("total_charges", nullable=True, default=False),
        *_timestamps(),
    )

    op.create_table(
        "ip_case_sheets",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("case_sheet_date", sa.Date(), nullable=False),
        sa.Column("present_complaints", sa.Text(), nullable=True),
        sa.Column("history_present_illness", sa.Text(), nullable=True),
        sa.Column("past_history", sa.Text(), nullable=True),
        sa.Column("family_history", sa.Text(), nullable=True),
        sa.Column("personal_history", sa.Text(), nullable=True),
        sa.Column("examination_notes", sa.Text(), nullable=True),
        sa.Column("provisional_diagnosis", sa.Text(), nullable=True),
        sa.Column("investigation_summary", sa.Text(), nullable=True),
        sa.Column("treatment_plan", sa.Text(), nullable=True),
        _user_fk("created_by"),
        _user_fk("updated_by"),
        *_timestamps(),
        sa.UniqueConstraint("bed_allocation_id", "case_sheet_date", name="uq_case_sheet_allocation_date"),
    )

    op.create_table(
        "ip_progress_notes",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column("note_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        _user_fk("created_by"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "ip_doctor_orders",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("assessment", sa.Text(), nullable=True),
        sa.Column("treatment_instructions", sa.Text(), nullable=True),
        sa.Column("investigation_instructions", sa.Text(), nullable=True),
        _user_fk("created_by"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "ip_nurse_records",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column("entry_time", sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column("remark", sa.Text(), nullable=False),
        _user_fk("created_by"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "ip_vitals",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column("created_by", UUID, sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("bp_systolic", sa.Float(), nullable=True),
        sa.Column("bp_diastolic", sa.Float(), nullable=True),
        sa.Column("pulse", sa.Float(), nullable=True),
        sa.Column("respiratory_rate", sa.Float(), nullable=True),
        sa.Column("spo2", sa.Float(), nullable=True),
        sa.Column("sugar_level", sa.Float(), nullable=True),
        sa.Column("sugar_type", sa.String(20), nullable=True),
        sa.Column("consciousness_level", sa.String(50), nullable=True),
        sa.Column("urine_output", sa.Float(), nullable=True),
        sa.Column("intake_fluids", sa.Float(), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("recorded_at", sa.DateTime(timezone=True), nullable=False, index=True),
        *_timestamps(updated=False),
    )

    op.create_table(
        "prescriptions",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("prescription_code", sa.String(30), nullable=False, unique=True, index=True),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        _allocation_fk(nullable=True, ondelete="SET NULL"),
        _user_fk("doctor_id"),
        sa.Column(
            "status",
            sa.Enum("active", "completed", "cancelled", name="prescription_status_enum"),
            nullable=False,
            server_default=sa.text("'active'"),
        ),
        *_timestamps(updated=False),
    )

    op.create_table(
        "prescription_items",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "prescription_id",
            UUID,
            sa.ForeignKey("prescriptions.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        sa.Column("medication_id", UUID, sa.ForeignKey("medications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("medicine_name", sa.String(255), nullable=False),
        sa.Column("dosage", sa.String(100), nullable=True),
        sa.Column("frequency", sa.String(100), nullable=True),
        sa.Column("duration", sa.String(100), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=True),
        sa.Column("instructions", sa.String(500), nullable=True),
    )

    op.create_table(
        "medication_administrations",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "prescription_item_id",
            UUID,
            sa.ForeignKey("prescription_items.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
        _allocation_fk(),
        sa.Column("administration_date", sa.Date(), nullable=False, index=True),
        sa.Column("scheduled_time", sa.String(5), nullable=False),
        sa.Column(
            "status",
            sa.Enum(
                "pending", "administered", "skipped", "refused", "delayed", name="administration_status_enum"
            ),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        _user_fk("administered_by"),
        sa.Column("administered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "prescription_item_id",
            "administration_date",
            "scheduled_time",
            name="uq_med_admin_item_date_slot",
        ),
    )

    op.create_table(
        "pharmacy_recommendations",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        _allocation_fk(nullable=True, ondelete="SET NULL"),
        sa.Column("medication_id", UUID, sa.ForeignKey("medications.id", ondelete="SET NULL"), nullable=True),
        sa.Column("medication_name", sa.String(255), nullable=False),
        sa.Column("dosage", sa.String(100), nullable=True),
        sa.Column("frequency", sa.String(100), nullable=True),
        sa.Column("duration", sa.String(100), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("instructions", sa.String(500), nullable=True),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column(
            "priority",
            sa.Enum("high", "medium", "low", name="recommendation_priority_enum"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum("pending", "approved", "dispensed", "rejected", name="recommendation_status_enum"),
            nullable=False,
            server_default=sa.text("'pending'"),
            index=True,
        ),
        _user_fk("recommended_by"),
        _user_fk("approved_by"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "ip_charges",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column(
            "category",
            sa.Enum(
                "pharmacy", "lab", "radiology", "procedure", "consultation", "other", name="charge_category_enum"
            ),
            nullable=False,
        ),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("service_date", sa.DateTime(timezone=True), nullable=False),
        _user_fk("created_by"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "ip_payment_receipts",
        sa.Column("id", UUID, primary_key=True),
        _allocation_fk(),
        sa.Column(
            "payment_type",
            sa.Enum("cash", "card", "upi", "net_banking", "cheque", "insurance", name="payment_type_enum"),
            nullable=False,
        ),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("reference_number", sa.String(100), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=False),
        _user_fk("received_by"),
        *_timestamps(updated=False),
    )

    op.create_table(
        "bills",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("bill_number", sa.String(30), nullable=False, unique=True, index=True),
        sa.Column("bill_type", sa.String(10), nullable=False),
        sa.Column(
            "bed_allocation_id",
            UUID,
            sa.ForeignKey("bed_allocations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        _money("subtotal"),
        sa.Column("tax_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False, server_default=sa.text("0")),
        _money("tax_amount"),
        _money("discount_amount"),
        _money("total_amount"),
        _money("paid_amount"),
        _money("balance_amount"),
        sa.Column(
            "payment_status",
            sa.Enum("pending", "partial", "paid", name="payment_status_enum"),
            nullable=False,
        ),
        sa.Column("payment_method", sa.String(50), nullable=True),
        sa.Column("bill_date", sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )

    op.create_table(
        "bill_items",
        sa.Column("id", UUID, primary_key=True),
        sa.Column("bill_id", UUID, sa.ForeignKey("bills.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("quantity", sa.Numeric(12, 2), nullable=False),
        sa.Column("unit_rate", sa.Numeric(12, 2), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
    )

    op.create_table(
        "discharge_summaries",
        sa.Column("id", UUID, primary_key=True),
        sa.Column(
            "bed_allocation_id",
            UUID,
            sa.ForeignKey("bed_allocations.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("patient_id", UUID, sa.ForeignKey("patients.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("presenting_complaint", sa.Text(), nullable=True),
        sa.Column("physical_findings", sa.Text(), nullable=True),
        sa.Column("investigations", sa.Text(), nullable=True),
        sa.Column("anesthesiologist", sa.String(200), nullable=True),
        sa.Column("past_history", sa.Text(), nullable=True),
        sa.Column("final_diagnosis", sa.Text(), nullable=True),
        sa.Column("diagnosis_category", sa.String(100), nullable=True),
        sa.Column("treatment_given", sa.Text(), nullable=True),
        sa.Column(
            "condition_at_discharge",
            sa.Enum(
                "cured",
                "improved",
                "referred",
                "discharged_at_request",
                "lama",
                "absconded",
                name="discharge_condition_enum",
            ),
            nullable=True,
        ),
        sa.Column("follow_up_advice", sa.Text(), nullable=True),
        sa.Column("review_on", sa.Date(), nullable=True),
        sa.Column("prescription", sa.Text(), nullable=True),
        sa.Column("surgery_date", sa.Date(), nullable=True),
        sa.Column("uhid", sa.String(30), nullable=True),
        sa.Column("patient_name", sa.String(200), nullable=True),
        sa.Column("gender", sa.String(10), nullable=True),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("ip_number", sa.String(30), nullable=True),
        sa.Column("admission_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("discharge_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("consultant_name", sa.String(200), nullable=True),
        sa.Column("bed_days", sa.Integer(), nullable=False, server_default=sa.text("0")),
        _money("bed_daily_rate"),
        _money("bed_total"),
        _money("pharmacy_amount"),
        _money("lab_amount"),
        _money("procedure_amount"),
        _money("other_amount"),
        _money("gross_amount"),
        _money("discount_amount"),
        _money("tax_amount"),
        _money("net_amount"),
        _money("paid_amount"),
        _money("pending_amount"),
        sa.Column("payment_splits", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("draft", "final", name="summary_status_enum"),
            nullable=False,
            server_default=sa.text("'draft'"),
        ),
        sa.Column("finalized_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("created_by"),
        _user_fk("updated_by"),
        *_timestamps(),
    )


def downgrade() -> None:
    for table in (
        "discharge_summaries",
        "bill_items",
        "bills",
        "ip_payment_receipts",
        "ip_charges",
        "pharmacy_recommendations",
        "medication_administrations",
        "prescription_items",
        "prescriptions",
        "ip_vitals",
        "ip_nurse_records",
        "ip_doctor_orders",
        "ip_progress_notes",
        "ip_case_sheets",
        "bed_allocations",
        "medications",
        "beds",
        "patients",
        "users",
    ):
        op.drop_table(table)

    bind = op.get_bind()
    for enum_name in (
        "summary_status_enum",
        "discharge_condition_enum",
        "payment_status_enum",
        "payment_type_enum",
        "charge_category_enum",
        "recommendation_status_enum",
        "recommendation_priority_enum",
        "administration_status_enum",
        "prescription_status_enum",
        "allocation_status_enum",
        "admission_type_enum",
        "bed_status_enum",
        "role_name_enum",
    ):
        sa.Enum(name=enum_name).drop(bind, checkfirst=True)
