# ipd/models/__init__.py
# Importing every model registers its table on Base.metadata
# (used by alembic autogenerate and scripts/setup_db.py).
from ipd.models.base import Base
from ipd.models.user import User, RoleName
from ipd.models.patient import Patient
from ipd.models.bed import Bed, BedStatus
from ipd.models.bed_allocation import BedAllocation, AllocationStatus, AdmissionType
from ipd.models.clinical_note import IPCaseSheet, IPProgressNote, IPDoctorOrder, IPNurseRecord
from ipd.models.vital import IPVital
from ipd.models.medication import Medication
from ipd.models.prescription import Prescription, PrescriptionItem, PrescriptionStatus
from ipd.models.medication_administration import MedicationAdministration, AdministrationStatus
from ipd.models.pharmacy_recommendation import (
    PharmacyRecommendation,
    RecommendationPriority,
    RecommendationStatus,
)
from ipd.models.billing import (
    Bill,
    BillItem,
    ChargeCategory,
    IPCharge,
    IPPaymentReceipt,
    PaymentStatus,
    PaymentType,
)
from ipd.models.discharge_summary import DischargeCondition, DischargeSummary, SummaryStatus
