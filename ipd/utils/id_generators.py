# ipd/utils/id_generators.py
from datetime import datetime

from sqlalchemy.orm import Session

from ipd.models.billing import Bill
from ipd.models.bed_allocation import BedAllocation
from ipd.models.patient import Patient
from ipd.models.prescription import Prescription
from ipd.utils.datetime_utils import utc_now


def _next_sequence(db: Session, column, prefix: str) -> int:
    """
    Return max(sequence) + 1 over existing codes starting with `prefix`.
    Codes whose suffix is not numeric are ignored.
    """
    existing_codes = db.query(column).filter(column.like(f"{prefix}%")).all()

    max_seq = 0
    for (code,) in existing_codes:
        if code and code.startswith(prefix):
            try:
                seq_num = int(code[len(prefix) :])
                max_seq = max(max_seq, seq_num)
            except ValueError:
                continue

    return max_seq + 1


def generate_uhid(db: Session, now: datetime | None = None) -> str:
    """
    Generate a patient UHID in format: UHID{YY}{sequential}

    Example: UHID2500001, UHID2500002, ...
    """
    now = now or utc_now()
    prefix = f"UHID{now:%y}"
    return f"{prefix}{_next_sequence(db, Patient.uhid, prefix):05d}"


def generate_ip_number(db: Session, now: datetime | None = None) -> str:
    """
    Generate an IP number in format: IP{YY}{MM}{sequential}

    The sequence restarts every month. Example: IP25010001.
    """
    now = now or utc_now()
    prefix = f"IP{now:%y%m}"
    return f"{prefix}{_next_sequence(db, BedAllocation.ip_number, prefix):04d}"


def generate_allocation_code(db: Session, now: datetime | None = None) -> str:
    """
    Generate a bed allocation code in format: BA{YYYYMMDD}{sequential}

    Example: BA202501150001.
    """
    now = now or utc_now()
    prefix = f"BA{now:%Y%m%d}"
    return f"{prefix}{_next_sequence(db, BedAllocation.allocation_code, prefix):04d}"


def generate_prescription_code(db: Session, now: datetime | None = None) -> str:
    """
    Generate a prescription code in format: RX{YY}{sequential}

    Example: RX2500001.
    """
    now = now or utc_now()
    prefix = f"RX{now:%y}"
    return f"{prefix}{_next_sequence(db, Prescription.prescription_code, prefix):05d}"


def generate_bill_number(db: Session, bill_type: str = "IP", now: datetime | None = None) -> str:
    """
    Generate a bill number in format: {type}-{YYMM}-{sequential}

    Example: IP-2501-0001.
    """
    now = now or utc_now()
    prefix = f"{bill_type}-{now:%y%m}-"
    return f"{prefix}{_next_sequence(db, Bill.bill_number, prefix):04d}"
