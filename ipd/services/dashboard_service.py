# ipd/services/dashboard_service.py
import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from ipd.core.redis import DASHBOARD_KEY, cache_get_json, cache_set_json
from ipd.models.bed_allocation import AdmissionType, AllocationStatus, BedAllocation
from ipd.models.billing import Bill
from ipd.models.patient import Patient
from ipd.schemas.dashboard import IPDashboard
from ipd.services.bed_service import compute_bed_stats
from ipd.utils.datetime_utils import day_bounds, utc_today
from ipd.utils.money import ZERO, to_decimal

logger = logging.getLogger(__name__)


def compute_ip_dashboard(db: Session) -> IPDashboard:
    today = utc_today()
    start, end = day_bounds(today)

    active = (
        db.query(func.count(BedAllocation.id))
        .filter(BedAllocation.status == AllocationStatus.ACTIVE)
        .scalar()
    ) or 0
    # transfers open a new leg of the same stay, they are not admissions
    admissions_today = (
        db.query(func.count(BedAllocation.id))
        .filter(
            BedAllocation.admission_date >= start,
            BedAllocation.admission_date < end,
            BedAllocation.admission_type != AdmissionType.TRANSFER,
        )
        .scalar()
    ) or 0
    discharges_today = (
        db.query(func.count(BedAllocation.id))
        .filter(
            BedAllocation.status == AllocationStatus.DISCHARGED,
            BedAllocation.discharge_date >= start,
            BedAllocation.discharge_date < end,
        )
        .scalar()
    ) or 0
    critical = (
        db.query(func.count(Patient.id))
        .filter(Patient.is_admitted.is_(True), Patient.is_critical.is_(True))
        .scalar()
    ) or 0

    pending_total, pending_bills = (
        db.query(func.coalesce(func.sum(Bill.balance_amount), 0), func.count(Bill.id))
        .filter(Bill.balance_amount > 0)
        .one()
    )

    return IPDashboard(
        day=today,
        active_admissions=active,
        admissions_today=admissions_today,
        discharges_today=discharges_today,
        critical_patients=critical,
        bed_stats=compute_bed_stats(db),
        pending_collections=to_decimal(pending_total) if pending_total else ZERO,
        pending_bills=pending_bills or 0,
    )


def get_ip_dashboard(db: Session) -> IPDashboard:
    """
    IP overview for the dashboard. Cached for a short TTL and dropped
    whenever bed or allocation state changes.
    """
    cached = cache_get_json(DASHBOARD_KEY)
    if cached:
        try:
            return IPDashboard(**cached)
        except (TypeError, ValueError):
            logger.warning("Cached IP dashboard invalid. Recomputing.", exc_info=True)

    dashboard = compute_ip_dashboard(db)
    cache_set_json(DASHBOARD_KEY, dashboard.model_dump(mode="json"))
    return dashboard
