# ipd/schemas/dashboard.py
from datetime import date

from pydantic import BaseModel

from ipd.schemas.bed import BedStats
from ipd.schemas.billing import Money


class IPDashboard(BaseModel):
    day: date
    active_admissions: int = 0
    admissions_today: int = 0
    discharges_today: int = 0
    critical_patients: int = 0
    bed_stats: BedStats
    pending_collections: Money
    pending_bills: int = 0
