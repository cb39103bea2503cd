# ipd/api/v1/endpoints/dashboard.py
import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.core.database import get_db
from ipd.models.user import User
from ipd.schemas.dashboard import IPDashboard
from ipd.services.dashboard_service import get_ip_dashboard

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/ip", response_model=IPDashboard, tags=["dashboard"])
def get_ip_dashboard_metrics(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> IPDashboard:
    """
    Inpatient overview: admissions, discharges, critical patients, beds and
    pending collections. Cached for a short TTL.
    """
    return get_ip_dashboard(db)
