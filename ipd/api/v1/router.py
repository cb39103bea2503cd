# ipd/api/v1/router.py
from fastapi import APIRouter

from ipd.api.v1.endpoints import (
    allocations,
    auth,
    beds,
    billing,
    clinical,
    dashboard,
    discharge,
    medications,
    patients,
    pharmacy,
    prescriptions,
    staff,
    vitals,
)

api_router = APIRouter()

api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(staff.router, prefix="/staff", tags=["staff"])
api_router.include_router(patients.router, prefix="/patients", tags=["patients"])
api_router.include_router(beds.router, prefix="/beds", tags=["beds"])
api_router.include_router(allocations.router, prefix="/allocations", tags=["allocations"])
api_router.include_router(clinical.router, prefix="/clinical", tags=["clinical"])
api_router.include_router(vitals.router, prefix="/vitals", tags=["vitals"])
api_router.include_router(medications.router, prefix="/medications", tags=["medications"])
api_router.include_router(prescriptions.router, prefix="/prescriptions", tags=["prescriptions"])
api_router.include_router(pharmacy.router, prefix="/pharmacy", tags=["pharmacy"])
api_router.include_router(billing.router, prefix="/billing", tags=["billing"])
api_router.include_router(discharge.router, prefix="/discharge", tags=["discharge"])
api_router.include_router(dashboard.router, prefix="/dashboard", tags=["dashboard"])
