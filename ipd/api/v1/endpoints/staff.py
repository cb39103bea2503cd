# ipd/api/v1/endpoints/staff.py
import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ipd.api.v1.endpoints.auth import get_current_user
from ipd.api.v1.errors import service_errors
from ipd.core.database import get_db
from ipd.dependencies.authz import require_roles
from ipd.models.user import RoleName, User
from ipd.schemas.user import UserCreate, UserResponse
from ipd.services import user_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_staff_user(
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles([RoleName.ADMIN])),
) -> UserResponse:
    """
    Create a staff user (ADMIN only). Email must be unique.
    """
    with service_errors():
        user = user_service.create_user(db, payload)
    logger.info("User %s created %s user %s", current_user.email, user.role.value, user.email)
    return UserResponse.model_validate(user)


@router.get("/doctors", response_model=list[UserResponse])
def list_doctors(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[UserResponse]:
    return [UserResponse.model_validate(u) for u in user_service.list_doctors(db)]
