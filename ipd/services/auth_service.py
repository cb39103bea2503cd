from sqlalchemy.orm import Session

from ipd.core.security import verify_password, create_access_token
from ipd.models.user import User
from ipd.schemas.auth import LoginRequest


class AuthenticationError(Exception):
    pass


def authenticate_user(db: Session, login_data: LoginRequest) -> User:
    """
    Authenticate a staff user by email and password.
    Inactive users are rejected with the same message as a bad password.
    """
    from ipd.services.user_service import get_user_by_email

    user = get_user_by_email(db, email=login_data.email)
    if not user or not user.is_active:
        raise AuthenticationError("Invalid email or password")

    if not verify_password(login_data.password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")

    return user


def issue_access_token_for_user(user: User) -> str:
    return create_access_token(
        subject=str(user.id),
        role=user.role.value,
    )
