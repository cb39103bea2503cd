# ipd/services/user_service.py
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ipd.core.security import get_password_hash
from ipd.models.user import RoleName, User
from ipd.schemas.user import UserCreate
from ipd.services.errors import ConflictError, UserNotFoundError


def get_user_by_email(db: Session, *, email: str) -> User | None:
    return db.query(User).filter(func.lower(User.email) == email.lower()).first()


def get_user(db: Session, *, user_id: UUID) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise UserNotFoundError("User not found")
    return user


def create_user(db: Session, user_in: UserCreate) -> User:
    """
    Create a staff user. Email is unique (case-insensitive).
    """
    if get_user_by_email(db, email=user_in.email):
        raise ConflictError("A user with this email already exists")

    consultation_fee = None
    if user_in.consultation_fee is not None:
        consultation_fee = Decimal(str(user_in.consultation_fee))

    user = User(
        email=user_in.email.lower(),
        hashed_password=get_password_hash(user_in.password),
        first_name=user_in.first_name,
        last_name=user_in.last_name,
        phone=user_in.phone,
        role=user_in.role,
        specialization=user_in.specialization,
        license_number=user_in.license_number,
        consultation_fee=consultation_fee,
        is_active=True,
    )
    try:
        db.add(user)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(user)
    return user


def list_doctors(db: Session) -> list[User]:
    return (
        db.query(User)
        .filter(User.role == RoleName.DOCTOR, User.is_active.is_(True))
        .order_by(User.first_name, User.last_name)
        .all()
    )
