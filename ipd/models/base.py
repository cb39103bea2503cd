# ipd/models/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    Base class for all ORM models.
    """

    pass


def enum_values(enum_cls) -> list[str]:
    """Persist str-enum values (e.g. 'active') rather than member names."""
    return [member.value for member in enum_cls]
