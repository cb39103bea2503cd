#!/usr/bin/env python3
# scripts/setup_db.py
"""
Database setup. Safe to run many times (idempotent).

- --create-tables creates any missing table from the ORM models
  (use `alembic upgrade head` for managed deployments).
- --ensure-admin makes sure a login-ready ADMIN user exists.
  If the user exists its password is rotated to the given one.

Examples:
  python -m scripts.setup_db --create-tables
  python -m scripts.setup_db --ensure-admin --email admin@hospital.local --password "Admin@12345"

  # Credentials read from env (ADMIN_EMAIL / ADMIN_PASSWORD)
  python -m scripts.setup_db --create-tables --ensure-admin
"""

from __future__ import annotations

import argparse
import logging
import sys

from sqlalchemy.orm import Session

import ipd.models  # noqa: F401  registers every table on Base.metadata
from ipd.core.config import get_settings
from ipd.core.database import SessionLocal, engine
from ipd.core.security import get_password_hash
from ipd.models.base import Base
from ipd.models.user import RoleName, User

logger = logging.getLogger(__name__)


def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
    print("Tables ensured")


def ensure_admin(
    db: Session,
    *,
    email: str,
    password: str,
    first_name: str = "System",
    last_name: str = "Admin",
) -> User:
    """
    Ensure an active ADMIN user exists with the given credentials.
    """
    email = email.lower()
    existing = db.query(User).filter(User.email == email).first()
    hashed = get_password_hash(password)

    if existing:
        existing.role = RoleName.ADMIN
        existing.is_active = True
        existing.hashed_password = hashed
        db.commit()
        print(f"ADMIN ensured (updated if needed): {email}")
        return existing

    user = User(
        email=email,
        hashed_password=hashed,
        first_name=first_name,
        last_name=last_name,
        role=RoleName.ADMIN,
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    print(f"ADMIN created: {email}")
    return user


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="IPD database setup")
    p.add_argument("--create-tables", action="store_true", help="Create missing tables from the models")
    p.add_argument("--ensure-admin", action="store_true", help="Ensure an ADMIN user exists")
    p.add_argument("--email", type=str, help="ADMIN email (or use env ADMIN_EMAIL)")
    p.add_argument("--password", type=str, help="ADMIN password (or use env ADMIN_PASSWORD)")
    return p.parse_args()


def main() -> None:
    args = parse_args()

    if not args.create_tables and not args.ensure_admin:
        print("Nothing to do. Use --create-tables and/or --ensure-admin.")
        sys.exit(1)

    settings = get_settings()

    email = args.email or settings.admin_email
    password = args.password or settings.admin_password
    if args.ensure_admin and (not email or not password):
        raise SystemExit(
            "ADMIN credentials missing.\n"
            "Provide --email/--password OR set env ADMIN_EMAIL and ADMIN_PASSWORD."
        )

    if args.create_tables:
        create_tables()

    if not args.ensure_admin:
        return

    db: Session = SessionLocal()
    try:
        ensure_admin(db, email=str(email), password=password)
    except Exception:
        db.rollback()
        logger.exception("Database setup failed")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
