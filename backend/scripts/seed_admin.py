#!/usr/bin/env python
"""Seed script to create the initial admin user.

Creates the first ADMIN account and prints a bearer token for it, so the
manual batch export endpoint can be called before the identity service is
wired up. Run once during initial setup.

Usage:
    python backend/scripts/seed_admin.py

Environment Variables:
    DATABASE_URL: PostgreSQL connection string
    JWT_SECRET: Signing secret for the printed token (required)
    ADMIN_EMAIL: Email for admin user (default: admin@example.com)
    ADMIN_NAME: Display name for admin user (default: System Administrator)
"""

import os
import sys
from pathlib import Path
from typing import Tuple

# Add backend/ to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

from sqlalchemy.orm import Session

from kakunin.auth.jwt import create_access_token
from kakunin.models import User


def create_admin(session: Session, email: str, name: str) -> Tuple[User, str]:
    """Insert an ADMIN user and issue a token for it.

    Raises:
        ValueError: If a user with this email already exists
    """
    existing_user = session.query(User).filter(User.email == email.lower()).first()
    if existing_user:
        raise ValueError(f"User with email {email} already exists")

    admin_user = User(email=email, name=name, role="ADMIN", status="ACTIVE")
    session.add(admin_user)
    session.commit()
    session.refresh(admin_user)

    token = create_access_token(user_id=admin_user.id, role=admin_user.role, email=admin_user.email)
    return admin_user, token


def main():
    """Create initial admin user."""
    from kakunin.database import get_db_session

    admin_email = os.getenv("ADMIN_EMAIL", "admin@example.com")
    admin_name = os.getenv("ADMIN_NAME", "System Administrator")

    try:
        with get_db_session() as session:
            admin_user, token = create_admin(session, admin_email, admin_name)

            print("SUCCESS: Admin user created")
            print(f"  ID:    {admin_user.id}")
            print(f"  Email: {admin_user.email}")
            print(f"  Name:  {admin_user.name}")
            print(f"  Role:  {admin_user.role}")
            print(f"  Token: {token}")
    except Exception as e:
        print(f"ERROR: Failed to create admin user: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
