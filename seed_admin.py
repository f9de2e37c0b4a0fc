"""
Admin seeding script for WasteAlert.
Creates the first admin account so self-registration can be switched off.

Usage:
    python seed_admin.py

Environment variables:
    ADMIN_USERNAME: Username for admin account (default: admin)
    ADMIN_EMAIL: Email for admin account (default: admin@wastealert.local)
    ADMIN_PASSWORD: Password for admin account (required)

Running it again is harmless: an existing account with the same username or
email is left as it is.
"""
import os
import sys
from pathlib import Path
from typing import Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

# Add the current directory to the system path
sys.path.insert(0, str(Path(__file__).parent))

from core.database import SessionLocal, engine, Base  # noqa: E402
from models.user import ROLE_ADMIN, User  # noqa: E402
import models.truck  # noqa: E402,F401
import models.report  # noqa: E402,F401
from schemas.user import AdminRegister  # noqa: E402
from services.auth_service import AuthService  # noqa: E402


def seed_admin(
    db: Session,
    username: Optional[str] = None,
    email: Optional[str] = None,
    password: Optional[str] = None,
) -> tuple[User, bool]:
    """Ensure an admin account exists. Returns (user, created)."""
    username = username or os.getenv("ADMIN_USERNAME", "admin")
    email = (email or os.getenv("ADMIN_EMAIL", "admin@wastealert.local")).lower()
    password = password or os.getenv("ADMIN_PASSWORD")
    if not password:
        raise ValueError("ADMIN_PASSWORD is not set")

    existing = db.query(User).filter(
        or_(User.username == username, User.email == email)
    ).first()
    if existing:
        return existing, False

    admin_in = AdminRegister(username=username, email=email, password=password)
    user = AuthService.register_user(admin_in, ROLE_ADMIN, db, approved=True)
    return user, True


def main() -> int:
    print("WasteAlert admin seeding")
    print("=" * 60)

    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        user, created = seed_admin(db)
    except ValueError as e:
        print(f"Error seeding admin: {e}")
        return 1
    finally:
        db.close()

    if created:
        print("Admin user created successfully!")
    else:
        print("Admin user already exists, nothing to do.")
    print(f"   Username: {user.username}")
    print(f"   Email: {user.email}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
