"""One-time script to create the platform superadmin.

Usage:
    python -m backend.create_admin
"""

from __future__ import annotations

import getpass

from sqlalchemy import func

from backend.app.core.database import SessionLocal
from backend.app.core.security import get_password_hash, validate_password_strength

# Import all models so SQLAlchemy resolves relationships
import backend.app.models  # noqa: F401

from backend.app.models.user import RoleEnum, User, UserStatus


def main() -> None:
    email = input("Email [admin@kasir.local]: ").strip().lower() or "admin@kasir.local"
    name = input("Name [Superadmin]: ").strip() or "Superadmin"
    password = getpass.getpass("Password: ")
    if not password:
        print("Error: password cannot be empty.")
        return
    pw_error = validate_password_strength(password)
    if pw_error:
        print(f"Error: {pw_error}")
        return

    db = SessionLocal()
    try:
        existing = db.query(User).filter(func.lower(User.email) == email).first()
        if existing:
            if existing.role != RoleEnum.SUPERADMIN:
                print(f"Error: {email} belongs to a merchant account.")
                return
            existing.hashed_password = get_password_hash(password)
            existing.status = UserStatus.ACTIVE
            db.commit()
            print("Superadmin already exists, password reset!")
            print(f"  ID:    {existing.id}")
            print(f"  Email: {email}")
            return

        user = User(
            email=email,
            name=name,
            hashed_password=get_password_hash(password),
            role=RoleEnum.SUPERADMIN,
            status=UserStatus.ACTIVE,
            merchant_id=None,
        )
        db.add(user)
        db.commit()
        db.refresh(user)

        print("Superadmin created successfully!")
        print(f"  ID:    {user.id}")
        print(f"  Email: {email}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
