# src/classboard/init_db.py
"""Create the schema and seed the administrator account."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from classboard.core.settings import settings
from classboard.db.session import SessionLocal, create_tables
from classboard.models import RegistrationStatus, User, UserRole


def seed_admin(db: Session) -> User | None:
    """Create the configured admin user if it does not exist yet.

    Returns:
        The admin user, or None when ``ADMIN_EMAIL`` is not configured.
    """
    if not settings.admin_email:
        return None
    admin = db.scalars(select(User).where(User.email == settings.admin_email)).first()
    if admin is None:
        admin = User(
            name=settings.admin_name,
            email=settings.admin_email,
            role=UserRole.ADMIN,
            registration_status=RegistrationStatus.APPROVED,
        )
        db.add(admin)
        db.commit()
        db.refresh(admin)
    return admin


def init_db() -> None:
    """Initialize the database by creating all tables and the admin account."""
    create_tables()
    db = SessionLocal()
    try:
        admin = seed_admin(db)
    finally:
        db.close()
    if admin is not None:
        print(f"Admin account ready: {admin.email} (id={admin.id})")


if __name__ == "__main__":
    init_db()
    print("Database initialized.")
