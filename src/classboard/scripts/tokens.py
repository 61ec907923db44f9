# src/classboard/scripts/tokens.py
"""
Print an access token for an existing account.

Token issuance is handled by the school's sign-in service; this helper is for
operators who need a token for smoke tests or for the seeded admin.
"""

import argparse
import sys

from sqlalchemy import select
from sqlalchemy.orm import Session

from classboard.core.security import create_access_token
from classboard.db.session import SessionLocal
from classboard.models import User


def issue_token(db: Session, email: str) -> str | None:
    """Return a fresh access token for the active user with ``email``.

    Args:
        db: Database session
        email: Account email address
    """
    user = db.scalars(select(User).where(User.email == email)).first()
    if user is None or not user.is_active:
        return None
    return create_access_token(user.id)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email", help="email address of the account")
    args = parser.parse_args(argv)

    db = SessionLocal()
    try:
        token = issue_token(db, args.email)
    finally:
        db.close()

    if token is None:
        print(f"No active user with email {args.email}", file=sys.stderr)
        return 1
    print(token)
    return 0


if __name__ == "__main__":
    sys.exit(main())
