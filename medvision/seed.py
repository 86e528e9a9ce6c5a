"""Create the first admin account.

Admin sign-up requires an authenticated admin, so a fresh deployment is
bootstrapped from the command line::

    medvision-seed-admin --name "Ana Souza" --email ana@medvision.com.br

The password is read from ``MEDVISION_ADMIN_PASSWORD`` or prompted for.
"""
from typing import List, Optional
import argparse
import getpass
import logging
import os
import sys

from pydantic import ValidationError

from .core.database import SessionLocal, init_db
from .core.security import get_password_hash
from .repositories import AdminRepository
from .schemas.people import AdminCreate

logger = logging.getLogger(__name__)


def seed_admin(name: str, email: str, password: str) -> bool:
    """Create the admin unless one with this email exists. Returns True if created."""
    data = AdminCreate(name=name, email=email, password=password)

    init_db()
    db = SessionLocal()
    try:
        admins = AdminRepository(db)
        if admins.get_by_email(data.email):
            logger.info(f"Admin {data.email} already exists")
            return False
        admin = admins.create(
            name=data.name,
            email=data.email.lower(),
            password_hash=get_password_hash(data.password),
        )
        db.commit()
        logger.info(f"Admin {admin.id} created for {admin.email}")
        return True
    finally:
        db.close()


def main(argv: Optional[List[str]] = None) -> int:
    logging.basicConfig(level=logging.INFO)
    parser = argparse.ArgumentParser(description="Create the first MedVision admin")
    parser.add_argument("--name", required=True)
    parser.add_argument("--email", required=True)
    args = parser.parse_args(argv)

    password = os.getenv("MEDVISION_ADMIN_PASSWORD") or getpass.getpass("Password: ")
    try:
        seed_admin(args.name, args.email, password)
    except ValidationError as e:
        for error in e.errors():
            print(f"{'.'.join(str(p) for p in error['loc'])}: {error['msg']}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
