"""Create (or promote) an admin user and print a bearer token (ops script)."""

from __future__ import annotations

import getpass
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def main() -> int:
    import argparse

    from core.database import SessionLocal
    from core.security import create_access_token, get_password_hash
    from models import User

    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--email", default=os.getenv("DAYBOOK_ADMIN_EMAIL"), help="admin email (default: DAYBOOK_ADMIN_EMAIL)")
    parser.add_argument("--name", default=None, help="display name")
    parser.add_argument("--no-password", action="store_true", help="do not prompt for a password")
    parser.add_argument("--token", action="store_true", help="print an access token for the admin")
    args = parser.parse_args()

    if not args.email:
        print("ERROR: missing DAYBOOK_ADMIN_EMAIL (or pass --email)")
        return 2

    db = SessionLocal()
    try:
        email = args.email.strip().lower()
        user = db.query(User).filter(User.email == email).first()
        if user is None:
            user = User(email=email, role="admin", display_name=args.name, email_verified=True)
            db.add(user)
            print(f">>> Creating admin {email}")
        elif user.role != "admin":
            print(f">>> Promoting {email} from {user.role} to admin")
            user.role = "admin"
        else:
            print(f">>> {email} is already an admin")

        if not args.no_password:
            password = getpass.getpass("Password (blank keeps current): ")
            if password:
                user.password_hash = get_password_hash(password)

        db.commit()
        print(f"ID: {user.id}")
        if args.token:
            print(f"Token: {create_access_token({'sub': str(user.id), 'role': user.role})}")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
