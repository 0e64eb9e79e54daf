"""Create one demo account per role.

Run with ``python -m app.scripts.seed_demo_users``. Existing accounts are
left untouched, so the script can be re-run safely.
"""

import os
import secrets
import string

from app.auth.models.user import User, UserRole
from app.core.security import get_password_hash
from app.db.session import SessionLocal

DEMO_USERS = [
    {
        "email": "partner@company.com",
        "name": "Demo Channel Partner",
        "role": UserRole.CHANNEL_PARTNER.value,
        "department": "Sales",
        "location": "Warsaw",
    },
    {
        "email": "assignee@company.com",
        "name": "Demo Assignee",
        "role": UserRole.ASSIGNEE.value,
        "department": "Support",
        "location": "Warsaw",
    },
    {
        "email": "admin@company.com",
        "name": "Demo Head Office",
        "role": UserRole.HEAD_OFFICE.value,
        "department": "Management",
        "location": "Warsaw",
    },
    {
        "email": "tech@company.com",
        "name": "Demo Technical",
        "role": UserRole.TECHNICAL.value,
        "department": "IT",
        "location": "Krakow",
    },
    {
        "email": "devsupport@company.com",
        "name": "Demo Developer Support",
        "role": UserRole.DEVELOPER_SUPPORT.value,
        "department": "Engineering",
        "location": "Remote",
    },
]


def generate_secure_password(length: int = 24) -> str:
    alphabet = string.ascii_letters + string.digits + "!@#$%&*"
    return "".join(secrets.choice(alphabet) for _ in range(length))


def seed_demo_users() -> None:
    # One shared password keeps demos simple; set DEMO_PASSWORD to choose it
    password = os.environ.get("DEMO_PASSWORD") or generate_secure_password()
    db = SessionLocal()
    created = 0
    try:
        for user_data in DEMO_USERS:
            existing_user = db.query(User).filter(User.email == user_data["email"]).first()
            if existing_user:
                print(f"  User already exists: {user_data['email']}")
                continue

            db.add(
                User(
                    hashed_password=get_password_hash(password),
                    is_active=True,
                    **user_data,
                )
            )
            created += 1
            print(f"✓ Demo user created: {user_data['email']} ({user_data['role']})")

        db.commit()
    except Exception as e:
        print(f"✗ Error creating demo users: {e}")
        db.rollback()
        raise
    finally:
        db.close()

    if created:
        print()
        print(f"  Password for new accounts: {password}")


if __name__ == "__main__":
    print("=" * 80)
    print("Seeding database with demo users...")
    print("  Tip: set DEMO_PASSWORD to control the password of new accounts.")
    print("=" * 80)

    seed_demo_users()

    print("=" * 80)
    print("Seeding complete!")
    print("=" * 80)
