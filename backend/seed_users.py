"""
Database seeding script for the initial staff accounts.

Creates one ADMIN, one OPERATIONS and one WAREHOUSE user, plus a demo
CUSTOMER, for development. Run once after the database is created:

    python -m backend.seed_users
"""

import asyncio

from sqlalchemy import select

from backend.app.db.session import AsyncSessionLocal
from backend.app.models.user import User
from backend.app.models.enums import UserRole
from backend.app.core.security import get_password_hash


SEED_ACCOUNTS = [
    # username, email, password, role, company
    ("admin", "admin@logistics.com", "admin123", UserRole.ADMIN, None),
    ("operations", "ops@logistics.com", "ops12345", UserRole.OPERATIONS, None),
    ("warehouse", "warehouse@logistics.com", "warehouse123", UserRole.WAREHOUSE, None),
    ("demo_customer", "customer@example.com", "customer123", UserRole.CUSTOMER, "Demo Imports Ltd"),
]


async def seed_users(session_factory=AsyncSessionLocal) -> list:
    """
    Create the seed accounts that don't exist yet.

    Returns the usernames created; running it twice creates nothing.
    """
    created = []
    async with session_factory() as db:
        print("🌱 Starting user seeding...")

        result = await db.execute(select(User.username))
        existing = set(result.scalars().all())

        for username, email, password, role, company in SEED_ACCOUNTS:
            if username in existing:
                print(f"ℹ️  {role.value} user '{username}' already exists, skipping")
                continue
            db.add(User(
                email=email,
                username=username,
                hashed_password=get_password_hash(password),
                role=role,
                company_name=company,
                is_active=True,
                is_superuser=role == UserRole.ADMIN,
            ))
            created.append(username)
            print(f"✅ Created {role.value} user (username: {username}, password: {password})")

        await db.commit()

    if created:
        print("\n🎉 User seeding completed successfully!")
    print("\nNote: customers normally register via POST /v1/auth/register")
    return created


if __name__ == "__main__":
    asyncio.run(seed_users())
