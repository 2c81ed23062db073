"""
Database seeding script for the initial super-admin.

Creates the tables, a sample department and a super-admin account. Safe to
run repeatedly: existing rows are left alone.

    SEED_ADMIN_EMAIL=admin@fleet.com SEED_ADMIN_PASSWORD=... python fleet_backend/seed_users.py
"""

import asyncio
import os
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from sqlalchemy import select
from fleet_backend.app.core.clock import system_clock
from fleet_backend.app.db.session import AsyncSessionLocal, Base, engine
from fleet_backend.app.main import app  # noqa: F401  (registers every model)
from fleet_backend.app.models.department import Department
from fleet_backend.app.models.enums import UserRole
from fleet_backend.app.models.user import User
from fleet_backend.app.services import identity
from fleet_backend.app.services.departments import create_department

ADMIN_EMAIL = os.environ.get("SEED_ADMIN_EMAIL", "admin@fleet.com")
ADMIN_PASSWORD = os.environ.get("SEED_ADMIN_PASSWORD", "admin12345")
SAMPLE_DEPARTMENT = "Operations"


async def seed_users():
    """
    Seed the initial data.

    Creates:
    - the Operations department with a zero budget
    - 1 SUPER-ADMIN user in that department
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        print("🌱 Starting seeding...")

        result = await db.execute(select(Department).where(Department.name == SAMPLE_DEPARTMENT))
        department = result.scalar_one_or_none()
        if department is None:
            department = await create_department(db, {"name": SAMPLE_DEPARTMENT, "description": "Sample department"})
            await db.commit()
            print(f"✅ Created department '{SAMPLE_DEPARTMENT}'")
        else:
            print(f"ℹ️  Department '{SAMPLE_DEPARTMENT}' already exists, skipping")

        result = await db.execute(select(User).where(User.email == ADMIN_EMAIL))
        if result.scalar_one_or_none() is not None:
            print("ℹ️  SUPER-ADMIN user already exists, skipping")
        else:
            await identity.create_principal(
                db,
                {
                    "employee_number": "EMP-0001",
                    "email": ADMIN_EMAIL,
                    "first_name": "System",
                    "last_name": "Administrator",
                    "department_id": department.id,
                },
                system_clock,
                password=ADMIN_PASSWORD,
                role=UserRole.SUPER_ADMIN,
            )
            await db.commit()
            print(f"✅ Created SUPER-ADMIN user ({ADMIN_EMAIL})")

    await engine.dispose()
    print("\n🎉 Seeding completed successfully!")


if __name__ == "__main__":
    asyncio.run(seed_users())
