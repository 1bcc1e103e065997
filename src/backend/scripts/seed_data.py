"""Seed script: inserts demo accounts for local testing and prints their tokens.

Run via: python scripts/seed_data.py
"""

import asyncio
import uuid

from jose import jwt
from sqlalchemy import select

from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.models.orm import SubscriptionStatus, User

PPU_USER_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
PREMIUM_USER_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ADMIN_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")

USERS = [
    {
        "id": PPU_USER_ID,
        "email": "ppu@example.com",
        "name": "Pay Per Use",
        "ppu_ats_credits": 2,
        "ppu_optimization_credits": 1,
    },
    {
        "id": PREMIUM_USER_ID,
        "email": "premium@example.com",
        "name": "Premium Subscriber",
        "subscription_status": SubscriptionStatus.premium,
    },
    {
        "id": ADMIN_ID,
        "email": "admin@example.com",
        "name": "Review Admin",
        "role": "admin",
    },
]


async def seed() -> None:
    settings = Settings()
    database = Database(settings.database_url)

    async with database.session() as session:
        result = await session.execute(select(User).where(User.id == PPU_USER_ID))
        if result.scalar_one_or_none():
            print("Seed data already exists. Skipping.")
            await database.dispose()
            return

        for fields in USERS:
            session.add(User(**fields))
        await session.commit()

    await database.dispose()

    print("=" * 60)
    print("Seed data inserted successfully!")
    print("=" * 60)
    for fields in USERS:
        token = jwt.encode(
            {"sub": str(fields["id"]), "role": fields.get("role", "user")},
            settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
        )
        print()
        print(f"{fields['name']} ({fields['email']})")
        print(f"  export TOKEN=\"{token}\"")
    print()
    print("Test with:")
    print('  curl -s -H "Authorization: Bearer $TOKEN" http://localhost:8000/api/v1/me/entitlements | python -m json.tool')
    print()
    print("  # Upload a resume")
    print('  curl -s -X POST -H "Authorization: Bearer $TOKEN" -F "file=@resume.pdf;type=application/pdf" \\')
    print("    http://localhost:8000/api/v1/resumes | python -m json.tool")


if __name__ == "__main__":
    asyncio.run(seed())
