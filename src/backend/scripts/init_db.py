"""One-time database initialization script.

Creates all tables defined in the ORM models.
Run via: python scripts/init_db.py
"""

import asyncio

from resumeopt.core.config import Settings
from resumeopt.core.database import Database


async def init() -> None:
    database = Database(Settings().database_url)
    await database.create_all()
    await database.dispose()
    print("Database tables created successfully.")


if __name__ == "__main__":
    asyncio.run(init())
