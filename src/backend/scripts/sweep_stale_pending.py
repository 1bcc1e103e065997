"""Mark analyses stuck in a pending stage as failed.

A request that dies mid-analysis (crash, deploy, client gone) leaves its stage
pending. Run periodically, e.g. from cron:

    python scripts/sweep_stale_pending.py --minutes 30
"""

import argparse
import asyncio
from datetime import timedelta

from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.services.lifecycle import fail_stale_pending


async def sweep(minutes: int) -> int:
    database = Database(Settings().database_url)
    try:
        async with database.session() as db:
            count = await fail_stale_pending(db, timedelta(minutes=minutes))
            await db.commit()
    finally:
        await database.dispose()
    return count


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--minutes", type=int, default=30, help="pending longer than this is considered stuck")
    args = parser.parse_args()
    swept = asyncio.run(sweep(args.minutes))
    print(f"Marked {swept} resume(s) with stale pending stages as failed.")
