"""Per-resume re-analysis budget for pay-per-use optimization purchases."""

import logging
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from resumeopt.core.errors import Forbidden, NotFound
from resumeopt.models.orm import Resume

logger = logging.getLogger(__name__)


async def reset(db: AsyncSession, resume_id: UUID, limit: int) -> None:
    """Start a fresh budget, regardless of what was left from an earlier purchase."""
    result = await db.execute(
        update(Resume)
        .where(Resume.id == resume_id)
        .values(ppu_optimization_clicks_remaining=limit)
        .returning(Resume.id)
    )
    if result.scalar_one_or_none() is None:
        raise NotFound(f"Resume {resume_id} not found")
    logger.info("Click budget for resume %s set to %d", resume_id, limit)


async def spend(db: AsyncSession, resume_id: UUID) -> int:
    """Use one click. Returns what is left; raises Forbidden when none remain."""
    clicks = Resume.ppu_optimization_clicks_remaining
    result = await db.execute(
        update(Resume)
        .where(Resume.id == resume_id, clicks.is_not(None), clicks > 0)
        .values(ppu_optimization_clicks_remaining=clicks - 1)
        .returning(clicks)
    )
    left = result.scalar_one_or_none()
    if left is None:
        raise Forbidden(
            "No PPU analysis clicks remaining for this optimization session",
            reason="entitlement",
            ppu_clicks_remaining=0,
        )
    logger.info("Spent analysis click on resume %s, %d left", resume_id, left)
    return left


async def refund(db: AsyncSession, resume_id: UUID) -> int | None:
    clicks = Resume.ppu_optimization_clicks_remaining
    result = await db.execute(
        update(Resume)
        .where(Resume.id == resume_id, clicks.is_not(None))
        .values(ppu_optimization_clicks_remaining=clicks + 1)
        .returning(clicks)
    )
    return result.scalar_one_or_none()
