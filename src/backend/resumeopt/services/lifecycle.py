"""Resume lifecycle: one state per analysis stage, plus the human-review track.

Stages progress independently. ``pending`` may be entered from any state (a
retry overwrites an earlier outcome); ``complete`` and ``failed`` are only
reachable from ``pending``.
"""

import logging
from datetime import datetime, timedelta

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from resumeopt.core.errors import ConflictError
from resumeopt.models.orm import ReviewState, Resume, Stage, StageState, utcnow

logger = logging.getLogger(__name__)

ANALYSIS_STAGES = (Stage.basic_ats, Stage.detailed_ats, Stage.job_opt)

_REVIEW_TRANSITIONS = {
    ReviewState.none: {ReviewState.pending_review},
    ReviewState.pending_review: {ReviewState.review_complete, ReviewState.cancelled},
    ReviewState.review_complete: set(),
    ReviewState.cancelled: set(),
}


def _set(resume: Resume, stage: Stage, state: StageState | ReviewState) -> None:
    setattr(resume, f"{stage.value}_state", state)
    resume.last_stage = stage


def _check_analysis_stage(stage: Stage) -> None:
    if stage not in ANALYSIS_STAGES:
        raise ValueError(f"{stage.value} is not an analysis stage")


def mark_pending(resume: Resume, stage: Stage) -> None:
    _check_analysis_stage(stage)
    _set(resume, stage, StageState.pending)
    resume.pending_since = utcnow()
    logger.info("Resume %s -> %s", resume.id, resume.status)


def mark_complete(resume: Resume, stage: Stage) -> None:
    _check_analysis_stage(stage)
    if resume.stage_state(stage) is not StageState.pending:
        raise ConflictError(
            f"Resume {resume.id} {stage.value} is {resume.stage_state(stage).value}, not pending"
        )
    _set(resume, stage, StageState.complete)
    resume.completed_at = utcnow()
    logger.info("Resume %s -> %s", resume.id, resume.status)


def mark_failed(resume: Resume, stage: Stage) -> None:
    _check_analysis_stage(stage)
    if resume.stage_state(stage) is not StageState.pending:
        raise ConflictError(
            f"Resume {resume.id} {stage.value} is {resume.stage_state(stage).value}, not pending"
        )
    _set(resume, stage, StageState.failed)
    logger.info("Resume %s -> %s", resume.id, resume.status)


def move_review(resume: Resume, target: ReviewState) -> None:
    if target not in _REVIEW_TRANSITIONS[resume.review_state]:
        raise ConflictError(
            f"Resume {resume.id} review cannot move from {resume.review_state.value} to {target.value}"
        )
    _set(resume, Stage.review, target)
    if target is ReviewState.review_complete:
        resume.completed_at = utcnow()
    logger.info("Resume %s -> %s", resume.id, resume.status)


async def fail_stale_pending(db: AsyncSession, older_than: timedelta, now: datetime | None = None) -> int:
    """Mark analysis stages stuck in ``pending`` as failed.

    A request that dies mid-analysis leaves its stage pending forever; this
    sweep is meant to be run by an operator or a cron job. Returns the number
    of resumes changed. Does not commit.
    """
    cutoff = (now or utcnow()) - older_than
    result = await db.execute(
        select(Resume).where(
            Resume.pending_since < cutoff,
            or_(*(getattr(Resume, f"{s.value}_state") == StageState.pending for s in ANALYSIS_STAGES)),
        )
    )
    resumes = list(result.scalars().all())
    for resume in resumes:
        for stage in ANALYSIS_STAGES:
            if resume.stage_state(stage) is StageState.pending:
                mark_failed(resume, stage)
        logger.warning("Resume %s had a stage pending since %s, marked failed", resume.id, resume.pending_since)
    return len(resumes)
