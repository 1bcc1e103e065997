"""Orchestrator: ownership, entitlement, credit consumption, analysis, persistence.

Every paid analysis goes through ``AnalysisOrchestrator``. A gated call moves
through these phases:

    authorizing -> credit_check -> consuming -> extracting -> analyzing -> persisting

Consuming the credit and marking the stage pending commit together, before
the external call. Anything that fails after that point refunds the credit
and leaves the stage ``failed`` so the user can see the attempt and retry.
"""

import enum
import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.core.errors import (
    AppError,
    BadRequest,
    ExternalServiceError,
    ExtractionError,
    Forbidden,
    InsufficientCredit,
    NotFound,
)
from resumeopt.models.orm import Resume, Stage, StageState, User
from resumeopt.models.schemas import DetailedAtsAnalysis, OptimizationAnalysis
from resumeopt.services import basic_ats, click_budget, credit_ledger, lifecycle
from resumeopt.services.credit_ledger import CreditKind
from resumeopt.services.extraction_service import ACCEPTED_MIME_TYPES

logger = logging.getLogger(__name__)


class AnalysisPhase(str, enum.Enum):
    authorizing = "authorizing"
    credit_check = "credit_check"
    consuming = "consuming"
    extracting = "extracting"
    analyzing = "analyzing"
    persisting = "persisting"


@dataclass
class UploadOutcome:
    resume: Resume
    analysis_error: str | None = None


@dataclass
class DetailedAtsOutcome:
    resume: Resume
    analysis: DetailedAtsAnalysis
    credits_remaining: int | None


@dataclass
class OptimizationOutcome:
    resume: Resume
    analysis: OptimizationAnalysis
    ppu_clicks_remaining: int | None


@dataclass
class ChangesOutcome:
    resume_id: UUID
    analysis: OptimizationAnalysis
    ppu_clicks_remaining: int | None


class AnalysisOrchestrator:
    def __init__(self, database: Database, extractor, analyzer, storage, settings: Settings) -> None:
        self.database = database
        self.extractor = extractor
        self.analyzer = analyzer
        self.storage = storage
        self.settings = settings

    # --- lookups ---

    async def _load_user(self, db: AsyncSession, user_id: UUID) -> User:
        user = await db.get(User, user_id)
        if user is None:
            raise NotFound(f"User {user_id} not found")
        return user

    async def _load_owned(self, db: AsyncSession, resume_id: UUID, user_id: UUID) -> Resume:
        resume = await db.get(Resume, resume_id)
        if resume is None:
            raise NotFound(f"Resume {resume_id} not found")
        if resume.user_id != user_id:
            raise Forbidden("You do not own this resume", reason="ownership")
        return resume

    def _resume_text(self, resume: Resume) -> str:
        """Edited text wins over the originally uploaded document."""
        if resume.edited_text:
            return resume.edited_text
        return self.extractor.extract(self.storage.read(resume.file_ref), resume.mime_type)

    async def get_resume(self, resume_id: UUID, user_id: UUID) -> Resume:
        async with self.database.session() as db:
            return await self._load_owned(db, resume_id, user_id)

    async def get_user(self, user_id: UUID) -> User:
        async with self.database.session() as db:
            return await self._load_user(db, user_id)

    # --- upload + basic check ---

    async def upload(
        self,
        data: bytes,
        filename: str,
        mime_type: str,
        user_id: UUID | None = None,
        email: str | None = None,
    ) -> UploadOutcome:
        if mime_type not in ACCEPTED_MIME_TYPES:
            raise BadRequest("Invalid file type. Only PDF, DOC, and DOCX files are allowed.")
        if not data:
            raise BadRequest("No file uploaded")
        if len(data) > self.settings.max_upload_bytes:
            raise BadRequest(f"File too large, maximum is {self.settings.max_upload_bytes} bytes")
        if user_id is None and not email:
            raise BadRequest("Email is required for a free ATS check")

        file_ref = self.storage.save(data, filename)
        resume = Resume(
            id=uuid.uuid4(),
            user_id=user_id,
            email=email,
            file_ref=file_ref,
            original_file_name=filename,
            mime_type=mime_type,
        )
        try:
            async with self.database.session() as db:
                if user_id is not None:
                    await self._load_user(db, user_id)
                lifecycle.mark_pending(resume, Stage.basic_ats)
                db.add(resume)
                await db.commit()
        except Exception:
            self.storage.delete(file_ref)
            raise

        analysis_error = None
        result = None
        try:
            result = basic_ats.check_resume(self.extractor.extract(data, mime_type))
        except ExtractionError as exc:
            logger.warning("Basic ATS check failed for resume %s: %s", resume.id, exc)
            analysis_error = f"Failed to perform initial ATS check: {exc.message}"

        async with self.database.session() as db:
            resume = await db.get(Resume, resume.id)
            if result is None:
                lifecycle.mark_failed(resume, Stage.basic_ats)
            else:
                resume.ats_score = result.score
                resume.feedback = [item.model_dump(mode="json") for item in result.feedback]
                lifecycle.mark_complete(resume, Stage.basic_ats)
            await db.commit()
        return UploadOutcome(resume=resume, analysis_error=analysis_error)

    # --- plain field updates (last writer wins) ---

    async def set_job_description(self, resume_id: UUID, user_id: UUID, text: str) -> Resume:
        if not text.strip():
            raise BadRequest("Job description text is required")
        async with self.database.session() as db:
            resume = await self._load_owned(db, resume_id, user_id)
            resume.job_description = text
            await db.commit()
            logger.info("Stored job description for resume %s", resume_id)
            return resume

    async def get_text(self, resume_id: UUID, user_id: UUID) -> str:
        resume = await self.get_resume(resume_id, user_id)
        return self._resume_text(resume)

    async def save_edited_text(self, resume_id: UUID, user_id: UUID, text: str) -> Resume:
        async with self.database.session() as db:
            resume = await self._load_owned(db, resume_id, user_id)
            resume.edited_text = text
            await db.commit()
            return resume

    # --- gated analyses ---

    async def _run_gated(
        self,
        resume_id: UUID,
        user_id: UUID,
        stage: Stage,
        kind: CreditKind,
        analyze: Callable[[str, Resume], Awaitable],
        persist: Callable[[Resume, object], None],
    ):
        phase = AnalysisPhase.authorizing
        async with self.database.session() as db:
            resume = await self._load_owned(db, resume_id, user_id)
            if stage is Stage.job_opt and not (resume.job_description or "").strip():
                raise BadRequest("Job description is required. Please add it first.")

            phase = AnalysisPhase.credit_check
            user = await self._load_user(db, user_id)
            if not credit_ledger.has_entitlement(user, kind):
                raise InsufficientCredit(kind.value)

            phase = AnalysisPhase.consuming
            charged = await credit_ledger.consume(db, user_id, kind)
            clicks = None
            if charged and stage is Stage.job_opt:
                clicks = self.settings.ppu_click_limit
                await click_budget.reset(db, resume_id, clicks)
            lifecycle.mark_pending(resume, stage)
            await db.commit()
            await db.refresh(user)
            credits_left = None if credit_ledger.is_premium(user) else credit_ledger.remaining(user, kind)

        try:
            phase = AnalysisPhase.extracting
            text = self._resume_text(resume)
            phase = AnalysisPhase.analyzing
            analysis = await analyze(text, resume)
            phase = AnalysisPhase.persisting
            async with self.database.session() as db:
                resume = await db.get(Resume, resume_id)
                persist(resume, analysis)
                lifecycle.mark_complete(resume, stage)
                await db.commit()
        except Exception as exc:
            logger.exception("%s failed for resume %s during %s", stage.value, resume_id, phase.value)
            await self._fail(resume_id, user_id, stage, kind if charged else None)
            if isinstance(exc, AppError):
                raise
            raise ExternalServiceError(f"Failed to run {stage.value} analysis") from exc

        logger.info("%s done for resume %s (charged=%s)", stage.value, resume_id, charged)
        return resume, analysis, credits_left, clicks

    async def _fail(self, resume_id: UUID, user_id: UUID, stage: Stage, refund: CreditKind | None) -> None:
        if refund is not None:
            try:
                async with self.database.session() as db:
                    await credit_ledger.rollback(db, user_id, refund)
                    await db.commit()
            except Exception:
                logger.exception(
                    "CREDIT REFUND FAILED: user %s lost one %s credit on resume %s; needs manual reconciliation",
                    user_id, refund.value, resume_id,
                )
        try:
            async with self.database.session() as db:
                resume = await db.get(Resume, resume_id)
                if resume is not None and resume.stage_state(stage) is StageState.pending:
                    lifecycle.mark_failed(resume, stage)
                    await db.commit()
        except Exception:
            logger.exception("Could not mark %s failed for resume %s", stage.value, resume_id)

    async def detailed_ats_report(self, resume_id: UUID, user_id: UUID) -> DetailedAtsOutcome:
        async def analyze(text: str, resume: Resume) -> DetailedAtsAnalysis:
            return await self.analyzer.detailed_ats(text)

        def persist(resume: Resume, analysis: DetailedAtsAnalysis) -> None:
            resume.ats_score = analysis.ats_score
            resume.feedback = [item.model_dump(mode="json") for item in analysis.feedback]

        resume, analysis, credits_left, _ = await self._run_gated(
            resume_id, user_id, Stage.detailed_ats, CreditKind.ats, analyze, persist
        )
        return DetailedAtsOutcome(resume=resume, analysis=analysis, credits_remaining=credits_left)

    async def job_optimization(self, resume_id: UUID, user_id: UUID) -> OptimizationOutcome:
        async def analyze(text: str, resume: Resume) -> OptimizationAnalysis:
            return await self.analyzer.job_optimization(text, resume.job_description)

        def persist(resume: Resume, analysis: OptimizationAnalysis) -> None:
            resume.optimization_score = analysis.optimization_score
            resume.keyword_analysis = analysis.keyword_analysis.model_dump()
            resume.suggestions = list(analysis.suggestions)

        resume, analysis, _, clicks = await self._run_gated(
            resume_id, user_id, Stage.job_opt, CreditKind.optimization, analyze, persist
        )
        return OptimizationOutcome(resume=resume, analysis=analysis, ppu_clicks_remaining=clicks)

    async def analyze_changes(self, resume_id: UUID, user_id: UUID, edited_text: str) -> ChangesOutcome:
        """Re-run optimization on edited text for the editor preview.

        Spends a click instead of a credit and never touches the resume's
        official scores or lifecycle.
        """
        if not edited_text.strip():
            raise BadRequest("Edited resume text is required")

        async with self.database.session() as db:
            resume = await self._load_owned(db, resume_id, user_id)
            if not (resume.job_description or "").strip():
                raise BadRequest("Cannot analyze changes: no job description associated with this resume")
            user = await self._load_user(db, user_id)
            clicks_left = None
            if not credit_ledger.is_premium(user):
                clicks_left = await click_budget.spend(db, resume_id)
            await db.commit()

        try:
            analysis = await self.analyzer.job_optimization(edited_text, resume.job_description)
        except Exception as exc:
            logger.exception("Change analysis failed for resume %s", resume_id)
            if clicks_left is not None:
                async with self.database.session() as db:
                    clicks_left = await click_budget.refund(db, resume_id)
                    await db.commit()
            if isinstance(exc, AppError):
                raise
            raise ExternalServiceError("Failed to analyze changes") from exc

        return ChangesOutcome(resume_id=resume_id, analysis=analysis, ppu_clicks_remaining=clicks_left)
