"""API routes. Ownership and entitlement checks live in the services; routes only translate."""

import logging
import uuid

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile, status
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from resumeopt.core.auth import CurrentUser, get_admin_user, get_current_user
from resumeopt.core.errors import AppError, Forbidden, PaymentProviderError
from resumeopt.models.orm import Resume
from resumeopt.models.payment_events import CheckoutSession
from resumeopt.models.schemas import (
    AnalyzeChangesRequest,
    AnalyzeChangesResponse,
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    DetailedAtsReportResponse,
    EntitlementsResponse,
    JobDescriptionUpdate,
    JobOptimizationResponse,
    PaymentSessionStatus,
    ResumeResponse,
    ResumeTextResponse,
    ResumeTextUpdate,
    ReviewOrderResponse,
    ReviewOrderUpdate,
    StageStates,
    WebhookAck,
)
from resumeopt.services.analysis_service import AnalysisOrchestrator
from resumeopt.services.payment_service import DUPLICATE, FULFILLED, PaymentReconciler
from resumeopt.services.review_service import ReviewService
from resumeopt.services.stripe_gateway import StripeGateway

logger = logging.getLogger(__name__)

router = APIRouter()


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return request.app.state.orchestrator


def get_reconciler(request: Request) -> PaymentReconciler:
    return request.app.state.reconciler


def get_gateway(request: Request) -> StripeGateway:
    return request.app.state.payment_gateway


def get_review_service(request: Request) -> ReviewService:
    return request.app.state.review_service


def resume_response(resume: Resume, analysis_error: str | None = None) -> ResumeResponse:
    return ResumeResponse(
        id=resume.id,
        user_id=resume.user_id,
        original_file_name=resume.original_file_name,
        status=resume.status,
        stages=StageStates(
            basic_ats=resume.basic_ats_state.value,
            detailed_ats=resume.detailed_ats_state.value,
            job_opt=resume.job_opt_state.value,
            review=resume.review_state.value,
        ),
        ats_score=resume.ats_score,
        optimization_score=resume.optimization_score,
        feedback=resume.feedback,
        keyword_analysis=resume.keyword_analysis,
        suggestions=resume.suggestions,
        job_description=resume.job_description,
        ppu_optimization_clicks_remaining=resume.ppu_optimization_clicks_remaining,
        payment_status=resume.payment_status.value,
        submitted_at=resume.submitted_at,
        completed_at=resume.completed_at,
        analysis_error=analysis_error,
    )


# --- Resume endpoints ---


@router.post("/resumes", response_model=ResumeResponse, status_code=status.HTTP_201_CREATED, tags=["Resumes"])
async def upload_resume(
    file: UploadFile = File(..., description="PDF, DOC or DOCX resume, max 5MB"),
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Upload a resume. The free rule-based ATS check runs immediately and its result is returned inline."""
    outcome = await orchestrator.upload(
        data=await file.read(),
        filename=file.filename or "resume",
        mime_type=file.content_type or "",
        user_id=user.user_id,
    )
    return resume_response(outcome.resume, outcome.analysis_error)


@router.post("/free-ats-check", response_model=ResumeResponse, status_code=status.HTTP_201_CREATED, tags=["Resumes"])
async def free_ats_check(
    file: UploadFile = File(..., description="PDF, DOC or DOCX resume, max 5MB"),
    email: str = Form(..., description="Where to reach the candidate", examples=["jane@example.com"]),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Anonymous basic ATS check. No account, no credits."""
    outcome = await orchestrator.upload(
        data=await file.read(),
        filename=file.filename or "resume",
        mime_type=file.content_type or "",
        email=email,
    )
    return resume_response(outcome.resume, outcome.analysis_error)


@router.get("/resumes/{resume_id}", response_model=ResumeResponse, tags=["Resumes"])
async def get_resume(
    resume_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    return resume_response(await orchestrator.get_resume(resume_id, user.user_id))


@router.put("/resumes/{resume_id}/job-description", response_model=ResumeResponse, tags=["Resumes"])
async def set_job_description(
    resume_id: uuid.UUID,
    body: JobDescriptionUpdate,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Store the job description that job optimization runs against."""
    resume = await orchestrator.set_job_description(resume_id, user.user_id, body.job_description)
    return resume_response(resume)


@router.get("/resumes/{resume_id}/text", response_model=ResumeTextResponse, tags=["Resumes"])
async def get_resume_text(
    resume_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Editor text: the saved edit if there is one, otherwise text extracted from the upload."""
    text = await orchestrator.get_text(resume_id, user.user_id)
    return ResumeTextResponse(resume_id=resume_id, text=text)


@router.put("/resumes/{resume_id}/text", response_model=ResumeTextResponse, tags=["Resumes"])
async def save_resume_text(
    resume_id: uuid.UUID,
    body: ResumeTextUpdate,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    resume = await orchestrator.save_edited_text(resume_id, user.user_id, body.edited_text)
    return ResumeTextResponse(resume_id=resume.id, text=resume.edited_text)


# --- Analysis endpoints ---


@router.post("/resumes/{resume_id}/detailed-ats-report", response_model=DetailedAtsReportResponse, tags=["Analysis"])
async def detailed_ats_report(
    resume_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """AI ATS analysis. Needs a premium subscription or one ATS credit."""
    outcome = await orchestrator.detailed_ats_report(resume_id, user.user_id)
    return DetailedAtsReportResponse(
        resume_id=outcome.resume.id,
        status=outcome.resume.status,
        ats_score=outcome.analysis.ats_score,
        feedback=outcome.analysis.feedback,
        credits_remaining=outcome.credits_remaining,
    )


@router.post("/resumes/{resume_id}/job-optimization", response_model=JobOptimizationResponse, tags=["Analysis"])
async def job_optimization(
    resume_id: uuid.UUID,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Score the resume against its stored job description. Needs premium or one optimization credit."""
    outcome = await orchestrator.job_optimization(resume_id, user.user_id)
    return JobOptimizationResponse(
        resume_id=outcome.resume.id,
        status=outcome.resume.status,
        optimization_score=outcome.analysis.optimization_score,
        keyword_analysis=outcome.analysis.keyword_analysis,
        suggestions=outcome.analysis.suggestions,
        ppu_clicks_remaining=outcome.ppu_clicks_remaining,
    )


@router.post("/resumes/{resume_id}/analyze-changes", response_model=AnalyzeChangesResponse, tags=["Analysis"])
async def analyze_changes(
    resume_id: uuid.UUID,
    body: AnalyzeChangesRequest,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    """Preview optimization for edited text. Spends a click for pay-per-use customers; nothing is saved."""
    outcome = await orchestrator.analyze_changes(resume_id, user.user_id, body.edited_resume_text)
    return AnalyzeChangesResponse(
        resume_id=outcome.resume_id,
        optimization_score=outcome.analysis.optimization_score,
        keyword_analysis=outcome.analysis.keyword_analysis,
        suggestions=outcome.analysis.suggestions,
        ppu_clicks_remaining=outcome.ppu_clicks_remaining,
    )


@router.get("/me/entitlements", response_model=EntitlementsResponse, tags=["Account"])
async def my_entitlements(
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
):
    account = await orchestrator.get_user(user.user_id)
    return EntitlementsResponse(
        user_id=account.id,
        subscription_status=account.subscription_status.value,
        ppu_ats_credits=account.ppu_ats_credits,
        ppu_optimization_credits=account.ppu_optimization_credits,
    )


# --- Payment endpoints ---


@router.post("/payments/checkout-session", response_model=CheckoutSessionResponse, tags=["Payments"])
async def create_checkout_session(
    body: CheckoutSessionCreate,
    user: CurrentUser = Depends(get_current_user),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    gateway: StripeGateway = Depends(get_gateway),
):
    """Start a provider checkout for a subscription or a one-time service."""
    if body.resume_id is not None:
        await orchestrator.get_resume(body.resume_id, user.user_id)
    session = await run_in_threadpool(
        gateway.create_checkout_session,
        body.service_type,
        user.user_id,
        body.resume_id,
        body.discount_code,
    )
    return CheckoutSessionResponse(**session)


@router.get("/payments/sessions/{session_id}", response_model=PaymentSessionStatus, tags=["Payments"])
async def check_payment(
    session_id: str,
    user: CurrentUser = Depends(get_current_user),
    gateway: StripeGateway = Depends(get_gateway),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Poll a checkout session. A paid session is fulfilled here too, through the same idempotent path as the webhook."""
    session = await run_in_threadpool(gateway.retrieve_session, session_id)
    metadata = session.get("metadata") or {}
    if metadata.get("userId") != str(user.user_id):
        raise Forbidden("This checkout session belongs to another user", reason="ownership")

    fulfilled = False
    if session.get("payment_status") == "paid":
        try:
            checkout = CheckoutSession.model_validate(session)
        except ValidationError as exc:
            logger.error("Paid session %s has unrecognized metadata: %s", session_id, exc)
            raise PaymentProviderError("Checkout session metadata is not recognized") from exc
        outcome = await reconciler.fulfill_checkout(checkout)
        fulfilled = outcome in (FULFILLED, DUPLICATE)
    return PaymentSessionStatus(
        session_id=session_id,
        payment_status=session.get("payment_status") or "unknown",
        fulfilled=fulfilled,
        metadata=metadata,
    )


@router.post("/payments/webhook", response_model=WebhookAck, tags=["Payments"])
async def payment_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_gateway),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """Provider webhook. 400 on a bad signature, 500 (so the provider retries) when processing fails."""
    payload = await request.body()
    event = gateway.verify_event(payload, request.headers.get("stripe-signature"))
    try:
        outcome = await reconciler.handle_event(event)
    except Exception as exc:
        logger.exception("Webhook processing failed for event %s", event.get("id"))
        raise AppError("Webhook processing failed") from exc
    return WebhookAck(outcome=outcome)


# --- Admin endpoints ---


@router.patch("/admin/review-orders/{order_id}", response_model=ReviewOrderResponse, tags=["Admin"])
async def update_review_order(
    order_id: uuid.UUID,
    body: ReviewOrderUpdate,
    admin: CurrentUser = Depends(get_admin_user),
    reviews: ReviewService = Depends(get_review_service),
):
    """Advance a professional review (requested -> assigned -> in_progress -> completed, or cancelled) and/or set feedback."""
    order = await reviews.update_order(order_id, status=body.status, feedback=body.feedback)
    logger.info("Admin %s updated review order %s", admin.user_id, order_id)
    return ReviewOrderResponse(
        id=order.id,
        user_id=order.user_id,
        resume_id=order.resume_id,
        status=order.status.value,
        payment_status=order.payment_status.value,
        feedback=order.feedback,
        submitted_at=order.submitted_at,
        completed_at=order.completed_at,
    )
