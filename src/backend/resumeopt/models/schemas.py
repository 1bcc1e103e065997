"""Pydantic schemas for API request/response validation."""

from datetime import datetime
from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from resumeopt.models.orm import ReviewOrderStatus


class CamelModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Enums ---

class FeedbackType(str, Enum):
    positive = "positive"
    negative = "negative"
    info = "info"


class ServiceType(str, Enum):
    subscription = "subscription"
    ats_report = "ats_report"
    job_optimization = "job_optimization"
    review = "review"


# --- Analysis results (structured output of the basic check and the LLM) ---

class FeedbackItem(BaseModel):
    type: FeedbackType
    message: str


class BasicAtsResult(BaseModel):
    score: int = Field(ge=0, le=100)
    feedback: list[FeedbackItem]


class DetailedAtsAnalysis(CamelModel):
    """Structured output expected from the LLM for a detailed ATS report."""

    ats_score: int = Field(ge=0, le=100)
    feedback: list[FeedbackItem]


class KeywordAnalysis(CamelModel):
    matched: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class OptimizationAnalysis(CamelModel):
    """Structured output expected from the LLM for job-specific optimization."""

    optimization_score: int = Field(ge=0, le=100)
    keyword_analysis: KeywordAnalysis
    suggestions: list[str]


# --- Resume schemas ---

class StageStates(CamelModel):
    basic_ats: str
    detailed_ats: str
    job_opt: str
    review: str


class ResumeResponse(CamelModel):
    id: UUID
    user_id: UUID | None
    original_file_name: str
    status: str
    stages: StageStates
    ats_score: int | None
    optimization_score: int | None
    feedback: list[FeedbackItem] | None
    keyword_analysis: KeywordAnalysis | None
    suggestions: list[str] | None
    job_description: str | None
    ppu_optimization_clicks_remaining: int | None
    payment_status: str
    submitted_at: datetime
    completed_at: datetime | None
    analysis_error: str | None = None


class JobDescriptionUpdate(CamelModel):
    job_description: str = Field(min_length=1, examples=["Senior backend engineer, 5+ years Python, PostgreSQL, Docker."])


class ResumeTextUpdate(CamelModel):
    edited_text: str


class ResumeTextResponse(CamelModel):
    resume_id: UUID
    text: str


class AnalyzeChangesRequest(CamelModel):
    edited_resume_text: str = Field(min_length=1)


class DetailedAtsReportResponse(CamelModel):
    resume_id: UUID
    status: str
    ats_score: int
    feedback: list[FeedbackItem]
    credits_remaining: int | None


class JobOptimizationResponse(CamelModel):
    resume_id: UUID
    status: str
    optimization_score: int
    keyword_analysis: KeywordAnalysis
    suggestions: list[str]
    ppu_clicks_remaining: int | None


class AnalyzeChangesResponse(CamelModel):
    message: str = "Analysis of changes completed."
    resume_id: UUID
    optimization_score: int
    keyword_analysis: KeywordAnalysis
    suggestions: list[str]
    ppu_clicks_remaining: int | None


class EntitlementsResponse(CamelModel):
    user_id: UUID
    subscription_status: str
    ppu_ats_credits: int
    ppu_optimization_credits: int


# --- Payment schemas ---

class CheckoutSessionCreate(CamelModel):
    service_type: ServiceType
    resume_id: UUID | None = None
    discount_code: str | None = None


class CheckoutSessionResponse(CamelModel):
    session_id: str
    url: str
    amount: int | None
    applied_discount: str | None


class PaymentSessionStatus(CamelModel):
    session_id: str
    payment_status: str
    fulfilled: bool
    metadata: dict[str, Any] = Field(default_factory=dict)


class WebhookAck(BaseModel):
    received: bool = True
    outcome: str


# --- Review order schemas ---

class ReviewOrderUpdate(CamelModel):
    status: ReviewOrderStatus | None = None
    feedback: str | None = None


class ReviewOrderResponse(CamelModel):
    id: UUID
    user_id: UUID
    resume_id: UUID
    status: str
    payment_status: str
    feedback: str | None
    submitted_at: datetime
    completed_at: datetime | None
