"""SQLAlchemy ORM models.

Lifecycle state is kept per dimension (basic ATS, detailed ATS, job
optimization, review); ``Resume.status`` is derived from whichever dimension
moved last.
"""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, CheckConstraint, Enum, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _enum(cls: type[enum.Enum]) -> Enum:
    return Enum(cls, native_enum=False, length=20, values_callable=lambda e: [m.value for m in e])


class SubscriptionStatus(str, enum.Enum):
    free = "free"
    premium = "premium"
    inactive = "inactive"


class StageState(str, enum.Enum):
    not_started = "not_started"
    pending = "pending"
    complete = "complete"
    failed = "failed"


class ReviewState(str, enum.Enum):
    none = "none"
    pending_review = "pending_review"
    review_complete = "review_complete"
    cancelled = "cancelled"


class Stage(str, enum.Enum):
    basic_ats = "basic_ats"
    detailed_ats = "detailed_ats"
    job_opt = "job_opt"
    review = "review"


class PaymentStatus(str, enum.Enum):
    none = "none"
    paid = "paid"
    expired = "expired"
    failed = "failed"


class ReviewOrderStatus(str, enum.Enum):
    requested = "requested"
    assigned = "assigned"
    in_progress = "in_progress"
    completed = "completed"
    cancelled = "cancelled"


class Base(DeclarativeBase):
    pass


class User(Base):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(300), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(300), default="")
    role: Mapped[str] = mapped_column(String(20), default="user")
    subscription_status: Mapped[SubscriptionStatus] = mapped_column(
        _enum(SubscriptionStatus), default=SubscriptionStatus.free
    )
    subscription_id: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    ppu_ats_credits: Mapped[int] = mapped_column(default=0)
    ppu_optimization_credits: Mapped[int] = mapped_column(default=0)
    created_at: Mapped[datetime] = mapped_column(default=utcnow)

    __table_args__ = (
        CheckConstraint("ppu_ats_credits >= 0", name="ck_ats_credits_non_negative"),
        CheckConstraint("ppu_optimization_credits >= 0", name="ck_opt_credits_non_negative"),
    )


class Resume(Base):
    __tablename__ = "resumes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id"), nullable=True)
    email: Mapped[str | None] = mapped_column(String(300), nullable=True)
    file_ref: Mapped[str] = mapped_column(String(512), nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(300), nullable=False)
    mime_type: Mapped[str] = mapped_column(String(100), nullable=False)

    basic_ats_state: Mapped[StageState] = mapped_column(_enum(StageState), default=StageState.not_started)
    detailed_ats_state: Mapped[StageState] = mapped_column(_enum(StageState), default=StageState.not_started)
    job_opt_state: Mapped[StageState] = mapped_column(_enum(StageState), default=StageState.not_started)
    review_state: Mapped[ReviewState] = mapped_column(_enum(ReviewState), default=ReviewState.none)
    last_stage: Mapped[Stage | None] = mapped_column(_enum(Stage), nullable=True)
    pending_since: Mapped[datetime | None] = mapped_column(nullable=True)

    ats_score: Mapped[int | None] = mapped_column(nullable=True)
    optimization_score: Mapped[int | None] = mapped_column(nullable=True)
    feedback: Mapped[list | None] = mapped_column(JSONType, nullable=True)
    keyword_analysis: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    suggestions: Mapped[list | None] = mapped_column(JSONType, nullable=True)

    job_description: Mapped[str | None] = mapped_column(Text, nullable=True)
    edited_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    ppu_optimization_clicks_remaining: Mapped[int | None] = mapped_column(nullable=True)
    payment_status: Mapped[PaymentStatus] = mapped_column(_enum(PaymentStatus), default=PaymentStatus.none)

    submitted_at: Mapped[datetime] = mapped_column(default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "ppu_optimization_clicks_remaining IS NULL OR ppu_optimization_clicks_remaining >= 0",
            name="ck_clicks_non_negative",
        ),
        CheckConstraint("ats_score IS NULL OR (ats_score >= 0 AND ats_score <= 100)", name="ck_ats_score_range"),
        CheckConstraint(
            "optimization_score IS NULL OR (optimization_score >= 0 AND optimization_score <= 100)",
            name="ck_optimization_score_range",
        ),
        Index("idx_resumes_user", "user_id"),
    )

    def stage_state(self, stage: Stage) -> StageState | ReviewState:
        return getattr(self, f"{stage.value}_state")

    @property
    def status(self) -> str:
        """Legacy single-field status, e.g. ``basic_ats_complete`` or ``pending_review``."""
        if self.last_stage is None:
            return "uploaded"
        if self.last_stage is Stage.review:
            if self.review_state is ReviewState.cancelled:
                return "review_cancelled"
            return self.review_state.value
        return f"{self.last_stage.value}_{self.stage_state(self.last_stage).value}"


class ReviewOrder(Base):
    __tablename__ = "review_orders"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    resume_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("resumes.id"), nullable=False, unique=True)
    status: Mapped[ReviewOrderStatus] = mapped_column(
        _enum(ReviewOrderStatus), default=ReviewOrderStatus.requested
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(_enum(PaymentStatus), default=PaymentStatus.paid)
    amount: Mapped[int | None] = mapped_column(nullable=True)  # cents
    feedback: Mapped[str | None] = mapped_column(Text, nullable=True)
    submitted_at: Mapped[datetime] = mapped_column(default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (Index("idx_review_orders_user", "user_id"),)


class PaymentFulfillment(Base):
    """One row per provider checkout session that has been turned into an entitlement."""

    __tablename__ = "payment_fulfillments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    checkout_session_id: Mapped[str] = mapped_column(String(200), nullable=False, unique=True)
    event_id: Mapped[str | None] = mapped_column(String(200), nullable=True)
    service_type: Mapped[str] = mapped_column(String(50), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    resume_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    amount: Mapped[int | None] = mapped_column(nullable=True)  # cents
    created_at: Mapped[datetime] = mapped_column(default=utcnow)
