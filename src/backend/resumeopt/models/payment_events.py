"""Typed views of the payment provider's webhook events.

Events arrive as untrusted JSON. They are validated here, before dispatch, into
a union keyed on the event ``type``; a completed checkout's metadata is in turn
a union keyed on ``serviceType`` so each purchase carries exactly the ids it
needs.
"""

from typing import Annotated, Generic, Literal, TypeVar, Union
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

# Provider metadata values are strings; an absent id is sent as "".
OptionalId = Annotated[UUID | None, BeforeValidator(lambda v: v or None)]

ObjectT = TypeVar("ObjectT")


class _Metadata(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SubscriptionPurchase(_Metadata):
    service_type: Literal["subscription"]
    user_id: UUID


class AtsReportPurchase(_Metadata):
    service_type: Literal["ats_report"]
    user_id: UUID
    resume_id: OptionalId = None


class JobOptimizationPurchase(_Metadata):
    service_type: Literal["job_optimization"]
    user_id: UUID
    resume_id: OptionalId = None


class ReviewPurchase(_Metadata):
    service_type: Literal["review"]
    user_id: UUID
    resume_id: UUID


CheckoutMetadata = Annotated[
    Union[SubscriptionPurchase, AtsReportPurchase, JobOptimizationPurchase, ReviewPurchase],
    Field(discriminator="service_type"),
]


class ResumeReference(_Metadata):
    resume_id: OptionalId = None


class CheckoutSession(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    metadata: CheckoutMetadata
    amount_total: int | None = None  # cents
    subscription: str | None = None
    payment_intent: str | None = None
    payment_status: str | None = None


class ReferencedObject(BaseModel):
    """Expired session or failed payment intent; only the resume id matters."""

    model_config = ConfigDict(extra="ignore")

    id: str
    metadata: ResumeReference = Field(default_factory=ResumeReference)


class SubscriptionObject(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str


class EventData(BaseModel, Generic[ObjectT]):
    obj: ObjectT = Field(alias="object")


class CheckoutCompleted(BaseModel):
    id: str
    type: Literal["checkout.session.completed"]
    data: EventData[CheckoutSession]


class CheckoutExpired(BaseModel):
    id: str
    type: Literal["checkout.session.expired"]
    data: EventData[ReferencedObject]


class PaymentFailed(BaseModel):
    id: str
    type: Literal["payment_intent.payment_failed"]
    data: EventData[ReferencedObject]


class SubscriptionDeleted(BaseModel):
    id: str
    type: Literal["customer.subscription.deleted"]
    data: EventData[SubscriptionObject]


PaymentEvent = Annotated[
    Union[CheckoutCompleted, CheckoutExpired, PaymentFailed, SubscriptionDeleted],
    Field(discriminator="type"),
]

HANDLED_EVENT_TYPES = frozenset(
    {
        "checkout.session.completed",
        "checkout.session.expired",
        "payment_intent.payment_failed",
        "customer.subscription.deleted",
    }
)

_event_adapter = TypeAdapter(PaymentEvent)


def parse_event(raw: dict) -> PaymentEvent | None:
    """Validate a decoded event. Returns None for event types we do not handle.

    Raises pydantic.ValidationError when a handled event is malformed.
    """
    if raw.get("type") not in HANDLED_EVENT_TYPES:
        return None
    return _event_adapter.validate_python(raw)
