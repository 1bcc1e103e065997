"""Payment webhook reconciler.

Turns verified provider events into entitlements: subscription activation,
credit grants, review orders. Each completed checkout is fulfilled at most
once -- the ``payment_fulfillments`` row keyed on the checkout session id is
written in the same transaction as the grant, so a replayed or concurrently
redelivered event finds it (or loses the unique-key race) and changes nothing.
"""

import logging

from pydantic import ValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from resumeopt.core.config import Settings
from resumeopt.core.database import Database
from resumeopt.core.errors import NotFound
from resumeopt.models.orm import (
    PaymentFulfillment,
    PaymentStatus,
    Resume,
    ReviewOrder,
    ReviewOrderStatus,
    ReviewState,
    SubscriptionStatus,
    User,
)
from resumeopt.models.payment_events import (
    AtsReportPurchase,
    CheckoutCompleted,
    CheckoutExpired,
    CheckoutSession,
    JobOptimizationPurchase,
    PaymentFailed,
    ReferencedObject,
    ReviewPurchase,
    SubscriptionDeleted,
    SubscriptionPurchase,
    parse_event,
)
from resumeopt.services import click_budget, credit_ledger, lifecycle
from resumeopt.services.credit_ledger import CreditKind

logger = logging.getLogger(__name__)

FULFILLED = "fulfilled"
DUPLICATE = "duplicate"
UPDATED = "updated"
IGNORED = "ignored"
INVALID = "invalid"


class PaymentReconciler:
    def __init__(self, database: Database, settings: Settings) -> None:
        self.database = database
        self.settings = settings

    async def handle_event(self, raw: dict) -> str:
        """Dispatch a signature-verified event. Returns a short outcome label.

        Malformed events of a handled type are logged and acknowledged: the
        provider redelivering them cannot fix them. Storage errors propagate
        so the caller answers 500 and the provider retries.
        """
        try:
            event = parse_event(raw)
        except ValidationError as exc:
            logger.error("Malformed %s event %s: %s", raw.get("type"), raw.get("id"), exc)
            return INVALID
        if event is None:
            logger.info("Ignoring webhook event %s of type %s", raw.get("id"), raw.get("type"))
            return IGNORED

        logger.info("Processing webhook event %s (%s)", event.id, event.type)
        if isinstance(event, CheckoutCompleted):
            return await self.fulfill_checkout(event.data.obj, event_id=event.id)
        if isinstance(event, CheckoutExpired):
            return await self._record_payment_outcome(event.data.obj, PaymentStatus.expired)
        if isinstance(event, PaymentFailed):
            return await self._record_payment_outcome(event.data.obj, PaymentStatus.failed)
        if isinstance(event, SubscriptionDeleted):
            return await self._end_subscription(event.data.obj.id)
        return IGNORED

    async def fulfill_checkout(self, session: CheckoutSession, event_id: str | None = None) -> str:
        purchase = session.metadata
        try:
            async with self.database.session() as db:
                async with db.begin():
                    already = await db.scalar(
                        select(PaymentFulfillment.id).where(
                            PaymentFulfillment.checkout_session_id == session.id
                        )
                    )
                    if already is not None:
                        logger.warning("Checkout session %s already fulfilled, skipping", session.id)
                        return DUPLICATE

                    await self._apply_purchase(db, purchase, session)
                    db.add(
                        PaymentFulfillment(
                            checkout_session_id=session.id,
                            event_id=event_id,
                            service_type=purchase.service_type,
                            user_id=purchase.user_id,
                            resume_id=getattr(purchase, "resume_id", None),
                            amount=session.amount_total,
                        )
                    )
                    await db.flush()
        except NotFound as exc:
            logger.error("Checkout session %s references missing data: %s", session.id, exc.message)
            return INVALID
        except IntegrityError:
            if await self._is_fulfilled(session.id):
                logger.warning("Checkout session %s fulfilled by a concurrent delivery", session.id)
                return DUPLICATE
            raise

        logger.info("Fulfilled %s for user %s (session %s)", purchase.service_type, purchase.user_id, session.id)
        return FULFILLED

    async def _is_fulfilled(self, checkout_session_id: str) -> bool:
        async with self.database.session() as db:
            found = await db.scalar(
                select(PaymentFulfillment.id).where(
                    PaymentFulfillment.checkout_session_id == checkout_session_id
                )
            )
            return found is not None

    async def _apply_purchase(self, db: AsyncSession, purchase, session: CheckoutSession) -> None:
        if isinstance(purchase, SubscriptionPurchase):
            user = await db.get(User, purchase.user_id)
            if user is None:
                raise NotFound(f"User {purchase.user_id} not found")
            user.subscription_status = SubscriptionStatus.premium
            user.subscription_id = session.subscription
            logger.info("Subscription %s activated for user %s", session.subscription, user.id)

        elif isinstance(purchase, AtsReportPurchase):
            await credit_ledger.grant(db, purchase.user_id, CreditKind.ats)
            if purchase.resume_id is not None:
                await self._mark_resume_paid(db, purchase.resume_id, purchase.user_id)

        elif isinstance(purchase, JobOptimizationPurchase):
            await credit_ledger.grant(db, purchase.user_id, CreditKind.optimization)
            if purchase.resume_id is not None and await self._mark_resume_paid(
                db, purchase.resume_id, purchase.user_id
            ):
                await click_budget.reset(db, purchase.resume_id, self.settings.ppu_click_limit)

        elif isinstance(purchase, ReviewPurchase):
            resume = await db.get(Resume, purchase.resume_id)
            if resume is None or resume.user_id != purchase.user_id:
                raise NotFound(f"Resume {purchase.resume_id} not found for user {purchase.user_id}")
            existing = await db.scalar(select(ReviewOrder).where(ReviewOrder.resume_id == resume.id))
            if existing is not None:
                # one order per resume; the payment is on record for a manual refund
                logger.error(
                    "Resume %s already has review order %s (%s); session %s needs manual handling",
                    resume.id, existing.id, existing.status.value, session.id,
                )
                return
            db.add(
                ReviewOrder(
                    user_id=purchase.user_id,
                    resume_id=resume.id,
                    status=ReviewOrderStatus.requested,
                    payment_status=PaymentStatus.paid,
                    amount=session.amount_total,
                )
            )
            resume.payment_status = PaymentStatus.paid
            lifecycle.move_review(resume, ReviewState.pending_review)
            logger.info("Review order created for resume %s", resume.id)

    async def _mark_resume_paid(self, db: AsyncSession, resume_id, user_id) -> bool:
        result = await db.execute(
            update(Resume)
            .where(Resume.id == resume_id, Resume.user_id == user_id)
            .values(payment_status=PaymentStatus.paid)
            .returning(Resume.id)
        )
        if result.scalar_one_or_none() is None:
            logger.warning("Purchase names resume %s which user %s does not own", resume_id, user_id)
            return False
        return True

    async def _record_payment_outcome(self, obj: ReferencedObject, status: PaymentStatus) -> str:
        resume_id = obj.metadata.resume_id
        if resume_id is None:
            return IGNORED
        async with self.database.session() as db:
            async with db.begin():
                resume = await db.get(Resume, resume_id)
                if resume is None:
                    logger.warning("Payment %s for unknown resume %s", obj.id, resume_id)
                    return IGNORED
                if resume.payment_status is PaymentStatus.paid:
                    logger.info("Resume %s already paid, not marking %s", resume_id, status.value)
                    return IGNORED
                resume.payment_status = status
        logger.info("Resume %s payment %s (%s)", resume_id, status.value, obj.id)
        return UPDATED

    async def _end_subscription(self, subscription_id: str) -> str:
        async with self.database.session() as db:
            async with db.begin():
                user = await db.scalar(select(User).where(User.subscription_id == subscription_id))
                if user is None:
                    logger.warning("No user holds subscription %s", subscription_id)
                    return IGNORED
                user.subscription_status = SubscriptionStatus.inactive
        logger.info("Subscription %s cancelled for user %s", subscription_id, user.id)
        return UPDATED
