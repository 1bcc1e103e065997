"""Admin actions on professional review orders."""

import logging
from uuid import UUID

from resumeopt.core.database import Database
from resumeopt.core.errors import ConflictError, NotFound
from resumeopt.models.orm import Resume, ReviewOrder, ReviewOrderStatus, ReviewState, utcnow
from resumeopt.services import lifecycle

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    ReviewOrderStatus.requested: {ReviewOrderStatus.assigned, ReviewOrderStatus.cancelled},
    ReviewOrderStatus.assigned: {ReviewOrderStatus.in_progress, ReviewOrderStatus.cancelled},
    ReviewOrderStatus.in_progress: {ReviewOrderStatus.completed, ReviewOrderStatus.cancelled},
    ReviewOrderStatus.completed: set(),
    ReviewOrderStatus.cancelled: set(),
}


class ReviewService:
    def __init__(self, database: Database) -> None:
        self.database = database

    async def update_order(
        self,
        order_id: UUID,
        status: ReviewOrderStatus | None = None,
        feedback: str | None = None,
    ) -> ReviewOrder:
        """Move an order along its workflow and/or set reviewer feedback.

        Feedback stays editable after the order is completed or cancelled;
        the status does not.
        """
        async with self.database.session() as db:
            async with db.begin():
                order = await db.get(ReviewOrder, order_id)
                if order is None:
                    raise NotFound(f"Review order {order_id} not found")

                if status is not None and status is not order.status:
                    if status not in ALLOWED_TRANSITIONS[order.status]:
                        raise ConflictError(
                            f"Review order cannot move from {order.status.value} to {status.value}"
                        )
                    resume = await db.get(Resume, order.resume_id)
                    if status is ReviewOrderStatus.completed:
                        order.completed_at = utcnow()
                        lifecycle.move_review(resume, ReviewState.review_complete)
                    elif status is ReviewOrderStatus.cancelled:
                        lifecycle.move_review(resume, ReviewState.cancelled)
                    logger.info("Review order %s: %s -> %s", order.id, order.status.value, status.value)
                    order.status = status

                if feedback is not None:
                    order.feedback = feedback
            return order
