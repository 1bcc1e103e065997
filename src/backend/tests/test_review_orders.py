"""Tests for the admin review-order workflow."""

from uuid import uuid4

import pytest

from resumeopt.core.errors import ConflictError, NotFound
from resumeopt.models.orm import Resume, ReviewOrder, ReviewOrderStatus, ReviewState, Stage


@pytest.fixture
def make_order(database, make_user, make_resume):
    async def _make(status: ReviewOrderStatus = ReviewOrderStatus.requested) -> ReviewOrder:
        user = await make_user()
        resume = await make_resume(user.id, review_state=ReviewState.pending_review, last_stage=Stage.review)
        order = ReviewOrder(id=uuid4(), user_id=user.id, resume_id=resume.id, status=status, amount=2500)
        async with database.session() as db:
            db.add(order)
            await db.commit()
        return order

    return _make


@pytest.fixture
def review_service(app):
    return app.state.review_service


class TestTransitions:
    async def test_full_workflow_completes_resume_review(self, review_service, make_order, load):
        order = await make_order()

        for status in (ReviewOrderStatus.assigned, ReviewOrderStatus.in_progress, ReviewOrderStatus.completed):
            order = await review_service.update_order(order.id, status=status)

        assert order.status is ReviewOrderStatus.completed
        assert order.completed_at is not None
        resume = await load(Resume, order.resume_id)
        assert resume.review_state is ReviewState.review_complete
        assert resume.status == "review_complete"

    async def test_cannot_skip_ahead(self, review_service, make_order, load):
        order = await make_order()

        with pytest.raises(ConflictError):
            await review_service.update_order(order.id, status=ReviewOrderStatus.completed)

        assert (await load(ReviewOrder, order.id)).status is ReviewOrderStatus.requested

    async def test_cancel_from_in_progress(self, review_service, make_order, load):
        order = await make_order(ReviewOrderStatus.in_progress)

        order = await review_service.update_order(order.id, status=ReviewOrderStatus.cancelled)

        assert order.status is ReviewOrderStatus.cancelled
        assert (await load(Resume, order.resume_id)).status == "review_cancelled"

    async def test_terminal_states_are_final(self, review_service, make_order):
        order = await make_order(ReviewOrderStatus.cancelled)

        with pytest.raises(ConflictError):
            await review_service.update_order(order.id, status=ReviewOrderStatus.assigned)

    async def test_same_status_is_a_no_op(self, review_service, make_order):
        order = await make_order(ReviewOrderStatus.assigned)

        order = await review_service.update_order(order.id, status=ReviewOrderStatus.assigned)

        assert order.status is ReviewOrderStatus.assigned

    async def test_feedback_editable_after_completion(self, review_service, make_order, load):
        order = await make_order(ReviewOrderStatus.in_progress)
        await review_service.update_order(order.id, status=ReviewOrderStatus.completed)

        await review_service.update_order(order.id, feedback="Tighten the summary section.")

        assert (await load(ReviewOrder, order.id)).feedback == "Tighten the summary section."

    async def test_unknown_order(self, review_service):
        with pytest.raises(NotFound):
            await review_service.update_order(uuid4(), status=ReviewOrderStatus.assigned)


class TestAdminEndpoint:
    async def test_admin_advances_order(self, client, auth, make_order):
        order = await make_order()

        response = await client.patch(
            f"/api/v1/admin/review-orders/{order.id}",
            json={"status": "assigned", "feedback": "Picked up"},
            headers=auth(uuid4(), role="admin"),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "assigned"
        assert body["feedback"] == "Picked up"
        assert body["paymentStatus"] == "paid"

    async def test_invalid_transition_is_409(self, client, auth, make_order):
        order = await make_order()

        response = await client.patch(
            f"/api/v1/admin/review-orders/{order.id}",
            json={"status": "completed"},
            headers=auth(uuid4(), role="admin"),
        )

        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    async def test_unknown_status_is_422(self, client, auth, make_order):
        order = await make_order()

        response = await client.patch(
            f"/api/v1/admin/review-orders/{order.id}",
            json={"status": "shipped"},
            headers=auth(uuid4(), role="admin"),
        )

        assert response.status_code == 422
