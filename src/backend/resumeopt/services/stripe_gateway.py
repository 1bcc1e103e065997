"""Stripe integration: checkout sessions and webhook signature verification."""

import json
import logging
from uuid import UUID

import stripe

from resumeopt.core.config import Settings
from resumeopt.core.errors import BadRequest, PaymentProviderError, SignatureError
from resumeopt.models.schemas import ServiceType

logger = logging.getLogger(__name__)

SERVICE_DESCRIPTIONS = {
    ServiceType.subscription: "Monthly Subscription (Unlimited Access)",
    ServiceType.ats_report: "Detailed ATS Report",
    ServiceType.job_optimization: "Job-Specific Optimization",
    ServiceType.review: "Professional Resume Review",
}


def apply_discount(amount: int, code: str | None, discount_codes: dict[str, float]) -> tuple[int, str | None]:
    """Returns (final amount in cents, applied code or None)."""
    if not code or code not in discount_codes:
        return amount, None
    return round(amount * (1 - discount_codes[code])), code


class StripeGateway:
    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def verify_event(self, payload: bytes, signature: str | None) -> dict:
        """Check the ``Stripe-Signature`` header and decode the event body."""
        if not self.settings.stripe_webhook_secret:
            raise PaymentProviderError("Stripe webhook secret is not configured")
        if not signature:
            raise SignatureError("Missing Stripe-Signature header")
        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body,
                signature,
                self.settings.stripe_webhook_secret,
                tolerance=stripe.Webhook.DEFAULT_TOLERANCE,
            )
            return json.loads(body)
        except (stripe.SignatureVerificationError, ValueError) as exc:
            logger.warning("Rejected webhook: %s", exc)
            raise SignatureError("Invalid webhook signature") from exc

    def create_checkout_session(
        self,
        service_type: ServiceType,
        user_id: UUID,
        resume_id: UUID | None = None,
        discount_code: str | None = None,
    ) -> dict:
        if not self.settings.stripe_secret_key:
            raise PaymentProviderError("Stripe is not configured")

        metadata = {
            "serviceType": service_type.value,
            "userId": str(user_id),
            "resumeId": str(resume_id) if resume_id else "",
        }
        params = {
            "payment_method_types": ["card"],
            "success_url": f"{self.settings.client_url}/dashboard?success=true&session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.settings.client_url}/dashboard?canceled=true",
            "metadata": metadata,
        }

        amount = None
        applied = None
        if service_type is ServiceType.subscription:
            params["mode"] = "subscription"
            params["line_items"] = [{"price": self.settings.stripe_subscription_price_id, "quantity": 1}]
        else:
            if service_type is ServiceType.review and resume_id is None:
                raise BadRequest("A professional review needs a resumeId")
            amount, applied = apply_discount(
                self.settings.service_prices[service_type.value],
                discount_code,
                self.settings.discount_codes,
            )
            params["mode"] = "payment"
            params["line_items"] = [
                {
                    "price_data": {
                        "currency": "usd",
                        "unit_amount": amount,
                        "product_data": {
                            "name": SERVICE_DESCRIPTIONS[service_type],
                            **({"description": f"Discount applied: {applied}"} if applied else {}),
                        },
                    },
                    "quantity": 1,
                }
            ]
            # so payment_intent.payment_failed can be routed back to the resume
            params["payment_intent_data"] = {"metadata": metadata}

        try:
            session = stripe.checkout.Session.create(api_key=self.settings.stripe_secret_key, **params)
        except stripe.StripeError as exc:
            logger.error("Stripe checkout creation failed: %s", exc)
            raise PaymentProviderError("Unable to initialize payment session right now") from exc

        logger.info("Created checkout session %s for %s (user %s)", session.id, service_type.value, user_id)
        return {"session_id": session.id, "url": session.url, "amount": amount, "applied_discount": applied}

    def retrieve_session(self, session_id: str) -> dict:
        if not self.settings.stripe_secret_key:
            raise PaymentProviderError("Stripe is not configured")
        try:
            session = stripe.checkout.Session.retrieve(session_id, api_key=self.settings.stripe_secret_key)
        except stripe.StripeError as exc:
            logger.error("Stripe session lookup failed for %s: %s", session_id, exc)
            raise PaymentProviderError("Unable to check payment status right now") from exc
        return json.loads(str(session))
