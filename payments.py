"""Payment processing service.

Integrates with Stripe. A checkout creates a PaymentIntent whose
client_secret goes to the browser, which confirms the card payment with
Stripe directly. Stripe reports the outcome back through webhook events.
"""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import stripe

import config
from errors import PaymentError, ValidationError

logger = logging.getLogger(__name__)

SUCCEEDED_EVENT = "payment_intent.succeeded"
FAILED_EVENT = "payment_intent.payment_failed"


@dataclass
class PaymentIntent:
    """The parts of a Stripe PaymentIntent the storefront uses."""
    id: str
    client_secret: str
    status: str  # requires_payment_method, succeeded, etc.
    amount: int  # in cents
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class PaymentEvent:
    type: str  # payment_intent.succeeded, payment_intent.payment_failed, etc.
    payment_reference: Optional[str]


class PaymentGateway:
    """Handles Stripe payment integration."""

    def __init__(self, secret_key: str, webhook_secret: str = "", currency: str = "usd"):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret
        self.currency = currency

    def create_intent(self, amount_cents: int, metadata: Optional[Dict[str, Any]] = None) -> PaymentIntent:
        try:
            intent = stripe.PaymentIntent.create(
                amount=amount_cents,
                currency=self.currency,
                metadata=metadata or {},
                api_key=self.secret_key,
            )
        except stripe.StripeError as e:
            logger.error("Stripe rejected payment intent for %s cents: %s", amount_cents, e)
            raise PaymentError(str(e)) from e
        logger.info("Created payment intent %s for %s cents", intent.id, amount_cents)
        return PaymentIntent(
            id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
            amount=amount_cents,
            metadata=dict(metadata or {}),
        )

    def parse_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """Decode a webhook body, verifying its signature when a secret is set."""
        try:
            if self.webhook_secret:
                event = stripe.Webhook.construct_event(payload, signature or "", self.webhook_secret)
            else:
                logger.warning("STRIPE_WEBHOOK_SECRET not set; accepting unsigned webhook")
                event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            raise ValidationError("Invalid webhook signature") from e
        except ValueError as e:
            raise ValidationError("Invalid webhook payload") from e

        try:
            event_type = event["type"]
            reference = event["data"]["object"]["id"]
        except (KeyError, TypeError) as e:
            raise ValidationError("Invalid webhook payload") from e
        return PaymentEvent(type=event_type, payment_reference=reference)


def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency returning the configured gateway."""
    return PaymentGateway(
        secret_key=config.STRIPE_SECRET_KEY,
        webhook_secret=config.STRIPE_WEBHOOK_SECRET,
        currency=config.CURRENCY,
    )
