"""Stripe Checkout adapter"""
import logging
import time
from datetime import timedelta
from typing import Optional

import stripe

from domain.entities import Reservation
from domain.exceptions import PaymentGatewayError, WebhookConfigurationError, WebhookSignatureError
from domain.payments import PaymentGateway
from domain.value_objects import CheckoutSession, PaymentEvent

logger = logging.getLogger(__name__)

# Stripe accepts checkout expiry between 30 minutes and 24 hours after
# creation, measured on its own clock
MIN_SESSION_EXPIRY_MINUTES = 30
MAX_SESSION_EXPIRY_MINUTES = 24 * 60
EXPIRY_MARGIN_SECONDS = 60

# Upper bound of the stripe client's sleep between network retries
RETRY_DELAY_CEILING_SECONDS = 5

UNAVAILABLE_ERRORS = (stripe.APIConnectionError, stripe.RateLimitError)


class StripeCheckoutGateway(PaymentGateway):
    """Creates hosted Checkout sessions and verifies Stripe webhooks.

    Requests go through a dedicated StripeClient so the API key, HTTP
    timeout and network retries stay local to this gateway. The client
    retries one request at a time under the reservation's idempotency
    key, so a slow attempt is never raced by a second one.
    """

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str],
        public_base_url: str,
        session_expiry_minutes: int = MIN_SESSION_EXPIRY_MINUTES,
        timeout_seconds: float = 10.0,
        max_network_retries: int = 2,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.public_base_url = public_base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.max_network_retries = max_network_retries
        # expires_at is fixed before the first attempt and must still be
        # 30 minutes out when the last retry reaches Stripe
        earliest = (
            MIN_SESSION_EXPIRY_MINUTES * 60 + EXPIRY_MARGIN_SECONDS
            + int(self.request_budget().total_seconds())
        )
        self.session_expiry_seconds = min(
            max(session_expiry_minutes * 60, earliest),
            MAX_SESSION_EXPIRY_MINUTES * 60
        )
        self.sessions = None
        if api_key:
            client = stripe.StripeClient(
                api_key,
                max_network_retries=max_network_retries,
                http_client=stripe.HTTPXClient(timeout=timeout_seconds),
            )
            self.sessions = client.v1.checkout.sessions

    def request_budget(self) -> timedelta:
        """Longest time one create call can take, retries included"""
        attempts = self.max_network_retries + 1
        return timedelta(
            seconds=attempts * self.timeout_seconds
            + self.max_network_retries * RETRY_DELAY_CEILING_SECONDS
        )

    def payable_window(self) -> timedelta:
        """How long after a reservation is stored its checkout may still be paid"""
        return self.request_budget() + timedelta(seconds=self.session_expiry_seconds)

    def build_session_params(self, reservation: Reservation) -> dict:
        nights = reservation.get_nights()
        location_name = reservation.location.display_name
        return {
            "mode": "payment",
            "payment_method_types": ["card"],
            "line_items": [
                {
                    "price_data": {
                        "currency": reservation.total_price.currency,
                        "product_data": {
                            "name": f"Parking at {location_name}",
                            "description": (
                                f"{nights} night{'s' if nights > 1 else ''} parking from "
                                f"{reservation.start_date.isoformat()} to {reservation.end_date.isoformat()}"
                            ),
                        },
                        "unit_amount": reservation.total_price.amount,
                    },
                    "quantity": 1,
                }
            ],
            "client_reference_id": reservation.payment_reference,
            "customer_email": reservation.email,
            "success_url": f"{self.public_base_url}/success?session_id={{CHECKOUT_SESSION_ID}}",
            "cancel_url": f"{self.public_base_url}/booking/{reservation.location.value}",
            "expires_at": int(time.time()) + self.session_expiry_seconds,
            "metadata": reservation.checkout_metadata(),
        }

    async def create_checkout_session(self, reservation: Reservation) -> CheckoutSession:
        if self.sessions is None:
            raise PaymentGatewayError("Stripe is not configured")

        params = self.build_session_params(reservation)
        try:
            session = await self.sessions.create_async(
                params=params,
                options={"idempotency_key": reservation.payment_reference},
            )
        except UNAVAILABLE_ERRORS as e:
            logger.warning(
                "Stripe unreachable for reservation %s after %d retries: %s",
                reservation.reservation_id, self.max_network_retries, e.__class__.__name__
            )
            raise PaymentGatewayError("Payment provider unavailable") from e
        except stripe.StripeError as e:
            logger.error(
                "Stripe rejected checkout session for reservation %s: %s",
                reservation.reservation_id, e.user_message or e.__class__.__name__
            )
            raise PaymentGatewayError("Payment initialization failed") from e

        return CheckoutSession(session_id=session.id, url=session.url)

    def construct_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        if not self.webhook_secret:
            raise WebhookConfigurationError("Stripe webhook secret is not configured")
        if not signature:
            raise WebhookSignatureError("Missing Stripe signature")

        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError as e:
            raise WebhookSignatureError("Invalid payload") from e
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError("Webhook signature verification failed") from e

        data_object = event.data.object
        return PaymentEvent(
            event_id=getattr(event, "id", None),
            event_type=event.type,
            session_id=getattr(data_object, "id", None),
            payment_reference=getattr(data_object, "client_reference_id", None),
        )
