"""Domain Payment Gateway Interface"""
from abc import ABC, abstractmethod
from typing import Optional

from domain.entities import Reservation
from domain.value_objects import CheckoutSession, PaymentEvent


class PaymentGateway(ABC):
    """Hosted checkout provider"""

    @abstractmethod
    async def create_checkout_session(self, reservation: Reservation) -> CheckoutSession:
        """Start a hosted payment for the reservation's total price.

        Raises PaymentGatewayError when the session cannot be created.
        """
        pass

    @abstractmethod
    def construct_event(self, payload: bytes, signature: Optional[str]) -> PaymentEvent:
        """Verify and decode a webhook delivery.

        Raises WebhookSignatureError for a bad payload or signature and
        WebhookConfigurationError when verification is impossible.
        """
        pass
