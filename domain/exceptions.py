"""Domain Exceptions"""


class ReservationValidationError(ValueError):
    """Input rejected before anything is stored"""


class CapacityExceededError(ValueError):
    """The location has no free space for the requested dates"""


class PaymentGatewayError(Exception):
    """The payment provider could not create a checkout session"""


class WebhookSignatureError(Exception):
    """Webhook payload or signature is invalid; retrying will not help"""


class WebhookConfigurationError(Exception):
    """Webhook cannot be verified because no secret is configured"""


class RepositoryError(Exception):
    """The reservation store failed"""
