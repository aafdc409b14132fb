"""
Error taxonomy for the billing API.

Every error knows its HTTP status so handlers can convert it at the
boundary with ``to_response``.
"""

from typing import Optional

from shared.response_utils import error_response


class APIError(Exception):
    """Base class for API errors."""

    def __init__(self, code: str, message: str, status_code: int = 400):
        self.code = code
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    def to_response(self, origin: Optional[str] = None, status_code: Optional[int] = None) -> dict:
        """Convert to API Gateway response format.

        ``status_code`` overrides the default mapping for routes that
        classify an error differently (e.g. the webhook route).
        """
        return error_response(status_code or self.status_code, self.message, origin=origin)


class ValidationError(APIError):
    """Malformed or missing request fields."""

    def __init__(self, message: str):
        super().__init__(code="invalid_request", message=message, status_code=400)


class InvalidSignatureError(ValidationError):
    """Webhook signature missing or not matching the signing secret."""

    def __init__(self, message: str = "Invalid signature"):
        super().__init__(message)
        self.code = "invalid_signature"


class DecodeError(APIError):
    """Webhook payload did not match the shape expected for its type."""

    def __init__(self, message: str = "Invalid webhook payload"):
        super().__init__(code="invalid_webhook_payload", message=message, status_code=400)


class NotFoundError(APIError):
    """No matching member or subscription."""

    def __init__(self, message: str):
        super().__init__(code="not_found", message=message, status_code=404)


class UpstreamError(APIError):
    """Stripe call failed. The provider's message is passed through."""

    def __init__(self, message: str):
        super().__init__(code="stripe_error", message=message, status_code=500)


class PersistenceError(APIError):
    """Record store read or write failed."""

    def __init__(self, message: str):
        super().__init__(code="persistence_error", message=message, status_code=500)


class ConfigurationError(APIError):
    """Required Stripe settings are missing."""

    def __init__(self, message: str = "Payment system not configured"):
        super().__init__(code="stripe_not_configured", message=message, status_code=500)
