"""
Stripe gateway.

Thin wrapper over the stripe SDK. The API key is passed on every call so
no handler ever mutates the module-level ``stripe.api_key``. Stripe errors
are converted to UpstreamError here; callers never see SDK exceptions.
"""

import logging
import time
from typing import Iterator

import stripe

from shared.errors import InvalidSignatureError, NotFoundError, UpstreamError
from shared.logging_utils import log_external_call

logger = logging.getLogger(__name__)

# Signed webhook timestamps older than this are rejected
WEBHOOK_TOLERANCE_SECONDS = 300


def _stripe_message(error: stripe.StripeError) -> str:
    return getattr(error, "user_message", None) or str(error) or error.__class__.__name__


class PaymentGateway:
    """Every Stripe operation the billing API performs."""

    def __init__(self, api_key: str):
        self.api_key = api_key

    def _call(self, operation: str, func, *args, **kwargs):
        start = time.time()
        try:
            result = func(*args, api_key=self.api_key, **kwargs)
        except stripe.StripeError as e:
            message = _stripe_message(e)
            log_external_call(logger, "stripe", operation, False, (time.time() - start) * 1000, error=message)
            raise UpstreamError(message) from e
        log_external_call(logger, "stripe", operation, True, (time.time() - start) * 1000)
        return result

    def create_customer(self, email: str, name: str, member_id: str) -> str:
        """Create a Stripe customer for a member and return its id.

        The idempotency key makes a retried provisioning of the same member
        return the customer created by the first attempt.
        """
        customer = self._call(
            "customer.create",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata={"member_id": member_id},
            idempotency_key=f"member-customer-{member_id}",
        )
        return customer.id

    def create_checkout_session(self, customer_id: str, price_id: str, success_url: str, cancel_url: str) -> str:
        session = self._call(
            "checkout.session.create",
            stripe.checkout.Session.create,
            customer=customer_id,
            mode="subscription",
            success_url=success_url,
            cancel_url=cancel_url,
            line_items=[{"price": price_id, "quantity": 1}],
        )
        return session.url

    def create_portal_session(self, customer_id: str, return_url: str) -> str:
        portal_session = self._call(
            "billing_portal.session.create",
            stripe.billing_portal.Session.create,
            customer=customer_id,
            return_url=return_url,
        )
        return portal_session.url

    def cancel_first_subscription(self, customer_id: str) -> str | None:
        """Cancel the customer's first listed subscription.

        Returns:
            The cancelled subscription id, or None if the customer has none
        """
        subscriptions = self._call("subscription.list", stripe.Subscription.list, customer=customer_id, limit=1)
        if not subscriptions.data:
            return None

        subscription_id = subscriptions.data[0].id
        self._call("subscription.cancel", stripe.Subscription.cancel, subscription_id)
        return subscription_id

    def create_customer_session(self, customer_id: str) -> str:
        """Create a customer session for the embedded pricing table."""
        customer_session = self._call(
            "customer_session.create",
            stripe.CustomerSession.create,
            customer=customer_id,
            components={"pricing_table": {"enabled": True}},
        )
        return customer_session.client_secret

    def create_payment_intent(self, plan: str) -> str:
        """Create a one-off PaymentIntent priced by the plan's lookup key.

        Raises:
            NotFoundError: no active price has this lookup key
        """
        prices = self._call("price.list", stripe.Price.list, lookup_keys=[plan], active=True, limit=1)
        if not prices.data:
            raise NotFoundError(f"No price found for plan {plan}")

        price = prices.data[0]
        payment_intent = self._call(
            "payment_intent.create",
            stripe.PaymentIntent.create,
            amount=price.unit_amount,
            currency=price.currency,
            automatic_payment_methods={"enabled": True},
            metadata={"plan": plan},
        )
        return payment_intent.client_secret

    def get_product_name(self, product_id: str) -> str:
        product = self._call("product.retrieve", stripe.Product.retrieve, product_id)
        return product.name

    def list_payment_intents(self, created_gte: int, created_lte: int) -> Iterator:
        """Yield every PaymentIntent created inside the window, across pages."""
        page = self._call(
            "payment_intent.list",
            stripe.PaymentIntent.list,
            created={"gte": created_gte, "lte": created_lte},
            limit=100,
        )
        try:
            yield from page.auto_paging_iter()
        except stripe.StripeError as e:
            message = _stripe_message(e)
            logger.error(f"Error iterating payment intents: {message}")
            raise UpstreamError(message) from e

    def verify_webhook(self, payload: str, sig_header: str | None, secret: str) -> None:
        """Check the Stripe-Signature header against the signing secret.

        Raises:
            InvalidSignatureError: header missing, malformed, stale or not matching
        """
        if not sig_header:
            raise InvalidSignatureError("Missing Stripe signature")
        try:
            stripe.WebhookSignature.verify_header(payload, sig_header, secret, WEBHOOK_TOLERANCE_SECONDS)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Invalid Stripe signature: {e}")
            raise InvalidSignatureError() from e
