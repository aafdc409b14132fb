"""
Webhook reconciliation: apply a decoded Stripe event to its member record.

Every transition is an assignment (``is_subscribed = true/false``), so
redelivered events converge on the same state without deduplication.
Each event costs at most one store read and one store write.
"""

import logging
from dataclasses import dataclass

from shared.members import MemberStore
from shared.payments import PaymentGateway
from shared.webhook_events import (
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    UnhandledEvent,
    WebhookEvent,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReconcileResult:
    event_type: str
    applied: bool
    member_id: str | None = None


def reconcile(event: WebhookEvent, store: MemberStore, gateway: PaymentGateway) -> ReconcileResult:
    """Apply one event.

    Raises:
        NotFoundError: no member has the event's customer reference
        UpstreamError: the product lookup failed
        PersistenceError: the store read or write failed
    """
    if isinstance(event, InvoicePaid):
        return _invoice_paid(event, store, gateway)
    if isinstance(event, InvoicePaymentFailed):
        return _invoice_payment_failed(event, store)
    if isinstance(event, SubscriptionDeleted):
        return _subscription_deleted(event, store)
    if isinstance(event, UnhandledEvent):
        logger.info(f"Unhandled event type: {event.event_type}")
        return ReconcileResult(event_type=event.event_type, applied=False)
    raise TypeError(f"Unknown webhook event: {event!r}")


def _invoice_paid(event: InvoicePaid, store: MemberStore, gateway: PaymentGateway) -> ReconcileResult:
    if not event.subscription_ref:
        logger.info(f"Invoice for customer {event.customer_ref} has no subscription, skipping")
        return ReconcileResult(event_type=event.event_type, applied=False)

    program = gateway.get_product_name(event.product_ref) if event.product_ref else None

    member = store.find_by_customer_ref(event.customer_ref)
    store.set_subscription_state(member.id, True, program=program)

    logger.info(
        f"Invoice paid for customer {event.customer_ref}: member {member.id} subscribed"
        + (f" to {program}" if program else "")
    )
    return ReconcileResult(event_type=event.event_type, applied=True, member_id=member.id)


def _invoice_payment_failed(event: InvoicePaymentFailed, store: MemberStore) -> ReconcileResult:
    if not event.subscription_ref:
        logger.info(f"Failed invoice for customer {event.customer_ref} has no subscription, skipping")
        return ReconcileResult(event_type=event.event_type, applied=False)

    member = store.find_by_customer_ref(event.customer_ref)
    store.set_subscription_state(member.id, False)

    logger.info(f"Payment failed for customer {event.customer_ref}: member {member.id} unsubscribed")
    return ReconcileResult(event_type=event.event_type, applied=True, member_id=member.id)


def _subscription_deleted(event: SubscriptionDeleted, store: MemberStore) -> ReconcileResult:
    member = store.find_by_customer_ref(event.customer_ref)
    store.set_subscription_state(member.id, False)

    logger.info(
        f"Subscription {event.subscription_ref} deleted for customer {event.customer_ref}: "
        f"member {member.id} unsubscribed"
    )
    return ReconcileResult(event_type=event.event_type, applied=True, member_id=member.id)
