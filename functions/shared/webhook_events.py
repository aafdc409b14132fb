"""
Decoded Stripe webhook events.

A verified payload is decoded exactly once into one member of the closed
``WebhookEvent`` union. Only the fields the reconciler needs are kept.
"""

from dataclasses import dataclass
from typing import Any, Union

from shared.errors import DecodeError

INVOICE_PAID = "invoice.paid"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"

HANDLED_EVENT_TYPES = (INVOICE_PAID, INVOICE_PAYMENT_FAILED, SUBSCRIPTION_DELETED)


@dataclass(frozen=True)
class InvoicePaid:
    event_id: str | None
    customer_ref: str | None
    subscription_ref: str | None
    product_ref: str | None
    event_type: str = INVOICE_PAID


@dataclass(frozen=True)
class InvoicePaymentFailed:
    event_id: str | None
    customer_ref: str | None
    subscription_ref: str | None
    event_type: str = INVOICE_PAYMENT_FAILED


@dataclass(frozen=True)
class SubscriptionDeleted:
    event_id: str | None
    customer_ref: str
    subscription_ref: str | None
    event_type: str = SUBSCRIPTION_DELETED


@dataclass(frozen=True)
class UnhandledEvent:
    event_id: str | None
    event_type: str


WebhookEvent = Union[InvoicePaid, InvoicePaymentFailed, SubscriptionDeleted, UnhandledEvent]


def _ref(value: Any, field: str) -> str | None:
    """Read a Stripe reference that may be an id string or an expanded object."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, dict) and isinstance(value.get("id"), str):
        return value["id"]
    raise DecodeError(f"Invalid {field} reference in webhook payload")


def _as_dict(value: Any, field: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"Invalid {field} in webhook payload")
    return value


def _customer_ref(obj: dict) -> str:
    customer_ref = _ref(obj.get("customer"), "customer")
    if not customer_ref:
        raise DecodeError("Webhook payload has no customer")
    return customer_ref


def _invoice_subscription_ref(invoice: dict) -> str | None:
    subscription_ref = _ref(invoice.get("subscription"), "subscription")
    if subscription_ref:
        return subscription_ref

    # Newer API versions moved the subscription under parent.subscription_details
    parent = _as_dict(invoice.get("parent"), "parent")
    details = _as_dict(parent.get("subscription_details"), "subscription_details")
    return _ref(details.get("subscription"), "subscription")


def _invoice_product_ref(invoice: dict) -> str | None:
    """Product of the first line item, if the payload carries one."""
    lines = _as_dict(invoice.get("lines"), "lines").get("data") or []
    if not isinstance(lines, list):
        raise DecodeError("Invalid invoice lines in webhook payload")
    if not lines:
        return None

    first_line = _as_dict(lines[0], "invoice line")
    price = _as_dict(first_line.get("price"), "price")
    product_ref = _ref(price.get("product"), "product")
    if product_ref:
        return product_ref

    pricing = _as_dict(first_line.get("pricing"), "pricing")
    price_details = _as_dict(pricing.get("price_details"), "price_details")
    return _ref(price_details.get("product"), "product")


def _loose_customer_ref(invoice: dict) -> str | None:
    customer = invoice.get("customer")
    if isinstance(customer, dict):
        customer = customer.get("id")
    return customer if isinstance(customer, str) and customer else None


def _decode_invoice(event_type: str, event_id: str | None, invoice: dict) -> WebhookEvent:
    subscription_ref = _invoice_subscription_ref(invoice)

    # Invoices outside a subscription are acknowledged without touching
    # a member, so the rest of the payload is not required
    if not subscription_ref:
        customer_ref = _loose_customer_ref(invoice)
        if event_type == INVOICE_PAID:
            return InvoicePaid(event_id=event_id, customer_ref=customer_ref, subscription_ref=None, product_ref=None)
        return InvoicePaymentFailed(event_id=event_id, customer_ref=customer_ref, subscription_ref=None)

    if event_type == INVOICE_PAID:
        return InvoicePaid(
            event_id=event_id,
            customer_ref=_customer_ref(invoice),
            subscription_ref=subscription_ref,
            product_ref=_invoice_product_ref(invoice),
        )
    return InvoicePaymentFailed(
        event_id=event_id,
        customer_ref=_customer_ref(invoice),
        subscription_ref=subscription_ref,
    )


def decode_event(envelope: Any) -> WebhookEvent:
    """Decode a Stripe event envelope into a typed event.

    Unhandled types are returned as UnhandledEvent without looking at their
    payload.

    Raises:
        DecodeError: the envelope or the payload for a handled type is malformed
    """
    if not isinstance(envelope, dict):
        raise DecodeError("Webhook payload is not an event object")

    event_type = envelope.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise DecodeError("Webhook payload has no event type")

    event_id = envelope.get("id") if isinstance(envelope.get("id"), str) else None

    if event_type not in HANDLED_EVENT_TYPES:
        return UnhandledEvent(event_id=event_id, event_type=event_type)

    data = envelope.get("data")
    obj = data.get("object") if isinstance(data, dict) else None
    if not isinstance(obj, dict):
        raise DecodeError(f"Webhook payload for {event_type} has no data object")

    if event_type in (INVOICE_PAID, INVOICE_PAYMENT_FAILED):
        return _decode_invoice(event_type, event_id, obj)

    return SubscriptionDeleted(
        event_id=event_id,
        customer_ref=_customer_ref(obj),
        subscription_ref=obj.get("id") if isinstance(obj.get("id"), str) else None,
    )
