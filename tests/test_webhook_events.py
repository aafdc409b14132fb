"""
Tests for webhook event decoding.
"""

import pytest

from conftest import stripe_event
from shared.errors import DecodeError
from shared.webhook_events import (
    InvoicePaid,
    InvoicePaymentFailed,
    SubscriptionDeleted,
    UnhandledEvent,
    decode_event,
)


def _invoice(**overrides):
    invoice = {
        "id": "in_123",
        "object": "invoice",
        "customer": "cus_1",
        "subscription": "sub_9",
        "lines": {
            "data": [
                {"price": {"id": "price_1", "product": "prod_bjj"}},
            ]
        },
    }
    invoice.update(overrides)
    return invoice


class TestDecodeInvoicePaid:
    def test_decodes_customer_subscription_and_product(self):
        event = decode_event(stripe_event("invoice.paid", _invoice()))

        assert event == InvoicePaid(
            event_id="evt_test_1",
            customer_ref="cus_1",
            subscription_ref="sub_9",
            product_ref="prod_bjj",
        )

    def test_null_subscription_decodes_as_none(self):
        event = decode_event(stripe_event("invoice.paid", _invoice(subscription=None)))

        assert isinstance(event, InvoicePaid)
        assert event.subscription_ref is None

    def test_reads_subscription_from_parent_details(self):
        """Newer API versions nest the subscription under parent."""
        invoice = _invoice(subscription=None)
        invoice["parent"] = {"subscription_details": {"subscription": "sub_nested"}}

        event = decode_event(stripe_event("invoice.paid", invoice))

        assert event.subscription_ref == "sub_nested"

    def test_accepts_expanded_customer_and_product(self):
        invoice = _invoice(customer={"id": "cus_expanded", "object": "customer"})
        invoice["lines"]["data"][0]["price"]["product"] = {"id": "prod_expanded", "name": "Judo"}

        event = decode_event(stripe_event("invoice.paid", invoice))

        assert event.customer_ref == "cus_expanded"
        assert event.product_ref == "prod_expanded"

    def test_reads_product_from_pricing_details(self):
        invoice = _invoice()
        invoice["lines"]["data"][0] = {"pricing": {"price_details": {"price": "price_1", "product": "prod_new"}}}

        event = decode_event(stripe_event("invoice.paid", invoice))

        assert event.product_ref == "prod_new"

    def test_no_lines_means_no_product(self):
        event = decode_event(stripe_event("invoice.paid", _invoice(lines={"data": []})))

        assert event.product_ref is None

    def test_line_without_price_means_no_product(self):
        event = decode_event(stripe_event("invoice.paid", _invoice(lines={"data": [{"price": None}]})))

        assert event.product_ref is None


class TestDecodeOtherHandledTypes:
    def test_payment_failed(self):
        event = decode_event(stripe_event("invoice.payment_failed", _invoice()))

        assert event == InvoicePaymentFailed(event_id="evt_test_1", customer_ref="cus_1", subscription_ref="sub_9")

    def test_subscription_deleted(self):
        event = decode_event(
            stripe_event("customer.subscription.deleted", {"id": "sub_9", "object": "subscription", "customer": "cus_1"})
        )

        assert event == SubscriptionDeleted(event_id="evt_test_1", customer_ref="cus_1", subscription_ref="sub_9")


class TestDecodeUnhandled:
    def test_unknown_type_is_unhandled(self):
        event = decode_event(stripe_event("charge.refunded", {"id": "ch_1"}))

        assert event == UnhandledEvent(event_id="evt_test_1", event_type="charge.refunded")

    def test_unknown_type_payload_is_not_inspected(self):
        event = decode_event({"id": "evt_x", "type": "customer.created", "data": "garbage"})

        assert isinstance(event, UnhandledEvent)


class TestDecodeErrors:
    @pytest.mark.parametrize("envelope", [None, [], "invoice.paid", {"data": {}}, {"type": ""}, {"type": 5}])
    def test_rejects_malformed_envelope(self, envelope):
        with pytest.raises(DecodeError):
            decode_event(envelope)

    def test_rejects_missing_data_object(self):
        with pytest.raises(DecodeError):
            decode_event({"id": "evt_1", "type": "invoice.paid", "data": {}})

    def test_rejects_invoice_without_customer(self):
        with pytest.raises(DecodeError):
            decode_event(stripe_event("invoice.paid", _invoice(customer=None)))

    @pytest.mark.parametrize("event_type", ["invoice.paid", "invoice.payment_failed"])
    def test_invoice_without_subscription_does_not_require_customer(self, event_type):
        event = decode_event(stripe_event(event_type, {"id": "in_1", "subscription": None, "lines": "n/a"}))

        assert event.subscription_ref is None
        assert event.customer_ref is None

    def test_rejects_subscription_deleted_without_customer(self):
        with pytest.raises(DecodeError):
            decode_event(stripe_event("customer.subscription.deleted", {"id": "sub_9"}))

    def test_rejects_wrong_typed_customer(self):
        with pytest.raises(DecodeError):
            decode_event(stripe_event("invoice.payment_failed", _invoice(customer=12345)))

    def test_rejects_wrong_typed_lines(self):
        with pytest.raises(DecodeError):
            decode_event(stripe_event("invoice.paid", _invoice(lines={"data": "not-a-list"})))
