"""
Stripe Webhook Endpoint - POST /webhook

Reconciles Stripe subscription lifecycle events into member records.
Uses Stripe signature verification instead of API key auth.

Handles:
- invoice.paid: member subscribed, program set from the invoice product
- invoice.payment_failed: member unsubscribed
- customer.subscription.deleted: member unsubscribed

Every other event type is acknowledged with 200 so Stripe does not retry it.
"""

import json
import logging
import time

from shared.aws_clients import get_dynamodb
from shared.config import get_config
from shared.errors import APIError, DecodeError, NotFoundError
from shared.logging_utils import bind_log_context, configure_structured_logging, log_api_request, set_request_id
from shared.members import MemberStore
from shared.payments import PaymentGateway
from shared.reconciler import reconcile
from shared.request_utils import get_header, get_origin, get_raw_body
from shared.response_utils import error_response, success_response
from shared.webhook_events import HANDLED_EVENT_TYPES, decode_event

logger = logging.getLogger(__name__)


def handler(event, context):
    """
    Lambda handler for Stripe webhooks.

    Returns:
        200 {"received": true, "handled": bool} once dispatch completes
        400 on a bad signature or a payload that does not decode
        500 when the member is missing or Stripe/DynamoDB fail
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    try:
        response = _process(event, origin)
    except NotFoundError as e:
        # Events come from Stripe, so a missing member is a provisioning gap
        # on our side rather than a bad request.
        logger.error(f"Webhook references unknown member: {e.message}")
        response = e.to_response(origin=origin, status_code=500)
    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Webhook rejected ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Unexpected webhook error: {e}", exc_info=True)
        response = error_response(500, "Processing failed", origin=origin)

    log_api_request(logger, "POST", "/webhook", response["statusCode"], (time.time() - start_time) * 1000)
    return response


def _process(event: dict, origin: str | None) -> dict:
    config = get_config()
    gateway = PaymentGateway(config.require_secret_key())

    payload = get_raw_body(event)
    if config.verify_signatures:
        gateway.verify_webhook(payload, get_header(event, "Stripe-Signature"), config.require_webhook_secret())

    try:
        envelope = json.loads(payload)
    except json.JSONDecodeError as e:
        raise DecodeError() from e

    webhook_event = decode_event(envelope)
    bind_log_context(stripe_event_id=webhook_event.event_id, stripe_event_type=webhook_event.event_type)
    logger.info(f"Processing Stripe event: {webhook_event.event_type} (id={webhook_event.event_id})")

    store = MemberStore(get_dynamodb().Table(config.members_table))
    result = reconcile(webhook_event, store, gateway)

    return success_response(
        {"received": True, "handled": result.event_type in HANDLED_EVENT_TYPES},
        origin=origin,
    )
