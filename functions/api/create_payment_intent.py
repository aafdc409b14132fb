"""
Create Payment Intent Endpoint - POST /create-payment-intent

Creates a one-off PaymentIntent for a plan. The plan key is resolved to an
active Stripe Price through its lookup key.
"""

import logging
import time

from shared.config import get_config
from shared.errors import APIError, ValidationError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.payments import PaymentGateway
from shared.request_utils import get_origin, parse_json_body
from shared.response_utils import error_response, success_response

logger = logging.getLogger(__name__)

# The storefront sends the plan as "martial_art"; "plan" is accepted too
PLAN_FIELDS = ("martial_art", "plan")


def _plan_key(body: dict) -> str:
    for field in PLAN_FIELDS:
        value = body.get(field)
        if isinstance(value, str) and value.strip():
            return value.strip()
    raise ValidationError("Invalid request body")


def handler(event, context):
    """
    Lambda handler for POST /create-payment-intent.

    Request body:
    {
        "martial_art": "bjj_monthly"
    }

    Returns:
    {
        "clientSecret": "pi_..._secret_..."
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    try:
        config = get_config()
        gateway = PaymentGateway(config.require_secret_key())

        plan = _plan_key(parse_json_body(event))
        client_secret = gateway.create_payment_intent(plan)
        logger.info(f"Created payment intent for plan {plan}")
        response = success_response({"clientSecret": client_secret}, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Payment intent failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error creating payment intent: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(logger, "POST", "/create-payment-intent", response["statusCode"], (time.time() - start_time) * 1000)
    return response
