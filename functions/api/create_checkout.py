"""
Create Checkout Session Endpoint - POST /checkout-session

Creates a Stripe Checkout session in subscription mode for an existing
Stripe customer and a single price.
"""

import logging
import time

from shared.config import get_config
from shared.errors import APIError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.payments import PaymentGateway
from shared.request_utils import get_origin, parse_json_body, require_string
from shared.response_utils import error_response, success_response

logger = logging.getLogger(__name__)


def handler(event, context):
    """
    Lambda handler for POST /checkout-session.

    Request body:
    {
        "customerId": "cus_...",
        "priceId": "price_..."
    }

    Returns:
    {
        "url": "https://checkout.stripe.com/..."
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)
    customer_id = None

    try:
        config = get_config()
        gateway = PaymentGateway(config.require_secret_key())

        body = parse_json_body(event)
        customer_id = require_string(body, "customerId", "Invalid request body")
        price_id = require_string(body, "priceId", "Invalid request body")

        url = gateway.create_checkout_session(customer_id, price_id, config.success_url, config.cancel_url)
        logger.info(f"Created checkout session for customer {customer_id}, price {price_id}")
        response = success_response({"url": url}, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Checkout session failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error creating checkout session: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(
        logger, "POST", "/checkout-session", response["statusCode"], (time.time() - start_time) * 1000, customer_id
    )
    return response
