"""
Create Billing Portal Session Endpoint - POST /customer-portal

Creates a Stripe Billing Portal session so a member can manage their
subscription. Returns the portal URL as JSON, or redirects to it when
STRIPE_PORTAL_REDIRECT is enabled.
"""

import logging
import time

from shared.config import get_config
from shared.errors import APIError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.payments import PaymentGateway
from shared.request_utils import get_origin, parse_json_body, require_string
from shared.response_utils import error_response, redirect_response, success_response

logger = logging.getLogger(__name__)


def handler(event, context):
    """
    Lambda handler for POST /customer-portal.

    Request body:
    {
        "customerId": "cus_..."
    }

    Returns:
    {
        "url": "https://billing.stripe.com/..."
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
        customer_id = require_string(body, "customerId", "Invalid customer ID")

        url = gateway.create_portal_session(customer_id, config.portal_return_url)
        logger.info(f"Created billing portal session for customer {customer_id}")

        if config.portal_redirect:
            response = redirect_response(url, origin=origin)
        else:
            response = success_response({"url": url}, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Billing portal session failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error creating billing portal session: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(
        logger, "POST", "/customer-portal", response["statusCode"], (time.time() - start_time) * 1000, customer_id
    )
    return response
