"""
Client Secret Endpoint - POST /client-secret

Creates a Stripe customer session with the pricing table component
enabled, so the embedded pricing table checks out as that customer.
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
    Lambda handler for POST /client-secret.

    Request body:
    {
        "customerId": "cus_..."
    }

    Returns:
    {
        "client_secret": "cuss_secret_..."
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

        client_secret = gateway.create_customer_session(customer_id)
        response = success_response({"client_secret": client_secret}, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Customer session failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error creating customer session: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(
        logger, "POST", "/client-secret", response["statusCode"], (time.time() - start_time) * 1000, customer_id
    )
    return response
