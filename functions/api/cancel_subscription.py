"""
Cancel Subscription Endpoint - POST /cancel-subscription

Cancels the first subscription Stripe lists for the customer. The member
record is updated later by the customer.subscription.deleted webhook.
"""

import logging
import time

from shared.config import get_config
from shared.errors import APIError, NotFoundError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.payments import PaymentGateway
from shared.request_utils import get_origin, parse_json_body, require_string
from shared.response_utils import error_response, success_response

logger = logging.getLogger(__name__)

NO_SUBSCRIPTION_MESSAGE = "No subscription found for the customer"


def handler(event, context):
    """
    Lambda handler for POST /cancel-subscription.

    Request body:
    {
        "customerId": "cus_..."
    }

    Returns:
        200 {"message": "Subscription cancelled successfully"}
        404 {"error": "No subscription found for the customer"}
        500 {"error": "<Stripe message>"}
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

        subscription_id = gateway.cancel_first_subscription(customer_id)
        if subscription_id is None:
            raise NotFoundError(NO_SUBSCRIPTION_MESSAGE)

        logger.info(f"Cancelled subscription {subscription_id} for customer {customer_id}")
        response = success_response({"message": "Subscription cancelled successfully"}, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Subscription cancellation failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error cancelling subscription: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(
        logger, "POST", "/cancel-subscription", response["statusCode"], (time.time() - start_time) * 1000, customer_id
    )
    return response
