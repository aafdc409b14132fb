"""
Publishable Key Endpoint - GET /publishable-key

Returns the Stripe publishable key for the frontend's Stripe.js client.
No authentication required.
"""

import logging
import time

from shared.config import get_config
from shared.errors import APIError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.request_utils import get_origin
from shared.response_utils import success_response

logger = logging.getLogger(__name__)


def handler(event, context):
    """
    Lambda handler for GET /publishable-key.

    Returns:
    {
        "key": "pk_live_..."
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    try:
        response = success_response({"key": get_config().require_publishable_key()}, origin=origin)
    except APIError as e:
        logger.error(f"Publishable key unavailable: {e.message}")
        response = e.to_response(origin=origin)

    log_api_request(logger, "GET", "/publishable-key", response["statusCode"], (time.time() - start_time) * 1000)
    return response
