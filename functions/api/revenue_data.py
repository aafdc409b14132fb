"""
Revenue Data Endpoint - POST /revenue-data

Sums succeeded PaymentIntents by year and month, from the first day of
the month ``monthsAgo`` months back through now.
"""

import logging
import time
from datetime import datetime, timezone

from shared.config import get_config
from shared.errors import APIError, ValidationError
from shared.logging_utils import configure_structured_logging, log_api_request, set_request_id
from shared.payments import PaymentGateway
from shared.request_utils import get_origin, parse_json_body
from shared.response_utils import error_response, success_response
from shared.revenue import get_timeframe, summarize_revenue

logger = logging.getLogger(__name__)


def _months_ago(body: dict) -> int:
    value = body.get("monthsAgo")
    # bool is an int subclass; reject it explicitly
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise ValidationError("Invalid request body")
    return value


def handler(event, context):
    """
    Lambda handler for POST /revenue-data.

    Request body:
    {
        "monthsAgo": 3
    }

    Returns:
    {
        "2024": {"March": 3500, "April": 1000}
    }
    """
    configure_structured_logging()
    set_request_id(event)
    start_time = time.time()
    origin = get_origin(event)

    try:
        config = get_config()
        gateway = PaymentGateway(config.require_secret_key())

        months_ago = _months_ago(parse_json_body(event))
        timeframe = get_timeframe(months_ago, datetime.now(timezone.utc))
        logger.info(f"Summarizing revenue from {timeframe.start} to {timeframe.end}")

        revenue = summarize_revenue(gateway.list_payment_intents(timeframe.start, timeframe.end))
        response = success_response(revenue, origin=origin)

    except APIError as e:
        log = logger.warning if e.status_code < 500 else logger.error
        log(f"Revenue summary failed ({e.code}): {e.message}")
        response = e.to_response(origin=origin)
    except Exception as e:
        logger.error(f"Error summarizing revenue: {e}", exc_info=True)
        response = error_response(500, "An error occurred", origin=origin)

    log_api_request(logger, "POST", "/revenue-data", response["statusCode"], (time.time() - start_time) * 1000)
    return response
