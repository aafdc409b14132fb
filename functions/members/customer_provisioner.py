"""
Customer Provisioner - DynamoDB Streams trigger on the members table

Creates a Stripe customer for every newly inserted member and stores the
customer id back on the record.

Returns batchItemFailures so Lambda retries only the records that failed
for transient reasons.
See: https://docs.aws.amazon.com/lambda/latest/dg/with-ddb.html#services-ddb-batchfailurereporting
"""

import json
import logging

from boto3.dynamodb.types import TypeDeserializer

from shared.aws_clients import get_dynamodb
from shared.config import get_config
from shared.errors import APIError, ValidationError
from shared.logging_utils import bind_log_context, configure_structured_logging, set_request_id, unbind_log_context
from shared.members import Member, MemberStore
from shared.payments import PaymentGateway
from shared.provisioning import provision_customer

logger = logging.getLogger(__name__)

_deserializer = TypeDeserializer()


def _deserialize_image(image: dict) -> dict:
    return {key: _deserializer.deserialize(value) for key, value in image.items()}


def handler(event, context):
    """
    Lambda handler for the members table stream.

    Only INSERT records are provisioned; MODIFY (including our own
    stripe_customer_id write) and REMOVE are skipped.
    """
    configure_structured_logging()
    set_request_id(event)

    config = get_config()
    store = MemberStore(get_dynamodb().Table(config.members_table))
    gateway = PaymentGateway(config.require_secret_key())

    provisioned = 0
    skipped = 0
    failures = 0
    failed_item_ids = []

    for record in event.get("Records", []):
        event_id = record.get("eventID")
        unbind_log_context("member_id")
        bind_log_context(stream_event_id=event_id)

        if record.get("eventName") != "INSERT":
            skipped += 1
            continue

        new_image = record.get("dynamodb", {}).get("NewImage", {})
        if not new_image:
            logger.warning("No NewImage in DynamoDB stream record")
            skipped += 1
            continue

        try:
            member = Member.from_item(_deserialize_image(new_image))
            bind_log_context(member_id=member.id)
            if provision_customer(member, store, gateway):
                provisioned += 1
            else:
                skipped += 1
        except ValidationError as e:
            # Data issue, a retry would fail the same way
            logger.error(f"Cannot provision malformed member record: {e.message}")
            failures += 1
        except APIError as e:
            logger.error(f"Customer provisioning failed ({e.code}): {e.message}")
            failures += 1
            if event_id:
                failed_item_ids.append(event_id)
        except Exception as e:
            logger.error(f"Error provisioning customer: {e}", exc_info=True)
            failures += 1
            if event_id:
                failed_item_ids.append(event_id)

    logger.info(
        f"Provisioning complete: {provisioned} provisioned, {skipped} skipped, {failures} failed",
        extra={
            "provisioned": provisioned,
            "skipped": skipped,
            "failures": failures,
            "failed_item_count": len(failed_item_ids),
        }
    )

    response = {
        "statusCode": 200,
        "body": json.dumps({
            "processed": provisioned + skipped + failures,
            "provisioned": provisioned,
            "skipped": skipped,
            "failures": failures,
        }),
    }

    if failed_item_ids:
        response["batchItemFailures"] = [
            {"itemIdentifier": item_id} for item_id in failed_item_ids
        ]

    return response
