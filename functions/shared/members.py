"""
Member record store backed by DynamoDB.

Each member is one item keyed by ``pk`` (the member id). The
``stripe-customer-index`` GSI maps a Stripe customer id back to its member.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError

from shared.errors import NotFoundError, PersistenceError, ValidationError

logger = logging.getLogger(__name__)

CUSTOMER_INDEX = "stripe-customer-index"


@dataclass(frozen=True)
class Member:
    """Typed view of a member item."""

    id: str
    email: str
    name: str
    customer_ref: str = ""
    is_subscribed: bool = False
    program: str | None = None

    @classmethod
    def from_item(cls, item: dict) -> "Member":
        """Build a Member from a DynamoDB item.

        Raises:
            ValidationError: a required field is missing or not a string
        """
        member_id = item.get("pk")
        if not isinstance(member_id, str) or not member_id:
            raise ValidationError("Member record has no id")

        for field in ("email", "name"):
            if not isinstance(item.get(field), str):
                raise ValidationError(f"Member {member_id} has missing or invalid {field}")

        customer_ref = item.get("stripe_customer_id") or ""
        if not isinstance(customer_ref, str):
            raise ValidationError(f"Member {member_id} has invalid stripe_customer_id")

        program = item.get("program")
        return cls(
            id=member_id,
            email=item["email"],
            name=item["name"],
            customer_ref=customer_ref,
            is_subscribed=bool(item.get("is_subscribed", False)),
            program=program if isinstance(program, str) else None,
        )


class MemberStore:
    """Reads and writes member items. One instance wraps one table resource."""

    def __init__(self, table):
        self.table = table

    def create(self, email: str, name: str) -> Member:
        """Insert a new, unprovisioned member.

        This is the record store's create operation for whatever signs
        members up. The INSERT it produces on the table stream is what
        triggers customer provisioning.
        """
        member_id = f"mem_{uuid.uuid4().hex[:16]}"
        item = {
            "pk": member_id,
            "email": email,
            "name": name,
            "is_subscribed": False,
            "created_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            self.table.put_item(Item=item, ConditionExpression="attribute_not_exists(pk)")
        except ClientError as e:
            raise PersistenceError(f"Failed to create member: {e}") from e
        return Member.from_item(item)

    def get(self, member_id: str) -> Member:
        try:
            response = self.table.get_item(Key={"pk": member_id})
        except ClientError as e:
            raise PersistenceError(f"Failed to read member {member_id}: {e}") from e

        item = response.get("Item")
        if not item:
            raise NotFoundError(f"Member {member_id} not found")
        return Member.from_item(item)

    def find_by_customer_ref(self, customer_ref: str) -> Member:
        """Return the first member whose stripe_customer_id matches.

        Raises:
            NotFoundError: no member has this customer reference
            PersistenceError: the query failed
        """
        try:
            response = self.table.query(
                IndexName=CUSTOMER_INDEX,
                KeyConditionExpression=Key("stripe_customer_id").eq(customer_ref),
                Limit=1,
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to look up member for customer {customer_ref}: {e}") from e

        items = response.get("Items", [])
        if not items:
            raise NotFoundError(f"No member found for customer {customer_ref}")
        return Member.from_item(items[0])

    def set_customer_ref(self, member_id: str, customer_ref: str) -> None:
        """Assign the Stripe customer id. Succeeds only once per member.

        Writing the id the member already carries is a no-op, so a replayed
        provisioning that got the same customer back from Stripe succeeds.
        """
        try:
            self.table.update_item(
                Key={"pk": member_id},
                UpdateExpression="SET stripe_customer_id = :cust_id",
                ConditionExpression="attribute_exists(pk) AND attribute_not_exists(stripe_customer_id)",
                ExpressionAttributeValues={":cust_id": customer_ref},
            )
        except ClientError as e:
            if e.response["Error"]["Code"] == "ConditionalCheckFailedException":
                if self._stored_customer_ref(member_id) == customer_ref:
                    logger.info(f"Member {member_id} already has customer {customer_ref}")
                    return
                raise PersistenceError(
                    f"Member {member_id} does not exist or already has a customer reference"
                ) from e
            raise PersistenceError(f"Failed to save customer reference for {member_id}: {e}") from e

        logger.info(f"Stored customer {customer_ref} on member {member_id}")

    def _stored_customer_ref(self, member_id: str) -> str | None:
        try:
            response = self.table.get_item(
                Key={"pk": member_id},
                ProjectionExpression="stripe_customer_id",
                ConsistentRead=True,
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to read member {member_id}: {e}") from e
        return response.get("Item", {}).get("stripe_customer_id")

    def set_subscription_state(self, member_id: str, is_subscribed: bool, program: str | None = None) -> None:
        """Assign is_subscribed, and program when one is given."""
        set_parts = ["is_subscribed = :subscribed"]
        values = {":subscribed": is_subscribed}
        if program is not None:
            set_parts.append("program = :program")
            values[":program"] = program

        try:
            self.table.update_item(
                Key={"pk": member_id},
                UpdateExpression="SET " + ", ".join(set_parts),
                ConditionExpression="attribute_exists(pk)",
                ExpressionAttributeValues=values,
            )
        except ClientError as e:
            raise PersistenceError(f"Failed to update subscription state for {member_id}: {e}") from e
