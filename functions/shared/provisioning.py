"""Create the Stripe customer for a newly created member."""

import logging

from shared.errors import NotFoundError
from shared.members import Member, MemberStore
from shared.payments import PaymentGateway

logger = logging.getLogger(__name__)


def provision_customer(member: Member, store: MemberStore, gateway: PaymentGateway) -> str | None:
    """Create a Stripe customer for the member and store its id.

    ``member`` may come from a replayed stream image, so the stored record
    is read again before calling Stripe. Members that already carry a
    customer reference, or that have since been deleted, are left alone.

    Returns:
        The new customer id, or None if there was nothing to provision

    Raises:
        UpstreamError: Stripe customer creation failed
        PersistenceError: the customer id could not be saved
    """
    if member.customer_ref:
        logger.info(f"Member {member.id} already has customer {member.customer_ref}, skipping")
        return None

    try:
        current = store.get(member.id)
    except NotFoundError:
        logger.warning(f"Member {member.id} no longer exists, skipping")
        return None

    if current.customer_ref:
        logger.info(f"Member {member.id} was provisioned with {current.customer_ref}, skipping")
        return None

    customer_ref = gateway.create_customer(current.email, current.name, current.id)
    logger.info(f"Created Stripe customer {customer_ref} for member {member.id}")

    # A failure here leaves an orphaned Stripe customer; the idempotency key
    # lets the stream retry reuse it.
    store.set_customer_ref(member.id, customer_ref)
    return customer_ref
