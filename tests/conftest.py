"""
Shared pytest fixtures for dojobill tests.
"""

import hashlib
import hmac
import json
import os
import sys
import time

import boto3
import pytest
from moto import mock_aws

# Add functions directory to Python path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "functions"))

MEMBERS_TABLE = "dojobill-members"
WEBHOOK_SECRET = "whsec_test_secret"


def pytest_configure(config):
    """Set AWS credentials before test collection.

    This runs before test collection starts, ensuring boto3 resource
    creation during imports doesn't fail with NoRegionError.
    """
    os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
    os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
    os.environ.setdefault("AWS_DEFAULT_REGION", "us-east-1")
    os.environ.setdefault("AWS_REGION", "us-east-1")


@pytest.fixture(autouse=True)
def aws_credentials():
    """Set fake AWS credentials for all tests."""
    os.environ["AWS_ACCESS_KEY_ID"] = "testing"
    os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
    os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
    os.environ["AWS_REGION"] = "us-east-1"


@pytest.fixture(autouse=True)
def billing_env(monkeypatch):
    """Stripe and table settings every handler expects."""
    monkeypatch.setenv("STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setenv("STRIPE_PUBLISHABLE_KEY", "pk_test_123")
    monkeypatch.setenv("STRIPE_WHSEC", WEBHOOK_SECRET)
    monkeypatch.setenv("STRIPE_SUCCESS_URL", "https://dojobill.app/success")
    monkeypatch.setenv("STRIPE_CANCEL_URL", "https://dojobill.app/cancel")
    monkeypatch.setenv("STRIPE_CUSTOMER_PORTAL_RETURN_URL", "https://dojobill.app/account")
    monkeypatch.setenv("MEMBERS_TABLE", MEMBERS_TABLE)
    for name in ("STRIPE_VERIFY_SIGNATURES", "STRIPE_PORTAL_REDIRECT", "STRIPE_SECRET_ARN", "STRIPE_WEBHOOK_SECRET_ARN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def reset_cached_state():
    """Reset config and AWS client singletons between tests."""
    from shared.aws_clients import reset_clients
    from shared.config import reset_config

    reset_config()
    reset_clients()
    yield
    reset_config()
    reset_clients()


def create_members_table(dynamodb):
    """Create the members table with its Stripe customer GSI."""
    return dynamodb.create_table(
        TableName=MEMBERS_TABLE,
        KeySchema=[{"AttributeName": "pk", "KeyType": "HASH"}],
        AttributeDefinitions=[
            {"AttributeName": "pk", "AttributeType": "S"},
            {"AttributeName": "stripe_customer_id", "AttributeType": "S"},
        ],
        GlobalSecondaryIndexes=[
            {
                "IndexName": "stripe-customer-index",
                "KeySchema": [{"AttributeName": "stripe_customer_id", "KeyType": "HASH"}],
                "Projection": {"ProjectionType": "ALL"},
            },
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def mock_dynamodb():
    """Provide mocked DynamoDB with tables."""
    with mock_aws():
        dynamodb = boto3.resource("dynamodb", region_name="us-east-1")
        create_members_table(dynamodb)
        yield dynamodb


@pytest.fixture
def members_table(mock_dynamodb):
    return mock_dynamodb.Table(MEMBERS_TABLE)


@pytest.fixture
def member_store(members_table):
    from shared.members import MemberStore

    return MemberStore(members_table)


@pytest.fixture
def seeded_member(members_table):
    """A provisioned, unsubscribed member with customer cus_1."""
    item = {
        "pk": "mem_seeded",
        "email": "sensei@example.com",
        "name": "Sensei Kano",
        "stripe_customer_id": "cus_1",
        "is_subscribed": False,
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    members_table.put_item(Item=item)
    return item


@pytest.fixture
def api_gateway_event():
    """Base API Gateway event for Lambda handler tests."""
    return {
        "httpMethod": "POST",
        "headers": {},
        "pathParameters": {},
        "queryStringParameters": {},
        "body": None,
        "requestContext": {
            "requestId": "req-test-123",
            "identity": {"sourceIp": "127.0.0.1"},
        },
    }


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int | None = None) -> str:
    """Build a Stripe-Signature header the way Stripe does."""
    timestamp = timestamp or int(time.time())
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, obj: dict, event_id: str = "evt_test_1") -> dict:
    """Minimal Stripe event envelope."""
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "data": {"object": obj},
    }


@pytest.fixture
def webhook_request(api_gateway_event):
    """Build a signed webhook request for an event envelope."""

    def _build(envelope: dict, signed: bool = True) -> dict:
        payload = json.dumps(envelope)
        api_gateway_event["body"] = payload
        if signed:
            api_gateway_event["headers"]["Stripe-Signature"] = sign_payload(payload)
        return api_gateway_event

    return _build
