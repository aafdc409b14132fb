"""
Billing configuration, loaded once per Lambda container.

Values come from the environment, with Stripe secrets optionally pulled
from Secrets Manager. The resulting ``BillingConfig`` is passed explicitly
to every component that talks to Stripe or DynamoDB; nothing assigns a
process-wide ``stripe.api_key``.
"""

import json
import logging
import os
import time
from dataclasses import dataclass

from botocore.exceptions import ClientError

from shared.aws_clients import get_secretsmanager
from shared.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_MEMBERS_TABLE = "dojobill-members"
DEFAULT_BASE_URL = "https://dojobill.app"

_TRUE_VALUES = ("1", "true", "yes", "on")

# Cached config with TTL so rotated secrets are picked up
_config_cache = None
_config_cache_time = 0.0
CONFIG_CACHE_TTL = 300  # 5 minutes


@dataclass(frozen=True)
class BillingConfig:
    """Everything the handlers need to reach Stripe and the member table."""

    stripe_secret_key: str | None
    publishable_key: str | None
    webhook_secret: str | None
    verify_signatures: bool
    success_url: str
    cancel_url: str
    portal_return_url: str
    portal_redirect: bool = False
    members_table: str = DEFAULT_MEMBERS_TABLE

    def require_secret_key(self) -> str:
        if not self.stripe_secret_key:
            raise ConfigurationError()
        return self.stripe_secret_key

    def require_publishable_key(self) -> str:
        if not self.publishable_key:
            raise ConfigurationError("Publishable key not configured")
        return self.publishable_key

    def require_webhook_secret(self) -> str:
        if not self.webhook_secret:
            raise ConfigurationError("Webhook signing secret not configured")
        return self.webhook_secret


def _env_flag(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return value.strip().lower() in _TRUE_VALUES


def _read_secret(secret_arn: str | None, json_field: str) -> str | None:
    """Fetch a secret string, accepting either raw text or ``{json_field: ...}``."""
    if not secret_arn:
        return None

    try:
        response = get_secretsmanager().get_secret_value(SecretId=secret_arn)
    except ClientError as e:
        logger.error(f"Failed to retrieve secret {secret_arn}: {e}")
        return None

    secret_value = response.get("SecretString", "")
    try:
        secret_json = json.loads(secret_value)
    except json.JSONDecodeError:
        return secret_value or None

    if isinstance(secret_json, dict):
        return secret_json.get(json_field) or secret_value
    return secret_value or None


def load_config() -> BillingConfig:
    """Build a BillingConfig from the current environment."""
    base_url = (os.environ.get("BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

    secret_key = os.environ.get("STRIPE_SECRET_KEY") or _read_secret(
        os.environ.get("STRIPE_SECRET_ARN"), "key"
    )
    webhook_secret = os.environ.get("STRIPE_WHSEC") or _read_secret(
        os.environ.get("STRIPE_WEBHOOK_SECRET_ARN"), "secret"
    )
    verify_signatures = _env_flag("STRIPE_VERIFY_SIGNATURES", True)

    if not verify_signatures:
        logger.warning(
            "WEBHOOK SIGNATURE VERIFICATION IS DISABLED - any caller can forge "
            "Stripe events. Only use STRIPE_VERIFY_SIGNATURES=false for local development."
        )

    return BillingConfig(
        stripe_secret_key=secret_key or None,
        publishable_key=os.environ.get("STRIPE_PUBLISHABLE_KEY") or None,
        webhook_secret=webhook_secret or None,
        verify_signatures=verify_signatures,
        success_url=os.environ.get("STRIPE_SUCCESS_URL") or f"{base_url}/checkout/success",
        cancel_url=os.environ.get("STRIPE_CANCEL_URL") or f"{base_url}/checkout/cancel",
        portal_return_url=os.environ.get("STRIPE_CUSTOMER_PORTAL_RETURN_URL") or f"{base_url}/account",
        portal_redirect=_env_flag("STRIPE_PORTAL_REDIRECT", False),
        members_table=os.environ.get("MEMBERS_TABLE") or DEFAULT_MEMBERS_TABLE,
    )


def get_config() -> BillingConfig:
    """Return the cached BillingConfig, reloading after the TTL expires."""
    global _config_cache, _config_cache_time

    if _config_cache is not None and (time.time() - _config_cache_time) < CONFIG_CACHE_TTL:
        return _config_cache

    _config_cache = load_config()
    _config_cache_time = time.time()
    return _config_cache


def reset_config():
    """Drop the cached config. Used in tests for clean state."""
    global _config_cache, _config_cache_time
    _config_cache = None
    _config_cache_time = 0.0
