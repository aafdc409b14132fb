"""Shared request utilities for API handlers."""

import base64
import binascii
import json
import logging

from shared.errors import ValidationError

logger = logging.getLogger(__name__)


def get_origin(event: dict) -> str | None:
    """Extract Origin header from request."""
    headers = event.get("headers", {}) or {}
    return headers.get("origin") or headers.get("Origin")


def get_header(event: dict, name: str) -> str | None:
    """Case-insensitive header lookup (API Gateway may lowercase names)."""
    headers = event.get("headers", {}) or {}
    wanted = name.lower()
    for key, value in headers.items():
        if key.lower() == wanted:
            return value
    return None


def get_raw_body(event: dict) -> str:
    """Return the request body exactly as sent, undoing API Gateway base64."""
    body = event.get("body") or ""
    if event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as e:
            raise ValidationError("Invalid request body") from e
    return body


def parse_json_body(event: dict) -> dict:
    """Parse the JSON request body into a dict.

    Raises:
        ValidationError: body is not a JSON object
    """
    try:
        body = json.loads(get_raw_body(event) or "{}")
    except json.JSONDecodeError as e:
        raise ValidationError("Invalid request body") from e

    if not isinstance(body, dict):
        raise ValidationError("Invalid request body")
    return body


def require_string(body: dict, field: str, message: str | None = None) -> str:
    """Return a non-empty string field or raise ValidationError."""
    value = body.get(field)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message or f"Missing or invalid field: {field}")
    return value.strip()
