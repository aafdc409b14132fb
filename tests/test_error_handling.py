"""
Tests for the error taxonomy and request parsing helpers.
"""

import base64
import json

import pytest

from shared.errors import (
    APIError,
    ConfigurationError,
    DecodeError,
    InvalidSignatureError,
    NotFoundError,
    PersistenceError,
    UpstreamError,
    ValidationError,
)
from shared.request_utils import get_header, get_raw_body, parse_json_body, require_string


class TestErrorTaxonomy:
    @pytest.mark.parametrize(
        "error, status, code",
        [
            (ValidationError("bad"), 400, "invalid_request"),
            (InvalidSignatureError(), 400, "invalid_signature"),
            (DecodeError(), 400, "invalid_webhook_payload"),
            (NotFoundError("missing"), 404, "not_found"),
            (UpstreamError("card declined"), 500, "stripe_error"),
            (PersistenceError("write failed"), 500, "persistence_error"),
            (ConfigurationError(), 500, "stripe_not_configured"),
        ],
    )
    def test_status_and_code(self, error, status, code):
        assert isinstance(error, APIError)
        assert error.status_code == status
        assert error.code == code

    def test_invalid_signature_is_a_validation_error(self):
        assert isinstance(InvalidSignatureError(), ValidationError)

    def test_to_response(self):
        response = UpstreamError("Your card was declined.").to_response()

        assert response["statusCode"] == 500
        assert json.loads(response["body"]) == {"error": "Your card was declined."}

    def test_to_response_status_override(self):
        response = NotFoundError("No member found for customer cus_x").to_response(status_code=500)

        assert response["statusCode"] == 500


class TestRequestParsing:
    def test_get_header_is_case_insensitive(self):
        event = {"headers": {"stripe-signature": "t=1,v1=abc"}}

        assert get_header(event, "Stripe-Signature") == "t=1,v1=abc"
        assert get_header({"headers": None}, "Stripe-Signature") is None

    def test_get_raw_body_decodes_base64(self):
        payload = '{"type": "invoice.paid"}'
        event = {"body": base64.b64encode(payload.encode()).decode(), "isBase64Encoded": True}

        assert get_raw_body(event) == payload

    def test_get_raw_body_rejects_bad_base64(self):
        with pytest.raises(ValidationError):
            get_raw_body({"body": "abc", "isBase64Encoded": True})

    def test_parse_json_body_empty_is_empty_dict(self):
        assert parse_json_body({"body": None}) == {}

    @pytest.mark.parametrize("body", ["not json", "[1, 2]", '"text"'])
    def test_parse_json_body_rejects_non_objects(self, body):
        with pytest.raises(ValidationError, match="Invalid request body"):
            parse_json_body({"body": body})

    def test_require_string(self):
        assert require_string({"customerId": " cus_1 "}, "customerId") == "cus_1"

        with pytest.raises(ValidationError, match="Invalid customer ID"):
            require_string({"customerId": ""}, "customerId", "Invalid customer ID")
        with pytest.raises(ValidationError, match="customerId"):
            require_string({}, "customerId")
