"""Tests for carrier HTTP failure translation."""

import httpx
import pytest

from shipcarrier.errors import (
    AuthenticationError,
    NotFound,
    RateLimited,
    UnexpectedCarrierState,
    ValidationError,
    extract_carrier_error,
    translate_http_error,
    translate_transport_error,
)
from shipcarrier.errors.translation import first_field_error, format_field_errors


class TestExtractCarrierError:
    """Tests for carrier error payload parsing."""

    def test_message_and_dict_errors(self):
        message, fields = extract_carrier_error({
            "message": "Oops! Invalid Data.",
            "errors": {"billing_pincode": ["The billing pincode must be 6 digits."]},
        })
        assert message == "Oops! Invalid Data."
        assert fields == {"billing_pincode": ["The billing pincode must be 6 digits."]}

    def test_string_field_values_are_wrapped(self):
        _, fields = extract_carrier_error({"errors": {"weight": "required"}})
        assert fields == {"weight": ["required"]}

    def test_list_errors(self):
        message, fields = extract_carrier_error({
            "error": "bad request",
            "errors": [
                {"field": "sku", "message": "duplicate"},
                {"code": "E42", "message": "other"},
            ],
        })
        assert message == "bad request"
        assert fields == {"sku": ["duplicate"], "E42": ["other"]}

    def test_text_body_is_truncated(self):
        message, fields = extract_carrier_error("x" * 800)
        assert len(message) == 500
        assert fields == {}

    def test_text_body_secrets_are_redacted(self):
        message, _ = extract_carrier_error("upstream said password=hunter22")
        assert "hunter22" not in message

    def test_empty_body(self):
        assert extract_carrier_error(None) == (None, {})


def test_format_and_first_field_error():
    fields = {"f": ["m1", "m2"], "g": ["m3"]}
    assert format_field_errors(fields) == "f: m1, m2; g: m3"
    assert first_field_error(fields) == "m1"
    assert first_field_error({}) is None


class TestTranslateHttpError:
    """Status-code table of the translator."""

    def test_401(self):
        err = translate_http_error(401, {"message": "Token expired"})
        assert isinstance(err, AuthenticationError)
        assert err.message == "Authentication failed with carrier"
        assert err.status_code == 401

    def test_429(self):
        err = translate_http_error(429, {})
        assert isinstance(err, RateLimited)
        assert err.message == "Rate limit exceeded. Please try again later."

    def test_400_with_field_errors(self):
        err = translate_http_error(400, {"errors": {"phone": ["invalid"], "email": ["missing"]}})
        assert isinstance(err, ValidationError)
        assert err.message == "Validation failed: phone: invalid; email: missing"
        assert err.field_errors["phone"] == ["invalid"]

    def test_400_without_field_errors_is_unexpected(self):
        err = translate_http_error(400, {"message": "Bad things"})
        assert isinstance(err, UnexpectedCarrierState)
        assert err.message == "Bad things"

    def test_404_uses_carrier_message(self):
        err = translate_http_error(404, {"message": "AWB not found"})
        assert isinstance(err, NotFound)
        assert err.message == "AWB not found"

    def test_404_default_message(self):
        assert translate_http_error(404, {}).message == "Carrier resource not found"

    @pytest.mark.parametrize("status", [422, 500, 503])
    def test_other_statuses(self, status):
        err = translate_http_error(status, {})
        assert isinstance(err, UnexpectedCarrierState)
        assert err.message == f"Carrier request failed with status {status}"
        assert err.status_code == status

    def test_details_keep_raw_text(self):
        err = translate_http_error(502, "<html>Bad Gateway</html>")
        assert err.details == {"raw": "<html>Bad Gateway</html>"}


class TestTranslateTransportError:
    """Tests for network-level failures."""

    def test_timeout(self):
        err = translate_transport_error(httpx.ReadTimeout("read timed out"))
        assert isinstance(err, UnexpectedCarrierState)
        assert err.message == "Carrier request timed out: ReadTimeout"

    def test_connect_error(self):
        err = translate_transport_error(httpx.ConnectError("connection refused"))
        assert isinstance(err, UnexpectedCarrierState)
        assert err.message == "Network error talking to carrier: connection refused"
        assert err.details == {"exception": "ConnectError"}
