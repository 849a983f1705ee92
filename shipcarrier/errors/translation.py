"""Carrier HTTP failure translation to domain errors.

This module is the only place that inspects HTTP status codes and carrier
error payloads. Everything above it deals in the typed exceptions from
shipcarrier.errors.domain.
"""

from typing import Any

import httpx

from shipcarrier.errors.domain import (
    AuthenticationError,
    CarrierError,
    NotFound,
    RateLimited,
    UnexpectedCarrierState,
    ValidationError,
)
from shipcarrier.utils.redaction import sanitize_error_message

# Fallback messages when the carrier payload carries none
_STATUS_MESSAGES: dict[int, str] = {
    401: "Authentication failed with carrier",
    429: "Rate limit exceeded. Please try again later.",
    404: "Carrier resource not found",
}


def extract_carrier_error(body: Any) -> tuple[str | None, dict[str, list[str]]]:
    """Extract message and field errors from a carrier error payload.

    Carrier error payloads vary in structure. This handles the common formats:
    ``{"message": ..., "errors": {"field": ["msg", ...]}}``, errors whose
    values are plain strings, and ``{"errors": [{"field": ..., "message": ...}]}``.

    Args:
        body: Decoded JSON body (or raw text) of the error response.

    Returns:
        Tuple of (message, field_errors); message may be None.
    """
    if not isinstance(body, dict):
        text = str(body).strip() if body else ""
        return (sanitize_error_message(text) or None, {})

    message = body.get("message") or body.get("error")
    if message is not None and not isinstance(message, str):
        message = str(message)

    field_errors: dict[str, list[str]] = {}
    errors = body.get("errors")
    if isinstance(errors, dict):
        for field, msgs in errors.items():
            if isinstance(msgs, list):
                field_errors[str(field)] = [str(m) for m in msgs]
            elif msgs is not None:
                field_errors[str(field)] = [str(msgs)]
    elif isinstance(errors, list):
        for err in errors:
            if isinstance(err, dict):
                field = str(err.get("field") or err.get("code") or "error")
                field_errors.setdefault(field, []).append(str(err.get("message", "")))

    return (message, field_errors)


def format_field_errors(field_errors: dict[str, list[str]]) -> str:
    """Join field errors as ``field: msg1, msg2; other: msg``.

    Args:
        field_errors: Mapping of field name to messages.

    Returns:
        Single-line summary.
    """
    return "; ".join(
        f"{field}: {', '.join(msgs)}" for field, msgs in field_errors.items()
    )


def first_field_error(field_errors: dict[str, list[str]]) -> str | None:
    """Return the first message of the first field, if any."""
    for msgs in field_errors.values():
        if msgs:
            return msgs[0]
    return None


def translate_http_error(status_code: int, body: Any = None) -> CarrierError:
    """Translate a carrier HTTP error response into a domain error.

    Args:
        status_code: HTTP status of the response.
        body: Decoded JSON body (or raw text) of the response.

    Returns:
        CarrierError subclass instance (not raised).
    """
    message, field_errors = extract_carrier_error(body)
    details = body if isinstance(body, dict) else {"raw": body}
    kwargs: dict[str, Any] = {
        "status_code": status_code,
        "field_errors": field_errors,
        "details": details,
    }

    if status_code == 401:
        return AuthenticationError(_STATUS_MESSAGES[401], **kwargs)

    if status_code == 429:
        return RateLimited(_STATUS_MESSAGES[429], **kwargs)

    if status_code == 400 and field_errors:
        return ValidationError(
            f"Validation failed: {format_field_errors(field_errors)}", **kwargs
        )

    if status_code == 404:
        return NotFound(message or _STATUS_MESSAGES[404], **kwargs)

    return UnexpectedCarrierState(
        message or f"Carrier request failed with status {status_code}", **kwargs
    )


def translate_transport_error(exc: httpx.HTTPError) -> CarrierError:
    """Translate a transport failure (timeout, connection) into a domain error.

    Args:
        exc: The httpx exception raised before a response was received.

    Returns:
        UnexpectedCarrierState instance (not raised).
    """
    if isinstance(exc, httpx.TimeoutException):
        message = f"Carrier request timed out: {type(exc).__name__}"
    else:
        message = f"Network error talking to carrier: {sanitize_error_message(str(exc))}"
    return UnexpectedCarrierState(message, details={"exception": type(exc).__name__})
