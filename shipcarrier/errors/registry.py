"""Error code registry with E-XXXX format codes.

This module defines the error code system for shipcarrier, organizing errors
into categories:
- E-1xxx: Order data / mapping errors
- E-2xxx: Validation errors
- E-3xxx: Carrier API errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors

Each error includes a code, title, and remediation steps. Messages are
supplied by the raising site, which knows the offending item or field.
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    DATA = "data"  # E-1xxx: Order data / mapping errors
    VALIDATION = "validation"  # E-2xxx: Validation errors
    CARRIER_API = "carrier_api"  # E-3xxx: Carrier API errors
    SYSTEM = "system"  # E-4xxx: System/internal errors
    AUTH = "auth"  # E-5xxx: Authentication errors


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Error code in E-XXXX format.
        category: Error category for grouping.
        title: Short title for display.
        remediation: Action the operator should take to resolve.
        is_retryable: Whether the operation can be retried without operator action.
    """

    code: str
    category: ErrorCategory
    title: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    # Data errors (E-1xxx)
    "E-1001": ErrorCode(
        code="E-1001",
        category=ErrorCategory.DATA,
        title="Order Line Not Found",
        remediation="Check that every fulfillment item references a line item of the order.",
    ),
    # Validation errors (E-2xxx)
    "E-2001": ErrorCode(
        code="E-2001",
        category=ErrorCategory.VALIDATION,
        title="Invalid Shipment Data",
        remediation="Correct the order, address or product variant data and retry.",
    ),
    # Carrier API errors (E-3xxx)
    "E-3001": ErrorCode(
        code="E-3001",
        category=ErrorCategory.CARRIER_API,
        title="Carrier Rate Limit",
        remediation="Wait before retrying. The carrier is throttling requests.",
        is_retryable=True,
    ),
    "E-3002": ErrorCode(
        code="E-3002",
        category=ErrorCategory.CARRIER_API,
        title="Carrier Resource Not Found",
        remediation="Verify the order, shipment or AWB identifier.",
    ),
    "E-3003": ErrorCode(
        code="E-3003",
        category=ErrorCategory.CARRIER_API,
        title="No Courier Available",
        remediation="Check the pickup and delivery postcodes, or widen the allowed courier list.",
    ),
    "E-3004": ErrorCode(
        code="E-3004",
        category=ErrorCategory.CARRIER_API,
        title="Order Rejected by Carrier",
        remediation="Fix the field reported by the carrier and create the shipment again.",
    ),
    "E-3005": ErrorCode(
        code="E-3005",
        category=ErrorCategory.CARRIER_API,
        title="Waybill Assignment Failed",
        remediation="The carrier order was cancelled. Retry, or assign a courier manually in the carrier panel.",
    ),
    "E-3006": ErrorCode(
        code="E-3006",
        category=ErrorCategory.CARRIER_API,
        title="Unexpected Carrier Response",
        remediation="Retry later. Contact carrier support if the problem persists.",
        is_retryable=True,
    ),
    # System errors (E-4xxx)
    "E-4001": ErrorCode(
        code="E-4001",
        category=ErrorCategory.SYSTEM,
        title="Client Disposed",
        remediation="Create a new carrier client; this one has been shut down.",
    ),
    # Authentication errors (E-5xxx)
    "E-5001": ErrorCode(
        code="E-5001",
        category=ErrorCategory.AUTH,
        title="Carrier Authentication Failed",
        remediation="Check the carrier API email and password in configuration.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Error code in E-XXXX format.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]
