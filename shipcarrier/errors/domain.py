"""Typed domain exceptions for the carrier client.

Every failure a caller can observe is one of these classes. Routing on
exception type replaces string matching on carrier messages.

Usage:
    # In service layer
    raise ValidationError("Missing Billing Pincode")

    # In host application
    try:
        result = await client.create_shipment(fulfillment, items, order)
    except WaybillAssignmentFailed as e:
        notify_operator(e.carrier_order_id, str(e))
"""

from typing import Any

from shipcarrier.errors.registry import get_error


class DomainError(Exception):
    """Base exception for all domain errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class CarrierError(DomainError):
    """Base class for carrier client failures.

    Attributes:
        message: Human-readable error message.
        status_code: HTTP status that produced the error, if any.
        field_errors: Carrier field-level errors ({field: [messages]}).
        details: Raw carrier payload or extra context.
    """

    code = "E-3006"

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        field_errors: dict[str, list[str]] | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.field_errors = field_errors or {}
        self.details = details or {}

    @property
    def remediation(self) -> str:
        """Operator action from the error registry."""
        error_def = get_error(self.code)
        return error_def.remediation if error_def else ""

    @property
    def is_retryable(self) -> bool:
        """Whether the registry marks this error as transient."""
        error_def = get_error(self.code)
        return error_def.is_retryable if error_def else False

    def __str__(self) -> str:
        """Return formatted error message."""
        return f"[{self.code}] {self.message}"


class AuthenticationError(CarrierError):
    """Credentials rejected or token invalid. Maps to HTTP 401."""

    code = "E-5001"


class RateLimited(CarrierError):
    """Carrier is throttling requests. Maps to HTTP 429."""

    code = "E-3001"


class ValidationError(CarrierError):
    """Input data is invalid. Never retried."""

    code = "E-2001"


class MappingError(CarrierError):
    """A fulfillment item cannot be resolved against its order."""

    code = "E-1001"


class NotFound(CarrierError):
    """Carrier resource does not exist. Maps to HTTP 404."""

    code = "E-3002"


class NoCourierAvailable(CarrierError):
    """No (allowed) courier serves the requested lane."""

    code = "E-3003"


class CarrierRejected(CarrierError):
    """Carrier refused to create the order."""

    code = "E-3004"


class WaybillAssignmentFailed(CarrierError):
    """AWB assignment failed after the carrier order was created.

    Attributes:
        carrier_order_id: Carrier order the rollback targeted.
        rollback_succeeded: Whether the compensating cancellation went through.
    """

    code = "E-3005"

    def __init__(
        self,
        message: str,
        *,
        carrier_order_id: str | None = None,
        rollback_succeeded: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.carrier_order_id = carrier_order_id
        self.rollback_succeeded = rollback_succeeded


class UnexpectedCarrierState(CarrierError):
    """Generic carrier or transport failure."""

    code = "E-3006"


class ClientDisposedError(CarrierError):
    """The client was disposed before or during the operation."""

    code = "E-4001"
