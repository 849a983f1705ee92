"""Error handling framework for shipcarrier.

This package provides:
- Error code registry with E-XXXX format codes
- Typed domain exceptions raised by the carrier client
- Carrier HTTP failure translation to domain exceptions

Error categories:
- E-1xxx: Order data / mapping errors
- E-2xxx: Validation errors
- E-3xxx: Carrier API errors
- E-4xxx: System/internal errors
- E-5xxx: Authentication errors
"""

from shipcarrier.errors.domain import (
    AuthenticationError,
    CarrierError,
    CarrierRejected,
    ClientDisposedError,
    DomainError,
    MappingError,
    NoCourierAvailable,
    NotFound,
    RateLimited,
    UnexpectedCarrierState,
    ValidationError,
    WaybillAssignmentFailed,
)
from shipcarrier.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
)
from shipcarrier.errors.translation import (
    extract_carrier_error,
    translate_http_error,
    translate_transport_error,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    # Domain errors
    "DomainError",
    "CarrierError",
    "AuthenticationError",
    "RateLimited",
    "ValidationError",
    "MappingError",
    "NotFound",
    "NoCourierAvailable",
    "CarrierRejected",
    "WaybillAssignmentFailed",
    "UnexpectedCarrierState",
    "ClientDisposedError",
    # Translation
    "translate_http_error",
    "translate_transport_error",
    "extract_carrier_error",
]
