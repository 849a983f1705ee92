"""Canonical carrier API constants.

Single source of truth for endpoint paths, token lifetimes, unit
conversions and payload defaults. All service modules import from here
instead of using inline magic values.
"""

from enum import Enum


# ---------------------------------------------------------------------------
# Carrier identity
# ---------------------------------------------------------------------------

CARRIER_NAME = "Shiprocket"
DEFAULT_BASE_URL = "https://apiv2.shiprocket.in/v1/external"
TRACKING_URL_BASE = "https://shiprocket.co/tracking/"

# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

AUTH_LOGIN_PATH = "/auth/login"
SERVICEABILITY_PATH = "/courier/serviceability/"
ORDER_CREATE_PATH = "/orders/create/adhoc"
RETURN_CREATE_PATH = "/orders/create/return"
ASSIGN_AWB_PATH = "/courier/assign/awb"
ORDER_CANCEL_PATH = "/orders/cancel"
TRACK_AWB_PATH = "/courier/track/awb/{awb}"
MANIFEST_PATH = "/manifests/generate"
LABEL_PATH = "/courier/generate/label"
INVOICE_PATH = "/orders/print/invoice"

# ---------------------------------------------------------------------------
# Timeouts and token lifecycle
# ---------------------------------------------------------------------------

DEFAULT_TIMEOUT_SECONDS = 10.0
# Carrier tokens are valid for 10 days; treat them as expired after 8.
DEFAULT_TOKEN_LIFETIME_HOURS = 8 * 24
DEFAULT_REFRESH_HORIZON_HOURS = 24

# ---------------------------------------------------------------------------
# Units and payload defaults
# ---------------------------------------------------------------------------

GRAMS_PER_KG = 1000
DEFAULT_PICKUP_LOCATION = "Primary"
DEFAULT_RATE_WEIGHT_KG = 0.5
ORDER_DATE_FORMAT = "%d-%m-%Y %H:%M"
EXTERNAL_ID_SUFFIX_LEN = 10

# Returns rarely carry measured variant data
DEFAULT_RETURN_LENGTH_CM = 10.0
DEFAULT_RETURN_BREADTH_CM = 10.0
DEFAULT_RETURN_HEIGHT_CM = 10.0
DEFAULT_RETURN_WEIGHT_KG = 0.5

AWB_ASSIGNED_STATUS = 1


class PaymentMethod(str, Enum):
    """Carrier payment method values."""

    PREPAID = "Prepaid"
    COD = "COD"


class CarrierOrderState(str, Enum):
    """States of a carrier order during the create/assign sequence."""

    DRAFT = "draft"
    CREATED = "created"
    AWB_ASSIGNED = "awb_assigned"
    ROLLBACK_ATTEMPTED = "rollback_attempted"
    FAILED = "failed"


# Terminal states of CarrierOrderState
TERMINAL_ORDER_STATES: frozenset[CarrierOrderState] = frozenset({
    CarrierOrderState.AWB_ASSIGNED,
    CarrierOrderState.FAILED,
})
