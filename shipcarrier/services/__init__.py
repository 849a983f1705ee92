"""Service layer for shipcarrier.

Provides the carrier client facade and the rate, order, tracking and
document services it composes.
"""

from shipcarrier.services.carrier_client import CarrierClient
from shipcarrier.services.documents import ShipmentDocuments
from shipcarrier.services.order_orchestrator import ShipmentResult
from shipcarrier.services.rate_calculator import CarrierOption, RateQuery
from shipcarrier.services.token_manager import Credential, TokenManager
from shipcarrier.services.tracking import TrackingEvent, TrackingResult

__all__ = [
    "CarrierClient",
    "CarrierOption",
    "Credential",
    "RateQuery",
    "ShipmentDocuments",
    "ShipmentResult",
    "TokenManager",
    "TrackingEvent",
    "TrackingResult",
]
