"""AWB tracking lookup and response normalization."""

import logging
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

from shipcarrier.errors.domain import ValidationError
from shipcarrier.services.carrier_constants import TRACK_AWB_PATH, TRACKING_URL_BASE
from shipcarrier.services.token_manager import TokenManager, call_with_reauth
from shipcarrier.services.transport import CarrierTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackingEvent:
    """One scan/activity of a shipment."""

    date: str
    activity: str
    location: str = ""
    status: str = ""


@dataclass(frozen=True)
class TrackingResult:
    """Normalized tracking state of an AWB."""

    tracking_number: str
    tracking_url: str
    track_status: int | None = None
    shipment_status: str | None = None
    current_status: str | None = None
    etd: str | None = None
    courier_name: str | None = None
    events: tuple[TrackingEvent, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)


def _unwrap(tracking_number: str, response: Any) -> dict[str, Any]:
    """Return the tracking_data block, unwrapping ``{awb: {...}}`` responses."""
    if not isinstance(response, dict):
        return {}
    if "tracking_data" not in response and isinstance(response.get(tracking_number), dict):
        response = response[tracking_number]
    data = response.get("tracking_data")
    return data if isinstance(data, dict) else {}


def parse_tracking_response(tracking_number: str, response: Any) -> TrackingResult:
    """Normalize a carrier tracking response.

    Activities come from ``shipment_track_activities`` or ``scans``; the
    current status from ``current_status`` or the first ``shipment_track`` row.
    """
    data = _unwrap(tracking_number, response)

    shipment_track = data.get("shipment_track") or []
    first_track = shipment_track[0] if shipment_track and isinstance(shipment_track[0], dict) else {}

    activities = data.get("shipment_track_activities") or data.get("scans") or []
    events = tuple(
        TrackingEvent(
            date=str(a.get("date", "")),
            activity=str(a.get("activity", "")),
            location=str(a.get("location") or ""),
            status=str(a.get("status") or a.get("sr-status-label") or ""),
        )
        for a in activities
        if isinstance(a, dict)
    )

    track_status = data.get("track_status")
    shipment_status = data.get("shipment_status")
    current_status = data.get("current_status") or first_track.get("current_status")

    return TrackingResult(
        tracking_number=tracking_number,
        tracking_url=str(data.get("track_url") or f"{TRACKING_URL_BASE}{tracking_number}"),
        track_status=int(track_status) if isinstance(track_status, (int, str)) and str(track_status).isdigit() else None,
        shipment_status=str(shipment_status) if shipment_status is not None else None,
        current_status=str(current_status) if current_status else None,
        etd=data.get("etd") or first_track.get("edd"),
        courier_name=data.get("courier_name") or first_track.get("courier_name"),
        events=events,
        raw=response if isinstance(response, dict) else {},
    )


class TrackingService:
    """Tracking lookups by AWB."""

    def __init__(self, transport: CarrierTransport, token_manager: TokenManager) -> None:
        self._transport = transport
        self._token_manager = token_manager

    async def track(self, tracking_number: str) -> TrackingResult:
        """Fetch the tracking state of an AWB.

        Raises:
            ValidationError: Blank tracking number.
            NotFound: Carrier does not know the AWB.
        """
        tracking_number = (tracking_number or "").strip()
        if not tracking_number:
            raise ValidationError("Tracking number is required")

        path = TRACK_AWB_PATH.format(awb=quote(tracking_number, safe=""))
        response = await call_with_reauth(
            self._token_manager,
            lambda token: self._transport.request("GET", path, token=token),
        )
        result = parse_tracking_response(tracking_number, response)
        logger.debug("Tracking %s: %s", tracking_number, result.current_status)
        return result
