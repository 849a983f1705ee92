"""Host-facing carrier client.

Wires one transport and one token manager into the rate, order, tracking
and document services, so every operation shares a single credential and
HTTP connection pool.

Example:
    async with CarrierClient.from_config(load_config()) as client:
        price = await client.calculate_price(context)
        result = await client.create_shipment(fulfillment, items, order)
        docs = await client.get_documents(result)
"""

import logging
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Iterable

from shipcarrier.errors.domain import ValidationError
from shipcarrier.services.carrier_constants import (
    DEFAULT_BASE_URL,
    DEFAULT_PICKUP_LOCATION,
    DEFAULT_REFRESH_HORIZON_HOURS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOKEN_LIFETIME_HOURS,
)
from shipcarrier.services.documents import DocumentGenerator, ShipmentDocuments
from shipcarrier.services.order_orchestrator import OrderOrchestrator, ShipmentResult
from shipcarrier.services.rate_calculator import (
    RateCalculator,
    RateQuery,
    RateQuote,
    build_rate_query,
)
from shipcarrier.services.token_manager import Credential, TokenManager, login
from shipcarrier.services.tracking import TrackingResult, TrackingService
from shipcarrier.services.transport import CarrierTransport

if TYPE_CHECKING:
    from shipcarrier.config import ShipCarrierConfig

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class CarrierClient:
    """Resilient client for the carrier REST API.

    Attributes:
        token_manager: Credential owner shared by all operations.
        cod: Whether rate quotes assume cash-on-delivery.
    """

    def __init__(
        self,
        email: str,
        password: str,
        *,
        pickup_location: str = DEFAULT_PICKUP_LOCATION,
        cod: bool = False,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        token_lifetime: timedelta = timedelta(hours=DEFAULT_TOKEN_LIFETIME_HOURS),
        refresh_horizon: timedelta = timedelta(hours=DEFAULT_REFRESH_HORIZON_HOURS),
        return_address: dict[str, Any] | None = None,
        transport: CarrierTransport | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize the client.

        Args:
            email: Carrier account email.
            password: Carrier account password.
            pickup_location: Pickup location name registered with the carrier.
            cod: Quote rates as cash-on-delivery.
            base_url: Carrier API base URL.
            timeout: Per-request timeout ceiling in seconds.
            token_lifetime: How long an issued token is trusted.
            refresh_horizon: Window before expiry that triggers proactive refresh.
            return_address: Warehouse address for return shipments.
            transport: Pre-built transport (tests inject a fake-backed one).
            clock: Source of the current time.

        Raises:
            ValidationError: Email or password is blank.
        """
        if not email or not password:
            raise ValidationError("Carrier email and password are required")

        self.cod = cod
        self._refresh_horizon = refresh_horizon
        self._transport = transport or CarrierTransport(base_url=base_url, timeout=timeout)
        self.token_manager = TokenManager(
            authenticate=lambda: login(
                self._transport, email, password, lifetime=token_lifetime, clock=clock,
            ),
            clock=clock,
        )
        self._rates = RateCalculator(self._transport, self.token_manager)
        self._orders = OrderOrchestrator(
            self._transport,
            self.token_manager,
            pickup_location=pickup_location,
            return_address=return_address,
            clock=clock,
        )
        self._tracking = TrackingService(self._transport, self.token_manager)
        self._documents = DocumentGenerator(self._transport, self.token_manager)

    @classmethod
    def from_config(
        cls,
        config: "ShipCarrierConfig",
        transport: CarrierTransport | None = None,
    ) -> "CarrierClient":
        """Build a client from loaded configuration."""
        carrier = config.carrier
        return cls(
            carrier.email,
            carrier.password,
            pickup_location=carrier.pickup_location,
            cod=carrier.cod,
            base_url=carrier.base_url,
            timeout=carrier.timeout_seconds,
            token_lifetime=timedelta(hours=carrier.token_lifetime_hours),
            refresh_horizon=timedelta(hours=carrier.refresh_horizon_hours),
            return_address=config.return_address.model_dump() if config.return_address else None,
            transport=transport,
        )

    async def get_rate(self, query: RateQuery) -> Decimal:
        """Cheapest permitted rate for a lane, rounded up."""
        return await self._rates.calculate(query)

    async def get_rate_quote(self, query: RateQuery) -> RateQuote:
        """Cheapest permitted rate with the selected courier and all permitted options."""
        return await self._rates.quote(query)

    async def calculate_price(
        self,
        context: dict[str, Any],
        allowed_carrier_ids: Iterable[str] | None = None,
    ) -> Decimal:
        """Rate a host checkout context (from_location, shipping_address, items)."""
        query = build_rate_query(context, cod=self.cod, allowed_carrier_ids=allowed_carrier_ids)
        return await self._rates.calculate(query)

    async def create_shipment(
        self,
        fulfillment: dict[str, Any] | None,
        items: list[dict[str, Any]],
        order: dict[str, Any],
    ) -> ShipmentResult:
        """Create a carrier order and assign its waybill (rolled back on failure)."""
        return await self._orders.create(fulfillment, items, order)

    async def cancel_shipment(self, carrier_order_id: str) -> None:
        """Cancel a carrier order; failures propagate."""
        if not carrier_order_id:
            raise ValidationError("Carrier order id is required to cancel a shipment")
        await self._orders.cancel(str(carrier_order_id))

    async def get_tracking(self, tracking_number: str) -> TrackingResult:
        return await self._tracking.track(tracking_number)

    async def create_return(self, fulfillment: dict[str, Any]) -> ShipmentResult:
        """Create a return order shipped back to the configured warehouse."""
        return await self._orders.create_return(fulfillment)

    async def get_documents(self, shipment_ref: Any) -> ShipmentDocuments:
        """Label, manifest and invoice URLs; empty string for each unavailable one."""
        return await self._documents.documents(shipment_ref)

    async def refresh_token(self) -> Credential:
        """Force re-authentication regardless of the current credential."""
        return await self.token_manager.force_refresh()

    async def refresh_token_if_expiring(self) -> bool:
        """Refresh when the credential expires within the refresh horizon.

        Returns:
            True if a refresh was performed.
        """
        return await self.token_manager.refresh_if_expiring(self._refresh_horizon)

    def dispose(self) -> None:
        """Refuse further authentication; in-flight logins fail on completion."""
        self.token_manager.dispose()

    async def aclose(self) -> None:
        """Dispose and close the HTTP connection pool."""
        self.dispose()
        await self._transport.aclose()
        logger.debug("Carrier client closed")

    async def __aenter__(self) -> "CarrierClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()
