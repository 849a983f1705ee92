"""Shipping rate calculation from carrier serviceability.

Queries the couriers serving a lane, optionally restricts them to an
allow-list, and returns the cheapest rate rounded up to a whole currency
unit.

Example:
    calculator = RateCalculator(transport, token_manager)
    amount = await calculator.calculate(RateQuery("110001", "400001", 1.2))
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_CEILING, Decimal, InvalidOperation
from typing import Any, Iterable

from shipcarrier.errors.domain import NoCourierAvailable, ValidationError
from shipcarrier.services.carrier_constants import (
    DEFAULT_RATE_WEIGHT_KG,
    GRAMS_PER_KG,
    SERVICEABILITY_PATH,
)
from shipcarrier.services.token_manager import TokenManager, call_with_reauth
from shipcarrier.services.transport import CarrierTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateQuery:
    """Rate lookup for one lane.

    Attributes:
        origin_postal_code: Pickup postcode.
        destination_postal_code: Delivery postcode.
        weight_kg: Package weight in kilograms.
        cod: Whether the shipment is cash-on-delivery.
        allowed_carrier_ids: Courier ids the merchant permits; None or empty
            means any courier.
        declared_value: Optional declared shipment value.
    """

    origin_postal_code: str
    destination_postal_code: str
    weight_kg: float
    cod: bool = False
    allowed_carrier_ids: frozenset[str] | None = None
    declared_value: Decimal | None = None

    def to_params(self) -> dict[str, Any]:
        """Build serviceability query parameters."""
        params: dict[str, Any] = {
            "pickup_postcode": self.origin_postal_code,
            "delivery_postcode": self.destination_postal_code,
            "weight": self.weight_kg,
            "cod": 1 if self.cod else 0,
        }
        if self.declared_value is not None:
            params["declared_value"] = str(self.declared_value)
        return params


@dataclass(frozen=True)
class CarrierOption:
    """One courier offer for a lane."""

    id: str
    name: str
    rate: Decimal | None
    eta_days: int | None = None


@dataclass(frozen=True)
class RateQuote:
    """Selected rate together with the options it was chosen from."""

    amount: Decimal
    selected: CarrierOption | None
    options: tuple[CarrierOption, ...] = ()


def parse_rate(value: Any) -> Decimal | None:
    """Parse a carrier rate into a Decimal, or None if missing/non-numeric."""
    if value is None or isinstance(value, bool):
        return None
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return rate if rate.is_finite() else None


def _parse_days(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_carrier_options(response: Any) -> list[CarrierOption]:
    """Extract courier options from a serviceability response.

    Args:
        response: Decoded serviceability response.

    Returns:
        Options in carrier order.
    """
    data = response.get("data") if isinstance(response, dict) else None
    companies = data.get("available_courier_companies") if isinstance(data, dict) else None
    if not companies:
        return []

    options = []
    for company in companies:
        if not isinstance(company, dict):
            continue
        courier_id = company.get("courier_company_id", company.get("id"))
        options.append(CarrierOption(
            id=str(courier_id) if courier_id is not None else "",
            name=str(company.get("courier_name", "")),
            rate=parse_rate(company.get("rate")),
            eta_days=_parse_days(
                company.get("estimated_delivery_days", company.get("days"))
            ),
        ))
    return options


def filter_allowed(
    options: list[CarrierOption], allowed_ids: Iterable[str] | None,
) -> list[CarrierOption]:
    """Keep only options whose id is in ``allowed_ids`` (compared as strings)."""
    allowed = {str(i) for i in allowed_ids} if allowed_ids else set()
    if not allowed:
        return list(options)
    return [o for o in options if o.id in allowed]


def select_cheapest(options: list[CarrierOption]) -> CarrierOption | None:
    """Pick the lowest-rate option; the first minimum wins on ties.

    Options without a numeric rate are only selected when no option has one.
    """
    if not options:
        return None
    priced = [o for o in options if o.rate is not None]
    if not priced:
        return options[0]
    cheapest = priced[0]
    for option in priced[1:]:
        if option.rate < cheapest.rate:
            cheapest = option
    return cheapest


def ceil_amount(rate: Decimal | None) -> Decimal:
    """Round a rate up to a whole currency unit; missing rates resolve to 0."""
    if rate is None:
        return Decimal(0)
    return rate.to_integral_value(rounding=ROUND_CEILING)


def build_rate_query(
    context: dict[str, Any],
    cod: bool = False,
    allowed_carrier_ids: Iterable[str] | None = None,
) -> RateQuery:
    """Derive a RateQuery from a host checkout pricing context.

    Item weights are read from ``variant.weight`` then ``metadata.weight`` in
    grams. A zero total falls back to DEFAULT_RATE_WEIGHT_KG so a quote can
    still be shown at checkout; order creation stays strict about weights.

    Args:
        context: Pricing context with from_location, shipping_address, items.
        cod: Whether cash-on-delivery is enabled.
        allowed_carrier_ids: Optional courier allow-list.

    Returns:
        RateQuery for the lane.

    Raises:
        ValidationError: Pickup or delivery postcode is missing.
    """
    from_location = context.get("from_location") or {}
    origin = (from_location.get("address") or {}).get("postal_code")
    destination = (context.get("shipping_address") or {}).get("postal_code")

    if not origin:
        logger.warning(
            "Missing pickup postcode: ensure a stock location with an address "
            "is linked to the sales channel"
        )
    if not origin or not destination:
        raise ValidationError(
            "Both pickup and delivery postcodes are required for rate calculation."
        )

    total_grams = 0.0
    for item in context.get("items") or []:
        quantity = item.get("quantity") or 1
        variant = item.get("variant") or {}
        metadata = item.get("metadata") or {}
        weight = variant.get("weight")
        if weight is None:
            weight = metadata.get("weight")
        try:
            total_grams += float(weight or 0) * float(quantity)
        except (TypeError, ValueError):
            continue

    weight_kg = total_grams / GRAMS_PER_KG if total_grams > 0 else DEFAULT_RATE_WEIGHT_KG

    return RateQuery(
        origin_postal_code=str(origin),
        destination_postal_code=str(destination),
        weight_kg=weight_kg,
        cod=cod,
        allowed_carrier_ids=frozenset(str(i) for i in allowed_carrier_ids)
        if allowed_carrier_ids else None,
    )


class RateCalculator:
    """Cheapest-courier rate lookup."""

    def __init__(self, transport: CarrierTransport, token_manager: TokenManager) -> None:
        self._transport = transport
        self._token_manager = token_manager

    async def fetch_options(self, query: RateQuery) -> list[CarrierOption]:
        """Fetch every courier option the carrier offers for the lane."""
        params = query.to_params()
        response = await call_with_reauth(
            self._token_manager,
            lambda token: self._transport.request(
                "GET", SERVICEABILITY_PATH, token=token, params=params,
            ),
        )
        return parse_carrier_options(response)

    async def quote(self, query: RateQuery) -> RateQuote:
        """Select the cheapest permitted courier for a lane.

        Args:
            query: Lane, weight and courier restrictions.

        Returns:
            RateQuote with the ceiling-rounded amount (0 when the selected
            courier has no numeric rate) and the permitted options.

        Raises:
            NoCourierAvailable: No courier serves the lane, or none is allowed.
        """
        options = await self.fetch_options(query)
        if not options:
            raise NoCourierAvailable("No couriers available for this route")

        permitted = filter_allowed(options, query.allowed_carrier_ids)
        if not permitted:
            raise NoCourierAvailable("No allowed couriers available for this route")

        cheapest = select_cheapest(permitted)
        amount = ceil_amount(cheapest.rate if cheapest else None)
        logger.info(
            "Rate %s -> %s: %s via %s",
            query.origin_postal_code, query.destination_postal_code,
            amount, cheapest.name if cheapest else "unknown",
        )
        return RateQuote(amount=amount, selected=cheapest, options=tuple(permitted))

    async def calculate(self, query: RateQuery) -> Decimal:
        """Return the cheapest permitted rate, rounded up."""
        return (await self.quote(query)).amount
