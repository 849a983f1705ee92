"""Carrier payload builder for shipment and return orders.

Maps the host's heterogeneous order/fulfillment dicts into typed
ShipmentRequest / ReturnRequest views, enumerating every required field
and failing with a named error when one is absent. Nothing here performs
I/O, so a validation failure never leaves a partial carrier order behind.

Example:
    from shipcarrier.services.shipment_builder import build_shipment_request

    request = build_shipment_request(
        fulfillment=fulfillment,
        items=fulfillment_items,
        order=order,
        pickup_location="Primary",
    )
    payload = request.to_payload()
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable

from shipcarrier.errors.domain import MappingError, ValidationError
from shipcarrier.services.carrier_constants import (
    DEFAULT_PICKUP_LOCATION,
    DEFAULT_RETURN_BREADTH_CM,
    DEFAULT_RETURN_HEIGHT_CM,
    DEFAULT_RETURN_LENGTH_CM,
    DEFAULT_RETURN_WEIGHT_KG,
    GRAMS_PER_KG,
    ORDER_DATE_FORMAT,
    PaymentMethod,
)
from shipcarrier.services.idempotency import generate_external_order_id

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Typed views
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Party:
    """Billing, shipping or pickup contact of a carrier order."""

    first_name: str
    last_name: str
    address: str
    address_2: str
    city: str
    pincode: int
    state: str
    country: str
    email: str
    phone: int

    def to_payload(self, prefix: str) -> dict[str, Any]:
        """Render as carrier fields, e.g. ``billing_city`` for prefix 'billing'."""
        return {
            f"{prefix}_customer_name": self.first_name,
            f"{prefix}_last_name": self.last_name,
            f"{prefix}_address": self.address,
            f"{prefix}_address_2": self.address_2,
            f"{prefix}_city": self.city,
            f"{prefix}_pincode": self.pincode,
            f"{prefix}_state": self.state,
            f"{prefix}_country": self.country,
            f"{prefix}_email": self.email,
            f"{prefix}_phone": self.phone,
        }


@dataclass(frozen=True)
class ShipmentLine:
    """One order item line of a carrier order."""

    name: str
    sku: str
    units: int
    selling_price: int
    hsn: int = 0

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "sku": self.sku,
            "units": self.units,
            "selling_price": self.selling_price,
            "discount": "",
            "tax": "",
            "hsn": self.hsn,
        }


@dataclass(frozen=True)
class PackageDimensions:
    """Single consolidated package: cm and kg."""

    length: float
    breadth: float
    height: float
    weight: float


@dataclass(frozen=True)
class ShipmentRequest:
    """Validated carrier order built from an internal order/fulfillment."""

    order_id: str
    external_order_id: str
    order_date: str
    pickup_location: str
    billing: Party
    shipping: Party
    lines: tuple[ShipmentLine, ...]
    package: PackageDimensions
    sub_total: Decimal
    total_discount: Decimal
    payment_method: PaymentMethod = PaymentMethod.PREPAID

    @property
    def shipping_is_billing(self) -> bool:
        return self.billing == self.shipping

    def to_payload(self) -> dict[str, Any]:
        """Render the adhoc order-create request body."""
        payload: dict[str, Any] = {
            "order_id": self.external_order_id,
            "order_date": self.order_date,
            "pickup_location": self.pickup_location,
        }
        payload.update(self.billing.to_payload("billing"))
        payload["shipping_is_billing"] = self.shipping_is_billing
        payload.update(self.shipping.to_payload("shipping"))
        payload.update({
            "order_items": [line.to_payload() for line in self.lines],
            "payment_method": self.payment_method.value,
            "shipping_charges": 0,
            "giftwrap_charges": 0,
            "transaction_charges": 0,
            "total_discount": float(self.total_discount),
            "sub_total": float(self.sub_total),
            "length": self.package.length,
            "breadth": self.package.breadth,
            "height": self.package.height,
            "weight": self.package.weight,
        })
        return payload


@dataclass(frozen=True)
class ReturnRequest:
    """Return order: picked up from the customer, shipped to the warehouse."""

    order_id: str
    external_order_id: str
    order_date: str
    pickup: Party
    shipping: Party
    lines: tuple[ShipmentLine, ...]
    package: PackageDimensions
    sub_total: Decimal
    payment_method: PaymentMethod = PaymentMethod.PREPAID

    def to_payload(self) -> dict[str, Any]:
        """Render the return order-create request body."""
        payload: dict[str, Any] = {
            "order_id": self.external_order_id,
            "order_date": self.order_date,
        }
        payload.update(self.pickup.to_payload("pickup"))
        payload.update(self.shipping.to_payload("shipping"))
        payload.update({
            "order_items": [line.to_payload() for line in self.lines],
            "payment_method": self.payment_method.value,
            "sub_total": float(self.sub_total),
            "length": self.package.length,
            "breadth": self.package.breadth,
            "height": self.package.height,
            "weight": self.package.weight,
        })
        return payload


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------


def normalize_phone(phone: Any) -> str:
    """Normalize a phone number to digits only.

    Args:
        phone: Raw phone number (may contain dashes, spaces, parens, +).

    Returns:
        Digits-only phone number, or empty string if missing.
    """
    if phone is None:
        return ""
    return re.sub(r"\D", "", str(phone))


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _first(sources: list[dict[str, Any]], *keys: str) -> Any:
    """First non-blank value for any of ``keys`` across ``sources``, in order."""
    for source in sources:
        for key in keys:
            value = source.get(key)
            if not _blank(value):
                return value.strip() if isinstance(value, str) else value
    return None


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def _positive(value: Any) -> Decimal | None:
    number = _to_decimal(value)
    return number if number is not None and number > 0 else None


def _format_order_date(created_at: Any, clock: Callable[[], datetime]) -> str:
    if isinstance(created_at, datetime):
        return created_at.strftime(ORDER_DATE_FORMAT)
    if isinstance(created_at, str) and created_at.strip():
        try:
            return datetime.fromisoformat(created_at.strip()).strftime(ORDER_DATE_FORMAT)
        except ValueError:
            logger.warning("Unparseable order created_at %r; using current time", created_at)
    return clock().strftime(ORDER_DATE_FORMAT)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def resolve_party(
    role: str,
    addresses: list[dict[str, Any] | None],
    *,
    customer: dict[str, Any] | None = None,
    email: str | None = None,
    country: str | None = None,
) -> Party:
    """Resolve a contact party field by field across candidate addresses.

    Each field takes the first non-blank value from ``addresses`` in order.
    Name and phone fall back to ``customer``; email prefers the customer's.

    Args:
        role: Label used in error messages ('Billing', 'Shipping', 'Pickup').
        addresses: Candidate address dicts, highest priority first.
        customer: Customer record (first_name, last_name, email, phone).
        email: Order-level email fallback.
        country: Country name taking precedence over address country codes.

    Returns:
        Fully populated Party.

    Raises:
        ValidationError: A required field is absent from every source.
    """
    sources = [a for a in addresses if a]
    customer = customer or {}
    with_customer = sources + [customer]

    def require(label: str, value: Any) -> Any:
        if _blank(value):
            raise ValidationError(f"Missing {role} {label}: not set on the order or fulfillment address")
        return value

    first_name = require("Customer Name", _first(with_customer, "first_name"))
    last_name = _first(with_customer, "last_name") or ""
    address = require("Address", _first(sources, "address_1", "address1", "address"))
    address_2 = _first(sources, "address_2", "address2") or ""
    city = require("City", _first(sources, "city"))
    pincode_raw = require("Pincode", _first(sources, "postal_code", "pincode", "zip"))
    state = require("State", _first(sources, "province", "state", "province_code"))
    country_value = country if not _blank(country) else _first(sources, "country", "country_code")
    country_value = require("Country", country_value)
    email_value = require(
        "Email",
        _first([customer], "email") or (email if not _blank(email) else None) or _first(sources, "email"),
    )
    phone = normalize_phone(_first(sources + [customer], "phone"))
    require("Phone", phone or None)

    pincode_digits = re.sub(r"\s", "", str(pincode_raw))
    if not pincode_digits.isdigit():
        raise ValidationError(f"Invalid {role} Pincode {pincode_raw!r}: must be numeric")

    country_str = str(country_value)
    if len(country_str) <= 3:
        country_str = country_str.upper()

    return Party(
        first_name=str(first_name),
        last_name=str(last_name),
        address=str(address),
        address_2=str(address_2),
        city=str(city),
        pincode=int(pincode_digits),
        state=str(state),
        country=country_str,
        email=str(email_value),
        phone=int(phone),
    )


# ---------------------------------------------------------------------------
# Item resolution
# ---------------------------------------------------------------------------


def _item_label(item: dict[str, Any]) -> str:
    return f"{item.get('id', '?')} ({item.get('title', 'untitled')})"


def _resolve_quantity(item: dict[str, Any]) -> Decimal | None:
    """Positive whole-unit quantity of an item, or None when absent.

    Raises:
        ValidationError: Quantity is fractional; the carrier counts whole units.
    """
    quantity = item.get("quantity")
    if quantity is None:
        quantity = (item.get("raw_quantity") or {}).get("value")
    quantity = _positive(quantity)
    if quantity is not None and quantity != quantity.to_integral_value():
        raise ValidationError(
            f"Quantity {quantity} for fulfillment item {_item_label(item)} is not a whole number"
        )
    return quantity


def _resolve_unit_price(order_line: dict[str, Any]) -> Decimal | None:
    price = order_line.get("unit_price")
    if price is None:
        price = (order_line.get("detail") or {}).get("unit_price")
    return _positive(price)


def _resolve_hsn(variant: dict[str, Any]) -> int:
    hs_code = re.sub(r"\D", "", str(variant.get("hs_code") or ""))
    return int(hs_code) if hs_code else 0


def build_shipment_request(
    fulfillment: dict[str, Any] | None,
    items: list[dict[str, Any]],
    order: dict[str, Any],
    *,
    pickup_location: str = DEFAULT_PICKUP_LOCATION,
    external_order_id: str | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ShipmentRequest:
    """Build and validate a carrier order from internal order data.

    Args:
        fulfillment: Fulfillment record (its delivery_address is a fallback).
        items: Fulfillment items, each referencing an order line by line_item_id.
        order: Order with items (lines carrying variant data), addresses,
            customer, region, created_at and discount_total.
        pickup_location: Carrier pickup location name.
        external_order_id: Explicit external id; generated when omitted.
        clock: Source of the current time for a missing order date.

    Returns:
        Validated ShipmentRequest.

    Raises:
        MappingError: An item has no matching order line or variant.
        ValidationError: Price, quantity, dimensions or an address field
            is missing.
    """
    fulfillment = fulfillment or {}
    order_id = str(order.get("id") or "")
    if not order_id:
        raise ValidationError("Order id is required to create a shipment")
    if not items:
        raise ValidationError(f"Fulfillment for order {order_id} has no items")

    order_lines = {
        str(line.get("id")): line
        for line in order.get("items") or []
        if isinstance(line, dict) and line.get("id") is not None
    }

    lines: list[ShipmentLine] = []
    sub_total = Decimal(0)
    total_weight = Decimal(0)
    max_length = Decimal(0)
    max_breadth = Decimal(0)
    total_height = Decimal(0)

    for item in items:
        line_item_id = item.get("line_item_id")
        order_line = order_lines.get(str(line_item_id))
        if order_line is None:
            raise MappingError(
                f"Fulfillment item {_item_label(item)} has no matching order item "
                f"with line_item_id: {line_item_id}"
            )

        unit_price = _resolve_unit_price(order_line)
        quantity = _resolve_quantity(item)
        if unit_price is None or quantity is None:
            raise ValidationError(
                f"Missing unit price or quantity for fulfillment item {_item_label(item)}"
            )

        variant = order_line.get("variant")
        if not variant:
            raise MappingError(
                f"Variant data not found for order item {order_line.get('id')} "
                f"(fulfillment item {_item_label(item)})"
            )

        dims = {
            "weight": _positive(variant.get("weight")),
            "length": _positive(variant.get("length")),
            "width": _positive(variant.get("width")),
            "height": _positive(variant.get("height")),
        }
        missing = [name for name, value in dims.items() if value is None]
        if missing:
            raise ValidationError(
                f'Missing {", ".join(missing)} for item "{item.get("title", "untitled")}" '
                f"(Order Item: {order_line.get('id')}, Variant: {variant.get('id')}). "
                "Please set weight, length, width, and height on the product variant."
            )

        weight_kg = dims["weight"] / GRAMS_PER_KG
        total_weight += weight_kg * quantity
        max_length = max(max_length, dims["length"])
        max_breadth = max(max_breadth, dims["width"])
        total_height += dims["height"] * quantity
        sub_total += unit_price * quantity

        lines.append(ShipmentLine(
            name=str(item.get("title") or order_line.get("title") or ""),
            sku=str(
                variant.get("sku")
                or order_line.get("variant_sku")
                or item.get("sku")
                or item.get("id")
            ),
            units=int(quantity),
            selling_price=int(unit_price.quantize(Decimal(1), rounding=ROUND_HALF_UP)),
            hsn=_resolve_hsn(variant),
        ))

    delivery_address = fulfillment.get("delivery_address")
    customer = order.get("customer") or {}
    country = (order.get("region") or {}).get("name")

    billing = resolve_party(
        "Billing",
        [order.get("billing_address"), delivery_address],
        customer=customer,
        email=order.get("email"),
        country=country,
    )
    shipping = resolve_party(
        "Shipping",
        [order.get("shipping_address"), delivery_address],
        customer=customer,
        email=order.get("email"),
        country=country,
    )

    return ShipmentRequest(
        order_id=order_id,
        external_order_id=external_order_id or generate_external_order_id(order_id),
        order_date=_format_order_date(order.get("created_at"), clock),
        pickup_location=pickup_location,
        billing=billing,
        shipping=shipping,
        lines=tuple(lines),
        package=PackageDimensions(
            length=float(max_length),
            breadth=float(max_breadth),
            height=float(total_height),
            weight=round(float(total_weight), 3),
        ),
        sub_total=sub_total,
        total_discount=_to_decimal(order.get("discount_total")) or Decimal(0),
    )


def _return_package(package: dict[str, Any] | None) -> PackageDimensions:
    package = package or {}
    length = _positive(package.get("length"))
    breadth = _positive(package.get("width", package.get("breadth")))
    height = _positive(package.get("height"))
    weight = _positive(package.get("weight"))
    if length is None or breadth is None or height is None or weight is None:
        logger.info("Return package dimensions incomplete; using default package")
        return PackageDimensions(
            length=DEFAULT_RETURN_LENGTH_CM,
            breadth=DEFAULT_RETURN_BREADTH_CM,
            height=DEFAULT_RETURN_HEIGHT_CM,
            weight=DEFAULT_RETURN_WEIGHT_KG,
        )
    return PackageDimensions(
        length=float(length),
        breadth=float(breadth),
        height=float(height),
        weight=round(float(weight / GRAMS_PER_KG), 3),
    )


def build_return_request(
    fulfillment: dict[str, Any],
    *,
    warehouse: dict[str, Any] | None,
    external_order_id: str | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ReturnRequest:
    """Build and validate a return order.

    Address fields follow the same strict posture as shipments. Package
    dimensions, quantities and prices fall back to defaults, since returns
    rarely carry measured variant data.

    Args:
        fulfillment: Return fulfillment with pickup_address (or
            delivery_address), items, optional package (grams/cm) and email.
        warehouse: Destination address the return is shipped to.
        external_order_id: Explicit external id; generated when omitted.
        clock: Source of the current time for a missing order date.

    Returns:
        Validated ReturnRequest.

    Raises:
        ValidationError: Missing address field, warehouse or items.
    """
    base_id = str(fulfillment.get("order_id") or fulfillment.get("id") or "")
    if not base_id:
        raise ValidationError("Return fulfillment requires an order_id or id")
    if not warehouse:
        raise ValidationError("Return shipping address (warehouse) is not configured")

    items = fulfillment.get("items") or []
    if not items:
        raise ValidationError(f"Return for {base_id} has no items")

    lines: list[ShipmentLine] = []
    sub_total = Decimal(0)
    for item in items:
        quantity = _resolve_quantity(item) or Decimal(1)
        unit_price = _positive(item.get("unit_price")) or Decimal(0)
        sub_total += unit_price * quantity
        lines.append(ShipmentLine(
            name=str(item.get("title") or ""),
            sku=str(item.get("sku") or item.get("id") or ""),
            units=int(quantity),
            selling_price=int(unit_price.quantize(Decimal(1), rounding=ROUND_HALF_UP)),
        ))

    pickup = resolve_party(
        "Pickup",
        [fulfillment.get("pickup_address"), fulfillment.get("delivery_address")],
        customer=fulfillment.get("customer"),
        email=fulfillment.get("email"),
    )
    shipping = resolve_party("Return Shipping", [warehouse])

    return ReturnRequest(
        order_id=base_id,
        external_order_id=external_order_id or generate_external_order_id(base_id),
        order_date=_format_order_date(fulfillment.get("created_at"), clock),
        pickup=pickup,
        shipping=shipping,
        lines=tuple(lines),
        package=_return_package(fulfillment.get("package")),
        sub_total=sub_total,
    )
