"""Carrier order creation with waybill assignment and rollback.

Creating a shipment is a two-step remote transaction that the carrier does
not make atomic:

    DRAFT -> CREATED -> AWB_ASSIGNED
    DRAFT -> CREATED -> ROLLBACK_ATTEMPTED -> FAILED

If the waybill cannot be assigned after the order was accepted, the order
is cancelled on a best-effort basis and the caller receives the original
assignment failure, never a partial success.

Example:
    orchestrator = OrderOrchestrator(transport, token_manager, pickup_location="Primary")
    result = await orchestrator.create(fulfillment, items, order)
    print(result.tracking_number, result.tracking_url)
"""

import logging
from dataclasses import asdict, dataclass
from datetime import UTC, datetime
from typing import Any, Callable

from shipcarrier.errors.domain import (
    AuthenticationError,
    CarrierError,
    CarrierRejected,
    ClientDisposedError,
    RateLimited,
    WaybillAssignmentFailed,
)
from shipcarrier.errors.translation import first_field_error
from shipcarrier.services.carrier_constants import (
    ASSIGN_AWB_PATH,
    AWB_ASSIGNED_STATUS,
    DEFAULT_PICKUP_LOCATION,
    ORDER_CANCEL_PATH,
    ORDER_CREATE_PATH,
    RETURN_CREATE_PATH,
    TERMINAL_ORDER_STATES,
    TRACKING_URL_BASE,
    CarrierOrderState,
)
from shipcarrier.services.idempotency import internal_order_id
from shipcarrier.services.shipment_builder import (
    build_return_request,
    build_shipment_request,
)
from shipcarrier.services.token_manager import TokenManager, call_with_reauth
from shipcarrier.services.transport import CarrierTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShipmentResult:
    """Outcome of a fully created shipment (order accepted + AWB assigned).

    Attributes:
        carrier_order_id: Carrier's order id (used for cancel and invoices).
        shipment_id: Carrier's shipment id (used for labels and manifests).
        tracking_number: Assigned AWB code.
        tracking_url: Public tracking page for the AWB.
        external_order_id: Order id submitted to the carrier.
    """

    carrier_order_id: str
    shipment_id: str
    tracking_number: str
    tracking_url: str
    external_order_id: str
    label_url: str | None = None
    courier_id: str | None = None
    courier_name: str | None = None
    status: str | None = None
    status_code: int | None = None
    shipping_charges: str | None = None
    payment_method: str | None = None
    is_return: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Plain dict for host persistence."""
        return asdict(self)


def _as_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _optional_str(value: Any) -> str | None:
    return None if value is None or value == "" else str(value)


def _awb_data(awb_response: Any) -> dict[str, Any]:
    if not isinstance(awb_response, dict):
        return {}
    response = awb_response.get("response")
    data = response.get("data") if isinstance(response, dict) else None
    return data if isinstance(data, dict) else {}


def _awb_failure_message(awb_response: Any) -> str:
    data = _awb_data(awb_response)
    message = None
    if isinstance(awb_response, dict):
        message = awb_response.get("message")
        if not message and isinstance(awb_response.get("response"), str):
            message = awb_response["response"].strip()
    return str(message or data.get("awb_assign_error") or "AWB assignment failed")


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OrderOrchestrator:
    """Builds, submits and completes carrier orders.

    Attributes:
        _pickup_location: Carrier pickup location name for forward orders.
        _return_address: Warehouse address returns are shipped to.
    """

    def __init__(
        self,
        transport: CarrierTransport,
        token_manager: TokenManager,
        pickup_location: str = DEFAULT_PICKUP_LOCATION,
        return_address: dict[str, Any] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._transport = transport
        self._token_manager = token_manager
        self._pickup_location = pickup_location
        self._return_address = return_address
        self._clock = clock

    async def create(
        self,
        fulfillment: dict[str, Any] | None,
        items: list[dict[str, Any]],
        order: dict[str, Any],
    ) -> ShipmentResult:
        """Create a carrier order and assign its waybill.

        Validation happens entirely before the first network call.

        Args:
            fulfillment: Fulfillment record (delivery_address fallback).
            items: Fulfillment items referencing order lines.
            order: Internal order with lines, addresses and customer.

        Returns:
            ShipmentResult merging the order and AWB responses.

        Raises:
            MappingError: Item cannot be matched to an order line or variant.
            ValidationError: Missing price, quantity, dimension or address field.
            CarrierRejected: Carrier refused the order or returned no shipment id.
            WaybillAssignmentFailed: AWB assignment failed (order cancelled).
        """
        request = build_shipment_request(
            fulfillment,
            items,
            order,
            pickup_location=self._pickup_location,
            clock=self._clock,
        )
        self._transition(request.external_order_id, CarrierOrderState.DRAFT)
        return await self._submit_and_assign(
            ORDER_CREATE_PATH,
            request.to_payload(),
            external_order_id=request.external_order_id,
            is_return=False,
        )

    async def create_return(self, fulfillment: dict[str, Any]) -> ShipmentResult:
        """Create a return order (customer -> warehouse) and assign its waybill.

        Raises:
            ValidationError: Missing pickup address field, warehouse or items.
            CarrierRejected: Carrier refused the return order.
            WaybillAssignmentFailed: AWB assignment failed (order cancelled).
        """
        request = build_return_request(
            fulfillment, warehouse=self._return_address, clock=self._clock,
        )
        self._transition(request.external_order_id, CarrierOrderState.DRAFT)
        return await self._submit_and_assign(
            RETURN_CREATE_PATH,
            request.to_payload(),
            external_order_id=request.external_order_id,
            is_return=True,
        )

    async def cancel(self, carrier_order_id: str) -> None:
        """Cancel a carrier order, propagating any failure.

        Raises:
            CarrierError: Translated cancellation failure.
        """
        await self._post(ORDER_CANCEL_PATH, {"ids": [carrier_order_id]})
        logger.info("Carrier order %s cancelled", carrier_order_id)

    async def cancel_best_effort(self, carrier_order_id: str) -> bool:
        """Cancel a carrier order, logging instead of raising on failure.

        Used as the compensating action after a failed AWB assignment.

        Returns:
            True if the carrier accepted the cancellation.
        """
        if not carrier_order_id:
            logger.warning("Cannot roll back: carrier returned no order id")
            return False
        try:
            await self.cancel(carrier_order_id)
        except CarrierError as e:
            logger.warning(
                "Rollback cancellation of carrier order %s failed: %s",
                carrier_order_id, e,
            )
            return False
        return True

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        return await call_with_reauth(
            self._token_manager,
            lambda token: self._transport.request("POST", path, token=token, json=payload),
        )

    async def _submit(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._post(path, payload)
        except (AuthenticationError, RateLimited, ClientDisposedError):
            raise
        except CarrierError as e:
            message = first_field_error(e.field_errors) or f"Carrier rejected order: {e.message}"
            raise CarrierRejected(
                message,
                status_code=e.status_code,
                field_errors=e.field_errors,
                details=e.details,
            ) from e

        if not isinstance(response, dict) or not response.get("shipment_id"):
            raise CarrierRejected(
                "Failed to create carrier order: no shipment id returned",
                details=response if isinstance(response, dict) else {},
            )
        return response

    async def _submit_and_assign(
        self,
        path: str,
        payload: dict[str, Any],
        *,
        external_order_id: str,
        is_return: bool,
    ) -> ShipmentResult:
        created = await self._submit(path, payload)
        carrier_order_id = str(created.get("order_id") or "")
        shipment_id = str(created["shipment_id"])
        self._transition(external_order_id, CarrierOrderState.CREATED)
        logger.info(
            "Order %s accepted by carrier as order %s (shipment %s)",
            internal_order_id(external_order_id), carrier_order_id, shipment_id,
        )

        awb_request: dict[str, Any] = {"shipment_id": created["shipment_id"]}
        courier_id = created.get("courier_company_id")
        if courier_id:
            awb_request["courier_id"] = courier_id
        if is_return:
            awb_request["is_return"] = 1

        failure: str | None = None
        cause: CarrierError | None = None
        awb_response: Any = {}
        try:
            awb_response = await self._post(ASSIGN_AWB_PATH, awb_request)
        except ClientDisposedError:
            logger.warning(
                "Client disposed during AWB assignment; carrier order %s left unassigned",
                carrier_order_id,
            )
            raise
        except CarrierError as e:
            failure, cause = e.message, e
        else:
            status = _as_int(awb_response.get("awb_assign_status")) if isinstance(awb_response, dict) else None
            if status != AWB_ASSIGNED_STATUS:
                failure = _awb_failure_message(awb_response)
            elif not _awb_data(awb_response).get("awb_code"):
                failure = "AWB assignment reported success without an AWB code"

        if failure is not None:
            self._transition(external_order_id, CarrierOrderState.ROLLBACK_ATTEMPTED)
            rolled_back = await self.cancel_best_effort(carrier_order_id)
            self._transition(external_order_id, CarrierOrderState.FAILED)
            raise WaybillAssignmentFailed(
                failure,
                carrier_order_id=carrier_order_id or None,
                rollback_succeeded=rolled_back,
                status_code=cause.status_code if cause else None,
                details=awb_response if isinstance(awb_response, dict) else {},
            ) from cause

        awb = _awb_data(awb_response)
        awb_code = str(awb["awb_code"])
        self._transition(external_order_id, CarrierOrderState.AWB_ASSIGNED)
        logger.info(
            "Carrier order %s (shipment %s) assigned AWB %s",
            carrier_order_id, shipment_id, awb_code,
        )

        return ShipmentResult(
            carrier_order_id=carrier_order_id,
            shipment_id=shipment_id,
            tracking_number=awb_code,
            tracking_url=f"{TRACKING_URL_BASE}{awb_code}",
            external_order_id=external_order_id,
            label_url=_optional_str(created.get("label_url")),
            courier_id=_optional_str(awb.get("courier_company_id") or courier_id),
            courier_name=_optional_str(awb.get("courier_name") or created.get("courier_name")),
            status=_optional_str(created.get("status")),
            status_code=_as_int(created.get("status_code")),
            shipping_charges=_optional_str(created.get("shipping_charges")),
            payment_method=_optional_str(created.get("payment_method")),
            is_return=is_return,
        )

    def _transition(self, external_order_id: str, state: CarrierOrderState) -> None:
        logger.info(
            "Carrier order %s -> %s%s",
            external_order_id, state.value,
            " (final)" if state in TERMINAL_ORDER_STATES else "",
        )
