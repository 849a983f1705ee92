"""Shipment document generation (label, manifest, invoice).

The three documents are requested concurrently and independently: one
failing document yields an empty URL instead of aborting the others.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

from shipcarrier.errors.domain import CarrierError, ClientDisposedError, ValidationError
from shipcarrier.services.carrier_constants import INVOICE_PATH, LABEL_PATH, MANIFEST_PATH
from shipcarrier.services.token_manager import TokenManager, call_with_reauth
from shipcarrier.services.transport import CarrierTransport

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShipmentDocuments:
    """Document URLs; empty string when a document is unavailable."""

    label: str = ""
    manifest: str = ""
    invoice: str = ""


@dataclass(frozen=True)
class ShipmentRef:
    """Identifiers needed to fetch documents for a shipment."""

    shipment_id: str
    order_id: str = ""

    @classmethod
    def from_any(cls, ref: Any) -> "ShipmentRef":
        """Build from a ShipmentResult, ShipmentRef or a host dict.

        Dicts may use ``order_id`` or ``carrier_order_id``.

        Raises:
            ValidationError: No shipment id present.
        """
        if isinstance(ref, ShipmentRef):
            return ref
        if isinstance(ref, dict):
            shipment_id = ref.get("shipment_id")
            order_id = ref.get("carrier_order_id") or ref.get("order_id")
        else:
            shipment_id = getattr(ref, "shipment_id", None)
            order_id = getattr(ref, "carrier_order_id", None)
        if not shipment_id:
            raise ValidationError("Shipment id is required to generate documents")
        return cls(shipment_id=str(shipment_id), order_id=str(order_id or ""))


def _first_record(response: Any) -> dict[str, Any]:
    if isinstance(response, list):
        response = response[0] if response else {}
    return response if isinstance(response, dict) else {}


def _manifest_url(record: dict[str, Any]) -> str:
    return str(record.get("manifest_url") or "") if record.get("status") == 1 else ""


def _label_url(record: dict[str, Any]) -> str:
    return str(record.get("label_url") or "") if record.get("label_created") == 1 else ""


def _invoice_url(record: dict[str, Any]) -> str:
    return str(record.get("invoice_url") or "") if record.get("is_invoice_created") else ""


class DocumentGenerator:
    """Fetches label, manifest and invoice URLs for a shipment."""

    def __init__(self, transport: CarrierTransport, token_manager: TokenManager) -> None:
        self._transport = transport
        self._token_manager = token_manager

    async def documents(self, shipment_ref: Any) -> ShipmentDocuments:
        """Fetch all three documents concurrently.

        Args:
            shipment_ref: ShipmentResult, ShipmentRef or dict with shipment_id
                and order_id.

        Returns:
            ShipmentDocuments with an empty URL for each unavailable document.

        Raises:
            ClientDisposedError: Client was disposed; raised only after all
                three fetches have settled.
        """
        ref = ShipmentRef.from_any(shipment_ref)
        results = await asyncio.gather(
            self.manifest(ref),
            self.label(ref),
            self.invoice(ref),
            return_exceptions=True,
        )
        # Every fetch has finished; surface the first failure that was not tolerated
        for result in results:
            if isinstance(result, BaseException):
                raise result
        manifest, label, invoice = results
        return ShipmentDocuments(label=label, manifest=manifest, invoice=invoice)

    async def manifest(self, shipment_ref: Any) -> str:
        ref = ShipmentRef.from_any(shipment_ref)
        return await self._fetch(
            "manifest", MANIFEST_PATH, {"shipment_id": [ref.shipment_id]}, _manifest_url,
        )

    async def label(self, shipment_ref: Any) -> str:
        ref = ShipmentRef.from_any(shipment_ref)
        return await self._fetch(
            "label", LABEL_PATH, {"shipment_id": [ref.shipment_id]}, _label_url,
        )

    async def invoice(self, shipment_ref: Any) -> str:
        ref = ShipmentRef.from_any(shipment_ref)
        if not ref.order_id:
            logger.warning("No carrier order id for shipment %s; skipping invoice", ref.shipment_id)
            return ""
        return await self._fetch("invoice", INVOICE_PATH, {"ids": [ref.order_id]}, _invoice_url)

    async def _fetch(
        self,
        kind: str,
        path: str,
        payload: dict[str, Any],
        extract: Callable[[dict[str, Any]], str],
    ) -> str:
        try:
            response = await call_with_reauth(
                self._token_manager,
                lambda token: self._transport.request("POST", path, token=token, json=payload),
            )
        except ClientDisposedError:
            raise
        except CarrierError as e:
            logger.warning("Failed to generate %s: %s", kind, e)
            return ""

        url = extract(_first_record(response))
        if not url:
            logger.info("Carrier reported %s as not created", kind)
        return url
