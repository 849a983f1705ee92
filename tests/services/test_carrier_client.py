"""Tests for the host-facing CarrierClient."""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest

from shipcarrier.config import ShipCarrierConfig
from shipcarrier.errors import ClientDisposedError, ValidationError
from shipcarrier.services import CarrierClient
from tests.helpers import make_transport

SERVICEABILITY = "GET /courier/serviceability/"
LOGIN = "POST /auth/login"


@pytest.fixture
def client(fake_carrier, clock):
    return CarrierClient(
        "ops@store.test",
        "hunter22",
        transport=make_transport(fake_carrier),
        token_lifetime=timedelta(hours=48),
        refresh_horizon=timedelta(hours=24),
        clock=clock,
    )


def test_blank_credentials_rejected():
    with pytest.raises(ValidationError, match="email and password are required"):
        CarrierClient("", "pw")


def test_from_config(fake_carrier):
    config = ShipCarrierConfig(
        carrier={"email": "ops@store.test", "password": "pw", "cod": "1", "pickup_location": "Dock-3"},
        return_address={"first_name": "Returns Desk", "city": "Gurugram"},
    )

    client = CarrierClient.from_config(config, transport=make_transport(fake_carrier))

    assert client.cod is True
    assert client._orders._pickup_location == "Dock-3"
    assert client._orders._return_address["city"] == "Gurugram"


class TestOperations:
    """Operations routed through the shared transport and credential."""

    @pytest.mark.asyncio
    async def test_calculate_price_uses_cod_setting(self, fake_carrier, checkout_context):
        fake_carrier.on(SERVICEABILITY, (200, {"data": {"available_courier_companies": [
            {"courier_company_id": 4, "courier_name": "Ekart", "rate": 61.5},
        ]}}))
        client = CarrierClient("ops@store.test", "pw", cod=True, transport=make_transport(fake_carrier))

        assert await client.calculate_price(checkout_context) == Decimal(62)
        assert fake_carrier.calls(SERVICEABILITY)[0].url.params["cod"] == "1"

    @pytest.mark.asyncio
    async def test_operations_share_one_login(self, client, fake_carrier, checkout_context):
        fake_carrier.on(SERVICEABILITY, (200, {"data": {"available_courier_companies": [
            {"courier_company_id": 4, "courier_name": "Ekart", "rate": 61.5},
        ]}}))
        fake_carrier.on("GET /courier/track/awb/AWB1", (200, {"tracking_data": {"track_status": 1}}))

        await client.calculate_price(checkout_context)
        await client.get_tracking("AWB1")

        assert len(fake_carrier.calls(LOGIN)) == 1

    @pytest.mark.asyncio
    async def test_cancel_requires_order_id(self, client, fake_carrier):
        with pytest.raises(ValidationError, match="Carrier order id is required"):
            await client.cancel_shipment("")
        assert fake_carrier.requests == []

    @pytest.mark.asyncio
    async def test_cancel(self, client, fake_carrier):
        fake_carrier.on("POST /orders/cancel", (200, {}))

        await client.cancel_shipment("987")

        assert fake_carrier.json_bodies("POST /orders/cancel") == [{"ids": ["987"]}]


class TestTokenLifecycle:
    """Token refresh and disposal through the client."""

    @pytest.mark.asyncio
    async def test_refresh_token(self, client, fake_carrier):
        fake_carrier.on(LOGIN, (200, {"token": "tok-1"}), (200, {"token": "tok-2"}))

        await client.token_manager.ensure_valid()
        credential = await client.refresh_token()

        assert credential.access_token == "tok-2"

    @pytest.mark.asyncio
    async def test_refresh_if_expiring(self, client, clock):
        await client.token_manager.ensure_valid()

        assert await client.refresh_token_if_expiring() is False
        clock.advance(hours=25)
        assert await client.refresh_token_if_expiring() is True

    @pytest.mark.asyncio
    async def test_disposed_client_refuses_calls(self, client, fake_carrier):
        client.dispose()

        with pytest.raises(ClientDisposedError):
            await client.get_tracking("AWB1")
        assert fake_carrier.requests == []

    @pytest.mark.asyncio
    async def test_context_manager_closes(self, fake_carrier, clock):
        async with CarrierClient("e@x.test", "pw", transport=make_transport(fake_carrier), clock=clock) as client:
            pass

        assert client.token_manager.disposed is True
        with pytest.raises(ClientDisposedError):
            await client.refresh_token()


class TestDelegation:
    """Order operations are delegated to the orchestrator unchanged."""

    @pytest.mark.asyncio
    async def test_create_shipment_and_return(self, client, sample_fulfillment, sample_items, sample_order):
        sentinel = object()
        with patch.object(client._orders, "create", new_callable=AsyncMock, return_value=sentinel) as create, \
                patch.object(client._orders, "create_return", new_callable=AsyncMock, return_value=sentinel) as create_return:
            assert await client.create_shipment(sample_fulfillment, sample_items, sample_order) is sentinel
            assert await client.create_return(sample_fulfillment) is sentinel

        create.assert_awaited_once_with(sample_fulfillment, sample_items, sample_order)
        create_return.assert_awaited_once_with(sample_fulfillment)

    @pytest.mark.asyncio
    async def test_get_documents(self, client):
        with patch.object(client._documents, "documents", new_callable=AsyncMock) as documents:
            await client.get_documents({"shipment_id": "654"})

        documents.assert_awaited_once_with({"shipment_id": "654"})
