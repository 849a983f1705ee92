"""Tests for the create -> assign AWB -> rollback sequence."""

import logging

import pytest

from shipcarrier.errors import (
    CarrierRejected,
    NotFound,
    RateLimited,
    UnexpectedCarrierState,
    ValidationError,
    WaybillAssignmentFailed,
)
from shipcarrier.services.order_orchestrator import OrderOrchestrator

CREATE = "POST /orders/create/adhoc"
CREATE_RETURN = "POST /orders/create/return"
ASSIGN = "POST /courier/assign/awb"
CANCEL = "POST /orders/cancel"

ORDER_CREATED = (200, {
    "order_id": 987,
    "shipment_id": 654,
    "status": "NEW",
    "status_code": 1,
    "courier_company_id": "",
})

AWB_ASSIGNED = (200, {
    "awb_assign_status": 1,
    "response": {
        "data": {
            "awb_code": "1410112345678",
            "courier_company_id": 10,
            "courier_name": "Delhivery Surface",
        },
    },
})

AWB_REFUSED = (200, {
    "awb_assign_status": 0,
    "response": {"data": {"awb_assign_error": "Selected courier is not serviceable"}},
})


@pytest.fixture
def orchestrator(transport, token_manager, warehouse):
    return OrderOrchestrator(transport, token_manager, pickup_location="Primary", return_address=warehouse)


class TestCreate:
    """Tests for OrderOrchestrator.create."""

    @pytest.mark.asyncio
    async def test_success(self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order):
        fake_carrier.on(CREATE, ORDER_CREATED).on(ASSIGN, AWB_ASSIGNED)

        result = await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        assert result.carrier_order_id == "987"
        assert result.shipment_id == "654"
        assert result.tracking_number == "1410112345678"
        assert result.tracking_url == "https://shiprocket.co/tracking/1410112345678"
        assert result.courier_id == "10"
        assert result.courier_name == "Delhivery Surface"
        assert result.status == "NEW"
        assert result.is_return is False
        assert result.external_order_id.startswith("order_01-")

        created_body = fake_carrier.json_bodies(CREATE)[0]
        assert created_body["order_id"] == result.external_order_id
        assert fake_carrier.json_bodies(ASSIGN) == [{"shipment_id": 654}]
        assert fake_carrier.calls(CANCEL) == []

    @pytest.mark.asyncio
    async def test_result_to_dict(self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order):
        fake_carrier.on(CREATE, ORDER_CREATED).on(ASSIGN, AWB_ASSIGNED)

        result = await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        assert result.to_dict()["tracking_number"] == "1410112345678"

    @pytest.mark.asyncio
    async def test_two_submissions_use_distinct_external_ids(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED).on(ASSIGN, AWB_ASSIGNED)

        await orchestrator.create(sample_fulfillment, sample_items, sample_order)
        await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        first, second = (body["order_id"] for body in fake_carrier.json_bodies(CREATE))
        assert first != second

    @pytest.mark.asyncio
    async def test_invalid_order_makes_no_network_calls(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        del sample_order["items"][0]["variant"]["weight"]

        with pytest.raises(ValidationError, match='Missing weight for item "Cotton Kurta"'):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)
        assert fake_carrier.requests == []

    @pytest.mark.asyncio
    async def test_awb_refused_rolls_back(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order, caplog,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED).on(ASSIGN, AWB_REFUSED).on(CANCEL, (200, {}))

        with caplog.at_level(logging.INFO, logger="shipcarrier.services.order_orchestrator"):
            with pytest.raises(WaybillAssignmentFailed) as exc_info:
                await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        err = exc_info.value
        assert err.message == "Selected courier is not serviceable"
        assert err.carrier_order_id == "987"
        assert err.rollback_succeeded is True
        assert fake_carrier.json_bodies(CANCEL) == [{"ids": ["987"]}]

        transitions = [r.getMessage().rsplit("-> ", 1)[-1] for r in caplog.records if "->" in r.getMessage()]
        assert transitions == ["draft", "created", "rollback_attempted", "failed (final)"]

    @pytest.mark.asyncio
    async def test_awb_error_with_failed_rollback(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED)
        fake_carrier.on(ASSIGN, (500, {"message": "courier API down"}))
        fake_carrier.on(CANCEL, (500, {"message": "cannot cancel"}))

        with pytest.raises(WaybillAssignmentFailed) as exc_info:
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        err = exc_info.value
        assert err.message == "courier API down"
        assert err.rollback_succeeded is False
        assert err.status_code == 500
        assert isinstance(err.__cause__, UnexpectedCarrierState)
        assert len(fake_carrier.calls(CANCEL)) == 1

    @pytest.mark.asyncio
    async def test_success_flag_without_awb_code_is_failure(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED).on(CANCEL, (200, {}))
        fake_carrier.on(ASSIGN, (200, {"awb_assign_status": 1, "response": {"data": {}}}))

        with pytest.raises(WaybillAssignmentFailed, match="without an AWB code"):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)
        assert len(fake_carrier.calls(CANCEL)) == 1

    @pytest.mark.asyncio
    async def test_plain_text_awb_response_rolls_back(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, (200, {"order_id": 987, "shipment_id": 654}))
        fake_carrier.on(ASSIGN, (200, {"awb_assign_status": 0, "response": "Courier not serviceable"}))
        fake_carrier.on(CANCEL, (200, {}))

        with pytest.raises(WaybillAssignmentFailed) as exc_info:
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        assert exc_info.value.message == "Courier not serviceable"
        assert exc_info.value.rollback_succeeded is True
        assert fake_carrier.json_bodies(CANCEL) == [{"ids": ["987"]}]

    @pytest.mark.asyncio
    async def test_list_awb_response_rolls_back(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED).on(CANCEL, (200, {}))
        fake_carrier.on(ASSIGN, (200, {"awb_assign_status": 1, "response": []}))

        with pytest.raises(WaybillAssignmentFailed, match="without an AWB code"):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)
        assert len(fake_carrier.calls(CANCEL)) == 1

    @pytest.mark.asyncio
    async def test_logs_internal_order_id(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order, caplog,
    ):
        fake_carrier.on(CREATE, ORDER_CREATED).on(ASSIGN, AWB_ASSIGNED)

        with caplog.at_level(logging.INFO, logger="shipcarrier.services.order_orchestrator"):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        assert "Order order_01 accepted by carrier as order 987 (shipment 654)" in caplog.text

    @pytest.mark.asyncio
    async def test_field_error_rejection(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, (422, {
            "message": "Oops! Invalid Data.",
            "errors": {"billing_phone": ["The billing phone must be 10 digits."]},
        }))

        with pytest.raises(CarrierRejected) as exc_info:
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

        assert exc_info.value.message == "The billing phone must be 10 digits."
        assert exc_info.value.field_errors == {"billing_phone": ["The billing phone must be 10 digits."]}
        assert fake_carrier.calls(ASSIGN) == []

    @pytest.mark.asyncio
    async def test_generic_rejection(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, (500, {"message": "Something went wrong"}))

        with pytest.raises(CarrierRejected, match="Carrier rejected order: Something went wrong"):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

    @pytest.mark.asyncio
    async def test_rate_limit_propagates(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, (429, {}))

        with pytest.raises(RateLimited):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)

    @pytest.mark.asyncio
    async def test_missing_shipment_id(
        self, orchestrator, fake_carrier, sample_fulfillment, sample_items, sample_order,
    ):
        fake_carrier.on(CREATE, (200, {"order_id": 987, "status_code": 0}))

        with pytest.raises(CarrierRejected, match="no shipment id returned"):
            await orchestrator.create(sample_fulfillment, sample_items, sample_order)
        assert fake_carrier.calls(ASSIGN) == []
        assert fake_carrier.calls(CANCEL) == []


class TestCreateReturn:
    """Tests for OrderOrchestrator.create_return."""

    @pytest.mark.asyncio
    async def test_return_flow(self, orchestrator, fake_carrier, return_fulfillment):
        fake_carrier.on(CREATE_RETURN, ORDER_CREATED).on(ASSIGN, AWB_ASSIGNED)

        result = await orchestrator.create_return(return_fulfillment)

        assert result.is_return is True
        assert result.tracking_number == "1410112345678"
        body = fake_carrier.json_bodies(CREATE_RETURN)[0]
        assert body["shipping_customer_name"] == "Returns Desk"
        assert fake_carrier.json_bodies(ASSIGN) == [{"shipment_id": 654, "is_return": 1}]

    @pytest.mark.asyncio
    async def test_return_without_warehouse(self, transport, token_manager, fake_carrier, return_fulfillment):
        orchestrator = OrderOrchestrator(transport, token_manager)

        with pytest.raises(ValidationError, match="warehouse"):
            await orchestrator.create_return(return_fulfillment)
        assert fake_carrier.requests == []


class TestCancel:
    """Tests for strict and best-effort cancellation."""

    @pytest.mark.asyncio
    async def test_cancel(self, orchestrator, fake_carrier):
        fake_carrier.on(CANCEL, (200, {"message": "Order cancelled"}))

        await orchestrator.cancel("987")

        assert fake_carrier.json_bodies(CANCEL) == [{"ids": ["987"]}]

    @pytest.mark.asyncio
    async def test_cancel_propagates(self, orchestrator, fake_carrier):
        fake_carrier.on(CANCEL, (404, {"message": "Order not found"}))

        with pytest.raises(NotFound):
            await orchestrator.cancel("987")

    @pytest.mark.asyncio
    async def test_best_effort_swallows(self, orchestrator, fake_carrier, caplog):
        fake_carrier.on(CANCEL, (500, {}))

        with caplog.at_level(logging.WARNING):
            assert await orchestrator.cancel_best_effort("987") is False
        assert "Rollback cancellation of carrier order 987 failed" in caplog.text

    @pytest.mark.asyncio
    async def test_best_effort_without_id(self, orchestrator, fake_carrier):
        assert await orchestrator.cancel_best_effort("") is False
        assert fake_carrier.requests == []
