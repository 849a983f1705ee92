"""Root-level pytest fixtures for all tests.

Provides shared fixtures for carrier client testing:
- Fake carrier transport and a token manager wired to it
- Frozen clock for expiry tests
- Sample order, fulfillment and checkout data
"""

import copy

import pytest

from shipcarrier.services.token_manager import TokenManager, login
from tests.helpers import LOGIN_OK, FakeCarrier, FrozenClock, make_transport


# ============================================================================
# Pytest Markers
# ============================================================================


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests requiring external services"
    )


# ============================================================================
# Carrier fixtures
# ============================================================================


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def fake_carrier() -> FakeCarrier:
    """Fake carrier that accepts logins."""
    return FakeCarrier({"POST /auth/login": [LOGIN_OK]})


@pytest.fixture
def transport(fake_carrier):
    return make_transport(fake_carrier)


@pytest.fixture
def token_manager(transport, clock) -> TokenManager:
    """Token manager logging in through the fake carrier."""
    return TokenManager(
        authenticate=lambda: login(transport, "ops@store.test", "hunter22", clock=clock),
        clock=clock,
    )


# ============================================================================
# Sample data
# ============================================================================

_ADDRESS = {
    "first_name": "Asha",
    "last_name": "Rao",
    "address_1": "12 MG Road",
    "address_2": "Flat 4",
    "city": "Bengaluru",
    "province": "Karnataka",
    "postal_code": "560001",
    "country_code": "in",
    "phone": "+91 98765-43210",
}

_ORDER = {
    "id": "order_01",
    "email": "asha@example.test",
    "created_at": "2026-02-28T09:30:00+00:00",
    "discount_total": 50,
    "region": {"name": "India"},
    "customer": {"first_name": "Asha", "last_name": "Rao", "email": "asha@example.test"},
    "billing_address": _ADDRESS,
    "shipping_address": _ADDRESS,
    "items": [
        {
            "id": "line_1",
            "title": "Cotton Kurta",
            "unit_price": 799.5,
            "variant_sku": "KURTA-M",
            "variant": {
                "id": "variant_1",
                "sku": "KURTA-M-BLUE",
                "weight": 400,
                "length": 30,
                "width": 20,
                "height": 4,
                "hs_code": "6211.42",
            },
        },
        {
            "id": "line_2",
            "title": "Silk Scarf",
            "unit_price": 1200,
            "variant": {
                "id": "variant_2",
                "weight": 150,
                "length": 20,
                "width": 25,
                "height": 2,
            },
        },
    ],
}

_ITEMS = [
    {"id": "fitem_1", "title": "Cotton Kurta", "line_item_id": "line_1", "quantity": 2},
    {"id": "fitem_2", "title": "Silk Scarf", "line_item_id": "line_2", "quantity": 1},
]

_WAREHOUSE = {
    "first_name": "Returns Desk",
    "address_1": "Plot 7, Industrial Area",
    "city": "Gurugram",
    "province": "Haryana",
    "postal_code": "122001",
    "country_code": "IN",
    "email": "returns@store.test",
    "phone": "0124-4000000",
}


@pytest.fixture
def sample_order() -> dict:
    return copy.deepcopy(_ORDER)


@pytest.fixture
def sample_items() -> list[dict]:
    return copy.deepcopy(_ITEMS)


@pytest.fixture
def sample_fulfillment() -> dict:
    return {"id": "ful_01", "delivery_address": copy.deepcopy(_ADDRESS)}


@pytest.fixture
def warehouse() -> dict:
    return copy.deepcopy(_WAREHOUSE)


@pytest.fixture
def return_fulfillment() -> dict:
    return {
        "id": "ret_01",
        "order_id": "order_01",
        "email": "asha@example.test",
        "pickup_address": copy.deepcopy(_ADDRESS),
        "items": [{"id": "ritem_1", "title": "Cotton Kurta", "sku": "KURTA-M", "quantity": 1, "unit_price": 799.5}],
    }


@pytest.fixture
def checkout_context() -> dict:
    """Pricing context as sent by the host checkout."""
    return {
        "from_location": {"address": {"postal_code": "110001"}},
        "shipping_address": {"postal_code": "560001"},
        "items": [
            {"quantity": 2, "variant": {"weight": 400}},
            {"quantity": 1, "variant": {}, "metadata": {"weight": 200}},
        ],
    }
