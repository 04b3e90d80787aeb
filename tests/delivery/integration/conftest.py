import pytest
from delivery.api import ROUTERS, register_error_handlers
from fastapi import FastAPI
from fastapi.testclient import TestClient

SELLER = {"X-User-Id": "seller-001"}
BUYER = {"X-User-Id": "buyer-001"}
ADMIN = {"X-User-Id": "ops-001", "X-User-Role": "admin"}

PICKUP = {
    "street": "12 Mabini St",
    "city": "Malolos",
    "province": "Bulacan",
    "latitude": 14.8527,
    "longitude": 120.8160,
}
DROP_OFF = {
    "street": "88 Katipunan Ave",
    "city": "Quezon City",
    "province": "Metro Manila",
    "latitude": 14.6390,
    "longitude": 121.0770,
}


@pytest.fixture()
def app():
    instance = FastAPI()
    for router in ROUTERS:
        instance.include_router(router)
    register_error_handlers(instance)
    return instance


@pytest.fixture()
def client(app):
    return TestClient(app)


@pytest.fixture()
def headers():
    return {"seller": SELLER, "buyer": BUYER, "admin": ADMIN}


@pytest.fixture()
def create_via_api(client):
    """POST /deliveries for an order and return the response body."""

    def _create(order_id="ord-api-001", subtotal=2000.0):
        response = client.post(
            "/deliveries",
            json={
                "order_id": order_id,
                "buyer_id": "buyer-001",
                "seller_id": "seller-001",
                "subtotal": subtotal,
                "pickup_address": PICKUP,
                "delivery_address": DROP_OFF,
            },
            headers=SELLER,
        )
        assert response.status_code == 201
        return response.json()

    return _create


@pytest.fixture()
def place_via_api(client):
    """Quote and place a courier order through the API; returns the placement body."""

    def _place(order_id="ord-api-001"):
        quotation = client.post(
            "/lalamove/quotation",
            json={
                "pickup_address": "Malolos, Bulacan",
                "delivery_address": "Quezon City, Metro Manila",
                "pickup_coordinates": {"latitude": 14.8527, "longitude": 120.8160},
                "delivery_coordinates": {"latitude": 14.6390, "longitude": 121.0770},
            },
            headers=SELLER,
        )
        assert quotation.status_code == 200
        response = client.post(
            "/lalamove/place-order",
            json={
                "order_id": order_id,
                "quotation_id": quotation.json()["quotation"]["quotation_id"],
                "recipient_name": "Buyer",
                "recipient_phone": "+63 917 333 4444",
            },
            headers=SELLER,
        )
        assert response.status_code == 200
        return response.json()

    return _place
