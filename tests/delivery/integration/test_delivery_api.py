"""Integration tests for the /deliveries endpoints via TestClient."""

from delivery.delivery.delivery import Delivery
from delivery.order.order import Order
from protean import current_domain


class TestCreateDeliveryEndpoint:
    def test_create_delivery(self, client, create_via_api):
        body = create_via_api()
        assert body["tracking_number"].startswith("AGR-")

        dlv = current_domain.repository_for(Delivery).get(body["delivery_id"])
        assert dlv.order_id == "ord-api-001"
        assert dlv.pickup_address.city == "Malolos"

    def test_create_twice_returns_the_same_delivery(self, client, create_via_api):
        first = create_via_api()
        second = create_via_api()
        assert first == second

    def test_order_is_confirmed(self, client, create_via_api):
        create_via_api()
        assert current_domain.repository_for(Order).get("ord-api-001").status == "confirmed"

    def test_missing_identity_is_rejected(self, client):
        response = client.post("/deliveries", json={})
        assert response.status_code == 401

    def test_invalid_body(self, client, headers):
        response = client.post("/deliveries", json={"order_id": "ord-x"}, headers=headers["seller"])
        assert response.status_code == 422


class TestReadDeliveryEndpoints:
    def test_get_delivery(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.get(f"/deliveries/{body['delivery_id']}", headers=headers["buyer"])

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["order_status"] == "confirmed"
        assert data["courier"] is None
        assert data["timeline"][0]["status"] == "pending"

    def test_get_by_order(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.get("/deliveries/by-order/ord-api-001", headers=headers["seller"])
        assert response.json()["delivery_id"] == body["delivery_id"]

    def test_unknown_delivery(self, client, headers):
        response = client.get("/deliveries/does-not-exist", headers=headers["seller"])
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_unknown_order(self, client, headers):
        response = client.get("/deliveries/by-order/ord-missing", headers=headers["seller"])
        assert response.status_code == 404

    def test_outsiders_cannot_read(self, client, create_via_api):
        body = create_via_api()
        response = client.get(f"/deliveries/{body['delivery_id']}", headers={"X-User-Id": "someone-else"})
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"


class TestManualDeliveryEndpoints:
    def test_assign_directory_driver(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.post(
            f"/deliveries/{body['delivery_id']}/assign-driver",
            json={"driver_id": "driver_1", "seller_notes": "Fragile"},
            headers=headers["seller"],
        )

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "assigned"
        assert data["driver"]["name"] == "Juan Dela Cruz"
        assert data["seller_notes"] == "Fragile"

    def test_assign_twice_is_already_assigned(self, client, create_via_api, headers):
        body = create_via_api()
        url = f"/deliveries/{body['delivery_id']}/assign-driver"
        client.post(url, json={"driver_id": "driver_1"}, headers=headers["seller"])

        response = client.post(url, json={"driver_id": "driver_2"}, headers=headers["seller"])
        assert response.status_code == 400
        assert response.json()["error"] == "already_assigned"

    def test_buyer_cannot_assign(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.post(
            f"/deliveries/{body['delivery_id']}/assign-driver",
            json={"driver_id": "driver_1"},
            headers=headers["buyer"],
        )
        assert response.status_code == 403

    def test_status_updates_move_the_order(self, client, create_via_api, headers):
        body = create_via_api("ord-api-002")
        base = f"/deliveries/{body['delivery_id']}"
        client.post(f"{base}/assign-driver", json={"driver_id": "driver_1"}, headers=headers["seller"])

        for status in ("picked_up", "in_transit", "delivered"):
            response = client.post(f"{base}/status", json={"status": status}, headers=headers["seller"])
            assert response.status_code == 200
            assert response.json() == {"status": status}

        assert current_domain.repository_for(Order).get("ord-api-002").status == "delivered"

    def test_invalid_transition_is_rejected(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.post(
            f"/deliveries/{body['delivery_id']}/status",
            json={"status": "delivered"},
            headers=headers["seller"],
        )
        assert response.status_code == 400

    def test_cancel_delivery(self, client, create_via_api, headers):
        body = create_via_api()
        response = client.post(
            f"/deliveries/{body['delivery_id']}/cancel",
            json={"reason": "Out of stock"},
            headers=headers["seller"],
        )

        assert response.status_code == 200
        assert response.json()["cancelled"] is True
        assert response.json()["upstream_cancelled"] is None
