"""Integration tests for tracking, driver, shipping and geocoding endpoints."""


class TestTrackingEndpoint:
    def test_track_delivery(self, client, create_via_api):
        body = create_via_api()
        response = client.get(f"/delivery/track/{body['tracking_number']}")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "pending"
        assert data["pickup_city"] == "Malolos"
        assert data["delivery_city"] == "Quezon City"

    def test_tracking_is_redacted(self, client, create_via_api):
        body = create_via_api()
        data = client.get(f"/delivery/track/{body['tracking_number']}").json()
        assert "buyer_id" not in data
        assert "seller_id" not in data
        assert "delivery_address" not in data

    def test_tracking_follows_assignment(self, client, create_via_api, headers):
        body = create_via_api()
        client.post(
            f"/deliveries/{body['delivery_id']}/assign-driver",
            json={"driver_id": "driver_3"},
            headers=headers["seller"],
        )
        data = client.get(f"/delivery/track/{body['tracking_number']}").json()
        assert data["status"] == "assigned"
        assert data["driver_name"] == "Pedro Garcia"
        assert data["plate_number"] == "DEF-9012"

    def test_unknown_tracking_number(self, client):
        response = client.get("/delivery/track/AGR-20260101-ZZZZZ")
        assert response.status_code == 404


class TestDriverEndpoint:
    def test_list_drivers(self, client):
        drivers = client.get("/drivers").json()["drivers"]
        assert [d["driver_id"] for d in drivers] == ["driver_1", "driver_2", "driver_3", "driver_4"]

    def test_filter_by_vehicle_type(self, client):
        drivers = client.get("/drivers", params={"vehicle_type": "truck"}).json()["drivers"]
        assert [d["name"] for d in drivers] == ["Ana Rodriguez"]


class TestShippingEndpoints:
    def test_rates(self, client):
        data = client.get("/shipping/rates").json()
        zones = {rate["zone"]: rate["fee"] for rate in data["rates"]}
        assert zones["visayas"] == 79.0
        assert data["free_shipping_threshold"] == 1500.0

    def test_free_shipping(self, client):
        response = client.post(
            "/shipping/calculate",
            json={
                "seller_location": "Quezon City, Metro Manila",
                "buyer_location": "Cebu City, Cebu",
                "subtotal": 2000,
            },
        )
        data = response.json()
        assert data["fee"] == 0
        assert data["free_shipping_applied"] is True
        assert data["zone"] == "visayas"

    def test_fee_below_threshold(self, client):
        data = client.post(
            "/shipping/calculate",
            json={
                "seller_location": "Malolos, Bulacan",
                "buyer_location": "Meycauayan, Bulacan",
                "subtotal": 500,
            },
        ).json()
        assert data["fee"] == 29.0
        assert data["basis"] == "zone"

    def test_threshold_from_environment(self, client, monkeypatch):
        monkeypatch.setenv("FREE_SHIPPING_THRESHOLD", "3000")
        data = client.post(
            "/shipping/calculate",
            json={
                "seller_location": "Quezon City, Metro Manila",
                "buyer_location": "Cebu City, Cebu",
                "subtotal": 2000,
            },
        ).json()
        assert data["fee"] == 79.0

    def test_negative_subtotal_is_rejected(self, client):
        response = client.post(
            "/shipping/calculate",
            json={"seller_location": "A", "buyer_location": "B", "subtotal": -1},
        )
        assert response.status_code == 422


class TestGeocodingEndpoints:
    def test_search(self, client):
        data = client.get("/geocoding/search", params={"address": "Baguio, Benguet"}).json()
        assert data["coordinates"] == {"latitude": 16.4023, "longitude": 120.596}
        assert data["components"]["city"] == "Baguio"

    def test_search_is_cached(self, client, geocoding_provider):
        client.get("/geocoding/search", params={"address": "Baguio, Benguet"})
        client.get("/geocoding/search", params={"address": "  baguio,   BENGUET "})
        assert len(geocoding_provider.calls) == 1

    def test_search_unknown_address(self, client):
        response = client.get("/geocoding/search", params={"address": "Atlantis"})
        assert response.status_code == 400
        assert response.json()["error"] == "address_not_resolvable"

    def test_search_during_outage(self, client, geocoding_provider):
        geocoding_provider.configure(should_succeed=False)
        response = client.get("/geocoding/search", params={"address": "Baguio, Benguet"})
        assert response.status_code == 502

    def test_reverse(self, client):
        data = client.get("/geocoding/reverse", params={"lat": 13.1391, "lon": 123.7438}).json()
        assert data["formatted_address"] == "Legazpi, Albay, Bicol, Philippines"

    def test_reverse_out_of_range(self, client):
        response = client.get("/geocoding/reverse", params={"lat": 120, "lon": 0})
        assert response.status_code == 422
