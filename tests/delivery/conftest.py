import json

import pytest
from protean import current_domain
from protean.integrations.pytest import DomainFixture

from delivery.courier import reset_courier, set_courier
from delivery.courier.fake_adapter import FakeCourier
from delivery.geocoding import reset_geocoder, set_geocoder
from delivery.geocoding.cache import GeocodeCache
from delivery.geocoding.fake_adapter import FakeGeocodingProvider
from delivery.geocoding.geocoder import Geocoder
from delivery.geocoding.rate_limiter import IntervalRateLimiter
from delivery.notifier import reset_notifier, set_notifier
from delivery.notifier.fake_adapter import FakeNotifier

SELLER_ID = "seller-001"
BUYER_ID = "buyer-001"

PICKUP_ADDRESS = {
    "street": "12 Mabini St",
    "barangay": "San Vicente",
    "city": "Malolos",
    "province": "Bulacan",
    "country": "Philippines",
    "latitude": 14.8527,
    "longitude": 120.8160,
}

DELIVERY_ADDRESS = {
    "street": "88 Katipunan Ave",
    "barangay": "Loyola Heights",
    "city": "Quezon City",
    "province": "Metro Manila",
    "country": "Philippines",
    "latitude": 14.6390,
    "longitude": 121.0770,
}


@pytest.fixture(scope="session")
def delivery_bed():
    from delivery.domain import delivery

    bed = DomainFixture(delivery)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(delivery_bed):
    with delivery_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def courier():
    """A fresh fake courier per test."""
    fake = FakeCourier()
    set_courier(fake)
    yield fake
    reset_courier()


@pytest.fixture(autouse=True)
def notifier():
    fake = FakeNotifier()
    set_notifier(fake)
    yield fake
    reset_notifier()


@pytest.fixture()
def geocoding_provider():
    provider = FakeGeocodingProvider()
    provider.add_address(
        "Malolos, Bulacan",
        14.8527,
        120.8160,
        formatted_address="Malolos, Bulacan, Central Luzon, Philippines",
        city="Malolos",
        province="Bulacan",
    )
    provider.add_address(
        "Quezon City, Metro Manila",
        14.6760,
        121.0437,
        formatted_address="Quezon City, Metro Manila, Philippines",
        city="Quezon City",
        province="Metro Manila",
    )
    provider.add_address(
        "Baguio, Benguet",
        16.4023,
        120.5960,
        formatted_address="Baguio, Benguet, Cordillera, Philippines",
        city="Baguio",
        province="Benguet",
    )
    provider.add_address(
        "Legazpi, Albay",
        13.1391,
        123.7438,
        formatted_address="Legazpi, Albay, Bicol, Philippines",
        city="Legazpi",
        province="Albay",
    )
    return provider


@pytest.fixture(autouse=True)
def geocoder(geocoding_provider):
    """Geocoder over the fake provider, with no wait between lookups."""
    instance = Geocoder(
        provider=geocoding_provider,
        cache=GeocodeCache(ttl_seconds=3600),
        rate_limiter=IntervalRateLimiter(min_interval=0.0),
    )
    set_geocoder(instance)
    yield instance
    reset_geocoder()


@pytest.fixture()
def create_delivery():
    """Create a delivery through its command and return the stored aggregate."""
    from delivery.delivery.creation import CreateDelivery
    from delivery.delivery.delivery import Delivery

    def _create(order_id="ord-001", subtotal=2000.0, **overrides):
        fields = {
            "order_id": order_id,
            "buyer_id": BUYER_ID,
            "seller_id": SELLER_ID,
            "pickup_address": json.dumps(PICKUP_ADDRESS),
            "delivery_address": json.dumps(DELIVERY_ADDRESS),
            "subtotal": subtotal,
        }
        fields.update(overrides)
        delivery_id = current_domain.process(CreateDelivery(**fields), asynchronous=False)
        return current_domain.repository_for(Delivery).get(delivery_id)

    return _create


@pytest.fixture()
def quote(courier):
    """Issue a courier quotation for the default route and return its id."""
    from delivery.courier.port import Stop

    def _quote():
        quotation = courier.get_quotation(
            service_type="MOTORCYCLE",
            stops=[
                Stop("Malolos, Bulacan", PICKUP_ADDRESS["latitude"], PICKUP_ADDRESS["longitude"]),
                Stop("Quezon City, Metro Manila", DELIVERY_ADDRESS["latitude"], DELIVERY_ADDRESS["longitude"]),
            ],
        )
        return quotation.quotation_id

    return _quote


@pytest.fixture()
def place_courier_order(quote):
    """Place a courier order for a delivery and return the courier order id."""
    from delivery.delivery.placement import PlaceCourierOrder

    def _place(dlv, requested_by=SELLER_ID):
        result = current_domain.process(
            PlaceCourierOrder(
                delivery_id=str(dlv.id),
                requested_by=requested_by,
                quotation_id=quote(),
                sender_name="Seller",
                sender_phone="+63 917 111 2222",
                recipient_name="Buyer",
                recipient_phone="+63 917 333 4444",
            ),
            asynchronous=False,
        )
        return result["courier_order_id"]

    return _place


@pytest.fixture()
def status_update():
    """Build a courier ORDER_STATUS_CHANGED update as the webhook route produces it."""

    def _update(courier_order_id: str, courier_status: str, **extra) -> dict:
        return {
            "courier_order_id": courier_order_id,
            "message_type": "ORDER_STATUS_CHANGED",
            "courier_status": courier_status,
            "source": "webhook",
            **extra,
        }

    return _update
