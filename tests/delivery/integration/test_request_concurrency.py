"""Slow outbound calls must not hold up other requests on the same event loop."""

import asyncio
import json
import time

import httpx
import pytest


@pytest.mark.slow
def test_webhook_is_acknowledged_while_a_geocode_lookup_waits(app, geocoding_provider):
    geocoding_provider.configure(delay=1.0)
    body = json.dumps(
        {
            "orderId": "llm-not-yet-linked",
            "messageType": "ORDER_STATUS_CHANGED",
            "data": {"status": "PICKED_UP"},
        }
    )

    async def exchange():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
            lookup = asyncio.create_task(http.get("/geocoding/search", params={"address": "Malolos, Bulacan"}))
            await asyncio.sleep(0.2)

            started = time.monotonic()
            ack = await http.post(
                "/lalamove/webhook",
                content=body,
                headers={"Content-Type": "application/json"},
            )
            latency = time.monotonic() - started
            return ack, latency, await lookup

    ack, latency, search = asyncio.run(exchange())

    assert ack.status_code == 200
    assert ack.json()["scheduled"] is True
    assert latency < 0.6
    assert search.status_code == 200
