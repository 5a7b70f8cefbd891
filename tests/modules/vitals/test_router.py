from datetime import datetime, timezone

import pytest
from httpx import AsyncClient

from app.core.context import AppContext
from tests.helpers import esp32_payload, sample_payload


@pytest.mark.asyncio
async def test_post_vitals_acknowledges_and_records(client: AsyncClient, context: AppContext) -> None:
    resp = await client.post("/api/v1/vitals", json=sample_payload(heartRate=77))

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "message": "Vitals data broadcasted successfully"}
    assert context.history.latest().heart_rate == 77


@pytest.mark.asyncio
async def test_post_vitals_rejects_malformed_json(client: AsyncClient, context: AppContext) -> None:
    resp = await client.post(
        "/api/v1/vitals",
        content=b"{not json",
        headers={"Content-Type": "application/json"},
    )

    assert resp.status_code == 400
    assert resp.json()["success"] is False
    assert len(context.history) == 0


@pytest.mark.asyncio
async def test_post_vitals_rejects_non_object(client: AsyncClient, context: AppContext) -> None:
    resp = await client.post("/api/v1/vitals", json=[72, 98, 36.6])

    assert resp.status_code == 400
    body = resp.json()
    assert body["success"] is False
    assert "JSON object" in body["message"]
    assert len(context.history) == 0


@pytest.mark.asyncio
async def test_post_vitals_from_wearable_firmware_is_stamped_on_receipt(
    client: AsyncClient, context: AppContext
) -> None:
    before = datetime.now(timezone.utc)
    resp = await client.post("/api/v1/vitals", json=esp32_payload())

    assert resp.status_code == 200
    latest = (await client.get("/api/v1/vitals/latest")).json()
    assert latest["deviceTimestamp"] == 123456
    assert datetime.fromisoformat(latest["timestamp"].replace("Z", "+00:00")) >= before
    assert latest["heartRate"] == 78


@pytest.mark.asyncio
@pytest.mark.parametrize("device_clock", [1714557600000, 1e20])
async def test_post_vitals_accepts_large_device_clocks(
    client: AsyncClient, context: AppContext, device_clock: float
) -> None:
    resp = await client.post("/api/v1/vitals", json=sample_payload(timestamp=device_clock))

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert context.history.latest().device_timestamp == device_clock


@pytest.mark.asyncio
async def test_latest_is_404_until_a_reading_arrives(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/vitals/latest")

    assert resp.status_code == 404

    await client.post("/api/v1/vitals", json=sample_payload(spo2=97))
    resp = await client.get("/api/v1/vitals/latest")

    assert resp.status_code == 200
    assert resp.json()["spo2"] == 97


@pytest.mark.asyncio
async def test_history_is_bounded_and_camel_cased(client: AsyncClient) -> None:
    for hr in range(70, 78):
        await client.post("/api/v1/vitals", json=sample_payload(heartRate=hr))

    resp = await client.get("/api/v1/vitals/history")

    assert resp.status_code == 200
    body = resp.json()
    assert [item["heartRate"] for item in body] == [72, 73, 74, 75, 76, 77]
    assert "fallAlert" in body[0]


@pytest.mark.asyncio
async def test_health_and_root(client: AsyncClient) -> None:
    health = await client.get("/health")
    root = await client.get("/")

    assert health.json() == {"status": "ok"}
    assert health.headers["X-Request-ID"]
    assert root.status_code == 200
    assert "running" in root.text


@pytest.mark.asyncio
async def test_request_id_header_is_echoed(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/vitals/history", headers={"X-Request-ID": "abc-123"})

    assert resp.headers["X-Request-ID"] == "abc-123"
