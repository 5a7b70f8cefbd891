import pytest
from httpx import AsyncClient

from app.core.context import AppContext, build_context
from app.main import app
from app.shared.exceptions import NotificationDispatchError
from tests.helpers import make_settings, sample_payload


class _FakeNotifier:
    def __init__(self, error: Exception | None = None) -> None:
        self.calls: list[tuple[str, str, str]] = []
        self._error = error

    async def notify(self, to: str, subject: str, html: str) -> str:
        self.calls.append((to, subject, html))
        if self._error is not None:
            raise self._error
        return "msg-123"


@pytest.mark.asyncio
async def test_status_is_inactive_initially(client: AsyncClient) -> None:
    resp = await client.get("/api/v1/emergency/status")

    assert resp.status_code == 200
    assert resp.json() == {"isActive": False, "lastTriggered": None, "location": None}


@pytest.mark.asyncio
async def test_manual_trigger_runs_an_escalation(client: AsyncClient, context: AppContext) -> None:
    await client.post("/api/v1/vitals", json=sample_payload(heartRate=99))

    resp = await client.post("/api/v1/emergency/trigger", json={"note": "panic button"})

    assert resp.status_code == 202
    incident = resp.json()
    assert incident["fallType"] == "MANUAL"
    assert incident["vitals"]["heartRate"] == 99

    await context.workflow.wait_idle(timeout=1.0)
    records = (await client.get("/api/v1/emergency/incidents")).json()
    assert len(records) == 1
    assert records[0]["incident"]["id"] == incident["id"]
    assert records[0]["state"] == "resolved"
    # No notifier is configured in tests
    assert records[0]["outcome"] == "failed"

    status = (await client.get("/api/v1/emergency/status")).json()
    assert status["isActive"] is True
    assert status["lastTriggered"] is not None


@pytest.mark.asyncio
async def test_manual_trigger_accepts_empty_body(client: AsyncClient, context: AppContext) -> None:
    resp = await client.post("/api/v1/emergency/trigger")

    assert resp.status_code == 202
    assert resp.json()["vitals"] == {"heartRate": 0.0, "spo2": 0.0, "temperature": 0.0}
    await context.workflow.wait_idle(timeout=1.0)


@pytest.mark.asyncio
async def test_resolve_clears_status(client: AsyncClient, context: AppContext) -> None:
    context.status.activate()

    resp = await client.post("/api/v1/emergency/resolve")

    assert resp.status_code == 200
    assert resp.json()["isActive"] is False
    assert context.status.current().is_active is False


@pytest.mark.asyncio
async def test_reported_location_is_used_by_next_escalation(
    client: AsyncClient, context: AppContext
) -> None:
    resp = await client.post("/api/v1/emergency/location", json={"lat": 12.9716, "lon": 77.5946})
    assert resp.status_code == 200
    assert resp.json()["success"] is True

    await client.post("/api/v1/emergency/trigger")
    await context.workflow.wait_idle(timeout=1.0)

    record = context.workflow.incidents()[0]
    assert record.location is not None
    assert record.nearest.facility.name == "BGS Gleneagles Global Hospital"
    assert record.nearest.distance_km == pytest.approx(0.0)


@pytest.mark.asyncio
async def test_location_rejects_out_of_range_coordinates(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/emergency/location", json={"lat": 123.0, "lon": 0.0})

    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_location_conflicts_with_static_provider(client: AsyncClient) -> None:
    app.state.context = build_context(
        make_settings(GEOLOCATION_PROVIDER="static", DEVICE_LATITUDE=1.0, DEVICE_LONGITUDE=2.0)
    )

    resp = await client.post("/api/v1/emergency/location", json={"lat": 12.0, "lon": 77.0})

    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_notify_without_channel_is_503(client: AsyncClient) -> None:
    resp = await client.post(
        "/api/v1/emergency/notify",
        json={"to": "a@b.test", "subject": "Test", "html": "<p>x</p>"},
    )

    assert resp.status_code == 503
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_notify_returns_message_id(
    client: AsyncClient, context: AppContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    notifier = _FakeNotifier()
    monkeypatch.setattr(context.workflow, "_notifier", notifier)

    resp = await client.post(
        "/api/v1/emergency/notify",
        json={"to": "a@b.test", "subject": "Test", "html": "<p>x</p>"},
    )

    assert resp.status_code == 200
    assert resp.json() == {"success": True, "messageId": "msg-123"}
    assert notifier.calls == [("a@b.test", "Test", "<p>x</p>")]


@pytest.mark.asyncio
async def test_notify_failure_is_502(
    client: AsyncClient, context: AppContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(
        context.workflow, "_notifier", _FakeNotifier(error=NotificationDispatchError("rejected"))
    )

    resp = await client.post(
        "/api/v1/emergency/notify",
        json={"to": "a@b.test", "subject": "Test", "html": "<p>x</p>"},
    )

    assert resp.status_code == 502
    assert resp.json() == {"success": False, "message": "rejected"}


@pytest.mark.asyncio
async def test_notify_requires_all_fields(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/emergency/notify", json={"to": "", "subject": "s"})

    assert resp.status_code == 422
