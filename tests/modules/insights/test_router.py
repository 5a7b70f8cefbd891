import json

import httpx
import pytest
from httpx import AsyncClient

from app.core.context import AppContext
from app.modules.insights.service import InsightService
from tests.helpers import sample_payload


def _install_service(context: AppContext, monkeypatch: pytest.MonkeyPatch, seen: list) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"choices": [{"message": {"content": "All normal."}}]})

    service = InsightService(
        api_url="https://ai.example.test/v1/chat/completions",
        api_key="key",
        model="m",
        transport=httpx.MockTransport(handler),
    )
    monkeypatch.setattr(context, "insights", service)


@pytest.mark.asyncio
async def test_predict_without_configuration_is_503(client: AsyncClient) -> None:
    resp = await client.post("/api/v1/ai/predict", json={"vitalsHistory": []})

    assert resp.status_code == 503
    assert resp.json()["success"] is False


@pytest.mark.asyncio
async def test_predict_uses_rolling_history_by_default(
    client: AsyncClient, context: AppContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list = []
    _install_service(context, monkeypatch, seen)
    await client.post("/api/v1/vitals", json=sample_payload(heartRate=83))

    resp = await client.post("/api/v1/ai/predict")

    assert resp.status_code == 200
    assert resp.json() == {"prediction": "All normal."}
    assert '"heartRate": 83' in seen[0]["messages"][1]["content"]


@pytest.mark.asyncio
async def test_predict_prefers_history_from_the_request(
    client: AsyncClient, context: AppContext, monkeypatch: pytest.MonkeyPatch
) -> None:
    seen: list = []
    _install_service(context, monkeypatch, seen)

    resp = await client.post(
        "/api/v1/ai/predict", json={"vitalsHistory": [{"heartRate": 140, "spo2": 91}]}
    )

    assert resp.status_code == 200
    assert '"heartRate": 140' in seen[0]["messages"][1]["content"]
