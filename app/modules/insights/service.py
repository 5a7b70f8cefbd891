import json
from typing import Any, Optional, Sequence

import httpx
import structlog

from app.core.config import Settings
from app.shared.exceptions import ConfigurationError, UpstreamServiceError

log = structlog.get_logger()

SYSTEM_PROMPT = """You are a health monitoring assistant. You receive a short series of \
vital-sign readings (heart rate in bpm, SpO2 in %, temperature in °C) from a wearable sensor.
Summarise the trend, point out readings outside normal ranges and suggest what the wearer \
should watch for next. Use short headed sections with bullet points. You are not giving a \
diagnosis; recommend contacting a clinician for anything concerning."""


class InsightService:
    """Free-text summary of the rolling history through an OpenAI-compatible chat endpoint."""

    def __init__(
        self,
        api_url: Optional[str],
        api_key: Optional[str],
        model: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_url = api_url
        self._api_key = api_key
        self._model = model
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "InsightService":
        return cls(
            api_url=settings.AI_API_URL,
            api_key=settings.AI_API_KEY,
            model=settings.AI_MODEL,
            timeout=settings.AI_TIMEOUT_SECONDS,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_url and self._api_key)

    async def summarize(self, history: Sequence[dict[str, Any]]) -> str:
        if not self.configured:
            raise ConfigurationError("AI summary is not configured (AI_API_URL / AI_API_KEY)")

        body = {
            "model": self._model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": "Vitals history (oldest first):\n"
                    + json.dumps(list(history), indent=2, default=str),
                },
            ],
        }
        try:
            async with httpx.AsyncClient(
                timeout=self._timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    self._api_url,
                    json=body,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as exc:
            log.warning("ai summary rejected", status_code=exc.response.status_code)
            raise UpstreamServiceError(
                f"AI service answered {exc.response.status_code}"
            ) from exc
        except (httpx.HTTPError, ValueError) as exc:
            log.warning("ai summary request failed", error=str(exc))
            raise UpstreamServiceError(f"AI service unreachable: {exc}") from exc

        try:
            return str(data["choices"][0]["message"]["content"]).strip()
        except (KeyError, IndexError, TypeError) as exc:
            raise UpstreamServiceError("AI service returned an unexpected payload") from exc
