#!/usr/bin/env python3
"""
Sensor simulator for local testing.

Usage:
    # Post 20 random readings, one every 5 seconds (10% chance of a fall each)
    python scripts/send_vitals.py stream --count 20 --interval 5

    # Post a single high-impact fall
    python scripts/send_vitals.py fall --impact 25

    # Follow the SSE stream the dashboards see
    python scripts/send_vitals.py listen
"""

import asyncio
import json
import math
import random
from datetime import datetime, timezone
from typing import Any

import httpx
import typer

app = typer.Typer()

BASE_URL = "http://localhost:8000"


def _rand(low: float, high: float, decimals: int = 1) -> float:
    return round(random.uniform(low, high), decimals)


def generate_reading(fall_chance: float = 0.1) -> dict[str, Any]:
    """Random but plausible reading in the wire format the sensor sends."""
    accel = {axis: _rand(-30, 30) for axis in ("x", "y", "z")}
    accel["total"] = round(math.sqrt(sum(v * v for v in accel.values())), 1)
    return {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "heartRate": _rand(60, 140, 0),
        "spo2": _rand(88, 100, 0),
        "temperature": _rand(35.5, 39.5),
        "accelerometer": accel,
        "gyroscope": {axis: _rand(-10, 10) for axis in ("x", "y", "z")},
        "fallAlert": random.random() < fall_chance,
    }


def fall_reading(impact: float) -> dict[str, Any]:
    reading = generate_reading(fall_chance=0)
    reading["accelerometer"] = {"x": impact, "y": 0.0, "z": 0.0, "total": impact}
    reading["gyroscope"] = {"x": 4.0, "y": 0.0, "z": 0.0}
    reading["fallAlert"] = True
    return reading


async def _post(client: httpx.AsyncClient, base_url: str, reading: dict[str, Any]) -> bool:
    try:
        response = await client.post(f"{base_url}/api/v1/vitals", json=reading)
    except httpx.HTTPError as exc:
        typer.echo(f"❌ Request failed: {exc}", err=True)
        return False
    if response.status_code != 200:
        typer.echo(f"❌ {response.status_code}: {response.text}", err=True)
        return False

    stamp = datetime.now().strftime("%H:%M:%S")
    typer.echo(
        f"✅ [{stamp}] HR {reading['heartRate']:g} bpm | "
        f"SpO2 {reading['spo2']:g}% | Temp {reading['temperature']:g}°C"
    )
    if reading["fallAlert"]:
        typer.echo("   🚨 FALL ALERT SENT")
    return True


@app.command()
def stream(
    count: int = typer.Option(20, help="Number of readings to send"),
    interval: float = typer.Option(5.0, help="Seconds between readings"),
    fall_chance: float = typer.Option(0.1, help="Probability that a reading flags a fall"),
    base_url: str = typer.Option(BASE_URL, help="Server base URL"),
):
    """Post random readings at a fixed interval."""
    asyncio.run(_stream(count, interval, fall_chance, base_url.rstrip("/")))


async def _stream(count: int, interval: float, fall_chance: float, base_url: str) -> None:
    typer.echo(f"📡 Sending {count} readings to {base_url} every {interval:g}s\n")
    sent = 0
    async with httpx.AsyncClient(timeout=10) as client:
        for index in range(count):
            if await _post(client, base_url, generate_reading(fall_chance)):
                sent += 1
            if index < count - 1:
                await asyncio.sleep(interval)
    typer.echo(f"\n📊 {sent}/{count} readings accepted")


@app.command()
def fall(
    impact: float = typer.Option(25.0, help="Accelerometer magnitude in m/s²"),
    base_url: str = typer.Option(BASE_URL, help="Server base URL"),
):
    """Post one reading that classifies as a fall (high impact above 20 m/s²)."""
    asyncio.run(_fall(impact, base_url.rstrip("/")))


async def _fall(impact: float, base_url: str) -> None:
    async with httpx.AsyncClient(timeout=10) as client:
        if not await _post(client, base_url, fall_reading(impact)):
            raise typer.Exit(1)


@app.command()
def listen(base_url: str = typer.Option(BASE_URL, help="Server base URL")):
    """Print every message of the dashboard SSE stream."""
    asyncio.run(_listen(base_url.rstrip("/")))


async def _listen(base_url: str) -> None:
    url = f"{base_url}/api/v1/vitals/stream"
    typer.echo(f"📡 Connecting to SSE stream: {url}")
    typer.echo("⏳ Waiting for messages... (Press Ctrl+C to stop)\n")

    async with httpx.AsyncClient(timeout=None) as client:
        async with client.stream("GET", url) as response:
            if response.status_code != 200:
                typer.echo(f"❌ Connection failed: {response.status_code}", err=True)
                raise typer.Exit(1)
            async for line in response.aiter_lines():
                if not line:
                    continue
                if line.startswith(":"):
                    typer.echo("💓 keepalive")
                    continue
                if not line.startswith("data:"):
                    continue
                try:
                    message = json.loads(line[5:].strip())
                except json.JSONDecodeError:
                    typer.echo(f"📨 {line}")
                    continue
                typer.echo(f"[{message.get('type')}] {json.dumps(message)}")


if __name__ == "__main__":
    app()
