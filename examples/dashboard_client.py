"""
Example dashboard client for the live vitals WebSocket.

Prints readings, alerts and emergencies as they arrive. When ``--lat`` and
``--lon`` are given the client reports them as the device position, the way a
browser dashboard relays its geolocation.

Usage:
    python examples/dashboard_client.py --lat 12.9716 --lon 77.5946
"""

import argparse
import asyncio
import json
import sys
from typing import Any

import websockets


class DashboardClient:
    """Consumer of ``/api/v1/vitals/ws/frontend``."""

    def __init__(self, base_url: str, lat: float | None = None, lon: float | None = None):
        self.url = base_url.rstrip("/") + "/api/v1/vitals/ws/frontend"
        self.lat = lat
        self.lon = lon

    async def connect(self) -> None:
        print(f"Connecting to {self.url}...")
        print("-" * 60)
        try:
            async with websockets.connect(self.url) as websocket:
                if self.lat is not None and self.lon is not None:
                    await websocket.send(
                        json.dumps({"type": "location", "lat": self.lat, "lon": self.lon})
                    )
                async for raw in websocket:
                    try:
                        message = json.loads(raw)
                    except json.JSONDecodeError as e:
                        print(f"Error parsing message: {e}")
                        continue
                    self.handle_message(message)
        except (OSError, websockets.ConnectionClosed) as e:
            print(f"\nConnection error: {e}")
        finally:
            print("Disconnected from vitals stream")

    def handle_message(self, message: dict[str, Any]) -> None:
        msg_type = message.get("type", "unknown")

        if msg_type == "connected":
            print(f"✓ {message.get('message')}")
        elif msg_type == "vitals":
            print(
                f"[{message.get('timestamp')}] HR {message.get('heartRate')} bpm | "
                f"SpO2 {message.get('spo2')}% | Temp {message.get('temperature')}°C"
            )
        elif msg_type == "alert":
            print("\n🚨 ALERT " + "=" * 51)
            print(f"Alert ID: {message.get('id')}")
            print(f"Kind: {message.get('kind')} ({message.get('rule')})")
            print(f"Message: {message.get('message')}")
            print("=" * 60 + "\n")
        elif msg_type == "emergency":
            incident = message.get("incident", {})
            print("\n⚠️  EMERGENCY " + "=" * 47)
            print(incident.get("summary"))
            print(f"Notification: {incident.get('outcome')}")
            if incident.get("error"):
                print(f"Error: {incident.get('error')}")
            print("=" * 60 + "\n")
        elif msg_type == "emergency_status":
            state = "ACTIVE" if message.get("isActive") else "cleared"
            print(f"Emergency status: {state}")
        else:
            print(json.dumps(message, indent=2))


async def main() -> None:
    parser = argparse.ArgumentParser(description="Vitals dashboard WebSocket client")
    parser.add_argument(
        "--base-url",
        default="ws://localhost:8000",
        help="WebSocket base URL of the server (default: ws://localhost:8000)",
    )
    parser.add_argument("--lat", type=float, help="Device latitude to report")
    parser.add_argument("--lon", type=float, help="Device longitude to report")
    args = parser.parse_args()

    if (args.lat is None) != (args.lon is None):
        print("Error: --lat and --lon must be given together")
        sys.exit(1)

    client = DashboardClient(args.base_url, lat=args.lat, lon=args.lon)
    await client.connect()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\nDisconnecting...")
