import json
import math
from pathlib import Path
from typing import Sequence

import structlog
from pydantic import TypeAdapter

from app.modules.emergency.schemas import Coordinates, Facility, NearestFacility

log = structlog.get_logger()

EARTH_RADIUS_KM = 6371.0
DEFAULT_DIRECTORY_PATH = Path(__file__).resolve().parent / "data" / "facilities.json"

_directory_adapter = TypeAdapter(list[Facility])


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def find_nearest(
    directory: Sequence[Facility], position: Coordinates
) -> NearestFacility | None:
    """Closest facility to ``position``; on ties the earlier directory entry wins."""
    nearest: NearestFacility | None = None
    for facility in directory:
        distance = haversine_km(position.lat, position.lon, facility.lat, facility.lon)
        if nearest is None or distance < nearest.distance_km:
            nearest = NearestFacility(facility=facility, distance_km=distance)
    return nearest


def load_directory(path: Path | None = None) -> list[Facility]:
    """Read the facility directory, falling back to the bundled one when ``path`` is unusable."""
    target = path or DEFAULT_DIRECTORY_PATH
    try:
        return _directory_adapter.validate_python(json.loads(target.read_text()))
    except FileNotFoundError:
        log.warning("facility directory not found", path=str(target))
    except Exception as exc:
        log.warning("facility directory load failed", path=str(target), error=str(exc))
    if target == DEFAULT_DIRECTORY_PATH:
        return []
    return load_directory(DEFAULT_DIRECTORY_PATH)
