"""
locations.py — Static registry of monitored sites.

The built-in registry covers the 18 Local Government Areas of Cross River
State, Nigeria. Each entry carries the coordinates queried against
Open-Meteo plus the two static features the prediction service needs:
elevation (m) and average soil moisture (%).

A deployment can replace the built-in list with a JSON file:

    [
        {"name": "Ikom", "latitude": 5.9667, "longitude": 8.7167,
         "elevation": 150, "soil_moisture": 50},
        ...
    ]

The registry is loaded once at startup and never mutated afterwards.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Location:
    """A monitored site."""
    name: str
    latitude: float       # degrees
    longitude: float      # degrees
    elevation: int        # metres above sea level
    soil_moisture: int    # baseline soil moisture, percent

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Location":
        return cls(
            name=str(data["name"]),
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            elevation=int(data["elevation"]),
            soil_moisture=int(data["soil_moisture"]),
        )


# name, lat, lon, elevation (m), soil moisture (%)
_CROSS_RIVER_LGAS = [
    ("Abi",               5.8667, 8.0167, 120, 47),
    ("Akamkpa",           5.2945, 8.4958,  60, 50),
    ("Akpabuyo",          4.9000, 8.5167,  35, 54),
    ("Bakassi",           4.9260, 8.5290,   3, 58),
    ("Bekwarra",          6.6833, 8.8833, 190, 43),
    ("Biase",             5.4167, 8.1667,  85, 52),
    ("Boki",              6.2385, 8.8965, 230, 55),
    ("Calabar Municipal", 4.9500, 8.3250,  20, 45),
    ("Calabar South",     4.9167, 8.3167,  25, 48),
    ("Etung",             6.0833, 8.8667, 200, 46),
    ("Ikom",              5.9667, 8.7167, 150, 50),
    ("Obanliku",          6.9333, 9.3833, 330, 44),
    ("Obubra",            6.0833, 8.3333, 140, 49),
    ("Obudu",             6.6700, 9.2200, 280, 42),
    ("Odukpani",          5.0167, 8.4000,  30, 47),
    ("Ogoja",             6.6500, 8.8000, 180, 45),
    ("Yakurr",            5.8667, 8.0167, 110, 48),
    ("Yala",              6.9000, 8.6833, 160, 46),
]

DEFAULT_LOCATIONS: Tuple[Location, ...] = tuple(
    Location(name, lat, lon, elev, soil)
    for name, lat, lon, elev, soil in _CROSS_RIVER_LGAS
)


def _ensure_unique(locations: Iterable[Location]) -> Tuple[Location, ...]:
    result = tuple(locations)
    seen = set()
    for loc in result:
        if loc.name in seen:
            raise ValueError(f"Duplicate location name in registry: {loc.name!r}")
        seen.add(loc.name)
    return result


def load_locations(path: Optional[Union[str, Path]] = None) -> Tuple[Location, ...]:
    """
    Load the location registry.

    Args:
        path: Optional JSON file replacing the built-in registry.

    Returns:
        Tuple of locations in file (or built-in) order.

    Raises:
        ValueError: on duplicate names or malformed entries.
    """
    if path is None:
        return _ensure_unique(DEFAULT_LOCATIONS)

    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    if not isinstance(raw, list):
        raise ValueError(f"Location file {path} must contain a JSON list")

    try:
        locations = [Location.from_dict(item) for item in raw]
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Malformed location entry in {path}: {e}") from e

    logger.info("Loaded %d locations from %s", len(locations), path)
    return _ensure_unique(locations)
