"""
app/services/geo_service.py

Heatmap bucketing of free-text record cities onto known map locations.
"""

from __future__ import annotations

import re
import unicodedata
from collections.abc import Sequence
from dataclasses import dataclass

from app.domain.sales import CanonicalSalesRecord

MIN_VISIBLE_INTENSITY = 0.35
MAP_CENTER: tuple[float, float] = (15.75, -86.8)
MAP_ZOOM = 10

_WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class KnownLocation:
    name: str
    latitude: float
    longitude: float


KNOWN_LOCATIONS: tuple[KnownLocation, ...] = (
    KnownLocation("La Ceiba", 15.7739, -86.7964),
    KnownLocation("El Porvenir", 15.7734, -86.8587),
    KnownLocation("El Pino", 15.7289, -86.8621),
)


@dataclass(frozen=True)
class LocationBucket:
    """Record count and heatmap intensity for one known location."""

    location: KnownLocation
    count: int
    intensity: float


def normalize_place(value: str | None) -> str:
    """
    Accent-free, lowercase, single-spaced form of a place name.
    """

    if not value:
        return ""
    decomposed = unicodedata.normalize("NFD", str(value))
    stripped = "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")
    return _WHITESPACE_RE.sub(" ", stripped.lower()).strip()


def intensity_for(count: int, max_count: int) -> float:
    if count <= 0 or max_count <= 0:
        return 0.0
    return max(MIN_VISIBLE_INTENSITY, min(1.0, count / max_count))


class GeoBucketingService:
    """
    Maps each record's city onto the first known location it equals or contains.

    Cities that match no known location are left out of the buckets only;
    they still count in every other aggregate.
    """

    def __init__(self, locations: Sequence[KnownLocation] = KNOWN_LOCATIONS) -> None:
        self._locations = tuple(locations)
        self._targets = tuple((location, normalize_place(location.name)) for location in self._locations)

    def match_location(self, city: str | None) -> KnownLocation | None:
        candidate = normalize_place(city)
        if not candidate:
            return None
        for location, target in self._targets:
            if candidate == target or target in candidate:
                return location
        return None

    def bucket(self, records: Sequence[CanonicalSalesRecord]) -> list[LocationBucket]:
        """
        One bucket per known location, in the fixed location order.
        """

        counts: dict[str, int] = {location.name: 0 for location in self._locations}
        for record in records:
            location = self.match_location(record.city)
            if location is not None:
                counts[location.name] += 1

        max_count = max(counts.values(), default=0)
        return [
            LocationBucket(
                location=location,
                count=counts[location.name],
                intensity=intensity_for(counts[location.name], max_count),
            )
            for location in self._locations
        ]
