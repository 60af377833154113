"""
In-memory sample index for nearest-road speed limit lookup.

A SampleIndex is built once per pack load and never modified afterwards.
Lookups are a linear haversine scan over every sample, which is fast enough
for city-sized packs (tens of thousands of samples) but grows with pack size.
"""

import math
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Tuple

import numpy as np

from .config import SAMPLE_INDEX_CAPACITY, MATCH_RADIUS_M
from .geometry import haversine_distances
from .limits import default_limit_for

# Where a resolved limit came from
SOURCE_MAXSPEED = "maxspeed"
SOURCE_ROAD_CLASS = "road_class"


@dataclass(frozen=True)
class RoadSample:
    """A representative point on a road centreline with that road's attributes."""
    longitude: float
    latitude: float
    speed_limit_kmh: Optional[int] = None
    road_class: Optional[str] = None  # OSM highway tag, e.g. "motorway"

    def resolved_limit(self) -> Optional[int]:
        """Explicit limit if known, otherwise the default for the road class."""
        if self.speed_limit_kmh is not None:
            return self.speed_limit_kmh
        if self.road_class is not None:
            return default_limit_for(self.road_class)
        return None


@dataclass(frozen=True)
class SpeedLimitMatch:
    """Result of a successful nearest-sample lookup."""
    speed_limit_kmh: int
    source: str  # SOURCE_MAXSPEED or SOURCE_ROAD_CLASS
    distance_m: float
    sample: RoadSample


class SampleIndex:
    """Immutable collection of road samples for one loaded pack."""

    def __init__(self, samples: List[RoadSample]):
        self._samples: Tuple[RoadSample, ...] = tuple(samples)
        self._lons = np.array([s.longitude for s in self._samples], dtype=np.float64)
        self._lats = np.array([s.latitude for s in self._samples], dtype=np.float64)
        self._lons.flags.writeable = False
        self._lats.flags.writeable = False

    @classmethod
    def empty(cls) -> "SampleIndex":
        return cls([])

    def __len__(self) -> int:
        return len(self._samples)

    def __iter__(self) -> Iterator[RoadSample]:
        return iter(self._samples)

    def __repr__(self) -> str:
        return f"SampleIndex({len(self)} samples)"

    def sample(self, i: int) -> RoadSample:
        return self._samples[i]

    @property
    def longitudes(self) -> np.ndarray:
        return self._lons

    @property
    def latitudes(self) -> np.ndarray:
        return self._lats

    def bounds(self) -> Optional[Tuple[float, float, float, float]]:
        """Bounding box (min_lat, min_lon, max_lat, max_lon), None when empty."""
        if not self._samples:
            return None
        return (
            float(self._lats.min()),
            float(self._lons.min()),
            float(self._lats.max()),
            float(self._lons.max()),
        )

    def nearest(self, latitude: float, longitude: float) -> Optional[Tuple[RoadSample, float]]:
        """
        Closest sample and its distance in metres, None when empty.

        Ties go to the sample that comes first in the index.
        """
        if not self._samples:
            return None
        distances = haversine_distances(latitude, longitude, self._lats, self._lons)
        best = int(np.argmin(distances))
        return self._samples[best], float(distances[best])

    def match(
        self, latitude: float, longitude: float, max_distance_m: float = MATCH_RADIUS_M
    ) -> Optional[SpeedLimitMatch]:
        """Speed limit of the nearest sample within max_distance_m."""
        found = self.nearest(latitude, longitude)
        if found is None:
            return None
        sample, distance = found
        # NaN coordinates give a NaN distance, which is no match
        if not math.isfinite(distance) or distance >= max_distance_m:
            return None
        if sample.speed_limit_kmh is not None:
            return SpeedLimitMatch(sample.speed_limit_kmh, SOURCE_MAXSPEED, distance, sample)
        if sample.road_class is not None:
            return SpeedLimitMatch(
                default_limit_for(sample.road_class), SOURCE_ROAD_CLASS, distance, sample
            )
        return None

    def speed_limit_at(
        self, latitude: float, longitude: float, max_distance_m: float = MATCH_RADIUS_M
    ) -> Optional[int]:
        """Speed limit in km/h at a coordinate, None if no road is close enough."""
        result = self.match(latitude, longitude, max_distance_m)
        return result.speed_limit_kmh if result else None


class SampleIndexBuilder:
    """Accumulates samples during a load, up to a fixed capacity."""

    def __init__(self, capacity: int = SAMPLE_INDEX_CAPACITY):
        self.capacity = capacity
        self._samples: List[RoadSample] = []

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def is_full(self) -> bool:
        return len(self._samples) >= self.capacity

    def add_road(
        self,
        points: Iterable[Tuple[float, float]],
        speed_limit_kmh: Optional[int],
        road_class: Optional[str],
    ) -> int:
        """
        Add one road's (lon, lat) points sharing that road's attributes.

        Returns the number of samples admitted; points beyond capacity are
        dropped, as are non-finite coordinates.
        """
        added = 0
        for lon, lat in points:
            if self.is_full:
                break
            if not (math.isfinite(lon) and math.isfinite(lat)):
                continue
            self._samples.append(RoadSample(lon, lat, speed_limit_kmh, road_class))
            added += 1
        return added

    def build(self) -> SampleIndex:
        return SampleIndex(self._samples)
