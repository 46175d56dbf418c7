"""
Geometry primitives for habitability scoring.

Points are plain (latitude, longitude) degrees on the WGS84 sphere with no
projection correction.  Polygon rings are sequences of (longitude, latitude)
pairs, matching GeoJSON coordinate order.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import shapely
from shapely.geometry import Point, Polygon

# Mean Earth radius, same value turf.js and most GIS tools use.
EARTH_RADIUS = {
    "kilometers": 6371.0088,
    "miles": 3958.7613,
}


@dataclass(frozen=True)
class GeoPoint:
    """An immutable (latitude, longitude) pair in decimal degrees."""
    lat: float
    lon: float

    @property
    def lonlat(self) -> Tuple[float, float]:
        return (self.lon, self.lat)


def distance(a: GeoPoint, b: GeoPoint, unit: str = "kilometers") -> float:
    """Haversine great-circle distance between two points.

    Symmetric, and exactly 0.0 when both points are equal.
    """
    try:
        radius = EARTH_RADIUS[unit]
    except KeyError:
        raise ValueError(
            f"Unsupported distance unit {unit!r}; expected one of {sorted(EARTH_RADIUS)}"
        ) from None

    dlat = math.radians(b.lat - a.lat)
    dlon = math.radians(b.lon - a.lon)
    h = (math.sin(dlat / 2) ** 2 +
         math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) *
         math.sin(dlon / 2) ** 2)
    # min() guards against h drifting a hair above 1.0 for antipodal points
    return 2 * radius * math.asin(math.sqrt(min(1.0, h)))


def build_polygon(ring: Sequence[Sequence[float]]) -> Optional[Polygon]:
    """Shapely polygon for a (lon, lat) ring, or None if it encloses nothing.

    The ring closes implicitly; a repeated closing vertex is harmless.
    Rings with fewer than three distinct vertices, or with zero area,
    yield None.
    """
    vertices = [(float(v[0]), float(v[1])) for v in ring]
    if len(set(vertices)) < 3:
        return None
    polygon = Polygon(vertices)
    if polygon.area == 0:
        return None
    shapely.prepare(polygon)
    return polygon


def point_in_polygon(
    point: GeoPoint,
    ring: Union[Polygon, Sequence[Sequence[float]], None],
) -> bool:
    """Containment test against a (lon, lat) ring or a prebuilt polygon.

    Points on an edge or vertex count as inside.
    """
    polygon = ring if isinstance(ring, Polygon) or ring is None else build_polygon(ring)
    if polygon is None:
        return False
    return polygon.covers(Point(point.lon, point.lat))
