"""
In-memory spatial dataset for habitability scoring.

Holds the zone polygons (features_poly.json) and point amenities
(features.json) that every score is computed against.  Loaded once at
start-up and treated as read-only afterwards.  Graceful degradation: a
missing file or malformed record is logged and skipped, never crashes
the loader.
"""

import json
import logging
import math
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from shapely.geometry import Polygon

from geometry import GeoPoint, build_polygon, point_in_polygon
from scoring_config import HABITABILITY_MODEL

logger = logging.getLogger(__name__)

AMENITIES_FILE = "features.json"
POLYGONS_FILE = "features_poly.json"

# Keys on a polygon record that are never a metric value.
_RESERVED_POLYGON_KEYS = frozenset({"aspect", "coordinates"})


def _data_dir() -> str:
    """Resolve the reference data directory."""
    return os.environ.get("HABITABILITY_DATA_DIR", "data")


@dataclass(frozen=True)
class Amenity:
    """A point amenity or hazard, e.g. a park or a waste facility."""

    lat: float
    lon: float
    type: str

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lon)


@dataclass(frozen=True)
class ZonePolygon:
    """One zone of an aspect's coverage with its raw metric value.

    ``metric_key`` is the record key the value was read from; it is None
    when the record carried no key naming a configured aspect, in which
    case ``value`` is None too.  ``shape`` is the prepared shapely polygon
    built from ``ring``; None for a degenerate ring, which contains nothing.
    """

    aspect: str
    ring: Tuple[Tuple[float, float], ...]
    metric_key: Optional[str] = None
    value: Optional[float] = None
    shape: Optional[Polygon] = field(init=False, default=None, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "ring", tuple(tuple(v) for v in self.ring))
        object.__setattr__(self, "shape", build_polygon(self.ring))

    def contains(self, point: GeoPoint) -> bool:
        return point_in_polygon(point, self.shape)


@dataclass(frozen=True)
class DataBounds:
    """Inclusive lat/lon envelope of every loaded coordinate."""

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "min_lat": self.min_lat,
            "max_lat": self.max_lat,
            "min_lon": self.min_lon,
            "max_lon": self.max_lon,
        }


def compute_bounds(
    amenities: Iterable[Amenity],
    polygons: Iterable[ZonePolygon],
) -> Optional[DataBounds]:
    """Scan every amenity and polygon vertex once; None if there are none."""
    min_lat = min_lon = math.inf
    max_lat = max_lon = -math.inf

    def _coords():
        for a in amenities:
            yield a.lat, a.lon
        for p in polygons:
            for lon, lat in p.ring:
                yield lat, lon

    seen = False
    for lat, lon in _coords():
        seen = True
        min_lat = min(min_lat, lat)
        max_lat = max(max_lat, lat)
        min_lon = min(min_lon, lon)
        max_lon = max(max_lon, lon)

    if not seen:
        return None
    return DataBounds(min_lat=min_lat, max_lat=max_lat, min_lon=min_lon, max_lon=max_lon)


def is_within_bounds(lat: float, lon: float, bounds: Optional[DataBounds]) -> bool:
    """Inclusive envelope check.  No bounds (no data) means nothing is inside."""
    if bounds is None:
        return False
    return (
        bounds.min_lat <= lat <= bounds.max_lat
        and bounds.min_lon <= lon <= bounds.max_lon
    )


@dataclass(frozen=True)
class SpatialDataset:
    """
    Immutable bundle of reference data plus derived indexes.

    Usage:
        dataset = load_dataset()
        if is_within_bounds(40.75, -73.98, dataset.bounds):
            ...
    """

    amenities: Tuple[Amenity, ...] = ()
    polygons: Tuple[ZonePolygon, ...] = ()
    bounds: Optional[DataBounds] = field(init=False, default=None)
    _by_aspect: Tuple[Tuple[str, Tuple[ZonePolygon, ...]], ...] = field(
        init=False, default=(), repr=False, compare=False
    )

    def __post_init__(self):
        # Derived once here; frozen afterwards.
        object.__setattr__(self, "amenities", tuple(self.amenities))
        object.__setattr__(self, "polygons", tuple(self.polygons))
        object.__setattr__(self, "bounds", compute_bounds(self.amenities, self.polygons))

        grouped: Dict[str, List[ZonePolygon]] = {}
        for poly in self.polygons:
            grouped.setdefault(poly.aspect, []).append(poly)
        object.__setattr__(
            self, "_by_aspect", tuple((k, tuple(v)) for k, v in grouped.items())
        )

    def polygons_by_aspect(self) -> Tuple[Tuple[str, Tuple[ZonePolygon, ...]], ...]:
        """(aspect, polygons) pairs, aspects in first-seen order, polygons in load order."""
        return self._by_aspect

    @property
    def is_empty(self) -> bool:
        return not self.amenities and not self.polygons


# =============================================================================
# Record parsing
# =============================================================================

def _coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_amenity(record: Any) -> Optional[Amenity]:
    """Build an Amenity from a {latitude, longitude, type} record, or None."""
    if not isinstance(record, Mapping):
        return None
    lat = _coerce_float(record.get("latitude"))
    lon = _coerce_float(record.get("longitude"))
    amenity_type = record.get("type")
    if lat is None or lon is None or not isinstance(amenity_type, str):
        return None
    return Amenity(lat=lat, lon=lon, type=amenity_type)


def _parse_ring(coordinates: Any) -> Optional[Tuple[Tuple[float, float], ...]]:
    if not isinstance(coordinates, (list, tuple)) or not coordinates:
        return None
    # GeoJSON Polygon wraps rings one level deeper; take the outer ring.
    first = coordinates[0]
    if isinstance(first, (list, tuple)) and first and isinstance(first[0], (list, tuple)):
        coordinates = first

    ring = []
    for vertex in coordinates:
        if not isinstance(vertex, (list, tuple)) or len(vertex) < 2:
            return None
        lon = _coerce_float(vertex[0])
        lat = _coerce_float(vertex[1])
        if lon is None or lat is None:
            return None
        ring.append((lon, lat))
    return tuple(ring)


def parse_zone_polygon(
    record: Any,
    metric_keys: Iterable[str] = HABITABILITY_MODEL.ranges.keys(),
) -> Optional[ZonePolygon]:
    """Build a ZonePolygon from an {aspect, coordinates, <metric>} record.

    The metric is read from the first record key (in record order) that
    names a configured aspect.  A record without one still yields a polygon
    with ``value=None``; it can own a point but contributes no score.
    """
    if not isinstance(record, Mapping):
        return None
    aspect = record.get("aspect")
    ring = _parse_ring(record.get("coordinates"))
    if not isinstance(aspect, str) or ring is None:
        return None

    known = set(metric_keys)
    metric_key = next(
        (k for k in record if k not in _RESERVED_POLYGON_KEYS and k in known),
        None,
    )
    value = _coerce_float(record[metric_key]) if metric_key is not None else None
    return ZonePolygon(aspect=aspect, ring=ring, metric_key=metric_key, value=value)


def _read_records(path: str) -> List[Any]:
    """Read a JSON array from *path*; empty list on any error."""
    if not os.path.exists(path):
        logger.warning("Reference data not found at %s, treating as empty", path)
        return []
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Could not read reference data %s: %s", path, e)
        return []
    if not isinstance(data, list):
        logger.warning("Reference data %s is not a JSON array, ignoring", path)
        return []
    return data


def build_dataset(
    amenity_records: Iterable[Any],
    polygon_records: Iterable[Any],
    metric_keys: Iterable[str] = HABITABILITY_MODEL.ranges.keys(),
) -> SpatialDataset:
    """Parse raw records into a SpatialDataset, skipping malformed ones."""
    metric_keys = tuple(metric_keys)
    amenities = []
    skipped_amenities = 0
    for record in amenity_records:
        amenity = parse_amenity(record)
        if amenity is None:
            skipped_amenities += 1
            continue
        amenities.append(amenity)

    polygons = []
    skipped_polygons = 0
    for record in polygon_records:
        poly = parse_zone_polygon(record, metric_keys)
        if poly is None:
            skipped_polygons += 1
            continue
        polygons.append(poly)

    if skipped_amenities or skipped_polygons:
        logger.warning(
            "Skipped %d malformed amenity and %d malformed polygon records",
            skipped_amenities,
            skipped_polygons,
        )
    return SpatialDataset(amenities=tuple(amenities), polygons=tuple(polygons))


def load_dataset(data_dir: Optional[str] = None) -> SpatialDataset:
    """Load features.json and features_poly.json from *data_dir*."""
    data_dir = data_dir or _data_dir()
    dataset = build_dataset(
        _read_records(os.path.join(data_dir, AMENITIES_FILE)),
        _read_records(os.path.join(data_dir, POLYGONS_FILE)),
    )
    logger.info(
        "Loaded %d amenities and %d zone polygons from %s (bounds=%s)",
        len(dataset.amenities),
        len(dataset.polygons),
        data_dir,
        dataset.bounds,
    )
    return dataset
