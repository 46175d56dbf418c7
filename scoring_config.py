"""
Scoring model configuration for the habitability score.

Owns every numeric constant that affects the habitability score: the
influence radius, the zone/proximity weights, the per-aspect normalization
ranges and the per-amenity-type weight table.

Frozen dataclasses provide type checking and IDE support without
the indirection of YAML/JSON config files.  The tables are built once
and handed to the scorer; nothing in here mutates after import.
"""

import math
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping, Optional


# =============================================================================
# Dataclasses
# =============================================================================

class Polarity(Enum):
    """Whether proximity to an amenity type helps or hurts the score."""
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class AspectRange:
    """Normalization range for one zone aspect.

    Raw values at/below ``min`` map to 0 and at/above ``max`` map to 100,
    reversed when ``invert`` is set (lower raw value is better).
    """
    min: float
    max: float
    invert: bool = False


@dataclass(frozen=True)
class AmenityWeight:
    """Signed contribution of an amenity type at distance zero."""
    polarity: Polarity
    max_score: float


@dataclass(frozen=True)
class HabitabilityModel:
    """Top-level container for all scoring parameters.

    A single module-level instance (HABITABILITY_MODEL) is the source of
    truth.  Bump `version` on every change that alters score outputs.

    ``proximity_raw_min`` / ``proximity_raw_max`` bound the signed amenity
    total before it is rescaled to 0-100.  They are a heuristic guess, not
    derived from the achievable totals of the loaded data, and need
    recalibration whenever the amenity dataset changes density.
    """
    version: str
    distance_unit: str
    influence_radius: float
    zone_weight: float
    proximity_weight: float
    proximity_raw_min: float
    proximity_raw_max: float
    ranges: Mapping[str, AspectRange]
    amenity_weights: Mapping[str, AmenityWeight]


# =============================================================================
# Pure scoring functions
# =============================================================================

NEUTRAL_SCORE = 50.0


def round_half_up(x: float) -> int:
    """Round to the nearest integer, .5 always going up.

    Uses floor(x + 0.5) instead of Python's round() to avoid banker's
    rounding (round-half-to-even): round(56.5) -> 56, round_half_up -> 57.
    """
    return int(math.floor(x + 0.5))


def rescale_and_clamp(value: float, lo: float, hi: float) -> float:
    """Linearly map [lo, hi] onto [0, 100], clamping outside the range."""
    scaled = (value - lo) / (hi - lo) * 100
    return max(0.0, min(100.0, scaled))


def _as_number(value) -> Optional[float]:
    # bool is an int subclass; a True crime rate is not a measurement
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value):
        return None
    return float(value)


def normalize(value, aspect: str, ranges: Mapping[str, AspectRange]) -> float:
    """Map a raw zone metric to 0-100 using the aspect's configured range.

    Returns NEUTRAL_SCORE when the aspect has no range or the value is
    absent / non-numeric.  Never raises.
    """
    rng = ranges.get(aspect)
    number = _as_number(value)
    if rng is None or number is None:
        return NEUTRAL_SCORE

    normalized = rescale_and_clamp(number, rng.min, rng.max)
    return 100.0 - normalized if rng.invert else normalized


# =============================================================================
# HABITABILITY_MODEL: current production values
# =============================================================================

# Ranges taken from the observed min/max in features_poly.json.
_ASPECT_RANGES = {
    "air_quality_index": AspectRange(min=11, max=22, invert=True),
    "crime_rate": AspectRange(min=2.8, max=6.7, invert=True),
    "median_rent": AspectRange(min=3400, max=5800, invert=True),
    "school_quality": AspectRange(min=6.4, max=9.1, invert=False),
    # miles to nearest transit stop
    "transit_distance": AspectRange(min=0.05, max=0.45, invert=True),
}

_P = Polarity.POSITIVE
_N = Polarity.NEGATIVE

_AMENITY_WEIGHTS = {
    # Daily essentials
    "park": AmenityWeight(_P, 10),
    "grocery": AmenityWeight(_P, 10),
    "school": AmenityWeight(_P, 10),
    "hospital": AmenityWeight(_P, 10),
    # Culture
    "museum": AmenityWeight(_P, 7),
    "library": AmenityWeight(_P, 7),
    # Convenience
    "pharmacy": AmenityWeight(_P, 5),
    "gym": AmenityWeight(_P, 5),
    "community_center": AmenityWeight(_P, 5),
    "cafe": AmenityWeight(_P, 5),
    "shopping": AmenityWeight(_P, 5),
    "police_station": AmenityWeight(_P, 3),
    "fire_station": AmenityWeight(_P, 3),
    # Hazards
    "waste_facility": AmenityWeight(_N, 15),
    "jail": AmenityWeight(_N, 15),
    "prison": AmenityWeight(_N, 15),
    "hazardous_waste": AmenityWeight(_N, 15),
    "crime_hotspot": AmenityWeight(_N, 15),
    "sanitation_facility": AmenityWeight(_N, 8),
    "industrial_complex": AmenityWeight(_N, 8),
    "power_plant": AmenityWeight(_N, 8),
    "homeless_shelter": AmenityWeight(_N, 5),
    "methadone_clinic": AmenityWeight(_N, 5),
    "adult_entertainment": AmenityWeight(_N, 5),
}


HABITABILITY_MODEL = HabitabilityModel(
    version="1.0.0",

    # Radius and distance share one unit; see geometry.EARTH_RADIUS.
    distance_unit="kilometers",
    influence_radius=1.5,

    zone_weight=0.4,
    proximity_weight=0.6,

    proximity_raw_min=-50,
    proximity_raw_max=100,

    ranges=MappingProxyType(_ASPECT_RANGES),
    amenity_weights=MappingProxyType(_AMENITY_WEIGHTS),
)


def validate_model(model: HabitabilityModel) -> None:
    """Raise ValueError if *model* would produce out-of-range scores."""
    if abs(model.zone_weight + model.proximity_weight - 1.0) >= 0.001:
        raise ValueError(
            f"Score weights sum to {model.zone_weight + model.proximity_weight}, expected 1.0"
        )
    if model.influence_radius <= 0:
        raise ValueError(f"influence_radius must be positive, got {model.influence_radius}")
    if model.proximity_raw_min >= model.proximity_raw_max:
        raise ValueError("proximity_raw_min must be below proximity_raw_max")
    for aspect, rng in model.ranges.items():
        if rng.min >= rng.max:
            raise ValueError(f"Range for {aspect!r} has min {rng.min} >= max {rng.max}")
    for amenity_type, weight in model.amenity_weights.items():
        if weight.max_score < 0:
            raise ValueError(f"Amenity {amenity_type!r} has negative max_score")


# Validate at import time (ValueError, not assert, so validation is never
# stripped by python -O).
validate_model(HABITABILITY_MODEL)
