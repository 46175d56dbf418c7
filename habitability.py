#!/usr/bin/env python3
"""
Habitability Score Engine

Scores any point in the covered region (Manhattan) from 0 to 100 by
combining the zone it falls in (air quality, crime, rent, schools, transit)
with the distance-weighted influence of nearby amenities and hazards.

Callers are expected to check is_within_bounds() first; the combiner does
no validation and returns near-neutral scores far outside the data.

Usage:
    python habitability.py 40.7580 -73.9855
    python habitability.py 40.7580 -73.9855 --json --data-dir ./data
"""

import argparse
import json
import logging
import sys
import time
from dataclasses import dataclass
from typing import Dict, Optional

from geometry import GeoPoint, distance
from score_trace import get_trace
from scoring_config import (
    HABITABILITY_MODEL,
    NEUTRAL_SCORE,
    HabitabilityModel,
    Polarity,
    normalize,
    rescale_and_clamp,
    round_half_up,
)
from spatial_data import DataBounds, SpatialDataset, is_within_bounds, load_dataset

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreResult:
    """Rounded habitability scores for one point, each in [0, 100]."""
    final_score: int
    zone_score: int
    proximity_score: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "final_score": self.final_score,
            "zone_score": self.zone_score,
            "proximity_score": self.proximity_score,
        }


# =============================================================================
# Zone score
# =============================================================================

def zone_aspect_values(point: GeoPoint, dataset: SpatialDataset) -> Dict[str, Optional[float]]:
    """Raw metric per aspect from the first polygon containing *point*.

    The first containing polygon in load order owns the point for its
    aspect, even if a later one overlaps it.  An owning polygon with no
    metric key leaves the aspect out of the result.
    """
    values: Dict[str, Optional[float]] = {}
    for aspect, polygons in dataset.polygons_by_aspect():
        for poly in polygons:
            if poly.contains(point):
                if poly.metric_key is not None:
                    values[aspect] = poly.value
                break
    return values


def calculate_zone_score(
    point: GeoPoint,
    dataset: SpatialDataset,
    model: HabitabilityModel = HABITABILITY_MODEL,
) -> float:
    """Mean normalized metric over the aspects whose zones contain *point*.

    Aspects with no containing polygon are left out rather than counted
    as neutral; only when none contain the point is NEUTRAL_SCORE returned.
    """
    values = zone_aspect_values(point, dataset)
    if not values:
        return NEUTRAL_SCORE
    scores = [normalize(value, aspect, model.ranges) for aspect, value in values.items()]
    return sum(scores) / len(scores)


# =============================================================================
# Proximity score
# =============================================================================

def proximity_raw_total(
    point: GeoPoint,
    dataset: SpatialDataset,
    model: HabitabilityModel = HABITABILITY_MODEL,
) -> float:
    """Signed sum of linearly-decayed amenity contributions within the radius."""
    radius = model.influence_radius
    total = 0.0
    for amenity in dataset.amenities:
        dist = distance(point, amenity.point, model.distance_unit)
        if dist > radius:
            continue
        weight = model.amenity_weights.get(amenity.type)
        if weight is None:
            continue

        contribution = weight.max_score * (1 - dist / radius)
        if weight.polarity is Polarity.POSITIVE:
            total += contribution
        else:
            total -= contribution
    return total


def calculate_proximity_score(
    point: GeoPoint,
    dataset: SpatialDataset,
    model: HabitabilityModel = HABITABILITY_MODEL,
) -> float:
    """Raw amenity total rescaled from the model's assumed raw range to 0-100."""
    total = proximity_raw_total(point, dataset, model)
    return rescale_and_clamp(total, model.proximity_raw_min, model.proximity_raw_max)


# =============================================================================
# Combined score
# =============================================================================

def _timed_stage(stage_name, fn, *args, **kwargs):
    """Run *fn* with timing.  Records into the active trace and re-raises on failure."""
    trace = get_trace()
    t0 = time.time()
    try:
        result = fn(*args, **kwargs)
    except Exception as exc:
        t1 = time.time()
        if trace:
            trace.record_stage(
                stage_name, t0, t1,
                error_class=type(exc).__name__,
                error_message=str(exc)[:200],
            )
        else:
            logger.warning("  [stage] %s FAILED", stage_name, exc_info=True)
        raise
    if trace:
        trace.record_stage(stage_name, t0, time.time())
    return result


def calculate_habitability_score(
    lat: float,
    lon: float,
    dataset: SpatialDataset,
    model: HabitabilityModel = HABITABILITY_MODEL,
) -> ScoreResult:
    """Weighted zone + proximity score for (lat, lon).

    Performs no bounds validation; see is_within_bounds().
    """
    point = GeoPoint(lat, lon)
    zone = _timed_stage("zone_score", calculate_zone_score, point, dataset, model)
    proximity = _timed_stage("proximity_score", calculate_proximity_score, point, dataset, model)
    final = zone * model.zone_weight + proximity * model.proximity_weight

    result = ScoreResult(
        final_score=round_half_up(final),
        zone_score=round_half_up(zone),
        proximity_score=round_half_up(proximity),
    )
    logger.debug(
        "Scored (%.5f, %.5f): zone=%.2f proximity=%.2f final=%d",
        lat, lon, zone, proximity, result.final_score,
    )
    return result


class HabitabilityScorer:
    """
    Binds a loaded dataset and scoring model for repeated queries.

    Usage:
        scorer = HabitabilityScorer(load_dataset())
        if scorer.is_within_bounds(40.7580, -73.9855):
            result = scorer.score(40.7580, -73.9855)
    """

    def __init__(
        self,
        dataset: SpatialDataset,
        model: HabitabilityModel = HABITABILITY_MODEL,
    ):
        self.dataset = dataset
        self.model = model

    @property
    def bounds(self) -> Optional[DataBounds]:
        return self.dataset.bounds

    def is_within_bounds(self, lat: float, lon: float) -> bool:
        return is_within_bounds(lat, lon, self.dataset.bounds)

    def zone_score(self, point: GeoPoint) -> float:
        return calculate_zone_score(point, self.dataset, self.model)

    def proximity_score(self, point: GeoPoint) -> float:
        return calculate_proximity_score(point, self.dataset, self.model)

    def score(self, lat: float, lon: float) -> ScoreResult:
        return calculate_habitability_score(lat, lon, self.dataset, self.model)


# =============================================================================
# CLI
# =============================================================================

def format_result(lat: float, lon: float, result: ScoreResult, model_version: str) -> str:
    lines = [
        f"Habitability score for ({lat:.5f}, {lon:.5f})",
        "=" * 44,
        f"  Final score:      {result.final_score:>3} / 100",
        f"  Zone score:       {result.zone_score:>3} / 100",
        f"  Proximity score:  {result.proximity_score:>3} / 100",
        f"  Model version:    {model_version}",
    ]
    return "\n".join(lines)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Score a point in the covered region for habitability (0-100)"
    )
    parser.add_argument("lat", type=float, help="Latitude in decimal degrees")
    parser.add_argument("lon", type=float, help="Longitude in decimal degrees")
    parser.add_argument(
        "--data-dir",
        default=None,
        help="Directory holding features.json and features_poly.json "
             "(or set HABITABILITY_DATA_DIR env var)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON instead of formatted text",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.WARNING)
    scorer = HabitabilityScorer(load_dataset(args.data_dir))

    if not scorer.is_within_bounds(args.lat, args.lon):
        print(
            f"Location ({args.lat}, {args.lon}) is outside the covered area "
            f"{scorer.bounds.to_dict() if scorer.bounds else '(no data loaded)'}",
            file=sys.stderr,
        )
        return 2

    result = scorer.score(args.lat, args.lon)
    if args.json:
        payload = result.to_dict()
        payload["model_version"] = scorer.model.version
        print(json.dumps(payload, indent=2))
    else:
        print(format_result(args.lat, args.lon, result, scorer.model.version))
    return 0


if __name__ == "__main__":
    sys.exit(main())
