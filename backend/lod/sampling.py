from __future__ import annotations

import random as _random
from typing import Callable, Sequence

from loguru import logger

from geo.aoi import BBox
from geo.coords import BoundsPair
from layers.types import GeoFeature
from lod.bounds import filter_by_bounds
from lod.simplify import simplify_features

RandomSource = Callable[[], float]


def calculate_feature_density(features: Sequence[GeoFeature], bounds: BoundsPair) -> float:
    """
    Features per square degree of the viewport.
    """
    area = BBox.from_bounds_pair(bounds).area()
    if area <= 0.0:
        return float("inf") if features else 0.0
    return len(features) / area


def adaptive_sample(
    features: Sequence[GeoFeature],
    zoom: float,
    bounds: BoundsPair,
    max_density: float = 100.0,
    *,
    random: RandomSource | None = None,
) -> list[GeoFeature]:
    """
    Bounds-filter, thin out over-dense viewports, then simplify.

    Sampling is a Bernoulli trial per feature with p = max_density / density, so two
    calls on identical input may differ. Pass `random` to make it deterministic, or
    memoise the result (see `LayerOrchestrator.get_adaptive_features`).
    """
    draw = random or _random.random
    filtered = filter_by_bounds(features, bounds)

    if BBox.from_bounds_pair(bounds).area() <= 0.0:
        # Degenerate viewport: nothing meaningful to normalise by.
        return simplify_features(filtered, zoom)

    density = calculate_feature_density(filtered, bounds)
    if density <= max_density:
        return simplify_features(filtered, zoom)

    ratio = max_density / density
    sampled = [f for f in filtered if draw() < ratio]
    logger.debug(
        f"Density {density:.1f}/deg² over {max_density:.1f}; sampled {len(sampled)} of {len(filtered)} (p={ratio:.3f})"
    )
    return simplify_features(sampled, zoom)
