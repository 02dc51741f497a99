from __future__ import annotations

import random

from geo.coords import bounds_pair
from layers.types import PointFeature
from lod.sampling import adaptive_sample, calculate_feature_density


UNIT = bounds_pair(south=20.0, west=80.0, north=21.0, east=81.0)  # 1 square degree


def _grid(n: int) -> list[PointFeature]:
    side = int(n**0.5) + 1
    return [
        PointFeature(id=f"p{i}", lon=80.0 + (i % side) / side, lat=20.0 + (i // side) / side, props={})
        for i in range(n)
    ]


def test_density_is_features_per_square_degree():
    assert calculate_feature_density(_grid(250), UNIT) == 250.0
    half = bounds_pair(south=20.0, west=80.0, north=20.5, east=81.0)
    assert calculate_feature_density(_grid(10), half) == 20.0


def test_under_density_returns_everything():
    feats = _grid(50)
    out = adaptive_sample(feats, 12, UNIT, max_density=100, random=lambda: 0.99)
    assert [f.id for f in out] == [f.id for f in feats]


def test_over_density_samples_near_target():
    rng = random.Random(42)
    out = adaptive_sample(_grid(1000), 12, UNIT, max_density=100, random=rng.random)
    # Bernoulli(p=0.1) over 1000 trials.
    assert 60 <= len(out) <= 140


def test_sampling_is_deterministic_with_injected_source():
    feats = _grid(1000)
    a = adaptive_sample(feats, 12, UNIT, max_density=100, random=random.Random(7).random)
    b = adaptive_sample(feats, 12, UNIT, max_density=100, random=random.Random(7).random)
    assert [f.id for f in a] == [f.id for f in b]


def test_features_outside_bounds_are_filtered_first():
    inside = PointFeature(id="in", lon=80.5, lat=20.5, props={})
    outside = PointFeature(id="out", lon=10.0, lat=10.0, props={})
    assert adaptive_sample([inside, outside], 12, UNIT) == [inside]


def test_zero_area_bounds_skip_sampling():
    line_view = bounds_pair(south=20.0, west=80.0, north=20.0, east=81.0)
    feats = [PointFeature(id=f"p{i}", lon=80.0 + i / 100, lat=20.0, props={}) for i in range(50)]
    out = adaptive_sample(feats, 12, line_view, max_density=1, random=lambda: 0.99)
    assert len(out) == 50
