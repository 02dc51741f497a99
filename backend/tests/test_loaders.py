from __future__ import annotations

import json
from pathlib import Path

import pytest
from pyproj import Transformer

from geo.coords import LatLon
from layers.loaders import (
    feature_from_geojson,
    feature_to_geojson,
    features_bounds,
    load_geojson_features,
    tribal_population_color,
)
from layers.types import MultiPolygonFeature, PointFeature, PolygonFeature


def _write(tmp_path, features) -> Path:
    p = tmp_path / "layer.geojson"
    p.write_text(json.dumps({"type": "FeatureCollection", "features": features}), encoding="utf-8")
    return p


def test_ids_fall_back_to_properties_then_index(tmp_path):
    p = _write(
        tmp_path,
        [
            {"type": "Feature", "id": "a", "geometry": {"type": "Point", "coordinates": [80, 20]}, "properties": {}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [81, 21]}, "properties": {"id": "b"}},
            {"type": "Feature", "geometry": {"type": "Point", "coordinates": [82, 22]}, "properties": {}},
        ],
    )
    feats = load_geojson_features(p)
    assert [f.id for f in feats] == ["a", "b", "layer-2"]


def test_features_without_geometry_are_skipped(tmp_path, log_messages):
    p = _write(
        tmp_path,
        [
            {"type": "Feature", "id": "ok", "geometry": {"type": "Point", "coordinates": [80, 20]}, "properties": {}},
            {"type": "Feature", "id": "none", "geometry": None, "properties": {}},
        ],
    )
    feats = load_geojson_features(p)
    assert [f.id for f in feats] == ["ok"]
    assert any(level == "WARNING" and "#1" in msg for level, msg in log_messages)


def test_projected_source_is_reprojected_to_wgs84(tmp_path):
    # UTM zone 44N covers central India.
    to_utm = Transformer.from_crs("EPSG:4326", "EPSG:32644", always_xy=True)
    x, y = to_utm.transform(80.5, 20.5)
    p = _write(
        tmp_path,
        [{"type": "Feature", "id": "p", "geometry": {"type": "Point", "coordinates": [x, y]}, "properties": {}}],
    )
    (f,) = load_geojson_features(p, crs="EPSG:32644")
    assert isinstance(f, PointFeature)
    assert f.lon == pytest.approx(80.5, abs=1e-6)
    assert f.lat == pytest.approx(20.5, abs=1e-6)


def test_geojson_round_trip_keeps_kind():
    raw = {
        "type": "Feature",
        "id": "mp",
        "geometry": {
            "type": "MultiPolygon",
            "coordinates": [[[[80, 20], [81, 20], [81, 21], [80, 20]]], [[[82, 22], [83, 22], [83, 23], [82, 22]]]],
        },
        "properties": {"name": "two parts"},
    }
    f = feature_from_geojson(raw, fallback_id="x")
    assert isinstance(f, MultiPolygonFeature)
    out = feature_to_geojson(f)
    assert out["geometry"]["type"] == "MultiPolygon"
    assert out["geometry"]["coordinates"][1][0][0] == [82.0, 22.0]
    assert out["properties"] == {"name": "two parts"}


def test_features_bounds_is_south_west_north_east():
    poly = feature_from_geojson(
        {"geometry": {"type": "Polygon", "coordinates": [[[80, 20], [82, 20], [82, 23], [80, 20]]]}},
        fallback_id="p",
    )
    assert isinstance(poly, PolygonFeature)
    sw, ne = features_bounds([poly])
    assert sw == LatLon(lat=20.0, lon=80.0)
    assert ne == LatLon(lat=23.0, lon=82.0)
    assert features_bounds([]) is None


@pytest.mark.parametrize(
    ("pct", "color"),
    [(85, "#7f1d1d"), (31.8, "#dc2626"), (21.09, "#ef4444"), (12, "#f59e0b"), (9.34, "#eab308"), (2, "#22c55e")],
)
def test_tribal_population_color_ramp(pct, color):
    assert tribal_population_color(pct) == color
