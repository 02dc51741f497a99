from __future__ import annotations

import pytest
from pydantic import ValidationError

from atlas.registry import discover_atlases, get_atlas, list_atlases
from atlas.types import AtlasConfig
from layers.load_atlas import load_atlas_layers
from layers.types import PointFeature, PolygonFeature


def test_fra_atlas_is_discovered():
    ids = {cfg.id for cfg in list_atlases()}
    assert "fra_priority_states" in ids


def test_unknown_atlas_falls_back_to_default():
    assert get_atlas("does_not_exist").config.id == "fra_priority_states"
    assert get_atlas(None).config.id == "fra_priority_states"


def test_load_atlas_layers_reads_fixtures():
    bundle = load_atlas_layers("fra_priority_states")

    ids = [layer.id for layer in bundle.layers]
    assert ids == [
        "satellite",
        "state_boundaries",
        "forest_cover",
        "settlements",
        "water_bodies",
        "fra_claims",
        "elevation",
    ]

    states = bundle.features_for("state_boundaries")
    assert {f.props["name"] for f in states} == {"Odisha", "Madhya Pradesh", "Telangana", "Tripura"}
    assert all(isinstance(f, PolygonFeature) for f in states)

    settlements = bundle.features_for("settlements")
    assert len(settlements) == 3
    assert all(isinstance(f, PointFeature) for f in settlements)

    # Raster layers carry no features.
    assert bundle.features_for("satellite") == []


def test_layer_zoom_settings_come_from_yaml():
    bundle = load_atlas_layers("fra_priority_states")
    settlements = bundle.get("settlements")
    assert settlements.min_zoom == 10
    assert settlements.data_min_zoom == 10
    assert settlements.opacity == 90
    assert bundle.get("state_boundaries").max_zoom is None
    assert bundle.get("water_bodies").visible is False


def test_settlements_get_tribal_population_color():
    bundle = load_atlas_layers("fra_priority_states")
    by_id = {f.id: f for f in bundle.features_for("settlements")}
    # 71.2% tribal share.
    assert by_id["settlement_1"].props["color"] == "#dc2626"


def _atlas(**overrides) -> dict:
    raw = {
        "id": "t",
        "title": "T",
        "defaultView": {"center": {"lat": 20.0, "lon": 80.0}, "zoom": 5},
        "layers": [{"id": "a", "name": "A", "category": "base"}],
    }
    raw.update(overrides)
    return raw


def test_duplicate_layer_ids_are_rejected():
    layers = [{"id": "a", "name": "A", "category": "base"}, {"id": "a", "name": "A2", "category": "fra"}]
    with pytest.raises(ValidationError):
        AtlasConfig.model_validate(_atlas(layers=layers))


def test_inverted_zoom_range_is_rejected():
    layers = [{"id": "a", "name": "A", "category": "base", "minZoom": 12, "maxZoom": 8}]
    with pytest.raises(ValidationError):
        AtlasConfig.model_validate(_atlas(layers=layers))


def test_opacity_out_of_range_is_rejected():
    layers = [{"id": "a", "name": "A", "category": "base", "opacity": 150}]
    with pytest.raises(ValidationError):
        AtlasConfig.model_validate(_atlas(layers=layers))


def _write_atlas(root, dirname: str, atlas_id: str) -> None:
    d = root / dirname
    d.mkdir()
    (d / "atlas.yaml").write_text(
        f"id: {atlas_id}\n"
        "title: Test\n"
        "defaultView: {center: {lat: 20, lon: 80}, zoom: 5}\n"
        "layers:\n"
        "  - {id: a, name: A, category: base}\n",
        encoding="utf-8",
    )


def test_discover_atlases_reads_each_directory(tmp_path):
    _write_atlas(tmp_path, "one", "one")
    _write_atlas(tmp_path, "two", "two")
    assert list(discover_atlases(tmp_path)) == ["one", "two"]


def test_discover_atlases_rejects_duplicate_ids(tmp_path):
    _write_atlas(tmp_path, "one", "same")
    _write_atlas(tmp_path, "two", "same")
    with pytest.raises(ValueError):
        discover_atlases(tmp_path)


def test_discover_atlases_missing_root_is_empty(tmp_path):
    assert discover_atlases(tmp_path / "nope") == {}
