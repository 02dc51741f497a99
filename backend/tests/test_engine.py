from __future__ import annotations

import asyncio

import pytest

from engine.in_memory import InMemoryEngine
from engine.types import MapContext
from geo.coords import bounds_pair
from layers.visibility import LayerVisibility
from lod.policy import LayerOrchestrator


@pytest.fixture
def engine():
    e = InMemoryEngine("fra_priority_states")
    yield e
    e.close()


def test_settlements_scenario(engine):
    low = engine.get(MapContext(atlas_id=None, layer_id="settlements", view_zoom=8))
    assert low.features == []
    assert low.visibility == LayerVisibility.zoom_gated

    high = engine.get(MapContext(atlas_id=None, layer_id="settlements", view_zoom=11))
    assert len(high.features) == 3
    assert high.visibility == LayerVisibility.visible


def test_second_request_is_served_from_cache(engine):
    ctx = MapContext(atlas_id=None, layer_id="state_boundaries", view_zoom=5)
    first = engine.get(ctx)
    second = engine.get(ctx)
    assert first.cache_hit is False
    assert second.cache_hit is True
    assert second.features is first.features


def test_viewport_filters_states(engine):
    # Tripura only.
    view = bounds_pair(south=22.5, west=91.0, north=25.0, east=92.5)
    res = engine.get(MapContext(atlas_id=None, layer_id="state_boundaries", view_zoom=8, bounds=view))
    assert [f.props["name"] for f in res.features] == ["Tripura"]


def test_hidden_layer_still_returns_features(engine):
    res = engine.get(MapContext(atlas_id=None, layer_id="water_bodies", view_zoom=12))
    assert res.visibility == LayerVisibility.hidden
    assert len(res.features) == 1


def test_unknown_layer_raises(engine):
    with pytest.raises(KeyError):
        engine.get(MapContext(atlas_id=None, layer_id="roads", view_zoom=5))


def test_warm_runs_preload_plan(engine):
    asyncio.run(engine.warm())
    for z in (4, 5, 6):
        res = engine.get(MapContext(atlas_id=None, layer_id="state_boundaries", view_zoom=z))
        assert res.cache_hit is True


def test_injected_orchestrator_keeps_atlas_gates():
    e = InMemoryEngine("fra_priority_states", orchestrator=LayerOrchestrator(data_min_zoom={}))
    try:
        res = e.get(MapContext(atlas_id=None, layer_id="settlements", view_zoom=8))
        assert res.features == []
        assert e.orchestrator.data_min_zoom["settlements"] == 10
    finally:
        e.close()


def test_max_density_samples_within_bounds(engine):
    view = bounds_pair(south=15.0, west=70.0, north=25.0, east=95.0)
    ctx = MapContext(atlas_id=None, layer_id="settlements", view_zoom=12, bounds=view, max_density=1000)
    first = engine.get(ctx)
    assert len(first.features) == 3
    assert first.cache_hit is False
    assert engine.get(ctx).cache_hit is True
