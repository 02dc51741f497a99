from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from api.features import (
    ApiFeatureIn,
    ApiOpacity,
    envelope,
    features_payload,
    layer_payload,
    new_feature,
)
from atlas.registry import get_atlas, list_atlases
from engine.in_memory import InMemoryEngine
from engine.types import MapContext
from geo.aoi import parse_bbox_param
from layers.loaders import feature_to_geojson
from layers.types import LayerCategory
from layers.visibility import layer_visibility
from telemetry.singleton import get_store


_ENGINES: dict[str, InMemoryEngine] = {}


def get_engine(atlas_id: str | None = None) -> InMemoryEngine:
    # Resolve first so unknown ids share the default atlas' engine.
    aid = get_atlas(atlas_id).config.id
    engine = _ENGINES.get(aid)
    if engine is None:
        engine = InMemoryEngine(aid)
        _ENGINES[aid] = engine
    return engine


def reset_engines() -> None:
    for engine in _ENGINES.values():
        engine.close()
    _ENGINES.clear()


@asynccontextmanager
async def lifespan(_app: FastAPI):
    engine = get_engine(None)
    await engine.warm()
    logger.info(f"Cache warmed: {engine.orchestrator.cache.get_stats()}")
    yield
    store = get_store()
    if store is not None:
        store.flush(timeout_s=2.0)
    reset_engines()


app = FastAPI(title="FRA Atlas geo backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/atlases")
def atlases():
    return [
        {
            "id": cfg.id,
            "title": cfg.title,
            "defaultView": cfg.defaultView.model_dump(),
            "layers": [layer.id for layer in cfg.layers],
        }
        for cfg in list_atlases()
    ]


@app.get("/layers")
def layers(
    zoom: float = Query(default=5.0, ge=0.0, le=24.0),
    category: LayerCategory | None = None,
    visibleOnly: bool = False,
    atlas: str | None = None,
):
    panel = get_engine(atlas).panel
    rows = panel.visible_layers(zoom) if visibleOnly else panel.layers
    if category is not None:
        in_category = {layer.id for layer in panel.by_category(category)}
        rows = [layer for layer in rows if layer.id in in_category]
    states = panel.states(zoom)
    return [layer_payload(layer, states[layer.id]) for layer in rows]


@app.post("/layers/{layer_id}/toggle")
def toggle_layer(layer_id: str, zoom: float = Query(default=5.0, ge=0.0, le=24.0), atlas: str | None = None):
    engine = get_engine(atlas)
    try:
        layer = engine.panel.toggle(layer_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}")
    return layer_payload(layer, layer_visibility(layer, zoom))


@app.put("/layers/{layer_id}/opacity")
def set_layer_opacity(
    layer_id: str,
    body: ApiOpacity,
    zoom: float = Query(default=5.0, ge=0.0, le=24.0),
    atlas: str | None = None,
):
    engine = get_engine(atlas)
    try:
        layer = engine.panel.set_opacity(layer_id, body.opacity)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}")
    return layer_payload(layer, layer_visibility(layer, zoom))


@app.get("/gis/features/{layer_id}")
def get_layer_features(
    layer_id: str,
    zoom: float = Query(default=5.0, ge=0.0, le=24.0),
    bbox: str | None = None,
    limit: int = Query(default=100, ge=1, le=10_000),
    maxDensity: float | None = Query(default=None, gt=0.0),
    atlas: str | None = None,
):
    engine = get_engine(atlas)

    aoi = None
    if bbox:
        try:
            aoi = parse_bbox_param(bbox)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    if maxDensity is not None and aoi is None:
        raise HTTPException(status_code=400, detail="maxDensity requires bbox")

    t0 = time.perf_counter()
    try:
        result = engine.get(
            MapContext(
                atlas_id=engine.atlas.id,
                layer_id=layer_id,
                view_zoom=zoom,
                bounds=aoi.to_bounds_pair() if aoi is not None else None,
                max_density=maxDensity,
            )
        )
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}")
    total_ms = (time.perf_counter() - t0) * 1000.0

    payload = features_payload(result, limit=limit, total_ms=total_ms)

    store = get_store()
    if store is not None:
        store.record(
            endpoint="/gis/features",
            atlas_id=engine.atlas.id,
            layer_id=layer_id,
            view_zoom=zoom,
            bbox=aoi,
            stats=payload["meta"],
        )
    return payload


@app.post("/gis/features/{layer_id}")
def create_layer_feature(layer_id: str, body: ApiFeatureIn, atlas: str | None = None):
    engine = get_engine(atlas)
    if engine.bundle.get(layer_id) is None:
        raise HTTPException(status_code=404, detail=f"Unknown layer: {layer_id}")
    try:
        feature = new_feature(body)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return envelope(feature_to_geojson(feature), "Feature created successfully")


@app.get("/cache/stats")
def cache_stats(atlas: str | None = None):
    return get_engine(atlas).orchestrator.stats()


@app.delete("/cache")
def clear_cache(atlas: str | None = None):
    get_engine(atlas).orchestrator.clear_all_caches()
    return envelope(None, "Caches cleared")


@app.get("/telemetry/summary")
def telemetry_summary(layerId: str | None = None, endpoint: str | None = None):
    store = get_store()
    if store is None:
        return []
    store.flush(timeout_s=1.0)
    return store.summary(layer_id=layerId, endpoint=endpoint)
