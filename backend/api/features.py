from __future__ import annotations

import time
from typing import Any, Literal

from pydantic import BaseModel, Field

from engine.types import EngineResult
from layers.loaders import feature_from_geojson, feature_to_geojson, features_bounds
from layers.types import GeoFeature, MapLayer
from layers.visibility import LayerVisibility


class ApiGeometry(BaseModel):
    type: Literal["Point", "MultiPoint", "LineString", "MultiLineString", "Polygon", "MultiPolygon"]
    coordinates: list[Any]


class ApiFeatureIn(BaseModel):
    """
    GeoJSON feature submitted by the admin map editor.
    """

    geometry: ApiGeometry
    properties: dict[str, Any]


class ApiOpacity(BaseModel):
    opacity: int = Field(ge=0, le=100)


def envelope(data: Any, message: str | None = None, **extra: Any) -> dict[str, Any]:
    out: dict[str, Any] = {"success": True, "data": data}
    if message:
        out["message"] = message
    out.update(extra)
    return out


def layer_payload(layer: MapLayer, state: LayerVisibility) -> dict[str, Any]:
    return {
        "id": layer.id,
        "name": layer.name,
        "category": layer.category,
        "type": layer.type,
        "description": layer.description,
        "visible": layer.visible,
        "opacity": layer.opacity,
        "color": layer.color,
        "minZoom": layer.min_zoom,
        "maxZoom": layer.max_zoom,
        "style": layer.style,
        "state": state.value,
    }


def features_payload(result: EngineResult, *, limit: int, total_ms: float) -> dict[str, Any]:
    feats = result.features[: max(0, int(limit))]
    return envelope(
        [feature_to_geojson(f) for f in feats],
        f"Retrieved {len(feats)} features for layer {result.layer.id}",
        meta={
            "layerId": result.layer.id,
            "state": result.visibility.value,
            "cacheHit": result.cache_hit,
            "featureCount": len(result.features),
            "returned": len(feats),
            # [[south, west], [north, east]] of everything the layer returned, before `limit`.
            "bounds": _bounds_json(result.features),
            "timingsMs": {"total": round(total_ms, 3)},
        },
    )


def _bounds_json(features: list[GeoFeature]) -> list[list[float]] | None:
    pair = features_bounds(features)
    return None if pair is None else [list(pair[0]), list(pair[1])]


def new_feature(body: ApiFeatureIn) -> GeoFeature:
    """
    Build a feature from a submitted body. Nothing is persisted.

    Raises ValueError when the geometry has no usable coordinates.
    """
    fid = f"feature_{int(time.time() * 1000)}"
    raw = {
        "id": fid,
        "geometry": body.geometry.model_dump(),
        "properties": body.properties,
    }
    try:
        f = feature_from_geojson(raw, fallback_id=fid)
    except (TypeError, IndexError, ValueError) as e:
        raise ValueError(f"Invalid {body.geometry.type} coordinates: {e}") from e
    if f is None:
        raise ValueError("Invalid GeoJSON feature structure")
    return f
