from __future__ import annotations

from dataclasses import replace
from pathlib import Path

from atlas.registry import get_atlas, resolve_repo_path
from atlas.types import AtlasLayer
from layers.loaders import load_geojson_features, tribal_population_color
from layers.types import GeoFeature, LayerBundle, MapLayer


def load_atlas_layers(atlas_id: str | None) -> LayerBundle:
    """
    Load atlas-configured layers and their source features from fixture files.
    """
    entry = get_atlas(atlas_id)
    cfg = entry.config

    def _p(rel: str) -> Path:
        p = resolve_repo_path(rel)
        if not p.exists():
            raise FileNotFoundError(f"Atlas '{cfg.id}' missing file: {rel}")
        return p

    layers: list[MapLayer] = []
    features: dict[str, list[GeoFeature]] = {}
    for layer_cfg in cfg.layers:
        layers.append(map_layer_from_config(layer_cfg))

        src = layer_cfg.source
        if src is None:
            features[layer_cfg.id] = []
            continue
        if src.type == "geojson":
            feats = load_geojson_features(_p(src.path), crs=src.crs)
        else:
            raise ValueError(f"Unknown layer source type: {src.type}")
        features[layer_cfg.id] = [_with_default_color(f) for f in feats]

    return LayerBundle(layers=layers, features=features)


def map_layer_from_config(c: AtlasLayer) -> MapLayer:
    return MapLayer(
        id=c.id,
        name=c.name,
        category=c.category,
        type=c.type,
        visible=c.visible,
        opacity=c.opacity,
        color=c.color,
        description=c.description,
        min_zoom=c.minZoom,
        max_zoom=c.maxZoom,
        data_min_zoom=c.dataMinZoom,
        style=dict(c.style or {}),
    )


def _with_default_color(f: GeoFeature) -> GeoFeature:
    # Demographic features without an explicit colour get the tribal-share ramp.
    if "color" in f.props or "tribalPercentage" not in f.props:
        return f
    try:
        color = tribal_population_color(f.props["tribalPercentage"])
    except (TypeError, ValueError):
        return f
    return replace(f, props={**f.props, "color": color})
