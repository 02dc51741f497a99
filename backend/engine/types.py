from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from geo.coords import BoundsPair
from layers.types import GeoFeature, MapLayer
from layers.visibility import LayerVisibility


@dataclass(frozen=True)
class MapContext:
    """
    Request-scoped map context coming from the frontend.
    """

    atlas_id: str | None
    layer_id: str
    view_zoom: float
    # Viewport as ((south, west), (north, east)); None means "whole layer".
    bounds: BoundsPair | None = None
    # Features per square degree; when set (with bounds) the layer is density-sampled.
    max_density: float | None = None


@dataclass(frozen=True)
class EngineResult:
    """
    What an engine returns for a given request.
    """

    layer: MapLayer
    features: list[GeoFeature]
    visibility: LayerVisibility
    cache_hit: bool


class LayerEngine(Protocol):
    """
    Data engine interface.

    - InMemoryEngine: serves fixture layers loaded once at startup
    """

    def get(self, ctx: MapContext) -> EngineResult: ...
