from __future__ import annotations

from dataclasses import replace
from enum import Enum
from typing import Iterable

from layers.types import LayerCategory, MapLayer


class LayerVisibility(str, Enum):
    hidden = "hidden"  # toggled off by the user
    zoom_gated = "zoom_gated"  # toggled on, but outside [min_zoom, max_zoom]
    visible = "visible"


def layer_visibility(layer: MapLayer, zoom: float) -> LayerVisibility:
    if not layer.visible:
        return LayerVisibility.hidden
    z = float(zoom)
    if layer.min_zoom is not None and z < layer.min_zoom:
        return LayerVisibility.zoom_gated
    if layer.max_zoom is not None and z > layer.max_zoom:
        return LayerVisibility.zoom_gated
    return LayerVisibility.visible


def visibility_for_zoom(layers: Iterable[MapLayer], zoom: float) -> dict[str, LayerVisibility]:
    """
    Recompute every layer's state for a zoom level. No per-layer state is carried over.
    """
    return {layer.id: layer_visibility(layer, zoom) for layer in layers}


class LayerPanel:
    """
    Runtime layer list behind the map's layer switcher.

    Only `visible` and `opacity` ever change; each change swaps in a new `MapLayer`.
    """

    def __init__(self, layers: Iterable[MapLayer]):
        self._initial = list(layers)
        self._layers = list(self._initial)

    @property
    def layers(self) -> list[MapLayer]:
        return list(self._layers)

    def get(self, layer_id: str) -> MapLayer:
        for layer in self._layers:
            if layer.id == layer_id:
                return layer
        raise KeyError(layer_id)

    def _swap(self, layer_id: str, **changes) -> MapLayer:
        for i, layer in enumerate(self._layers):
            if layer.id == layer_id:
                updated = replace(layer, **changes)
                self._layers[i] = updated
                return updated
        raise KeyError(layer_id)

    def toggle(self, layer_id: str) -> MapLayer:
        return self._swap(layer_id, visible=not self.get(layer_id).visible)

    def set_opacity(self, layer_id: str, opacity: int) -> MapLayer:
        o = int(opacity)
        if o < 0 or o > 100:
            raise ValueError(f"opacity must be within 0..100, got {opacity}")
        return self._swap(layer_id, opacity=o)

    def by_category(self, category: LayerCategory) -> list[MapLayer]:
        return [layer for layer in self._layers if layer.category == category]

    def states(self, zoom: float) -> dict[str, LayerVisibility]:
        return visibility_for_zoom(self._layers, zoom)

    def visible_layers(self, zoom: float) -> list[MapLayer]:
        states = self.states(zoom)
        return [layer for layer in self._layers if states[layer.id] == LayerVisibility.visible]

    def reset(self) -> None:
        self._layers = list(self._initial)
