from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, model_validator


LayerSourceType = Literal["geojson"]
LayerCategory = Literal["base", "fra", "satellite", "analysis"]
LayerType = Literal["raster", "vector"]


class AtlasCenter(BaseModel):
    lat: float
    lon: float


class AtlasDefaultView(BaseModel):
    center: AtlasCenter
    zoom: float = Field(ge=0.0, le=24.0)


class AtlasLayerSource(BaseModel):
    type: LayerSourceType = "geojson"
    path: str
    # CRS of the coordinates in the file; reprojected to EPSG:4326 on load.
    crs: str = "EPSG:4326"


class AtlasLayer(BaseModel):
    """
    A layer of the atlas map.

    Raster layers (satellite, elevation) have no `source`: their tiles are drawn by the
    map client, the backend only tracks their visibility and opacity.
    """

    id: str
    name: str
    category: LayerCategory
    type: LayerType = "vector"
    description: str | None = None
    visible: bool = True
    opacity: int = Field(default=100, ge=0, le=100)
    color: str = "#6b7280"
    minZoom: float | None = Field(default=None, ge=0.0, le=24.0)
    maxZoom: float | None = Field(default=None, ge=0.0, le=24.0)
    # Data is withheld entirely below this zoom (e.g. settlements below village level).
    dataMinZoom: float | None = Field(default=None, ge=0.0, le=24.0)
    style: dict[str, Any] = Field(default_factory=dict)
    source: AtlasLayerSource | None = None

    @model_validator(mode="after")
    def _check_zoom_range(self) -> "AtlasLayer":
        if self.minZoom is not None and self.maxZoom is not None and self.minZoom > self.maxZoom:
            raise ValueError(f"Layer '{self.id}': minZoom {self.minZoom} > maxZoom {self.maxZoom}")
        return self


class AtlasPreload(BaseModel):
    layerId: str
    zoomLevels: list[float]


class AtlasConfig(BaseModel):
    id: str
    title: str
    defaultView: AtlasDefaultView
    enabled: bool = True
    layers: list[AtlasLayer]
    # Cache warm-up plan executed when the engine starts.
    preload: list[AtlasPreload] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_layer_ids(self) -> "AtlasConfig":
        seen: set[str] = set()
        for layer in self.layers:
            if layer.id in seen:
                raise ValueError(f"Atlas '{self.id}' declares layer '{layer.id}' twice")
            seen.add(layer.id)
        return self
