from __future__ import annotations

from functools import lru_cache

from loguru import logger

from atlas.registry import get_atlas
from atlas.types import AtlasConfig
from engine.types import EngineResult, LayerEngine, MapContext
from layers.load_atlas import load_atlas_layers
from layers.types import LayerBundle
from layers.visibility import LayerPanel, layer_visibility
from lod.policy import DEFAULT_DATA_MIN_ZOOM, LayerOrchestrator


class InMemoryEngine(LayerEngine):
    """
    Loads an atlas' fixture layers into memory once, then shapes them per request
    through a `LayerOrchestrator` (zoom gate, bounds filter, simplification, cache).
    """

    @staticmethod
    @lru_cache(maxsize=4)
    def _base(atlas_id: str) -> LayerBundle:
        return load_atlas_layers(atlas_id)

    def __init__(self, atlas_id: str | None = None, *, orchestrator: LayerOrchestrator | None = None):
        self.atlas: AtlasConfig = get_atlas(atlas_id).config
        self.bundle = self._base(self.atlas.id)

        gates = dict(DEFAULT_DATA_MIN_ZOOM)
        gates.update(
            {layer.id: layer.data_min_zoom for layer in self.bundle.layers if layer.data_min_zoom is not None}
        )
        if orchestrator is None:
            orchestrator = LayerOrchestrator(data_min_zoom=gates)
        else:
            # The atlas gates win over whatever the injected orchestrator carries.
            orchestrator.data_min_zoom = {**orchestrator.data_min_zoom, **gates}
        self.orchestrator = orchestrator
        self.orchestrator.init()
        self.panel = LayerPanel(self.bundle.layers)
        logger.info(
            f"InMemoryEngine ready for atlas {self.atlas.id!r}: "
            f"{len(self.bundle.layers)} layers, "
            f"{sum(len(v) for v in self.bundle.features.values())} features"
        )

    async def warm(self) -> None:
        """
        Run the atlas preload plan (cache warm-up for the common zoom levels).
        """
        for p in self.atlas.preload:
            if self.bundle.get(p.layerId) is None:
                logger.warning(f"Preload references unknown layer {p.layerId!r}; skipping")
                continue
            await self.orchestrator.preload_layer_data(
                p.layerId, p.zoomLevels, self.bundle.features_for(p.layerId)
            )

    def get(self, ctx: MapContext) -> EngineResult:
        # Raises KeyError for layers the atlas does not declare.
        layer = self.panel.get(ctx.layer_id)
        source = self.bundle.features_for(layer.id)
        if ctx.max_density is not None and ctx.bounds is not None:
            features, hit = self.orchestrator.fetch_adaptive_features(
                layer.id, ctx.view_zoom, source, ctx.bounds, ctx.max_density
            )
        else:
            features, hit = self.orchestrator.fetch_layer_data(layer.id, ctx.view_zoom, source, ctx.bounds)
        return EngineResult(
            layer=layer,
            features=features,
            visibility=layer_visibility(layer, ctx.view_zoom),
            cache_hit=hit,
        )

    def close(self) -> None:
        self.orchestrator.dispose()
