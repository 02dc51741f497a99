from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml
from loguru import logger

from atlas.types import AtlasConfig

_FALLBACK_ATLAS_ID = "fra_priority_states"
_ATLAS_FILE = "atlas.yaml"

# backend/atlas/registry.py -> repo root
REPO_ROOT = Path(__file__).resolve().parents[2]


@dataclass(frozen=True)
class AtlasEntry:
    config: AtlasConfig
    path: Path


def discover_atlases(root: Path) -> dict[str, AtlasEntry]:
    """
    Parse every `<root>/<atlas_id>/atlas.yaml`, in directory name order.

    Raises ValueError for a non-mapping document, an enabled atlas without layers, or an
    id declared by two files; pydantic's ValidationError for schema violations.
    """
    found: dict[str, AtlasEntry] = {}
    if not root.is_dir():
        logger.warning(f"Atlas directory {root} does not exist")
        return found

    for path in sorted(root.glob(f"*/{_ATLAS_FILE}")):
        doc = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        if not isinstance(doc, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        cfg = AtlasConfig.model_validate(doc)
        if cfg.enabled and not cfg.layers:
            raise ValueError(f"{path}: enabled atlas declares no layers")
        if cfg.id in found:
            raise ValueError(f"{path}: atlas id {cfg.id!r} already declared in {found[cfg.id].path}")
        found[cfg.id] = AtlasEntry(config=cfg, path=path)

    logger.info(f"Discovered {len(found)} atlas(es) under {root}: {sorted(found)}")
    return found


@lru_cache(maxsize=1)
def get_registry() -> dict[str, AtlasEntry]:
    return discover_atlases(REPO_ROOT / "atlases")


def clear_registry_cache() -> None:
    # Picks up atlas.yaml edits without restarting the process.
    get_registry.cache_clear()


def default_atlas_id() -> str:
    reg = get_registry()
    wanted = (os.getenv("FRA_ATLAS") or "").strip() or _FALLBACK_ATLAS_ID
    if wanted in reg:
        return wanted
    return next(iter(reg), _FALLBACK_ATLAS_ID)


def list_atlases() -> list[AtlasConfig]:
    return [entry.config for entry in get_registry().values() if entry.config.enabled]


def get_atlas(atlas_id: str | None) -> AtlasEntry:
    """
    Look up an atlas; a missing or unknown id resolves to the default atlas.
    """
    reg = get_registry()
    if not reg:
        raise RuntimeError(f"No atlases found under {REPO_ROOT / 'atlases'}")
    entry = reg.get((atlas_id or "").strip())
    return entry if entry is not None else reg[default_atlas_id()]


def resolve_repo_path(repo_relative: str) -> Path:
    return REPO_ROOT / (repo_relative or "").lstrip("/")
