from __future__ import annotations

import os


def env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if raw:
        try:
            return float(raw)
        except ValueError:
            pass
    return default


def cache_ttl_s() -> float:
    return env_float("FRA_CACHE_TTL_S", 5 * 60.0)


def cache_max_entries() -> int:
    return max(1, int(env_float("FRA_CACHE_MAX_ENTRIES", 100)))


def max_feature_density() -> float:
    # Features per square degree before the density sampler kicks in.
    return env_float("FRA_MAX_DENSITY", 100.0)


def slow_operation_ms() -> float:
    return env_float("FRA_SLOW_OP_MS", 100.0)
