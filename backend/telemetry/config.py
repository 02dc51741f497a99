from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from lod.config import env_float

_OFF_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class TelemetrySettings:
    enabled: bool
    path: Path
    batch_size: int
    flush_interval_s: float

    @classmethod
    def from_env(cls) -> "TelemetrySettings":
        default_path = Path(__file__).resolve().parents[2] / "data" / "telemetry" / "telemetry.duckdb"
        return cls(
            enabled=(os.getenv("FRA_TELEMETRY") or "1").strip().lower() not in _OFF_VALUES,
            path=Path(os.getenv("FRA_TELEMETRY_PATH") or default_path),
            batch_size=max(1, int(env_float("FRA_TELEMETRY_BATCH", 250))),
            flush_interval_s=max(0.05, env_float("FRA_TELEMETRY_FLUSH_S", 0.5)),
        )
