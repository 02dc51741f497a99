from __future__ import annotations

import threading

import duckdb
from loguru import logger

from telemetry.config import TelemetrySettings
from telemetry.store import TelemetryStore

_STORE: TelemetryStore | None = None
_STORE_LOCK = threading.RLock()


def _open(settings: TelemetrySettings) -> TelemetryStore | None:
    settings.path.parent.mkdir(parents=True, exist_ok=True)
    try:
        conn = duckdb.connect(str(settings.path))
    except duckdb.Error as e:
        logger.warning(f"Telemetry disabled: cannot open {settings.path}: {e}")
        return None
    store = TelemetryStore(
        path=settings.path,
        conn=conn,
        batch_size=settings.batch_size,
        flush_interval_s=settings.flush_interval_s,
    )
    store.ensure_schema()
    store.start()
    logger.info(f"Telemetry writing to {settings.path}")
    return store


def get_store() -> TelemetryStore | None:
    """
    Process-wide store, or None when FRA_TELEMETRY is off.

    The store follows FRA_TELEMETRY_PATH: when it points somewhere new, the old store is
    closed and a fresh one opened there.
    """
    global _STORE
    settings = TelemetrySettings.from_env()
    if not settings.enabled:
        return None
    with _STORE_LOCK:
        if _STORE is not None and _STORE.path.resolve() != settings.path.resolve():
            _STORE.close()
            _STORE = None
        if _STORE is None:
            _STORE = _open(settings)
        return _STORE


def reset_store() -> None:
    """
    Close the store and delete its database file.
    """
    global _STORE
    with _STORE_LOCK:
        store, _STORE = _STORE, None
    if store is not None:
        store.reset()
    else:
        TelemetrySettings.from_env().path.unlink(missing_ok=True)
