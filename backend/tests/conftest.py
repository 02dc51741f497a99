import sys
from pathlib import Path

import pytest
from loguru import logger


# Ensure `backend/` is on sys.path so tests can import local modules
# like `layers.*`, `lod.*`, and `main`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))


@pytest.fixture(autouse=True)
def _telemetry_off(monkeypatch):
    # Tests that exercise the DuckDB store switch it back on with a tmp path.
    monkeypatch.setenv("FRA_TELEMETRY", "0")


@pytest.fixture
def log_messages():
    """
    Collect loguru records as (level, message) tuples for the duration of a test.
    """
    records: list[tuple[str, str]] = []
    handler_id = logger.add(
        lambda m: records.append((m.record["level"].name, m.record["message"])),
        level="DEBUG",
    )
    yield records
    logger.remove(handler_id)
