import importlib.util
import random
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "init_db.py"


@pytest.fixture(scope="module")
def init_db():
    spec = importlib.util.spec_from_file_location("init_db", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_sample_readings_shape(init_db):
    now = datetime(2024, 6, 1, tzinfo=timezone.utc)
    readings = list(init_db.sample_readings("esp32-01", days=2, per_day=24, now=now, rng=random.Random(1)))

    assert len(readings) == 48
    assert all(r.device_id == "esp32-01" for r in readings)
    assert readings[0].timestamp == now
    assert min(r.timestamp for r in readings) > now - timedelta(days=2)
    assert all(15 <= r.temperature_c <= 30 for r in readings)
    assert all(30 <= r.humidity_pct <= 90 for r in readings)


def test_seed_inserts_readings(init_db, store):
    count = init_db.seed(store, "esp32-01", days=1, per_day=12)

    assert count == 12
    assert store.list_devices() == ["esp32-01"]
    assert store.latest_reading("esp32-01") is not None
