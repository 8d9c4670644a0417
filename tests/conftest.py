import pytest
from datetime import datetime, timedelta, timezone
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pi_telemetry.database.connection import init_database
from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.schemas.telemetry import TelemetryMessage

FIXED_NOW = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def sqlite_engine():
    """In-memory SQLite standing in for PostgreSQL, shared across threads"""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_database(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(sqlite_engine):
    return ReadingStore(sessionmaker(bind=sqlite_engine, autoflush=False))


@pytest.fixture
def make_message():
    def _make(device_id="d1", ts=FIXED_NOW, temperature_c=21.5, humidity_pct=40.0):
        return TelemetryMessage(
            device_id=device_id,
            temperature_c=temperature_c,
            humidity_pct=humidity_pct,
            timestamp=ts,
        )
    return _make


@pytest.fixture
def add_readings(store, make_message):
    """Insert (device_id, ts, temperature, humidity) tuples"""
    def _add(*rows):
        for device_id, ts, temperature_c, humidity_pct in rows:
            store.insert_reading(make_message(device_id, ts, temperature_c, humidity_pct))
    return _add


@pytest.fixture
def midnight():
    return datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def minutes(midnight):
    def _at(n):
        return midnight + timedelta(minutes=n)
    return _at
