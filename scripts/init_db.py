#!/usr/bin/env python3
"""
Initialize the database with sample readings
"""

import argparse
import math
import random
import sys
import os
from datetime import datetime, timedelta, timezone

# Add project root to path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from pi_telemetry.database.connection import init_database, SessionLocal
from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.schemas.telemetry import TelemetryMessage


def sample_readings(device_id: str, days: int = 7, per_day: int = 48, now: datetime = None, rng: random.Random = None):
    """Daily temperature/humidity cycles with a little noise, newest first"""
    now = now or datetime.now(timezone.utc)
    rng = rng or random.Random()
    step = timedelta(days=1) / per_day

    for day in range(days):
        for i in range(per_day):
            hours = day * 24 + i * 24 / per_day
            temperature = 22 + math.sin(hours * math.pi / 12) * 5 + (rng.random() - 0.5) * 2
            humidity = 60 - math.sin((hours + 6) * math.pi / 12) * 10 + (rng.random() - 0.5) * 5
            yield TelemetryMessage(
                device_id=device_id,
                temperature_c=round(temperature, 1),
                humidity_pct=round(max(30.0, min(90.0, humidity)), 1),
                timestamp=now - timedelta(days=day) - step * i,
            )


def seed(store: ReadingStore, device_id: str, days: int = 7, per_day: int = 48) -> int:
    count = 0
    for message in sample_readings(device_id, days=days, per_day=per_day):
        store.insert_reading(message)
        count += 1
    return count


def main():
    parser = argparse.ArgumentParser(description="Create the readings table and seed sample data")
    parser.add_argument("--device-id", default="esp32-01")
    parser.add_argument("--days", type=int, default=7)
    parser.add_argument("--per-day", type=int, default=48)
    parser.add_argument("--schema-only", action="store_true")
    args = parser.parse_args()

    init_database()
    print("✅ Schema created")
    if args.schema_only:
        return

    store = ReadingStore(SessionLocal)
    count = seed(store, args.device_id, days=args.days, per_day=args.per_day)
    print(f"✅ Created {count} sample readings for {args.device_id}")

    latest = store.latest_reading(args.device_id)
    if latest:
        print(f"Latest reading: {latest.temperature_c}°C, {latest.humidity_pct}% at {latest.ts.isoformat()}")


if __name__ == "__main__":
    main()
