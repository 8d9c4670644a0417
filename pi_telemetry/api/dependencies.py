"""
Shared FastAPI dependencies
"""

from functools import lru_cache

from fastapi import Request

from pi_telemetry.database.connection import SessionLocal
from pi_telemetry.database.readings import ReadingStore
from pi_telemetry.services.aggregation import AggregationQueryEngine


@lru_cache
def get_store() -> ReadingStore:
    return ReadingStore(SessionLocal)


def get_query_engine() -> AggregationQueryEngine:
    return AggregationQueryEngine(get_store())


def get_pipeline(request: Request):
    """The running ingestion pipeline, or None when it is disabled"""
    return getattr(request.app.state, "pipeline", None)
