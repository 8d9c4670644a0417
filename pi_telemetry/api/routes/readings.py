"""
Aggregated and current reading endpoints
"""

from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.exc import SQLAlchemyError
import structlog

from pi_telemetry.api.dependencies import get_query_engine
from pi_telemetry.api.responses import error_response
from pi_telemetry.schemas.readings import AggregatedReading, ApiResponse, CurrentReading
from pi_telemetry.services.aggregation import (
    DEFAULT_RANGE,
    AggregationQueryEngine,
    InvalidRangeError,
)

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/readings", response_model=ApiResponse[List[AggregatedReading]])
def get_readings(
    device_id: str = Query(..., min_length=1),
    range_token: str = Query(DEFAULT_RANGE, alias="range", description="Time range: 1d, 1w, 1m, 6m, 1y"),
    engine: AggregationQueryEngine = Depends(get_query_engine)
):
    """Bucketed averages for a device over a symbolic time range"""
    logger.debug("GET /api/readings", device_id=device_id, range=range_token)

    try:
        readings = engine.query(device_id, range_token)
    except InvalidRangeError as e:
        return error_response(400, str(e))
    except SQLAlchemyError as e:
        logger.error("Failed to get readings", device_id=device_id, error=str(e))
        return error_response(503, "Database unavailable")

    return ApiResponse.ok(readings)


@router.get("/current", response_model=ApiResponse[CurrentReading])
def get_current(
    device_id: str = Query(..., min_length=1),
    engine: AggregationQueryEngine = Depends(get_query_engine)
):
    """Latest reading for a device with its 24 hour averages"""
    try:
        current = engine.current(device_id)
    except SQLAlchemyError as e:
        logger.error("Failed to get current reading", device_id=device_id, error=str(e))
        return error_response(503, "Database unavailable")

    if current is None:
        return error_response(404, f"No sensor readings found for device {device_id}")

    return ApiResponse.ok(current)
