"""
Device listing endpoints
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
import structlog

from pi_telemetry.api.dependencies import get_query_engine
from pi_telemetry.api.responses import error_response
from pi_telemetry.schemas.readings import ApiResponse
from pi_telemetry.services.aggregation import AggregationQueryEngine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.get("/devices", response_model=ApiResponse[List[str]])
def get_devices(engine: AggregationQueryEngine = Depends(get_query_engine)):
    """Distinct device ids seen in stored readings"""
    try:
        devices = engine.list_devices()
    except SQLAlchemyError as e:
        logger.error("Failed to get devices", error=str(e))
        return error_response(503, "Database unavailable")

    return ApiResponse.ok(devices)
