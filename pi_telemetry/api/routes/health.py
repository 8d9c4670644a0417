"""
Health check endpoints
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends
import structlog

from pi_telemetry.api.dependencies import get_pipeline, get_query_engine
from pi_telemetry.api.responses import error_response
from pi_telemetry.schemas.readings import ApiResponse
from pi_telemetry.services.aggregation import AggregationQueryEngine

logger = structlog.get_logger(__name__)
router = APIRouter()


def _ingest_status(pipeline) -> dict:
    if pipeline is None:
        return {"enabled": False}
    subscriber = pipeline.subscriber
    return {
        "enabled": True,
        "running": pipeline.running,
        "mqtt_state": subscriber.state.value,
        "received": subscriber.received,
        "decode_failures": subscriber.dropped,
        "reconnects": subscriber.reconnects,
        "queue_depth": len(pipeline.queue),
        "queue_dropped": pipeline.queue.dropped,
        "written": pipeline.writer.written,
        "write_failures": pipeline.writer.failed,
    }


@router.get("/health")
def health_check(
    engine: AggregationQueryEngine = Depends(get_query_engine),
    pipeline=Depends(get_pipeline)
):
    """Liveness probe against the database"""
    if not engine.health():
        return error_response(503, "Database unavailable")

    return ApiResponse.ok({
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "ingest": _ingest_status(pipeline),
    })
