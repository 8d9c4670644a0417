"""
Envelope helpers for error responses
"""

from fastapi.responses import JSONResponse

from pi_telemetry.schemas.readings import ApiResponse


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse.fail(message).model_dump()
    )
