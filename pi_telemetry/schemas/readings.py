"""
Reading Pydantic schemas
"""

from pydantic import BaseModel, Field
from typing import Generic, Optional, TypeVar
from datetime import datetime

T = TypeVar("T")


class AggregatedReading(BaseModel):
    """Average of the readings falling into one time bucket"""
    ts: datetime = Field(..., description="Bucket start (UTC)")
    avg_temperature_c: Optional[float] = Field(None, description="Mean temperature in the bucket")
    avg_humidity_pct: Optional[float] = Field(None, description="Mean humidity in the bucket")


class ReadingResponse(BaseModel):
    """A single stored reading"""
    device_id: str
    ts: datetime
    temperature_c: Optional[float] = None
    humidity_pct: Optional[float] = None

    class Config:
        from_attributes = True


class CurrentReading(BaseModel):
    """Latest reading for a device plus its recent averages"""
    current: ReadingResponse
    avg_temperature_c: Optional[float] = Field(None, description="Mean temperature over the window")
    avg_humidity_pct: Optional[float] = Field(None, description="Mean humidity over the window")
    reading_count: int = Field(0, ge=0, description="Readings in the window")
    window_hours: int = Field(24, description="Averaging window")


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope shared by all /api endpoints"""
    success: bool
    data: Optional[T] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, message: str) -> "ApiResponse[T]":
        return cls(success=False, error=message)
