"""
Reading model for raw sensor telemetry
"""

from sqlalchemy import Column, BigInteger, Integer, Text, DateTime, Float, Index
from pi_telemetry.database.connection import Base


class Reading(Base):
    """One row per received telemetry message (append-only)"""

    __tablename__ = "readings"

    # BIGSERIAL on PostgreSQL; SQLite only autoincrements INTEGER primary keys
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    device_id = Column(Text, nullable=False)
    ts = Column(DateTime(timezone=True), nullable=False)
    temperature_c = Column(Float)
    humidity_pct = Column(Float)

    __table_args__ = (
        Index("idx_readings_device_ts", "device_id", "ts"),
        Index("idx_readings_ts", "ts"),
    )

    def __repr__(self):
        return f"<Reading(device_id={self.device_id}, ts={self.ts}, temperature_c={self.temperature_c}, humidity_pct={self.humidity_pct})>"
