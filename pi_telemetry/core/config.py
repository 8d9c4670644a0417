"""
Configuration settings for the Pi Telemetry server
"""

from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """Application settings"""

    # API Settings
    app_host: str = "0.0.0.0"
    app_port: int = 8080
    debug: bool = False

    # Database
    db_host: str = "localhost"
    db_port: str = "5432"
    db_name: str = "telemetry"
    db_user: str = "pi"
    db_password: str = "password"
    pg_url: Optional[str] = None
    database_url: str = ""

    # MQTT
    mqtt_broker_url: str = "mqtt://localhost:1883"
    mqtt_client_id: str = "pi-telemetry"
    mqtt_topic_filter: str = "sensors/+/telemetry"
    mqtt_username: Optional[str] = None
    mqtt_password: Optional[str] = None
    mqtt_keepalive: int = 30
    mqtt_reconnect_delay: float = 5.0  # seconds, fixed (no backoff)

    # Ingestion pipeline
    pipeline_enabled: bool = True
    ingest_queue_maxsize: int = 10000  # 0 = unbounded
    ingest_overflow_policy: str = "drop_oldest"  # drop_oldest, drop_newest
    persistence_retry_attempts: int = 0  # 0 = drop on first failure
    persistence_retry_delay: float = 0.5
    shutdown_drain_timeout: float = 10.0

    # Retention
    retention_days: int = 365
    retention_interval: int = 3600  # seconds

    # Logging
    log_level: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = False

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        # PG_URL wins over the individual components
        url = self.pg_url or f"postgresql://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"
        # The declared driver is psycopg2; name it explicitly
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                url = "postgresql+psycopg2://" + url[len(prefix):]
                break
        self.database_url = url


# Global settings instance
settings = Settings()
