"""Pi Telemetry: MQTT sensor ingestion and aggregation server"""
