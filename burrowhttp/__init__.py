"""HTTP API and Prometheus metrics endpoint for a Kafka consumer lag monitor."""

__version__ = "1.0.0"