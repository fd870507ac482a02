"""HTTP service for project goods with a Redis cache and a NATS-to-ClickHouse event log."""

__version__ = "0.1.0"