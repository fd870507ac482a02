"""Service configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping


class ConfigError(Exception):
    """A required setting is missing."""


@dataclass(frozen=True)
class Config:
    """Addresses and credentials of the server and its backing services."""

    addr: str
    pg_dsn: str
    ch_addr: str
    ch_user: str
    ch_password: str = field(repr=False)
    nats_addr: str
    redis_dsn: str


# (field, environment variable, name reported when it is missing)
_VARIABLES = (
    ("addr", "RUN_ADDRESS", "RUN_ADDRESS"),
    ("pg_dsn", "POSTGRES_DSN", "POSTGRES_DSN"),
    ("ch_addr", "CLICKHOUSE_ADDRESS", "CLICKHOUSE_ADDRESS"),
    ("ch_user", "CLICKHOUSE_USER", "CLICKHOUSE_USER"),
    ("ch_password", "CLICKHOUSE_PASSWORD", "CLICKHOUSE_PASSWORD"),
    ("nats_addr", "NATS_ADDR", "NATS_DSN"),
    ("redis_dsn", "REDIS_DSN", "REDIS_DSN"),
)


def load_config(environ: Mapping[str, str] | None = None) -> Config:
    """Read the configuration; every setting is required and must be non-empty."""
    source = os.environ if environ is None else environ
    values = {}
    for field_name, variable, reported in _VARIABLES:
        value = source.get(variable, "")
        if not value:
            raise ConfigError(f"missing required environment variable {reported}")
        values[field_name] = value
    return Config(**values)