"""Publishes change events of goods records to NATS."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

from hezzlgoods.models import _ZERO_TIME, _format_time, _parse_time
from hezzlgoods.natsclient import NatsError

LOG_SUBJECT = "logs"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class LogData:
    """One change event of a goods record."""

    id: int
    project_id: int
    name: str
    description: str
    priority: int
    removed: bool
    timestamp: datetime

    def to_json(self) -> bytes:
        """Encode the event as the JSON message sent over NATS."""
        return json.dumps({
            "id": self.id,
            "projectID": self.project_id,
            "name": self.name,
            "description": self.description,
            "priority": self.priority,
            "removed": self.removed,
            "timestamp": _format_time(self.timestamp),
        }).encode("utf-8")

    @classmethod
    def from_json(cls, raw: bytes | str) -> LogData:
        """Decode a JSON message; missing fields take zero values."""
        data = json.loads(raw)
        if not isinstance(data, dict):
            raise ValueError("log data must be a JSON object")

        def typed(key: str, default: Any, kind: type) -> Any:
            value = data.get(key) if kind is str else data.get(key, default)
            value = default if value is None and kind is str else value
            if isinstance(value, bool) != (kind is bool) or not isinstance(value, kind):
                raise ValueError(f"{key}: must be of type {kind.__name__}")
            return value

        stamp = typed("timestamp", "", str)
        return cls(
            id=typed("id", 0, int),
            project_id=typed("projectID", 0, int),
            name=typed("name", "", str),
            description=typed("description", "", str),
            priority=typed("priority", 0, int),
            removed=typed("removed", False, bool),
            timestamp=_parse_time(stamp) if stamp else _ZERO_TIME,
        )


class EventLogger:
    """Sends change events to NATS and keeps a plain logger for everything else."""

    def __init__(self, connection: Any, logger: logging.Logger | None = None,
                 subject: str = LOG_SUBJECT,
                 clock: Callable[[], datetime] = _utc_now) -> None:
        self.logger = logger or logging.getLogger(__name__)
        self._connection = connection
        self._subject = subject
        self._clock = clock

    def info_nats(self, id: int, project_id: int, name: str, description: str,
                  priority: int, removed: bool) -> None:
        """Publish one event; failures are logged, never raised."""
        event = LogData(id, project_id, name, description, priority, removed, self._clock())
        try:
            data = event.to_json()
        except (TypeError, ValueError) as exc:
            self.logger.error("Failed to marshal log data", exc_info=exc)
            return
        try:
            self._connection.publish(self._subject, data)
        except (NatsError, OSError) as exc:
            self.logger.error("Failed to publish to NATS", exc_info=exc)