"""Domain model of a goods record."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

_ZERO_TIME = datetime(1, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"\.(\d+)")


def _format_time(value: datetime) -> str:
    text = value.isoformat()
    return text[:-6] + "Z" if text.endswith("+00:00") else text


def _parse_time(text: str) -> datetime:
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1)
    return datetime.fromisoformat(text)


@dataclass
class Goods:
    """One goods record as kept in the database."""

    id: int
    project_id: int
    name: str = ""
    description: str = ""
    priority: int = 0
    removed: bool = False
    created_at: datetime = _ZERO_TIME

    def to_dict(self) -> dict[str, Any]:
        """Return the record as a JSON-ready mapping."""
        return {
            "ID": self.id,
            "ProjectID": self.project_id,
            "Name": self.name,
            "Description": self.description,
            "Priority": self.priority,
            "Removed": self.removed,
            "CreatedAt": _format_time(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Goods:
        """Build a record from a mapping made by to_dict; missing keys take zero values."""
        created = data.get("CreatedAt")
        return cls(
            id=int(data.get("ID", 0)),
            project_id=int(data.get("ProjectID", 0)),
            name=str(data.get("Name") or ""),
            description=str(data.get("Description") or ""),
            priority=int(data.get("Priority", 0)),
            removed=bool(data.get("Removed", False)),
            created_at=_parse_time(created) if created else _ZERO_TIME,
        )