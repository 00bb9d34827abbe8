from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union

from .errors import ValidationError


# ----------------------------------------------------------------------
# Status
# ----------------------------------------------------------------------

class ServiceStatus(str, Enum):
    HEALTHY = "HEALTHY"
    UNHEALTHY = "UNHEALTHY"

    @classmethod
    def parse(cls, value: Union[str, "ServiceStatus"]) -> "ServiceStatus":
        """
        Parse a status value, case-insensitively.

        Raises ValidationError for anything outside the enumeration.
        """
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        try:
            return cls(text)
        except ValueError:
            allowed = ", ".join(s.value for s in cls)
            raise ValidationError(f"Invalid status {value!r}; expected one of: {allowed}") from None


# ----------------------------------------------------------------------
# Service record
# ----------------------------------------------------------------------

@dataclass(frozen=True)
class Service:
    """
    One reachable instance of an application.

    ``id`` and ``status`` may be empty on the way in; the registry fills
    them. Timestamps are assigned by the store and always UTC.
    """

    application: str
    location: str
    port: int
    id: str = ""
    status: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def endpoint(self) -> tuple[str, int]:
        return (self.location, self.port)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "application": self.application,
            "location": self.location,
            "port": self.port,
            "status": str(self.status.value if isinstance(self.status, ServiceStatus) else self.status),
            "created_at": format_timestamp(self.created_at),
            "updated_at": format_timestamp(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Service":
        return cls(
            id=str(data.get("id") or ""),
            application=str(data.get("application") or ""),
            location=str(data.get("location") or ""),
            port=int(data.get("port") or 0),
            status=str(data.get("status") or ""),
            created_at=parse_timestamp(data.get("created_at")),
            updated_at=parse_timestamp(data.get("updated_at")),
        )


# ----------------------------------------------------------------------
# Timestamps
# ----------------------------------------------------------------------

def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Accept a datetime (psycopg2) or an ISO-8601 string (SQLite, JSON) and
    return an aware UTC datetime.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        ts = value
    else:
        ts = datetime.fromisoformat(str(value))
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


__all__ = [
    "ServiceStatus",
    "Service",
    "utcnow",
    "format_timestamp",
    "parse_timestamp",
]
