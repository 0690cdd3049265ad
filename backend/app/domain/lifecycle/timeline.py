"""
Timeline (milestone log) helpers.

Stored entries are plain dicts in insertion order. Appending always builds
a new list so existing entries are never edited and SQLAlchemy sees the
column as changed.
"""

import enum
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional


class TimelineEvent(str, enum.Enum):
    CREATED = "created"
    STATUS_CHANGED = "status_changed"
    TRACKING_NUMBER_ASSIGNED = "tracking_number_assigned"
    CANCELLED = "cancelled"
    RESTORED = "restored"


def build_entry(
    event: TimelineEvent,
    status,
    actor_id: Optional[int],
    description: Optional[str] = None,
    location: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    timestamp: Optional[datetime] = None,
) -> Dict[str, Any]:
    timestamp = timestamp or datetime.now(timezone.utc)
    return {
        "event": event.value,
        "status": status.value if isinstance(status, enum.Enum) else status,
        "location": location,
        "description": description,
        "actor_id": actor_id,
        "timestamp": timestamp.isoformat(),
        "metadata": metadata or {},
    }


def append_entry(entity, entry: Dict[str, Any]) -> Dict[str, Any]:
    entity.timeline = list(entity.timeline or []) + [entry]
    return entry


def sorted_for_display(timeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Newest first; entries sharing a timestamp keep their reverse insertion order."""
    indexed = list(enumerate(timeline or []))
    indexed.sort(key=lambda pair: (pair[1]["timestamp"], pair[0]), reverse=True)
    return [entry for _, entry in indexed]
