from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from citypulse.ingestion.activity_types import Activity


class InMemoryActivityStore:
    """Process-local store used for dry runs and tests."""

    def __init__(self):
        self.records: Dict[Tuple[str, str], Activity] = {}

    def exists(self, source: str, source_id: str) -> bool:
        return (source, source_id) in self.records

    def insert(self, activity: Activity) -> bool:
        if activity.identity in self.records:
            return False
        self.records[activity.identity] = activity
        return True

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        expired = [k for k, a in self.records.items() if a.expires_at <= now]
        for k in expired:
            del self.records[k]
        return len(expired)

    def all(self) -> List[Activity]:
        return list(self.records.values())

    def __len__(self) -> int:
        return len(self.records)
