"""Run report owned by the orchestrator.

Per-source counters keyed by descriptor key, plus per-kind aggregation for
the response envelope. Nothing here is process-global; one report per run.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from citypulse.ingestion.activity_types import Locality, SourceDescriptor, SourceKind


SUCCESS = "success"
NOT_ACCESSIBLE = "not_accessible"
ERROR = "error"


@dataclass
class SourceReport:
    kind: SourceKind
    provider: str
    name: str
    endpoint: str
    extracted: int = 0
    found: int = 0  # items that passed relevance classification
    added: int = 0
    duplicates: int = 0
    failed_inserts: int = 0
    skipped_items: int = 0
    status: str = ERROR
    error: Optional[str] = None

    @classmethod
    def for_descriptor(cls, d: SourceDescriptor) -> "SourceReport":
        return cls(kind=d.kind, provider=d.provider.value, name=d.name, endpoint=d.endpoint)

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "kind": self.kind.value,
            "provider": self.provider,
            "name": self.name,
            "endpoint": self.endpoint,
            "extracted": self.extracted,
            "found": self.found,
            "added": self.added,
            "duplicates": self.duplicates,
            "failedInserts": self.failed_inserts,
            "skippedItems": self.skipped_items,
            "status": self.status,
        }
        if self.error:
            out["error"] = self.error
        return out


@dataclass
class RunReport:
    locality: Locality
    started_at: datetime
    requested_kinds: Tuple[SourceKind, ...] = ()
    finished_at: Optional[datetime] = None
    cancelled: bool = False
    sources: Dict[str, SourceReport] = field(default_factory=dict)

    def record(self, descriptor: SourceDescriptor, report: SourceReport) -> None:
        self.sources[descriptor.key] = report

    @property
    def total_found(self) -> int:
        return sum(r.found for r in self.sources.values())

    @property
    def total_added(self) -> int:
        return sum(r.added for r in self.sources.values())

    def per_kind(self) -> Dict[str, Dict[str, Any]]:
        kinds: List[SourceKind] = list(self.requested_kinds)
        for r in self.sources.values():
            if r.kind not in kinds:
                kinds.append(r.kind)

        out: Dict[str, Dict[str, Any]] = {}
        for kind in kinds:
            reports = [r for r in self.sources.values() if r.kind == kind]
            entry: Dict[str, Any] = {
                "found": sum(r.found for r in reports),
                "added": sum(r.added for r in reports),
                "sources": len(reports),
            }
            statuses = [r.status for r in reports]
            if SUCCESS in statuses:
                entry["status"] = SUCCESS
            elif ERROR in statuses:
                errors = [r.error for r in reports if r.status == ERROR and r.error]
                entry["status"] = ERROR
                entry["error"] = errors[0] if errors else "all sources failed"
            elif reports:
                entry["status"] = NOT_ACCESSIBLE
            elif self.cancelled:
                entry["status"] = ERROR
                entry["error"] = "cancelled before processing"
            else:
                entry["status"] = NOT_ACCESSIBLE
                entry["error"] = "no sources configured for locality"
            out[kind.value] = entry
        return out

    def to_response(self) -> Dict[str, Any]:
        return {
            "success": True,
            "locality": self.locality.city,
            "region": self.locality.region or None,
            "country": self.locality.country or None,
            "totalFound": self.total_found,
            "totalAdded": self.total_added,
            "perSourceReport": self.per_kind(),
            "cancelled": self.cancelled,
            "startedAt": self.started_at.isoformat(),
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
        }

    def summary_line(self) -> str:
        parts = [f"{k}={v['status']}({v['found']}/{v['added']})" for k, v in self.per_kind().items()]
        flag = " cancelled" if self.cancelled else ""
        return (
            f"{self.locality.city}: found={self.total_found} added={self.total_added} "
            f"sources={len(self.sources)}{flag} " + " ".join(parts)
        ).strip()
