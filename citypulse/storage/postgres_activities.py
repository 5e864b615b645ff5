"""Postgres-backed activity store (the pipeline's storage collaborator).

Keyed on (source, source_id). Inserts never overwrite: a concurrent writer
that got there first wins and the insert is a no-op.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

import psycopg
from psycopg.types.json import Jsonb

from citypulse.ingestion.activity_types import Activity
from citypulse.ingestion.errors import InsertError


INSERT_SQL = """
INSERT INTO activities_cache (
  source, source_id, title, description, location_name, city, start_time, end_time,
  cost_min, cost_max, cost_description, tags, categories, age_appropriate,
  indoor_outdoor, booking_required, source_url, image_url,
  quality_score, relevance_score, scraped_data, created_at, expires_at
)
VALUES (
  %(source)s, %(source_id)s, %(title)s, %(description)s, %(location_name)s, %(city)s, %(start_time)s, %(end_time)s,
  %(cost_min)s, %(cost_max)s, %(cost_description)s, %(tags)s, %(categories)s, %(age_appropriate)s,
  %(indoor_outdoor)s, %(booking_required)s, %(source_url)s, %(image_url)s,
  %(quality_score)s, %(relevance_score)s, %(scraped_data)s, %(created_at)s, %(expires_at)s
)
ON CONFLICT (source, source_id) DO NOTHING
"""


def _params(activity: Activity) -> Dict[str, Any]:
    return {
        "source": activity.source.value,
        "source_id": activity.source_id,
        "title": activity.title,
        "description": activity.description,
        "location_name": activity.location_name,
        "city": activity.city,
        "start_time": activity.start_time,
        "end_time": activity.end_time,
        "cost_min": activity.cost_min,
        "cost_max": activity.cost_max,
        "cost_description": activity.cost_description,
        "tags": sorted(activity.tags),
        "categories": sorted(activity.categories),
        "age_appropriate": list(activity.age_appropriate),
        "indoor_outdoor": activity.indoor_outdoor.value,
        "booking_required": activity.booking_required,
        "source_url": activity.source_url,
        "image_url": activity.image_url,
        "quality_score": activity.quality_score,
        "relevance_score": activity.relevance_score,
        "scraped_data": Jsonb(activity.scraped_metadata or {}),
        "created_at": activity.created_at,
        "expires_at": activity.expires_at,
    }


@dataclass
class PostgresActivityStore:
    pg_dsn: str

    def _connect(self):
        return psycopg.connect(self.pg_dsn, autocommit=True)

    def exists(self, source: str, source_id: str) -> bool:
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM activities_cache WHERE source = %s AND source_id = %s LIMIT 1",
                    (source, source_id),
                )
                return cur.fetchone() is not None

    def insert(self, activity: Activity) -> bool:
        """Insert one row; False when an existing row with the same key won."""
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(INSERT_SQL, _params(activity))
                    return cur.rowcount == 1
        except psycopg.Error as e:
            raise InsertError(f"{activity.source.value}:{activity.source_id}", str(e))

    def purge_expired(self) -> int:
        """Delete rows whose expiry has passed; returns the number removed."""
        with self._connect() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM activities_cache WHERE expires_at <= now()")
                return cur.rowcount or 0

