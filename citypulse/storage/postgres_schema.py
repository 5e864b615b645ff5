"""Postgres schema management for CityPulse.

Schema creation is idempotent (CREATE IF NOT EXISTS); safe to run on every
worker start.
"""

from __future__ import annotations

from typing import Iterable, Optional

import psycopg


SCHEMA_STATEMENTS: list[str] = [
    """
    CREATE TABLE IF NOT EXISTS activities_cache (
      id BIGSERIAL PRIMARY KEY,
      source TEXT NOT NULL,
      source_id TEXT NOT NULL,
      title TEXT NOT NULL,
      description TEXT NOT NULL DEFAULT '',
      location_name TEXT,
      city TEXT NOT NULL,
      start_time TIMESTAMPTZ NOT NULL,
      end_time TIMESTAMPTZ,
      cost_min REAL NOT NULL DEFAULT 0,
      cost_max REAL,
      cost_description TEXT,
      tags TEXT[] NOT NULL DEFAULT '{}',
      categories TEXT[] NOT NULL,
      age_appropriate TEXT[] NOT NULL DEFAULT '{all_ages}',
      indoor_outdoor TEXT NOT NULL DEFAULT 'mixed',
      booking_required BOOLEAN NOT NULL DEFAULT FALSE,
      source_url TEXT NOT NULL,
      image_url TEXT,
      quality_score REAL NOT NULL DEFAULT 0.5,
      relevance_score REAL NOT NULL DEFAULT 0.5,
      scraped_data JSONB,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      expires_at TIMESTAMPTZ NOT NULL,
      UNIQUE (source, source_id)
    );
    """,
    "CREATE INDEX IF NOT EXISTS idx_activities_cache_expires_at ON activities_cache (expires_at);",
    "CREATE INDEX IF NOT EXISTS idx_activities_cache_city ON activities_cache (lower(city));",
    "CREATE INDEX IF NOT EXISTS idx_activities_cache_start_time ON activities_cache (start_time);",
    "CREATE INDEX IF NOT EXISTS idx_activities_cache_categories ON activities_cache USING GIN (categories);",
]


def ensure_postgres_schema(pg_dsn: str, *, statements: Optional[Iterable[str]] = None) -> None:
    stmts = list(statements) if statements is not None else SCHEMA_STATEMENTS
    with psycopg.connect(pg_dsn, autocommit=True) as conn:
        with conn.cursor() as cur:
            for s in stmts:
                cur.execute(s)
