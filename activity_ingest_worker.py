#!/usr/bin/env python3
"""Activity ingestion worker.

Runs one ingestion cycle (or scheduled) for the configured locality:
- municipal / community pages
- open data APIs
- tourism RSS feeds
- business, event and social sources when requested via INGEST_KINDS

Stores normalized activities into Postgres (`activities_cache`), or into an
in-memory store when INGEST_DRY_RUN is set.
"""

from __future__ import annotations

import logging
import time

import schedule
from dotenv import load_dotenv

from citypulse.ingestion.activity_types import Locality, SourceKind
from citypulse.ingestion.settings import IngestSettings, WorkerSettings
from citypulse.pipeline.orchestrator import IngestionRequest, build_orchestrator
from citypulse.pipeline.run_report import RunReport
from citypulse.storage.memory_store import InMemoryActivityStore
from citypulse.storage.postgres_activities import PostgresActivityStore
from citypulse.storage.postgres_schema import ensure_postgres_schema


logger = logging.getLogger("activity_ingest_worker")


def build_request(worker: WorkerSettings) -> IngestionRequest:
    kinds = []
    for raw in worker.kinds:
        try:
            kinds.append(SourceKind(raw))
        except ValueError:
            logger.warning("Ignoring unknown source kind %r", raw)
    return IngestionRequest(
        locality=Locality(city=worker.city, region=worker.region, country=worker.country),
        source_kinds=tuple(kinds),
        max_items_per_source=worker.max_items_per_source,
    )


def run_once() -> RunReport:
    load_dotenv()
    settings = IngestSettings.from_env()
    worker = WorkerSettings.from_env()

    if worker.dry_run:
        store = InMemoryActivityStore()
    else:
        ensure_postgres_schema(settings.pg_dsn)
        store = PostgresActivityStore(settings.pg_dsn)
        purged = store.purge_expired()
        if purged:
            logger.info("Purged %d expired activities", purged)

    orchestrator = build_orchestrator(settings, store)
    report = orchestrator.run(build_request(worker))
    print(f"[ingest] {report.summary_line()}")
    return report


def run_scheduled() -> None:
    worker = WorkerSettings.from_env()
    run_once()
    schedule.every(worker.interval_minutes).minutes.do(run_once)
    while True:
        schedule.run_pending()
        time.sleep(5)


if __name__ == "__main__":
    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    mode = WorkerSettings.from_env().mode
    if mode in ("scheduled", "daemon"):
        run_scheduled()
    else:
        run_once()
