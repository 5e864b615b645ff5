"""Runtime settings read from the environment.

Entry scripts call `load_dotenv()` first, so a local `.env` works the same as
real environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


DEFAULT_PG_DSN = "dbname=citypulse user=citypulse password=citypulse host=localhost port=5432"
DEFAULT_USER_AGENT = "CityPulse/1.0 (+activity aggregator)"
CREDENTIAL_KEYS = ("YELP_API_KEY", "EVENTBRITE_API_KEY", "MEETUP_API_KEY")


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = (os.environ.get(name) or "").strip()
    try:
        return float(raw) if raw else default
    except ValueError:
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class IngestSettings:
    pg_dsn: str = DEFAULT_PG_DSN
    user_agent: str = DEFAULT_USER_AGENT
    agent_token: str = "citypulse"
    fetch_timeout: float = 20.0
    fetch_max_bytes: int = 3_000_000
    fetch_attempts: int = 1
    max_sources: int = 40
    delay_scale: float = 1.0
    run_timeout: float = 0.0  # seconds; 0 disables the run deadline
    credentials: Dict[str, str] = field(default_factory=dict)

    def credential(self, key: Optional[str]) -> Optional[str]:
        if not key:
            return None
        value = (self.credentials.get(key) or "").strip()
        return value or None

    @classmethod
    def from_env(cls) -> "IngestSettings":
        creds = {k: os.environ.get(k, "").strip() for k in CREDENTIAL_KEYS if os.environ.get(k, "").strip()}
        return cls(
            pg_dsn=os.environ.get("PG_DSN", DEFAULT_PG_DSN),
            user_agent=os.environ.get("CITYPULSE_USER_AGENT", DEFAULT_USER_AGENT),
            fetch_timeout=_env_float("FETCH_TIMEOUT", 20.0),
            fetch_max_bytes=_env_int("FETCH_MAX_BYTES", 3_000_000),
            fetch_attempts=max(1, _env_int("FETCH_ATTEMPTS", 1)),
            max_sources=max(1, _env_int("INGEST_MAX_SOURCES", 40)),
            delay_scale=max(0.0, _env_float("INGEST_DELAY_SCALE", 1.0)),
            run_timeout=max(0.0, _env_float("INGEST_RUN_TIMEOUT", 0.0)),
            credentials=creds,
        )


@dataclass(frozen=True)
class WorkerSettings:
    """Settings for the scheduled worker entrypoint only."""

    city: str = "Victoria"
    region: str = "BC"
    country: str = "Canada"
    kinds: Tuple[str, ...] = ("municipal_page", "open_data_api", "rss_feed")
    max_items_per_source: int = 30
    mode: str = "once"
    interval_minutes: int = 360
    dry_run: bool = False

    @classmethod
    def from_env(cls) -> "WorkerSettings":
        kinds_raw = os.environ.get("INGEST_KINDS", "")
        kinds = tuple(k.strip() for k in kinds_raw.split(",") if k.strip()) or cls.kinds
        return cls(
            city=os.environ.get("INGEST_CITY", cls.city),
            region=os.environ.get("INGEST_REGION", cls.region),
            country=os.environ.get("INGEST_COUNTRY", cls.country),
            kinds=kinds,
            max_items_per_source=max(1, _env_int("INGEST_MAX_ITEMS", cls.max_items_per_source)),
            mode=(os.environ.get("INGEST_MODE") or "once").lower().strip(),
            interval_minutes=max(1, _env_int("INGEST_INTERVAL_MINUTES", cls.interval_minutes)),
            dry_run=_env_bool("INGEST_DRY_RUN"),
        )
