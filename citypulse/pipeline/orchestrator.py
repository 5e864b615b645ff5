"""Ingestion orchestrator.

Pipeline per source, strictly sequential:
- policy check (robots.txt) and optional HEAD probe
- fetch (retry count from settings; default is a single attempt)
- extract -> classify -> normalize -> dedup/insert
- fixed provider delay before the next source

Per-source and per-item failures are recorded in the report and never raised.
Only cancellation or the run deadline stops a run early, and only between
sources.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from tenacity import Retrying, retry_if_exception, stop_after_attempt, wait_exponential

from citypulse.catalog.provider_profiles import profile_for
from citypulse.catalog.source_catalog import SourceCatalog
from citypulse.classification.relevance import RelevanceClassifier
from citypulse.extraction.extractors import extractor_for
from citypulse.fetching.http_client import FetchResult, HttpFetchClient
from citypulse.fetching.robots_policy import RobotsPolicy
from citypulse.ingestion.activity_types import Locality, SourceDescriptor, SourceKind
from citypulse.ingestion.errors import FetchError, ParseError, PolicyDenied
from citypulse.ingestion.settings import IngestSettings
from citypulse.normalization.normalizer import ActivityNormalizer
from citypulse.pipeline.run_report import ERROR, NOT_ACCESSIBLE, SUCCESS, RunReport, SourceReport
from citypulse.storage.dedup_gateway import DedupGateway, InsertOutcome


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IngestionRequest:
    locality: Locality
    source_kinds: Tuple[SourceKind, ...]
    max_items_per_source: int = 20
    extra_params: Dict[str, Any] = field(default_factory=dict)


def _retryable(exc: BaseException) -> bool:
    # client errors will not improve on retry
    return isinstance(exc, FetchError) and (exc.status_code is None or exc.status_code >= 500)


class IngestionOrchestrator:
    def __init__(
        self,
        *,
        catalog: SourceCatalog,
        fetcher: HttpFetchClient,
        policy: RobotsPolicy,
        classifier: RelevanceClassifier,
        normalizer: ActivityNormalizer,
        gateway: DedupGateway,
        settings: Optional[IngestSettings] = None,
        sleep: Callable[[float], None] = time.sleep,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.catalog = catalog
        self.fetcher = fetcher
        self.policy = policy
        self.classifier = classifier
        self.normalizer = normalizer
        self.gateway = gateway
        self.settings = settings or IngestSettings()
        self._sleep = sleep
        self._monotonic = monotonic

    def plan(self, request: IngestionRequest) -> List[SourceDescriptor]:
        descriptors: List[SourceDescriptor] = []
        for kind in request.source_kinds:
            descriptors.extend(
                self.catalog.sources(
                    request.locality,
                    kind,
                    per_source_limit=request.max_items_per_source,
                    extra_params=request.extra_params,
                )
            )
        if len(descriptors) > self.settings.max_sources:
            logger.info("Capping %d candidate sources at %d", len(descriptors), self.settings.max_sources)
        return descriptors[: self.settings.max_sources]

    def _stop_requested(self, cancel: Optional[threading.Event], deadline: Optional[float]) -> bool:
        if cancel is not None and cancel.is_set():
            return True
        return deadline is not None and self._monotonic() >= deadline

    def run(
        self,
        request: IngestionRequest,
        *,
        cancel: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
    ) -> RunReport:
        if deadline is None and self.settings.run_timeout > 0:
            deadline = self._monotonic() + self.settings.run_timeout
        self.policy.reset()
        self.gateway.reset()

        report = RunReport(
            locality=request.locality,
            started_at=datetime.now(timezone.utc),
            requested_kinds=tuple(request.source_kinds),
        )
        descriptors = self.plan(request)
        logger.info(
            "Ingest run for %s: %d sources across %s",
            request.locality.city,
            len(descriptors),
            ",".join(k.value for k in request.source_kinds),
        )

        for idx, descriptor in enumerate(descriptors):
            if self._stop_requested(cancel, deadline):
                report.cancelled = True
                logger.info("Run stopped before %s (%d sources left)", descriptor.name, len(descriptors) - idx)
                break
            report.record(descriptor, self._process_source(descriptor, request))
            if idx < len(descriptors) - 1 and not self._stop_requested(cancel, deadline):
                self._pause_after(descriptor)

        report.finished_at = datetime.now(timezone.utc)
        logger.info("Ingest run finished: %s", report.summary_line())
        return report

    def _pause_after(self, descriptor: SourceDescriptor) -> None:
        delay = profile_for(descriptor.provider).delay_seconds * self.settings.delay_scale
        if delay > 0:
            self._sleep(delay)

    def _request_headers(self, descriptor: SourceDescriptor) -> Optional[Dict[str, str]]:
        token = self.settings.credential(descriptor.credential_key)
        if not token:
            return None
        return {"Authorization": f"Bearer {token}"}

    def _fetch(self, descriptor: SourceDescriptor) -> FetchResult:
        retryer = Retrying(
            stop=stop_after_attempt(max(1, self.settings.fetch_attempts)),
            wait=wait_exponential(min=1, max=8),
            retry=retry_if_exception(_retryable),
            sleep=self._sleep,
            reraise=True,
        )
        return retryer(
            self.fetcher.fetch,
            descriptor.endpoint,
            fmt=descriptor.format,
            method=descriptor.method,
            headers=self._request_headers(descriptor),
            json_body=descriptor.body,
        )

    def _process_source(self, descriptor: SourceDescriptor, request: IngestionRequest) -> SourceReport:
        sr = SourceReport.for_descriptor(descriptor)
        try:
            if descriptor.credential_key and not self.settings.credential(descriptor.credential_key):
                sr.status = ERROR
                sr.error = f"missing credential {descriptor.credential_key}"
                logger.info("Skipping %s: %s", descriptor.name, sr.error)
                return sr
            self.policy.check(descriptor.endpoint)
            if descriptor.probe_first and not self.fetcher.probe(descriptor.endpoint):
                sr.status = NOT_ACCESSIBLE
                sr.error = "probe failed"
                logger.info("Not accessible: %s", descriptor.endpoint)
                return sr

            payload = self._fetch(descriptor)
            extractor = extractor_for(descriptor.format, descriptor.provider)
            limit = min(request.max_items_per_source, descriptor.per_source_limit)
            items = extractor.extract(payload, descriptor, limit=limit)
            sr.extracted = len(items)

            for item in items:
                if not self.classifier.is_relevant(item):
                    continue
                sr.found += 1
                try:
                    activity = self.normalizer.normalize(item)
                except (ValueError, TypeError) as e:
                    sr.skipped_items += 1
                    logger.debug("Skipping item %r from %s: %s", item.title[:80], descriptor.name, e)
                    continue
                outcome = self.gateway.submit(activity)
                if outcome == InsertOutcome.ADDED:
                    sr.added += 1
                elif outcome == InsertOutcome.DUPLICATE:
                    sr.duplicates += 1
                else:
                    sr.failed_inserts += 1
            sr.status = SUCCESS
        except PolicyDenied as e:
            sr.status = NOT_ACCESSIBLE
            sr.error = "disallowed by robots.txt"
            logger.info("Skipping %s: %s", descriptor.name, e)
        except FetchError as e:
            sr.status = ERROR
            sr.error = e.cause
            logger.warning("Fetch failed for %s: %s", descriptor.endpoint, e.cause)
        except ParseError as e:
            sr.status = ERROR
            sr.error = f"parse_error: {e.detail}"
            logger.warning("Unparsable payload from %s: %s", descriptor.name, e.detail)
        except Exception as e:
            # unexpected bugs stay contained to this source
            sr.status = ERROR
            sr.error = f"unexpected: {e}"
            logger.exception("Unexpected error processing %s", descriptor.name)

        logger.info(
            "%s [%s]: status=%s extracted=%d found=%d added=%d dup=%d",
            descriptor.name,
            descriptor.kind.value,
            sr.status,
            sr.extracted,
            sr.found,
            sr.added,
            sr.duplicates,
        )
        return sr


def build_orchestrator(settings: IngestSettings, store) -> IngestionOrchestrator:
    """Wire the default collaborators around a storage backend."""
    fetcher = HttpFetchClient(
        user_agent=settings.user_agent,
        timeout=settings.fetch_timeout,
        max_bytes=settings.fetch_max_bytes,
    )
    return IngestionOrchestrator(
        catalog=SourceCatalog(),
        fetcher=fetcher,
        policy=RobotsPolicy(fetcher, agent_token=settings.agent_token),
        classifier=RelevanceClassifier(),
        normalizer=ActivityNormalizer(),
        gateway=DedupGateway(store),
        settings=settings,
    )
