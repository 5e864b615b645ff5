import os
import threading
import unittest

from citypulse.catalog.source_catalog import locality_terms
from citypulse.classification.relevance import RelevanceClassifier
from citypulse.fetching.http_client import FetchResult
from citypulse.fetching.robots_policy import RobotsPolicy
from citypulse.ingestion.activity_types import Locality, Provider, SourceDescriptor, SourceFormat, SourceKind
from citypulse.ingestion.errors import FetchError
from citypulse.ingestion.settings import IngestSettings
from citypulse.normalization.normalizer import ActivityNormalizer
from citypulse.pipeline.orchestrator import IngestionOrchestrator, IngestionRequest
from citypulse.pipeline.run_report import ERROR, NOT_ACCESSIBLE, SUCCESS
from citypulse.storage.dedup_gateway import DedupGateway
from citypulse.storage.memory_store import InMemoryActivityStore


VICTORIA = Locality(city="Victoria", region="BC", country="Canada")


def _fixture(name):
    path = os.path.join(os.path.dirname(__file__), "fixtures", name)
    with open(path, "rb") as f:
        return f.read()


def _descriptor(kind, provider, fmt, endpoint, label, **kwargs):
    return SourceDescriptor(
        locality=VICTORIA,
        kind=kind,
        provider=provider,
        name=f"Victoria {label}",
        label=label,
        endpoint=endpoint,
        format=fmt,
        locality_terms=locality_terms(VICTORIA),
        **kwargs,
    )


REC = _descriptor(
    SourceKind.MUNICIPAL_PAGE, Provider.MUNICIPAL, SourceFormat.HTML,
    "https://www.victoria.ca/recreation", "city_recreation", probe_first=True,
)
LIBRARY = _descriptor(
    SourceKind.MUNICIPAL_PAGE, Provider.MUNICIPAL, SourceFormat.HTML,
    "https://www.gvpl.ca/events", "library_events", probe_first=True,
)
FEED = _descriptor(
    SourceKind.RSS_FEED, Provider.TOURISM_RSS, SourceFormat.XML,
    "https://www.tourismvictoria.com/rss.xml", "tourism_official",
)
YELP = _descriptor(
    SourceKind.BUSINESS_API, Provider.YELP, SourceFormat.JSON,
    "https://api.yelp.com/v3/businesses/search?categories=restaurants", "yelp_restaurants",
    credential_key="YELP_API_KEY",
)


class StaticCatalog:
    def __init__(self, by_kind):
        self.by_kind = by_kind

    def sources(self, locality, kind, country=None, *, per_source_limit=20, extra_params=None):
        return list(self.by_kind.get(kind, []))


class FakeFetcher:
    """Serves canned payloads; robots.txt is missing everywhere unless given."""

    def __init__(self, payloads, *, robots=None, unreachable=(), on_fetch=None):
        self.payloads = payloads
        self.robots = robots or {}
        self.unreachable = set(unreachable)
        self.on_fetch = on_fetch
        self.calls = []
        self.headers = {}

    def fetch(self, url, *, fmt=None, method="GET", headers=None, json_body=None):
        if url.endswith("/robots.txt"):
            if url not in self.robots:
                raise FetchError(url, "http_404", status_code=404)
            return FetchResult(url=url, status_code=200, content_type="text/plain", payload=self.robots[url].encode())
        self.calls.append(url)
        self.headers[url] = headers
        if self.on_fetch is not None:
            self.on_fetch(url)
        payload = self.payloads[url]
        if isinstance(payload, Exception):
            raise payload
        return FetchResult(url=url, status_code=200, content_type="text/html", payload=payload)

    def probe(self, url):
        return url not in self.unreachable


class TestIngestionOrchestrator(unittest.TestCase):
    def _orchestrator(self, fetcher, by_kind, *, store=None, settings=None):
        self.sleeps = []
        self.store = store if store is not None else InMemoryActivityStore()
        return IngestionOrchestrator(
            catalog=StaticCatalog(by_kind),
            fetcher=fetcher,
            policy=RobotsPolicy(fetcher),
            classifier=RelevanceClassifier(),
            normalizer=ActivityNormalizer(),
            gateway=DedupGateway(self.store),
            settings=settings or IngestSettings(),
            sleep=self.sleeps.append,
        )

    def _request(self, *kinds):
        return IngestionRequest(locality=VICTORIA, source_kinds=kinds, max_items_per_source=20)

    def test_municipal_and_feed_run(self):
        fetcher = FakeFetcher({REC.endpoint: _fixture("municipal_programs.html"), FEED.endpoint: _fixture("tourism_feed.xml")})
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC], SourceKind.RSS_FEED: [FEED]}
        )
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE, SourceKind.RSS_FEED))

        rec = report.sources[REC.key]
        self.assertEqual(rec.status, SUCCESS)
        self.assertEqual(rec.extracted, 3)
        self.assertEqual(rec.found, 2)
        self.assertEqual(rec.added, 2)

        feed = report.sources[FEED.key]
        self.assertEqual((feed.extracted, feed.found, feed.added), (3, 2, 2))

        self.assertEqual(report.total_added, 4)
        self.assertEqual(len(self.store), 4)
        response = report.to_response()
        self.assertTrue(response["success"])
        self.assertEqual(response["perSourceReport"]["municipal_page"]["status"], SUCCESS)
        self.assertEqual(response["perSourceReport"]["rss_feed"]["added"], 2)

    def test_second_run_adds_nothing(self):
        fetcher = FakeFetcher({REC.endpoint: _fixture("municipal_programs.html")})
        orchestrator = self._orchestrator(fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]})
        orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))

        rec = report.sources[REC.key]
        self.assertEqual(rec.added, 0)
        self.assertEqual(rec.duplicates, 2)
        self.assertEqual(len(self.store), 2)

    def test_delay_between_sources_not_after_last(self):
        fetcher = FakeFetcher({
            REC.endpoint: _fixture("municipal_programs.html"),
            LIBRARY.endpoint: b"<html></html>",
            FEED.endpoint: _fixture("tourism_feed.xml"),
        })
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC, LIBRARY], SourceKind.RSS_FEED: [FEED]}
        )
        orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE, SourceKind.RSS_FEED))
        self.assertEqual(self.sleeps, [2.0, 2.0])

    def test_delay_scale(self):
        fetcher = FakeFetcher({REC.endpoint: b"<html></html>", LIBRARY.endpoint: b"<html></html>"})
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC, LIBRARY]}, settings=IngestSettings(delay_scale=0.0)
        )
        orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        self.assertEqual(self.sleeps, [])

    def test_fetch_failure_is_isolated(self):
        fetcher = FakeFetcher({
            REC.endpoint: FetchError(REC.endpoint, "http_500", status_code=500),
            LIBRARY.endpoint: _fixture("municipal_programs.html"),
        })
        orchestrator = self._orchestrator(fetcher, {SourceKind.MUNICIPAL_PAGE: [REC, LIBRARY]})
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))

        self.assertEqual(report.sources[REC.key].status, ERROR)
        self.assertEqual(report.sources[REC.key].error, "http_500")
        self.assertEqual(report.sources[LIBRARY.key].status, SUCCESS)
        self.assertEqual(report.per_kind()["municipal_page"]["status"], SUCCESS)

    def test_server_errors_retried_when_configured(self):
        attempts = []

        def flaky(url):
            attempts.append(url)
            if len(attempts) == 1:
                raise FetchError(url, "http_503", status_code=503)

        fetcher = FakeFetcher({REC.endpoint: b"<html></html>"}, on_fetch=flaky)
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]}, settings=IngestSettings(fetch_attempts=3)
        )
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        self.assertEqual(len(attempts), 2)
        self.assertEqual(report.sources[REC.key].status, SUCCESS)

    def test_client_errors_not_retried(self):
        fetcher = FakeFetcher({REC.endpoint: FetchError(REC.endpoint, "http_404", status_code=404)})
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]}, settings=IngestSettings(fetch_attempts=3)
        )
        orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        self.assertEqual(fetcher.calls, [REC.endpoint])

    def test_robots_disallow_marks_not_accessible(self):
        fetcher = FakeFetcher(
            {REC.endpoint: _fixture("municipal_programs.html")},
            robots={"https://www.victoria.ca/robots.txt": "User-agent: *\nDisallow: /\n"},
        )
        orchestrator = self._orchestrator(fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]})
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))

        self.assertEqual(report.sources[REC.key].status, NOT_ACCESSIBLE)
        self.assertEqual(fetcher.calls, [])
        self.assertEqual(report.per_kind()["municipal_page"]["status"], NOT_ACCESSIBLE)

    def test_failed_probe_skips_fetch(self):
        fetcher = FakeFetcher({}, unreachable={REC.endpoint})
        orchestrator = self._orchestrator(fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]})
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        self.assertEqual(report.sources[REC.key].status, NOT_ACCESSIBLE)
        self.assertEqual(fetcher.calls, [])

    def test_missing_credential(self):
        fetcher = FakeFetcher({})
        orchestrator = self._orchestrator(fetcher, {SourceKind.BUSINESS_API: [YELP]})
        report = orchestrator.run(self._request(SourceKind.BUSINESS_API))
        sr = report.sources[YELP.key]
        self.assertEqual(sr.status, ERROR)
        self.assertIn("YELP_API_KEY", sr.error)
        self.assertEqual(fetcher.calls, [])

    def test_credential_sent_as_bearer_token(self):
        fetcher = FakeFetcher({YELP.endpoint: b'{"businesses": []}'})
        orchestrator = self._orchestrator(
            fetcher,
            {SourceKind.BUSINESS_API: [YELP]},
            settings=IngestSettings(credentials={"YELP_API_KEY": "secret"}),
        )
        report = orchestrator.run(self._request(SourceKind.BUSINESS_API))
        self.assertEqual(report.sources[YELP.key].status, SUCCESS)
        self.assertEqual(fetcher.headers[YELP.endpoint], {"Authorization": "Bearer secret"})

    def test_parse_error_recorded(self):
        fetcher = FakeFetcher({YELP.endpoint: b"{broken"})
        orchestrator = self._orchestrator(
            fetcher,
            {SourceKind.BUSINESS_API: [YELP]},
            settings=IngestSettings(credentials={"YELP_API_KEY": "secret"}),
        )
        report = orchestrator.run(self._request(SourceKind.BUSINESS_API))
        self.assertTrue(report.sources[YELP.key].error.startswith("parse_error"))

    def test_cancellation_between_sources(self):
        cancel = threading.Event()
        fetcher = FakeFetcher(
            {REC.endpoint: _fixture("municipal_programs.html"), FEED.endpoint: _fixture("tourism_feed.xml")},
            on_fetch=lambda url: cancel.set(),
        )
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC], SourceKind.RSS_FEED: [FEED]}
        )
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE, SourceKind.RSS_FEED), cancel=cancel)

        self.assertTrue(report.cancelled)
        # the source in flight completes; no delay once a stop is requested
        self.assertEqual(report.sources[REC.key].added, 2)
        self.assertNotIn(FEED.key, report.sources)
        self.assertEqual(self.sleeps, [])
        per_kind = report.per_kind()
        self.assertEqual(per_kind["rss_feed"]["status"], ERROR)
        self.assertEqual(per_kind["rss_feed"]["error"], "cancelled before processing")

    def test_expired_deadline_processes_nothing(self):
        fetcher = FakeFetcher({REC.endpoint: _fixture("municipal_programs.html")})
        orchestrator = self._orchestrator(fetcher, {SourceKind.MUNICIPAL_PAGE: [REC]})
        orchestrator._monotonic = lambda: 100.0
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE), deadline=50.0)
        self.assertTrue(report.cancelled)
        self.assertEqual(report.sources, {})

    def test_source_cap(self):
        fetcher = FakeFetcher({REC.endpoint: b"<html></html>", LIBRARY.endpoint: b"<html></html>"})
        orchestrator = self._orchestrator(
            fetcher, {SourceKind.MUNICIPAL_PAGE: [REC, LIBRARY]}, settings=IngestSettings(max_sources=1)
        )
        report = orchestrator.run(self._request(SourceKind.MUNICIPAL_PAGE))
        self.assertEqual(list(report.sources), [REC.key])

    def test_kind_without_sources(self):
        orchestrator = self._orchestrator(FakeFetcher({}), {})
        report = orchestrator.run(self._request(SourceKind.OPEN_DATA_API))
        entry = report.per_kind()["open_data_api"]
        self.assertEqual(entry["status"], NOT_ACCESSIBLE)
        self.assertEqual(entry["found"], 0)


if __name__ == "__main__":
    unittest.main()
