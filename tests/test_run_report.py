import unittest
from datetime import datetime, timezone

from citypulse.ingestion.activity_types import Locality, Provider, SourceDescriptor, SourceFormat, SourceKind
from citypulse.pipeline.run_report import ERROR, NOT_ACCESSIBLE, SUCCESS, RunReport, SourceReport


VICTORIA = Locality(city="Victoria", region="BC", country="Canada")


def _descriptor(endpoint, kind=SourceKind.MUNICIPAL_PAGE):
    return SourceDescriptor(
        locality=VICTORIA,
        kind=kind,
        provider=Provider.MUNICIPAL,
        name=endpoint,
        label="city_events",
        endpoint=endpoint,
        format=SourceFormat.HTML,
    )


def _report(d, status, found=0, added=0, error=None):
    sr = SourceReport.for_descriptor(d)
    sr.status, sr.found, sr.added, sr.error = status, found, added, error
    return sr


class TestRunReport(unittest.TestCase):
    def setUp(self):
        self.report = RunReport(
            locality=VICTORIA,
            started_at=datetime(2026, 5, 1, tzinfo=timezone.utc),
            requested_kinds=(SourceKind.MUNICIPAL_PAGE, SourceKind.RSS_FEED),
        )

    def test_any_success_wins(self):
        a, b = _descriptor("https://a.example/events"), _descriptor("https://b.example/events")
        self.report.record(a, _report(a, ERROR, error="http_500"))
        self.report.record(b, _report(b, SUCCESS, found=3, added=2))
        entry = self.report.per_kind()["municipal_page"]
        self.assertEqual(entry, {"found": 3, "added": 2, "sources": 2, "status": SUCCESS})

    def test_errors_surface_first_message(self):
        a, b = _descriptor("https://a.example/events"), _descriptor("https://b.example/events")
        self.report.record(a, _report(a, NOT_ACCESSIBLE))
        self.report.record(b, _report(b, ERROR, error="timeout"))
        entry = self.report.per_kind()["municipal_page"]
        self.assertEqual(entry["status"], ERROR)
        self.assertEqual(entry["error"], "timeout")

    def test_requested_kind_without_sources(self):
        entry = self.report.per_kind()["rss_feed"]
        self.assertEqual(entry["status"], NOT_ACCESSIBLE)
        self.assertEqual(entry["sources"], 0)

    def test_response_envelope(self):
        a = _descriptor("https://a.example/events")
        self.report.record(a, _report(a, SUCCESS, found=4, added=1))
        resp = self.report.to_response()
        self.assertTrue(resp["success"])
        self.assertEqual(resp["locality"], "Victoria")
        self.assertEqual(resp["totalFound"], 4)
        self.assertEqual(resp["totalAdded"], 1)
        self.assertEqual(set(resp["perSourceReport"]), {"municipal_page", "rss_feed"})
        self.assertIsNone(resp["finishedAt"])
        self.assertIn("found=4 added=1", self.report.summary_line())

    def test_source_report_dict_uses_camel_case(self):
        d = _descriptor("https://a.example/events")
        out = _report(d, ERROR, error="timeout").to_dict()
        self.assertEqual(out["error"], "timeout")
        self.assertIn("failedInserts", out)
        self.assertEqual(out["provider"], "municipal")


if __name__ == "__main__":
    unittest.main()
