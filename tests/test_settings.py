import os
import unittest
from unittest import mock

from citypulse.ingestion.settings import IngestSettings, WorkerSettings


class TestSettings(unittest.TestCase):
    def test_defaults(self):
        with mock.patch.dict(os.environ, {}, clear=True):
            s = IngestSettings.from_env()
            w = WorkerSettings.from_env()
        self.assertEqual(s.fetch_attempts, 1)
        self.assertEqual(s.run_timeout, 0.0)
        self.assertEqual(s.credentials, {})
        self.assertEqual(s.user_agent, "CityPulse/1.0 (+activity aggregator)")
        self.assertEqual(w.city, "Victoria")
        self.assertEqual(w.mode, "once")
        self.assertFalse(w.dry_run)

    def test_env_overrides(self):
        env = {
            "FETCH_ATTEMPTS": "3",
            "INGEST_DELAY_SCALE": "0.5",
            "INGEST_MAX_SOURCES": "not-a-number",
            "YELP_API_KEY": " key ",
            "INGEST_CITY": "Nanaimo",
            "INGEST_KINDS": "social_feed, rss_feed",
            "INGEST_MODE": "Scheduled",
            "INGEST_DRY_RUN": "yes",
        }
        with mock.patch.dict(os.environ, env, clear=True):
            s = IngestSettings.from_env()
            w = WorkerSettings.from_env()
        self.assertEqual(s.fetch_attempts, 3)
        self.assertEqual(s.delay_scale, 0.5)
        self.assertEqual(s.max_sources, 40)
        self.assertEqual(s.credential("YELP_API_KEY"), "key")
        self.assertIsNone(s.credential("MEETUP_API_KEY"))
        self.assertEqual(w.city, "Nanaimo")
        self.assertEqual(w.kinds, ("social_feed", "rss_feed"))
        self.assertEqual(w.mode, "scheduled")
        self.assertTrue(w.dry_run)


if __name__ == "__main__":
    unittest.main()
