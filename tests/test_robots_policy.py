import unittest

from citypulse.fetching.http_client import FetchResult
from citypulse.fetching.robots_policy import RobotsPolicy, parse_robots
from citypulse.ingestion.errors import FetchError, PolicyDenied


class FakeRobotsFetcher:
    def __init__(self, bodies):
        # host robots url -> body text, or an int status for failures
        self.bodies = bodies
        self.calls = []

    def fetch(self, url, **kwargs):
        self.calls.append(url)
        body = self.bodies.get(url, 404)
        if isinstance(body, int):
            raise FetchError(url, f"http_{body}", status_code=body)
        return FetchResult(url=url, status_code=200, content_type="text/plain", payload=body.encode("utf-8"))


class TestParseRobots(unittest.TestCase):
    def test_disallow_root_blocks_everything(self):
        rules = parse_robots("User-agent: *\nDisallow: /\n", "citypulse")
        self.assertFalse(rules.allows("/recreation"))

    def test_groups_for_other_agents_are_ignored(self):
        text = "User-agent: Googlebot\nDisallow: /events\n\nUser-agent: *\nDisallow: /admin\n"
        rules = parse_robots(text, "citypulse")
        self.assertTrue(rules.allows("/events"))
        self.assertFalse(rules.allows("/admin/login"))

    def test_group_naming_our_token(self):
        text = "User-agent: CityPulse\nUser-agent: OtherBot\nDisallow: /private # no crawling\n"
        rules = parse_robots(text, "citypulse")
        self.assertFalse(rules.allows("/private/page"))
        self.assertTrue(rules.allows("/public"))

    def test_empty_disallow_allows(self):
        rules = parse_robots("User-agent: *\nDisallow:\n", "citypulse")
        self.assertTrue(rules.allows("/anything"))


class TestRobotsPolicy(unittest.TestCase):
    def test_missing_robots_allows(self):
        policy = RobotsPolicy(FakeRobotsFetcher({}))
        self.assertTrue(policy.allowed("https://www.victoria.ca/recreation"))

    def test_server_error_allows(self):
        policy = RobotsPolicy(FakeRobotsFetcher({"https://www.victoria.ca/robots.txt": 503}))
        self.assertTrue(policy.allowed("https://www.victoria.ca/recreation"))

    def test_disallow_root_denies_and_check_raises(self):
        fetcher = FakeRobotsFetcher({"https://blocked.example.com/robots.txt": "User-agent: *\nDisallow: /\n"})
        policy = RobotsPolicy(fetcher)
        self.assertFalse(policy.allowed("https://blocked.example.com/events"))
        with self.assertRaises(PolicyDenied):
            policy.check("https://blocked.example.com/events")

    def test_one_fetch_per_host_until_reset(self):
        fetcher = FakeRobotsFetcher({"https://www.victoria.ca/robots.txt": "User-agent: *\nDisallow: /admin\n"})
        policy = RobotsPolicy(fetcher)
        policy.allowed("https://www.victoria.ca/recreation")
        policy.allowed("https://www.victoria.ca/events")
        policy.allowed("https://www.victoria.ca/admin")
        self.assertEqual(len(fetcher.calls), 1)
        self.assertEqual(policy.cached_hosts(), ["www.victoria.ca"])

        policy.reset()
        policy.allowed("https://www.victoria.ca/events")
        self.assertEqual(len(fetcher.calls), 2)


if __name__ == "__main__":
    unittest.main()
