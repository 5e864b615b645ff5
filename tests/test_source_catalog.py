import json
import unittest

from citypulse.catalog.source_catalog import SourceCatalog, locality_terms
from citypulse.ingestion.activity_types import Locality, Provider, SourceFormat, SourceKind


VICTORIA = Locality(city="Victoria", region="BC", country="Canada")
NANAIMO = Locality(city="Nanaimo", region="BC", country="Canada")


class TestSourceCatalog(unittest.TestCase):
    def setUp(self):
        self.catalog = SourceCatalog()

    def test_same_inputs_same_descriptors(self):
        a = self.catalog.sources(NANAIMO, SourceKind.MUNICIPAL_PAGE)
        b = self.catalog.sources(NANAIMO, SourceKind.MUNICIPAL_PAGE)
        self.assertEqual(a, b)

    def test_generic_municipal_family_is_expanded(self):
        descriptors = self.catalog.sources(NANAIMO, SourceKind.MUNICIPAL_PAGE)
        endpoints = [d.endpoint for d in descriptors]
        self.assertIn("https://www.nanaimo.ca/recreation", endpoints)
        self.assertIn("https://www.bc.ca/events", endpoints)
        self.assertIn("https://nanaimolibrary.ca/events", endpoints)
        self.assertEqual(len(endpoints), len(set(endpoints)))
        for d in descriptors:
            self.assertTrue(d.probe_first)
            self.assertEqual(d.format, SourceFormat.HTML)
            self.assertEqual(d.provider, Provider.MUNICIPAL)

    def test_override_replaces_generic_family(self):
        descriptors = self.catalog.sources(VICTORIA, SourceKind.MUNICIPAL_PAGE)
        self.assertEqual(
            [d.endpoint for d in descriptors],
            [
                "https://www.victoria.ca/recreation",
                "https://www.victoria.ca/events",
                "https://www.crd.bc.ca/parks-recreation-culture/parks-trails",
                "https://www.gvpl.ca/events",
            ],
        )

    def test_country_argument_selects_override(self):
        descriptors = self.catalog.sources(Locality(city="Victoria"), SourceKind.MUNICIPAL_PAGE, "Canada")
        self.assertEqual(len(descriptors), 4)

    def test_rss_sources_use_feed_format(self):
        descriptors = self.catalog.sources(VICTORIA, SourceKind.RSS_FEED)
        self.assertEqual(len(descriptors), 2)
        self.assertTrue(all(d.format == SourceFormat.XML for d in descriptors))
        generic = self.catalog.sources(NANAIMO, SourceKind.RSS_FEED)
        self.assertIn("https://www.visitnanaimo.com/rss", [d.endpoint for d in generic])

    def test_business_sources_need_coordinates(self):
        self.assertEqual(self.catalog.sources(NANAIMO, SourceKind.BUSINESS_API), [])
        with_coords = self.catalog.sources(
            NANAIMO, SourceKind.BUSINESS_API, extra_params={"latitude": 49.16, "longitude": -123.94}
        )
        self.assertEqual(len(with_coords), 4)

    def test_business_categories_from_extra_params(self):
        descriptors = self.catalog.sources(VICTORIA, SourceKind.BUSINESS_API, extra_params={"categories": ["museums"]})
        self.assertEqual(len(descriptors), 1)
        d = descriptors[0]
        self.assertEqual(d.credential_key, "YELP_API_KEY")
        self.assertEqual(d.topic, "museums")
        self.assertIn("categories=museums", d.endpoint)

    def test_event_sources(self):
        descriptors = self.catalog.sources(VICTORIA, SourceKind.EVENT_API, per_source_limit=10)
        by_provider = {d.provider: d for d in descriptors}
        self.assertEqual(set(by_provider), {Provider.EVENTBRITE, Provider.MEETUP})
        meetup = by_provider[Provider.MEETUP]
        self.assertEqual(meetup.method, "POST")
        body = json.loads(meetup.body)
        self.assertEqual(body["variables"]["first"], 10)
        self.assertAlmostEqual(body["variables"]["lat"], 48.4284)
        self.assertEqual(by_provider[Provider.EVENTBRITE].credential_key, "EVENTBRITE_API_KEY")

    def test_social_seeds_and_hashtag_cap(self):
        descriptors = self.catalog.sources(VICTORIA, SourceKind.SOCIAL_FEED)
        reddit = [d for d in descriptors if d.provider == Provider.REDDIT]
        tiktok = [d for d in descriptors if d.provider == Provider.TIKTOK]
        self.assertEqual([d.topic for d in reddit], ["VictoriaBC", "vancouverisland", "britishcolumbia", "canada"])
        self.assertEqual(len(tiktok), 5)
        self.assertEqual(tiktok[0].endpoint, "https://www.tiktok.com/tag/victoriabc")

    def test_social_extra_params_override_seeds(self):
        descriptors = self.catalog.sources(
            VICTORIA, SourceKind.SOCIAL_FEED, extra_params={"subreddits": "VictoriaBC", "hashtags": ["#YYJEats"]}
        )
        self.assertEqual([d.label for d in descriptors], ["reddit_victoriabc", "tiktok_yyjeats"])

    def test_locality_terms(self):
        terms = locality_terms(VICTORIA)
        self.assertEqual(terms[0], "victoria")
        self.assertIn("yyj", terms)
        # two-letter region codes are too ambiguous to count
        self.assertNotIn("bc", terms)
        self.assertIn("newwestminster", locality_terms(Locality(city="New Westminster")))


if __name__ == "__main__":
    unittest.main()
