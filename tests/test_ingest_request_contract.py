import unittest

from citypulse.contracts.ingest_request import (
    error_response,
    parse_ingest_request,
    validate_ingest_request,
)
from citypulse.ingestion.activity_types import SourceKind
from citypulse.ingestion.errors import RequestValidationError


def _payload(**overrides):
    payload = {
        "locality": "Victoria",
        "region": "BC",
        "country": "Canada",
        "sourceKinds": ["municipal_page", "rss_feed"],
        "maxItemsPerSource": 20,
    }
    payload.update(overrides)
    return payload


class TestIngestRequestContract(unittest.TestCase):
    def test_valid_payload(self):
        errors = validate_ingest_request(_payload())
        self.assertEqual(errors, [], msg="Schema validation failed:\n" + "\n".join(errors))

    def test_parse_builds_request(self):
        req = parse_ingest_request(_payload(locality="  Victoria ", extraParams={"hashtags": ["YYJEats"]}))
        self.assertEqual(req.locality.city, "Victoria")
        self.assertEqual(req.locality.country, "Canada")
        self.assertEqual(req.source_kinds, (SourceKind.MUNICIPAL_PAGE, SourceKind.RSS_FEED))
        self.assertEqual(req.max_items_per_source, 20)
        self.assertEqual(req.extra_params, {"hashtags": ["YYJEats"]})

    def test_optional_region_and_country(self):
        req = parse_ingest_request({"locality": "Nanaimo", "sourceKinds": ["social_feed"], "maxItemsPerSource": 5})
        self.assertEqual(req.locality.region, "")
        self.assertEqual(req.extra_params, {})

    def test_blank_locality_rejected(self):
        self.assertTrue(validate_ingest_request(_payload(locality="   ")))

    def test_unknown_kind_rejected(self):
        errors = validate_ingest_request(_payload(sourceKinds=["fax_machine"]))
        self.assertTrue(any(e.startswith("sourceKinds.0") for e in errors))

    def test_empty_and_duplicate_kinds_rejected(self):
        self.assertTrue(validate_ingest_request(_payload(sourceKinds=[])))
        self.assertTrue(validate_ingest_request(_payload(sourceKinds=["rss_feed", "rss_feed"])))

    def test_item_limit_bounds(self):
        self.assertTrue(validate_ingest_request(_payload(maxItemsPerSource=0)))
        self.assertTrue(validate_ingest_request(_payload(maxItemsPerSource=201)))
        self.assertEqual(validate_ingest_request(_payload(maxItemsPerSource=200)), [])

    def test_bad_coordinates_rejected(self):
        self.assertTrue(validate_ingest_request(_payload(extraParams={"latitude": 123.0})))

    def test_parse_raises_with_errors(self):
        with self.assertRaises(RequestValidationError) as ctx:
            parse_ingest_request({"sourceKinds": ["rss_feed"]})
        body = error_response(ctx.exception)
        self.assertFalse(body["success"])
        self.assertTrue(body["details"])


if __name__ == "__main__":
    unittest.main()
