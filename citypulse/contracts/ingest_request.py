"""Ingest request contract.

The transport adapter hands us camelCase JSON:

    {"locality": "Victoria", "region": "BC", "country": "Canada",
     "sourceKinds": ["municipal_page", "rss_feed"], "maxItemsPerSource": 20,
     "extraParams": {"hashtags": ["YYJEats"]}}

This module defines:
- A JSON Schema (for validation)
- Parsing into an IngestionRequest
- The error envelope returned for invalid requests
"""

from __future__ import annotations

from typing import Any, Dict, List

from jsonschema import Draft202012Validator

from citypulse.ingestion.activity_types import Locality, SourceKind
from citypulse.ingestion.errors import RequestValidationError
from citypulse.pipeline.orchestrator import IngestionRequest


MAX_ITEMS_PER_SOURCE = 200

INGEST_REQUEST_SCHEMA: Dict[str, Any] = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "required": ["locality", "sourceKinds", "maxItemsPerSource"],
    "properties": {
        "locality": {"type": "string", "minLength": 1, "maxLength": 120, "pattern": "\\S"},
        "region": {"type": ["string", "null"], "maxLength": 120},
        "country": {"type": ["string", "null"], "maxLength": 120},
        "sourceKinds": {
            "type": "array",
            "minItems": 1,
            "uniqueItems": True,
            "items": {"type": "string", "enum": [k.value for k in SourceKind]},
        },
        "maxItemsPerSource": {"type": "integer", "minimum": 1, "maximum": MAX_ITEMS_PER_SOURCE},
        "extraParams": {
            "type": ["object", "null"],
            "properties": {
                "subreddits": {"type": "array", "items": {"type": "string", "minLength": 1}},
                "hashtags": {"type": "array", "items": {"type": "string", "minLength": 1}},
                "categories": {"type": "array", "items": {"type": "string", "minLength": 1}},
                "latitude": {"type": "number", "minimum": -90, "maximum": 90},
                "longitude": {"type": "number", "minimum": -180, "maximum": 180},
            },
            "additionalProperties": True,
        },
    },
    "additionalProperties": True,
}

_VALIDATOR = Draft202012Validator(INGEST_REQUEST_SCHEMA)


def validate_ingest_request(payload: Any) -> List[str]:
    """Return a list of human-readable validation errors (empty means valid)."""
    errors = []
    for e in sorted(_VALIDATOR.iter_errors(payload), key=lambda x: list(x.path)):
        path = ".".join(str(p) for p in e.path) if e.path else "<root>"
        errors.append(f"{path}: {e.message}")
    return errors


def parse_ingest_request(payload: Any) -> IngestionRequest:
    errors = validate_ingest_request(payload)
    if errors:
        raise RequestValidationError(errors)
    locality = Locality(
        city=payload["locality"].strip(),
        region=(payload.get("region") or "").strip(),
        country=(payload.get("country") or "").strip(),
    )
    return IngestionRequest(
        locality=locality,
        source_kinds=tuple(SourceKind(k) for k in payload["sourceKinds"]),
        max_items_per_source=int(payload["maxItemsPerSource"]),
        extra_params=dict(payload.get("extraParams") or {}),
    )


def error_response(err: RequestValidationError) -> Dict[str, Any]:
    return {"success": False, "error": str(err), "details": err.errors}
