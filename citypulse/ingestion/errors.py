"""Error taxonomy for the ingestion pipeline.

None of these escape an orchestrator run; they are caught per source or per
item and surface only in the run report.
"""

from __future__ import annotations

from typing import List, Optional


class IngestionError(Exception):
    """Base class for pipeline errors."""


class PolicyDenied(IngestionError):
    """robots.txt explicitly disallows the URL. The source is skipped."""

    def __init__(self, url: str):
        super().__init__(f"robots.txt disallows {url}")
        self.url = url


class FetchError(IngestionError):
    """Network failure, timeout, blocked URL or non-2xx response."""

    def __init__(self, url: str, cause: str, status_code: Optional[int] = None):
        super().__init__(f"fetch failed for {url}: {cause}")
        self.url = url
        self.cause = cause
        self.status_code = status_code


class ParseError(IngestionError):
    """Payload could not be decoded into candidate items."""

    def __init__(self, source: str, detail: str):
        super().__init__(f"could not parse payload from {source}: {detail}")
        self.source = source
        self.detail = detail


class InsertError(IngestionError):
    """Storage collaborator rejected a record."""

    def __init__(self, key: str, cause: str):
        super().__init__(f"insert failed for {key}: {cause}")
        self.key = key
        self.cause = cause


class RequestValidationError(IngestionError):
    def __init__(self, errors: List[str]):
        super().__init__("; ".join(errors) or "invalid request")
        self.errors = list(errors)
