"""HTTP retrieval for source payloads.

Policy:
- Every request carries the identifying user agent.
- Only public http(s) hosts are fetched (SSRF/abuse protections).
- Any failure becomes a FetchError; retrying is the orchestrator's decision.
"""

from __future__ import annotations

import ipaddress
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlparse

import requests

from citypulse.ingestion.activity_types import SourceFormat
from citypulse.ingestion.errors import FetchError
from citypulse.ingestion.settings import DEFAULT_USER_AGENT


logger = logging.getLogger(__name__)


ACCEPT_BY_FORMAT = {
    SourceFormat.HTML: "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    SourceFormat.JSON: "application/json, text/xml, application/xml",
    SourceFormat.XML: "application/rss+xml, application/xml, text/xml",
    SourceFormat.SOCIAL_JSON: "application/json, text/html;q=0.9, */*;q=0.8",
}

_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return any(ip in net for net in _PRIVATE_NETS)


def validate_fetch_url(url: str) -> Optional[str]:
    """Return an error code if the URL must not be fetched."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    if _is_private_ip(host):
        return "blocked_private_ip"
    return None


@dataclass(frozen=True)
class FetchResult:
    url: str
    status_code: int
    content_type: str
    payload: bytes
    encoding: Optional[str] = None

    def text(self) -> str:
        try:
            return self.payload.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.payload.decode("utf-8", errors="replace")


class HttpFetchClient:
    def __init__(
        self,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 20.0,
        max_bytes: int = 3_000_000,
        session: Optional[requests.Session] = None,
    ):
        self.user_agent = user_agent
        self.timeout = timeout
        self.max_bytes = max_bytes
        self.session = session or requests.Session()

    def _headers(self, fmt: Optional[SourceFormat], extra: Optional[Mapping[str, str]]) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent,
            "Accept": ACCEPT_BY_FORMAT.get(fmt, "*/*") if fmt else "*/*",
            "Accept-Language": "en-US,en;q=0.5",
        }
        if extra:
            headers.update(extra)
        # The identifying agent is not overridable by callers.
        headers["User-Agent"] = self.user_agent
        return headers

    def fetch(
        self,
        url: str,
        *,
        fmt: Optional[SourceFormat] = None,
        method: str = "GET",
        headers: Optional[Mapping[str, str]] = None,
        json_body: Optional[Any] = None,
    ) -> FetchResult:
        err = validate_fetch_url(url)
        if err:
            raise FetchError(url, err)
        data = None
        req_headers = self._headers(fmt, headers)
        if json_body is not None:
            data = json_body if isinstance(json_body, (str, bytes)) else json.dumps(json_body)
            req_headers.setdefault("Content-Type", "application/json")
        try:
            resp = self.session.request(
                method.upper(),
                url,
                headers=req_headers,
                data=data,
                timeout=(5, self.timeout),
                allow_redirects=True,
                stream=True,
            )
        except requests.Timeout:
            raise FetchError(url, "timeout")
        except requests.RequestException as e:
            raise FetchError(url, f"network_error: {e}")

        try:
            status_code = resp.status_code
            if status_code < 200 or status_code >= 300:
                raise FetchError(url, f"http_{status_code}", status_code=status_code)
            content = b""
            for chunk in resp.iter_content(chunk_size=64 * 1024):
                if not chunk:
                    continue
                content += chunk
                if len(content) > self.max_bytes:
                    raise FetchError(url, "too_large", status_code=status_code)
        except requests.RequestException as e:
            raise FetchError(url, f"network_error: {e}")
        finally:
            resp.close()

        content_type = (resp.headers.get("Content-Type") or "").split(";")[0].strip().lower()
        logger.debug("Fetched %s (%s, %d bytes)", url, content_type or "unknown", len(content))
        return FetchResult(
            url=url,
            status_code=status_code,
            content_type=content_type,
            payload=content,
            encoding=resp.encoding,
        )

    def probe(self, url: str) -> bool:
        """HEAD-only accessibility check: 2xx/3xx means accessible."""
        if validate_fetch_url(url):
            return False
        try:
            resp = self.session.head(
                url,
                headers=self._headers(SourceFormat.HTML, None),
                timeout=(5, self.timeout),
                allow_redirects=True,
            )
        except requests.RequestException as e:
            logger.debug("HEAD %s failed: %s", url, e)
            return False
        return 200 <= resp.status_code < 400
