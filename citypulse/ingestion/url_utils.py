"""URL helpers for fetching policy and activity identity."""

from __future__ import annotations

import hashlib
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


DEFAULT_STRIP_QUERY_PARAMS = {
    # tracking
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    # misc common trackers
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "_r",
    "is_from_webapp",
    "sender_device",
}


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a URL so the same listing hashes the same way.

    - Lowercase scheme + hostname
    - Remove fragments
    - Strip common tracking query parameters
    - Sort remaining query params
    """
    if not url:
        return ""
    strip = set(strip_params) if strip_params is not None else set(DEFAULT_STRIP_QUERY_PARAMS)
    p = urlparse(url.strip())
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"

    kept = []
    for k, v in parse_qsl(p.query, keep_blank_values=True):
        if k.lower() in strip:
            continue
        kept.append((k, v))
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def host_of(url: str) -> Optional[str]:
    try:
        host = (urlparse(url or "").netloc or "").lower().strip()
        return host or None
    except ValueError:
        return None


def robots_url(url: str) -> Optional[str]:
    """`{scheme}://{host}/robots.txt` for the given page URL."""
    p = urlparse(url or "")
    if not p.scheme or not p.netloc:
        return None
    return f"{p.scheme}://{p.netloc}/robots.txt"


def stable_item_id(title: str, url: str, *, length: int = 24) -> str:
    """Deterministic identity for items whose source has no native id."""
    sig = (title or "").strip().lower() + "|" + canonicalize_url(url or "")
    return hashlib.sha256(sig.encode("utf-8")).hexdigest()[:length]
