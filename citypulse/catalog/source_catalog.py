"""Source catalog: enumerate candidate sources for a locality and kind.

Pure over its inputs and the static tables in `catalog_data`. Generic URL
families are expanded from patterns; an explicit per-locality entry for a
kind replaces the generic family for that kind.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from citypulse.catalog import catalog_data as data
from citypulse.ingestion.activity_types import Locality, Provider, SourceDescriptor, SourceFormat, SourceKind


def _fill(pattern: str, locality: Locality) -> str:
    return pattern.format(
        city=locality.city,
        compact=locality.compact,
        slug=locality.hyphenated,
        region=(locality.region or "").lower().replace(" ", ""),
        camel=locality.camel,
    )


def _lookup_key(locality: Locality) -> Tuple[str, str]:
    return ((locality.city or "").strip().lower(), (locality.country or "").strip().lower())


def _dedupe(descriptors: Iterable[SourceDescriptor]) -> List[SourceDescriptor]:
    seen = set()
    out: List[SourceDescriptor] = []
    for d in descriptors:
        marker = (d.endpoint, d.body)
        if marker in seen:
            continue
        seen.add(marker)
        out.append(d)
    return out


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    return [str(v).strip() for v in value if str(v).strip()]


def locality_terms(locality: Locality) -> Tuple[str, ...]:
    """Lowercase terms that count as the item mentioning the locality."""
    terms: List[str] = []
    city = (locality.city or "").strip().lower()
    if city:
        terms.append(city)
        if locality.compact != city:
            terms.append(locality.compact)
    terms.extend(data.LOCALITY_ALIASES.get(_lookup_key(locality), []))
    region = (locality.region or "").strip().lower()
    if len(region) > 2:
        terms.append(region)
    out: List[str] = []
    for t in terms:
        if t and t not in out:
            out.append(t)
    return tuple(out)


class SourceCatalog:
    def sources(
        self,
        locality: Locality,
        kind: SourceKind,
        country: Optional[str] = None,
        *,
        per_source_limit: int = 20,
        extra_params: Optional[Mapping[str, Any]] = None,
    ) -> List[SourceDescriptor]:
        if country and not locality.country:
            locality = Locality(city=locality.city, region=locality.region, country=country)
        kind = SourceKind(kind)
        extra = dict(extra_params or {})
        builders = {
            SourceKind.MUNICIPAL_PAGE: self._municipal,
            SourceKind.OPEN_DATA_API: self._open_data,
            SourceKind.RSS_FEED: self._rss,
            SourceKind.BUSINESS_API: self._business,
            SourceKind.EVENT_API: self._events,
            SourceKind.SOCIAL_FEED: self._social,
        }
        descriptors = builders[kind](locality, max(1, int(per_source_limit)), extra)
        return _dedupe(descriptors)

    # -----------------------------
    # Municipal pages
    # -----------------------------
    def _municipal(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        override = data.MUNICIPAL_OVERRIDES.get(_lookup_key(locality))
        urls: List[Tuple[str, str]] = []
        if override:
            urls.extend(override)
        else:
            urls.extend(self._expand(locality, data.CITY_BASE_PATTERNS, data.CITY_PATH_SUFFIXES))
            if locality.region:
                urls.extend(self._expand(locality, data.REGIONAL_BASE_PATTERNS, data.REGIONAL_PATH_SUFFIXES))
            urls.extend((_fill(p, locality), "library_events") for p in data.LIBRARY_PATTERNS)
            urls.extend(self._expand(locality, data.COMMUNITY_CENTRE_PATTERNS, data.COMMUNITY_CENTRE_SUFFIXES))
            urls.extend(self._expand(locality, data.CULTURE_PATTERNS, data.CULTURE_SUFFIXES))

        terms = locality_terms(locality)
        return [
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.MUNICIPAL_PAGE,
                provider=Provider.MUNICIPAL,
                name=f"{locality.city} {label.replace('_', ' ')}",
                label=label,
                endpoint=url,
                format=SourceFormat.HTML,
                per_source_limit=limit,
                probe_first=True,
                locality_terms=terms,
            )
            for url, label in urls
        ]

    @staticmethod
    def _expand(
        locality: Locality, bases: Sequence[str], suffixes: Sequence[Tuple[str, str]]
    ) -> List[Tuple[str, str]]:
        out: List[Tuple[str, str]] = []
        for base in bases:
            root = _fill(base, locality).rstrip("/")
            for path, label in suffixes:
                out.append((f"{root}/{path}", label))
        return out

    # -----------------------------
    # Open data / RSS
    # -----------------------------
    def _open_data(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        entries = data.OPEN_DATA_ENDPOINTS.get(_lookup_key(locality)) or [
            (_fill(n, locality), _fill(u, locality), label) for n, u, label in data.GENERIC_OPEN_DATA_PATTERNS
        ]
        terms = locality_terms(locality)
        return [
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.OPEN_DATA_API,
                provider=Provider.OPEN_DATA,
                name=name,
                label=label,
                endpoint=url,
                format=SourceFormat.XML if url.lower().endswith(".xml") else SourceFormat.JSON,
                per_source_limit=limit,
                locality_terms=terms,
            )
            for name, url, label in entries
        ]

    def _rss(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        entries = data.RSS_FEEDS.get(_lookup_key(locality)) or [
            (_fill(n, locality), _fill(u, locality), label) for n, u, label in data.GENERIC_RSS_PATTERNS
        ]
        terms = locality_terms(locality)
        return [
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.RSS_FEED,
                provider=Provider.TOURISM_RSS,
                name=name,
                label=label,
                endpoint=url,
                format=SourceFormat.XML,
                per_source_limit=limit,
                locality_terms=terms,
            )
            for name, url, label in entries
        ]

    # -----------------------------
    # Business / event APIs
    # -----------------------------
    @staticmethod
    def _coordinates(locality: Locality, extra: Dict[str, Any]) -> Optional[Tuple[float, float]]:
        lat, lng = extra.get("latitude"), extra.get("longitude")
        if lat is not None and lng is not None:
            try:
                return float(lat), float(lng)
            except (TypeError, ValueError):
                return None
        return data.CITY_COORDINATES.get(_lookup_key(locality))

    def _business(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        coords = self._coordinates(locality, extra)
        if not coords:
            return []
        lat, lng = coords
        categories = _as_list(extra.get("categories")) or data.BUSINESS_CATEGORIES[: data.BUSINESS_CATEGORY_LIMIT]
        terms = locality_terms(locality)
        return [
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.BUSINESS_API,
                provider=Provider.YELP,
                name=f"Yelp {category}",
                label=f"yelp_{category}",
                endpoint=data.YELP_SEARCH_URL.format(lat=lat, lng=lng, category=category, limit=min(limit, 50)),
                format=SourceFormat.JSON,
                per_source_limit=limit,
                credential_key="YELP_API_KEY",
                locality_terms=terms,
                topic=category,
            )
            for category in categories
        ]

    def _events(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        coords = self._coordinates(locality, extra)
        if not coords:
            return []
        lat, lng = coords
        terms = locality_terms(locality)
        meetup_body = json.dumps(
            {
                "query": data.MEETUP_QUERY,
                "variables": {"lat": lat, "lon": lng, "radius": 25, "first": min(limit, 50)},
            },
            sort_keys=True,
        )
        return [
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.EVENT_API,
                provider=Provider.EVENTBRITE,
                name="Eventbrite nearby events",
                label="eventbrite",
                endpoint=data.EVENTBRITE_SEARCH_URL.format(lat=lat, lng=lng, limit=min(limit, 50)),
                format=SourceFormat.JSON,
                per_source_limit=limit,
                credential_key="EVENTBRITE_API_KEY",
                locality_terms=terms,
            ),
            SourceDescriptor(
                locality=locality,
                kind=SourceKind.EVENT_API,
                provider=Provider.MEETUP,
                name="Meetup nearby events",
                label="meetup",
                endpoint=data.MEETUP_GQL_URL,
                format=SourceFormat.JSON,
                per_source_limit=limit,
                method="POST",
                body=meetup_body,
                credential_key="MEETUP_API_KEY",
                locality_terms=terms,
            ),
        ]

    # -----------------------------
    # Social feeds
    # -----------------------------
    def _social(self, locality: Locality, limit: int, extra: Dict[str, Any]) -> List[SourceDescriptor]:
        key = _lookup_key(locality)
        terms = locality_terms(locality)

        subreddits = _as_list(extra.get("subreddits")) or data.SUBREDDIT_SEEDS.get(key) or [
            _fill(p, locality) for p in data.GENERIC_SUBREDDIT_PATTERNS
        ]
        hashtags = _as_list(extra.get("hashtags")) or data.HASHTAG_SEEDS.get(key) or [
            _fill(p, locality) for p in data.GENERIC_HASHTAG_PATTERNS
        ]
        hashtags = [h.lstrip("#") for h in hashtags][: data.HASHTAG_LIMIT]

        out: List[SourceDescriptor] = []
        for sub in subreddits:
            out.append(
                SourceDescriptor(
                    locality=locality,
                    kind=SourceKind.SOCIAL_FEED,
                    provider=Provider.REDDIT,
                    name=f"r/{sub}",
                    label=f"reddit_{sub.lower()}",
                    endpoint=data.REDDIT_LISTING_URL.format(subreddit=sub, limit=min(limit, 100)),
                    format=SourceFormat.SOCIAL_JSON,
                    per_source_limit=limit,
                    locality_terms=terms,
                    topic=sub,
                )
            )
        for tag in hashtags:
            out.append(
                SourceDescriptor(
                    locality=locality,
                    kind=SourceKind.SOCIAL_FEED,
                    provider=Provider.TIKTOK,
                    name=f"#{tag}",
                    label=f"tiktok_{tag.lower()}",
                    endpoint=data.TIKTOK_TAG_URL.format(hashtag=tag.lower()),
                    format=SourceFormat.SOCIAL_JSON,
                    per_source_limit=limit,
                    locality_terms=terms,
                    topic=tag,
                )
            )
        return out
