"""Shared ingestion data types.

Source descriptors are produced by the catalog, raw items by the extractors,
and activities by the normalizer. All of them are immutable values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class SourceKind(str, Enum):
    MUNICIPAL_PAGE = "municipal_page"
    OPEN_DATA_API = "open_data_api"
    RSS_FEED = "rss_feed"
    BUSINESS_API = "business_api"
    EVENT_API = "event_api"
    SOCIAL_FEED = "social_feed"


class SourceFormat(str, Enum):
    HTML = "html"
    JSON = "json"
    XML = "xml"
    SOCIAL_JSON = "social_json"


class Provider(str, Enum):
    """Concrete origin inside a source family; also the dedup namespace."""

    MUNICIPAL = "municipal"
    OPEN_DATA = "open_data"
    TOURISM_RSS = "tourism_rss"
    YELP = "yelp"
    EVENTBRITE = "eventbrite"
    MEETUP = "meetup"
    REDDIT = "reddit"
    TIKTOK = "tiktok"


class IndoorOutdoor(str, Enum):
    INDOOR = "indoor"
    OUTDOOR = "outdoor"
    MIXED = "mixed"
    ONLINE = "online"


@dataclass(frozen=True)
class Locality:
    city: str
    region: str = ""
    country: str = ""

    @property
    def compact(self) -> str:
        return "".join((self.city or "").lower().split())

    @property
    def hyphenated(self) -> str:
        return "-".join((self.city or "").lower().split())

    @property
    def camel(self) -> str:
        """City name with spaces removed, original casing kept (for hashtags)."""
        return "".join((self.city or "").split())


@dataclass(frozen=True)
class SourceDescriptor:
    locality: Locality
    kind: SourceKind
    provider: Provider
    name: str
    label: str
    endpoint: str
    format: SourceFormat
    per_source_limit: int = 20
    method: str = "GET"
    body: Optional[str] = None  # serialized JSON request body (POST sources)
    credential_key: Optional[str] = None
    probe_first: bool = False
    locality_terms: Tuple[str, ...] = ()
    topic: Optional[str] = None

    @property
    def key(self) -> str:
        return f"{self.kind.value}:{self.label}:{self.endpoint}"


@dataclass(frozen=True)
class EngagementMetrics:
    views: Optional[int] = None
    likes: Optional[int] = None
    comments: Optional[int] = None
    score: Optional[int] = None
    upvote_ratio: Optional[float] = None
    rating: Optional[float] = None
    review_count: Optional[int] = None
    adult: bool = False


@dataclass(frozen=True)
class RawItem:
    """Candidate item pulled out of a payload, before classification."""

    title: str
    descriptor: SourceDescriptor
    body_text: str = ""
    candidate_date_text: Optional[str] = None
    candidate_end_text: Optional[str] = None
    candidate_location_text: Optional[str] = None
    link: Optional[str] = None
    native_id: Optional[str] = None
    image_url: Optional[str] = None
    price_text: Optional[str] = None
    is_free: Optional[bool] = None
    is_online: bool = False
    tags: Tuple[str, ...] = ()
    engagement: EngagementMetrics = field(default_factory=EngagementMetrics)
    extra: Optional[Dict[str, Any]] = None

    def text_blob(self) -> str:
        return " ".join([self.title or "", self.body_text or "", " ".join(self.tags)]).lower()


@dataclass(frozen=True)
class Activity:
    source: Provider
    source_id: str
    title: str
    description: str
    location_name: str
    city: str
    start_time: datetime
    cost_min: float
    cost_description: str
    categories: FrozenSet[str]
    indoor_outdoor: IndoorOutdoor
    booking_required: bool
    source_url: str
    quality_score: float
    relevance_score: float
    created_at: datetime
    expires_at: datetime
    end_time: Optional[datetime] = None
    cost_max: Optional[float] = None
    tags: FrozenSet[str] = frozenset()
    age_appropriate: Tuple[str, ...] = ("all_ages",)
    image_url: Optional[str] = None
    scraped_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> Tuple[str, str]:
        return (self.source.value, self.source_id)

    def to_record(self) -> Dict[str, Any]:
        """Row shape handed to the storage collaborator."""
        return {
            "source": self.source.value,
            "source_id": self.source_id,
            "title": self.title,
            "description": self.description,
            "location_name": self.location_name,
            "city": self.city,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "cost_min": self.cost_min,
            "cost_max": self.cost_max,
            "cost_description": self.cost_description,
            "tags": sorted(self.tags),
            "categories": sorted(self.categories),
            "age_appropriate": list(self.age_appropriate),
            "indoor_outdoor": self.indoor_outdoor.value,
            "booking_required": self.booking_required,
            "source_url": self.source_url,
            "image_url": self.image_url,
            "quality_score": self.quality_score,
            "relevance_score": self.relevance_score,
            "scraped_data": dict(self.scraped_metadata),
            "expires_at": self.expires_at.isoformat(),
        }
