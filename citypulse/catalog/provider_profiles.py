"""Per-provider normalization profile.

Everything that differs between providers but is not extraction or
relevance policy lives here: trust floors, default category, expiry horizon,
pricing defaults and the inter-source delay.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from citypulse.ingestion.activity_types import Provider, SourceKind


# scoring modes understood by citypulse.scoring.activity_scoring
FIXED = "fixed"
BUSINESS_REVIEWS = "business_reviews"
EVENT_LISTING = "event_listing"
COMMUNITY_VOTES = "community_votes"
VIDEO_ENGAGEMENT = "video_engagement"


@dataclass(frozen=True)
class ProviderProfile:
    provider: Provider
    kind: SourceKind
    scoring_mode: str
    default_category: str
    expiry_days: int
    delay_seconds: float
    fixed_quality: Optional[float] = None
    relevance_prior: Optional[float] = None
    cost_min: float = 0.0
    cost_max: Optional[float] = None
    cost_description: str = "See source for details"
    base_tags: Tuple[str, ...] = ()
    age_appropriate: Tuple[str, ...] = ("all_ages",)
    booking_required: bool = False
    id_prefix_label: bool = False


PROFILES: Dict[Provider, ProviderProfile] = {
    Provider.MUNICIPAL: ProviderProfile(
        provider=Provider.MUNICIPAL,
        kind=SourceKind.MUNICIPAL_PAGE,
        scoring_mode=FIXED,
        fixed_quality=0.8,
        relevance_prior=0.8,
        default_category="community",
        expiry_days=60,
        delay_seconds=2.0,
        cost_description="See website for pricing",
        base_tags=("municipal", "community"),
        booking_required=True,
        id_prefix_label=True,
    ),
    Provider.OPEN_DATA: ProviderProfile(
        provider=Provider.OPEN_DATA,
        kind=SourceKind.OPEN_DATA_API,
        scoring_mode=FIXED,
        fixed_quality=0.8,
        relevance_prior=0.7,
        default_category="community",
        expiry_days=90,
        delay_seconds=2.0,
        cost_max=0.0,
        cost_description="Free public facility/service",
        base_tags=("open_data", "government", "public"),
        id_prefix_label=True,
    ),
    Provider.TOURISM_RSS: ProviderProfile(
        provider=Provider.TOURISM_RSS,
        kind=SourceKind.RSS_FEED,
        scoring_mode=FIXED,
        fixed_quality=0.8,
        relevance_prior=0.8,
        default_category="general",
        expiry_days=60,
        delay_seconds=3.0,
        cost_description="See article for details",
        base_tags=("tourism", "official", "curated"),
        id_prefix_label=True,
    ),
    Provider.YELP: ProviderProfile(
        provider=Provider.YELP,
        kind=SourceKind.BUSINESS_API,
        scoring_mode=BUSINESS_REVIEWS,
        default_category="general",
        expiry_days=90,
        delay_seconds=1.0,
        cost_description="See venue for pricing",
        base_tags=("yelp", "verified"),
    ),
    Provider.EVENTBRITE: ProviderProfile(
        provider=Provider.EVENTBRITE,
        kind=SourceKind.EVENT_API,
        scoring_mode=EVENT_LISTING,
        relevance_prior=0.8,
        default_category="event",
        expiry_days=60,
        delay_seconds=1.0,
        cost_min=10.0,
        cost_description="Paid event - see Eventbrite for pricing",
        base_tags=("eventbrite", "event", "scheduled"),
        booking_required=True,
    ),
    Provider.MEETUP: ProviderProfile(
        provider=Provider.MEETUP,
        kind=SourceKind.EVENT_API,
        scoring_mode=FIXED,
        fixed_quality=0.7,
        relevance_prior=0.8,
        default_category="community",
        expiry_days=60,
        delay_seconds=1.0,
        cost_max=0.0,
        cost_description="Free community event",
        base_tags=("meetup", "community", "social"),
        age_appropriate=("adults",),
        booking_required=True,
    ),
    Provider.REDDIT: ProviderProfile(
        provider=Provider.REDDIT,
        kind=SourceKind.SOCIAL_FEED,
        scoring_mode=COMMUNITY_VOTES,
        default_category="general",
        expiry_days=7,
        delay_seconds=1.0,
        cost_description="See post for details",
        base_tags=("reddit", "community_recommended"),
    ),
    Provider.TIKTOK: ProviderProfile(
        provider=Provider.TIKTOK,
        kind=SourceKind.SOCIAL_FEED,
        scoring_mode=VIDEO_ENGAGEMENT,
        default_category="general",
        expiry_days=7,
        delay_seconds=3.0,
        cost_description="See video for details",
        base_tags=("tiktok", "social_media", "local"),
    ),
}


def profile_for(provider: Provider) -> ProviderProfile:
    return PROFILES[provider]
