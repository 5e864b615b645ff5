"""Activity scoring utilities.

Deterministic, table-driven scoring for:
- multi-label categories
- indoor/outdoor inference
- quality per provider mode (trust floor or engagement signals)
- relevance and expiry horizon
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import FrozenSet, Optional

from citypulse.catalog.provider_profiles import (
    BUSINESS_REVIEWS,
    COMMUNITY_VOTES,
    EVENT_LISTING,
    FIXED,
    VIDEO_ENGAGEMENT,
    ProviderProfile,
)
from citypulse.classification.relevance import find_keyword, keyword_set
from citypulse.ingestion.activity_types import IndoorOutdoor, RawItem


# -----------------------------
# Categories
# -----------------------------
CATEGORY_KEYWORDS = {
    "fitness": keyword_set(["fitness", "gym", "workout", "exercise", "swim", "aqua", "yoga", "pilates", "active"]),
    "arts": keyword_set(["art", "craft", "paint", "draw", "pottery", "creative", "music", "dance"]),
    "education": keyword_set(["class", "course", "lesson", "learn", "workshop", "seminar", "training", "language", "skill"]),
    "sports": keyword_set(["sport", "hockey", "soccer", "basketball", "tennis", "baseball", "volleyball"]),
    "children": keyword_set(["kids", "child", "youth", "junior", "teen", "family", "parent"]),
    "seniors": keyword_set(["senior", "adult", "55+", "elder", "mature"]),
    "culture": keyword_set(["culture", "cultural", "heritage", "history", "museum", "library", "book", "reading", "gallery", "galleries"]),
    "nature": keyword_set(["park", "nature", "garden", "hiking", "walk", "environment", "beach", "trail", "sunset", "ocean", "mountain"]),
    "food": keyword_set(["food", "restaurant", "cafe", "coffee", "bar", "drink", "eat", "dining", "brunch", "brewery", "wine", "cooking", "foodie"]),
    "shopping": keyword_set(["shopping", "shop", "market", "retail", "boutique"]),
    "social": keyword_set(["social", "friends", "community", "meetup", "gathering"]),
    "technology": keyword_set(["tech", "programming", "developer", "coding"]),
    "networking": keyword_set(["network", "business", "professional"]),
    "outdoor": keyword_set(["outdoor", "hiking", "adventure", "kayak", "camping"]),
    "local_life": keyword_set(["local", "neighbourhood", "neighborhood", "hidden gem", "secret", "locals"]),
    "tourism": keyword_set(["tourism", "tourist", "visit", "attraction", "sightseeing", "tour"]),
}

# descriptor label fragment -> category
LABEL_CATEGORY_HINTS = [
    ("library", "education"),
    ("recreation", "fitness"),
    ("culture", "culture"),
]


def categorize(text: str, *, label: str = "", default: str = "general") -> FrozenSet[str]:
    blob = (text or "").lower()
    found = {cat for cat, words in CATEGORY_KEYWORDS.items() if find_keyword(words, blob)}
    label_l = (label or "").lower()
    for fragment, cat in LABEL_CATEGORY_HINTS:
        if fragment in label_l:
            found.add(cat)
    return frozenset(found) if found else frozenset({default})


# -----------------------------
# Indoor / outdoor
# -----------------------------
OUTDOOR_KEYWORDS = keyword_set([
    "park", "hiking", "hike", "beach", "trail", "outdoor", "outdoors", "garden",
    "kayak", "camping", "waterfront", "picnic",
])
INDOOR_KEYWORDS = keyword_set([
    "restaurant", "bar", "museum", "shop", "shopping", "mall", "cafe",
    "gallery", "galleries", "theater", "theatre", "cinema", "library", "indoor", "spa",
])


def infer_indoor_outdoor(text: str, *, online: bool = False) -> IndoorOutdoor:
    if online:
        return IndoorOutdoor.ONLINE
    blob = (text or "").lower()
    outdoor = find_keyword(OUTDOOR_KEYWORDS, blob) is not None
    indoor = find_keyword(INDOOR_KEYWORDS, blob) is not None
    if outdoor and not indoor:
        return IndoorOutdoor.OUTDOOR
    if indoor and not outdoor:
        return IndoorOutdoor.INDOOR
    return IndoorOutdoor.MIXED


# -----------------------------
# Quality
# -----------------------------
def clamp01(x: float) -> float:
    return max(0.0, min(1.0, float(x)))


def business_quality(rating: Optional[float], review_count: Optional[int], has_price: bool) -> float:
    score = 0.5
    if (rating or 0) >= 4.0:
        score += 0.2
    if (review_count or 0) >= 50:
        score += 0.1
    if (review_count or 0) >= 200:
        score += 0.1
    if has_price:
        score += 0.1
    return clamp01(score)


def event_quality(description: str, *, has_venue: bool, has_organizer: bool, has_image: bool) -> float:
    score = 0.6
    if len(description or "") > 100:
        score += 0.1
    if has_venue:
        score += 0.1
    if has_organizer:
        score += 0.1
    if has_image:
        score += 0.1
    return clamp01(score)


def community_quality(
    upvote_ratio: Optional[float], comments: Optional[int], score: Optional[int], body_length: int
) -> float:
    q = 0.5
    ratio = 0.5 if upvote_ratio is None else upvote_ratio
    q += (ratio - 0.5) * 0.4
    if (comments or 0) > 10:
        q += 0.1
    if (comments or 0) > 25:
        q += 0.1
    if (score or 0) > 20:
        q += 0.1
    if (score or 0) > 50:
        q += 0.1
    if body_length > 50:
        q += 0.1
    return clamp01(q)


VIDEO_BONUS_TAG_FRAGMENTS = ("food", "travel", "local", "hidden", "secret", "best")


def video_quality(
    views: Optional[int], likes: Optional[int], comments: Optional[int], description: str, hashtags=()
) -> float:
    q = 0.5
    v = views or 0
    for tier in (1_000, 10_000, 100_000):
        if v > tier:
            q += 0.1
    if v > 0:
        rate = ((likes or 0) + (comments or 0)) / v
        if rate > 0.05:
            q += 0.1
        if rate > 0.10:
            q += 0.1
    if len(description or "") > 20:
        q += 0.1
    if any(frag in tag.lower() for tag in hashtags for frag in VIDEO_BONUS_TAG_FRAGMENTS):
        q += 0.1
    return clamp01(q)


def quality_score(profile: ProviderProfile, item: RawItem) -> float:
    eng = item.engagement
    extra = item.extra or {}
    mode = profile.scoring_mode
    if mode == FIXED:
        return clamp01(profile.fixed_quality if profile.fixed_quality is not None else 0.5)
    if mode == BUSINESS_REVIEWS:
        return business_quality(eng.rating, eng.review_count, bool(item.price_text))
    if mode == EVENT_LISTING:
        return event_quality(
            item.body_text,
            has_venue=bool(extra.get("venue")),
            has_organizer=bool(extra.get("organizer_name")),
            has_image=bool(item.image_url),
        )
    if mode == COMMUNITY_VOTES:
        body_length = extra.get("selftext_length")
        if body_length is None:
            body_length = len(item.body_text or "")
        return community_quality(eng.upvote_ratio, eng.comments, eng.score, int(body_length))
    if mode == VIDEO_ENGAGEMENT:
        return video_quality(eng.views, eng.likes, eng.comments, item.body_text, item.tags)
    return 0.5


def relevance_score(profile: ProviderProfile, item: RawItem, quality: float) -> float:
    """Explicit suitability signal, else the provider prior, else quality."""
    if profile.scoring_mode == BUSINESS_REVIEWS and item.engagement.rating is not None:
        return clamp01(item.engagement.rating / 5.0)
    if profile.relevance_prior is not None:
        return clamp01(profile.relevance_prior)
    return clamp01(quality)


def expiry_for(profile: ProviderProfile, created_at: datetime, end_time: Optional[datetime] = None) -> datetime:
    horizon = created_at + timedelta(days=max(1, profile.expiry_days))
    if end_time is not None and end_time > horizon:
        return end_time
    return horizon
