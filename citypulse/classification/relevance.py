"""Lexical relevance filter.

Deterministic and explainable:
- Include/exclude vocabularies per provider (leading word boundary, so
  `art` matches "arts" but not "party").
- Source thresholds: title length, community score, video views, adult flag.
- Optional locality mention requirement for social video.

No NLP; this is the one policy point that differs per source family.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Dict, FrozenSet, Iterable, Optional

from citypulse.ingestion.activity_types import Provider, RawItem


logger = logging.getLogger(__name__)


def keyword_set(*groups: Iterable[str]) -> FrozenSet[str]:
    return frozenset(w.lower() for g in groups for w in g)


# -----------------------------
# Vocabularies
# -----------------------------
PROGRAM_INCLUDE = keyword_set([
    "class", "program", "workshop", "event", "activity", "course", "lesson",
    "fitness", "art", "music", "dance", "sport", "recreation", "community",
    "swim", "yoga", "craft", "cooking", "garden", "nature", "tour", "walk",
])

ADMIN_EXCLUDE = keyword_set([
    "meeting", "council", "committee", "budget", "policy", "bylaw",
    "staff", "employment", "job", "tender", "bid", "contract",
])

TOURISM_INCLUDE = PROGRAM_INCLUDE | keyword_set([
    "festival", "market", "concert", "exhibition", "show", "attraction",
    "museum", "gallery", "trail", "beach", "park", "food", "dining",
    "experience", "explore", "visit", "things to do",
])

EVENT_INCLUDE = keyword_set([
    "workshop", "class", "tour", "experience", "activity", "food", "art",
    "music", "outdoor", "adventure", "cultural", "festival", "market",
])

CORPORATE_EXCLUDE = keyword_set([
    "webinar", "conference call", "meeting", "sales", "marketing",
    "corporate training", "business development",
])

COMMUNITY_INCLUDE = keyword_set(
    # events
    ["event", "festival", "concert", "show", "exhibition", "market", "fair",
     "workshop", "class", "tour", "walk", "meetup", "gathering", "live"],
    # places
    ["restaurant", "cafe", "bar", "pub", "brewery", "museum", "gallery",
     "park", "trail", "beach", "hike", "shop", "store", "attraction", "location",
     "ice cream", "food", "coffee", "view", "place"],
    # recommendations
    ["recommend", "suggestion", "suggest", "best", "favorite", "good place",
     "check out", "worth visiting", "great place", "love this", "explore",
     "where to", "looking for", "anyone know"],
)

COMMUNITY_EXCLUDE = keyword_set([
    "housing", "apartment", "rent", "roommate", "job", "hiring",
    "for sale", "selling", "buy", "traffic", "politics", "stench", "hate",
])

VIDEO_INCLUDE = keyword_set(
    # food & dining
    ["restaurant", "cafe", "food", "eat", "dining", "coffee", "brunch", "lunch", "dinner",
     "bar", "pub", "brewery", "cocktail", "drink", "taste", "delicious", "yummy", "foodie"],
    # places & attractions
    ["place", "spot", "location", "visit", "check out", "hidden gem", "secret",
     "view", "beautiful", "amazing", "stunning", "must see", "attraction", "destination"],
    # activities & events
    ["activity", "event", "festival", "concert", "show", "market", "shop", "shopping",
     "hike", "trail", "walk", "beach", "park", "outdoor", "adventure", "explore",
     "museum", "gallery", "art", "culture", "tour", "experience", "fun", "enjoy"],
    # recommendations
    ["recommend", "suggestion", "best", "favorite", "love", "try", "go to", "perfect",
     "local", "insider", "tips", "guide", "where to", "what to do"],
)

VIDEO_EXCLUDE = keyword_set([
    "dance", "dancing", "tiktok dance", "challenge", "trend", "viral", "duet",
    "reaction", "makeup", "outfit", "ootd", "selfie", "mirror", "bedroom",
    "personal", "private", "home", "family", "drama", "gossip",
])


@lru_cache(maxsize=64)
def keyword_pattern(words: FrozenSet[str]) -> Optional[re.Pattern]:
    if not words:
        return None
    # longest first so multi-word phrases win over their prefixes
    alts = "|".join(re.escape(w) for w in sorted(words, key=lambda w: (-len(w), w)))
    return re.compile(rf"\b(?:{alts})")


def find_keyword(words: FrozenSet[str], text: str) -> Optional[str]:
    pattern = keyword_pattern(words)
    if pattern is None:
        return None
    m = pattern.search(text)
    return m.group(0) if m else None


@dataclass(frozen=True)
class RelevancePolicy:
    include: FrozenSet[str] = frozenset()
    exclude: FrozenSet[str] = frozenset()
    min_title_length: int = 0
    min_score: Optional[int] = None
    min_views: Optional[int] = None
    reject_adult: bool = False
    require_locality_mention: bool = False


@dataclass(frozen=True)
class RelevanceVerdict:
    relevant: bool
    reason: str = "ok"
    matched: Optional[str] = None

    def __bool__(self) -> bool:
        return self.relevant


POLICIES: Dict[Provider, RelevancePolicy] = {
    Provider.MUNICIPAL: RelevancePolicy(include=PROGRAM_INCLUDE, exclude=ADMIN_EXCLUDE, min_title_length=6),
    Provider.TOURISM_RSS: RelevancePolicy(include=TOURISM_INCLUDE, exclude=ADMIN_EXCLUDE, min_title_length=6),
    # structured public records and venue listings carry no include requirement
    Provider.OPEN_DATA: RelevancePolicy(min_title_length=4),
    Provider.YELP: RelevancePolicy(),
    Provider.EVENTBRITE: RelevancePolicy(include=EVENT_INCLUDE, exclude=CORPORATE_EXCLUDE),
    Provider.MEETUP: RelevancePolicy(exclude=CORPORATE_EXCLUDE),
    Provider.REDDIT: RelevancePolicy(
        include=COMMUNITY_INCLUDE, exclude=COMMUNITY_EXCLUDE, min_score=5, reject_adult=True
    ),
    Provider.TIKTOK: RelevancePolicy(
        include=VIDEO_INCLUDE, exclude=VIDEO_EXCLUDE, min_views=100, require_locality_mention=True
    ),
}


class RelevanceClassifier:
    def __init__(self, policies: Optional[Dict[Provider, RelevancePolicy]] = None):
        self.policies = dict(POLICIES)
        if policies:
            self.policies.update(policies)

    def policy_for(self, provider: Provider) -> RelevancePolicy:
        return self.policies.get(provider) or RelevancePolicy()

    def explain(self, item: RawItem) -> RelevanceVerdict:
        policy = self.policy_for(item.descriptor.provider)
        text = item.text_blob()
        eng = item.engagement

        if len((item.title or "").strip()) < policy.min_title_length:
            return RelevanceVerdict(False, "title_too_short")
        matched = find_keyword(policy.include, text)
        if policy.include and matched is None:
            return RelevanceVerdict(False, "no_include_keyword")
        excluded = find_keyword(policy.exclude, text)
        if excluded is not None:
            return RelevanceVerdict(False, "exclude_keyword", matched=excluded)
        if policy.min_score is not None and (eng.score or 0) < policy.min_score:
            return RelevanceVerdict(False, "score_below_minimum")
        if policy.reject_adult and eng.adult:
            return RelevanceVerdict(False, "adult_content")
        if policy.min_views is not None and (eng.views or 0) < policy.min_views:
            return RelevanceVerdict(False, "views_below_minimum")
        if policy.require_locality_mention:
            terms = item.descriptor.locality_terms or ((item.descriptor.locality.city or "").lower(),)
            if find_keyword(frozenset(t for t in terms if t), text) is None:
                return RelevanceVerdict(False, "no_locality_mention")
        return RelevanceVerdict(True, matched=matched)

    def is_relevant(self, item: RawItem) -> bool:
        verdict = self.explain(item)
        if not verdict:
            logger.debug(
                "Filtered %r from %s: %s%s",
                item.title[:80],
                item.descriptor.name,
                verdict.reason,
                f" ({verdict.matched})" if verdict.matched else "",
            )
        return verdict.relevant
