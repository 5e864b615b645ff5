"""RawItem -> Activity.

Everything provider-specific comes from the provider profile; everything
content-specific from the scoring tables. The output is a frozen Activity
whose categories are never empty and whose expiry is after its creation.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from citypulse.catalog.provider_profiles import ProviderProfile, profile_for
from citypulse.extraction.dates import parse_when
from citypulse.ingestion.activity_types import Activity, RawItem
from citypulse.ingestion.url_utils import stable_item_id
from citypulse.scoring.activity_scoring import (
    categorize,
    expiry_for,
    infer_indoor_outdoor,
    quality_score,
    relevance_score,
)


logger = logging.getLogger(__name__)

DEFAULT_START_OFFSET = timedelta(days=7)
MAX_DESCRIPTION_CHARS = 500

_AMOUNT_RE = re.compile(r"\$\s*(\d+(?:\.\d{1,2})?)")
_PRICE_TIER_RE = re.compile(r"^\s*(\$+)\s*$")


def cost_fields(item: RawItem, profile: ProviderProfile) -> Tuple[float, Optional[float], str]:
    """(cost_min, cost_max, cost_description) from explicit signals, else profile defaults."""
    if item.is_free:
        return 0.0, 0.0, "Free"
    text = (item.price_text or "").strip()
    if text:
        tier = _PRICE_TIER_RE.match(text)
        if tier:
            n = len(tier.group(1))
            return float(n * 10), float(n * 25), text
        if "free" in text.lower():
            return 0.0, 0.0, text
        amounts = [float(a) for a in _AMOUNT_RE.findall(text)]
        if amounts:
            high = max(amounts)
            return min(amounts), (high if len(amounts) > 1 else None), text
    return profile.cost_min, profile.cost_max, profile.cost_description


def _tags(item: RawItem, profile: ProviderProfile) -> frozenset:
    raw = list(profile.base_tags) + [item.descriptor.label] + list(item.tags)
    return frozenset(t.strip().lower() for t in raw if t and t.strip())


class ActivityNormalizer:
    def __init__(self, *, clock=None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def source_id(self, item: RawItem, source_url: str, profile: ProviderProfile) -> str:
        base = (item.native_id or "").strip() or stable_item_id(item.title, source_url)
        if profile.id_prefix_label and item.descriptor.label:
            return f"{item.descriptor.label}_{base}"
        return base

    def normalize(self, item: RawItem, *, now: Optional[datetime] = None) -> Activity:
        title = " ".join((item.title or "").split())
        if not title:
            raise ValueError("item has no title")
        descriptor = item.descriptor
        profile = profile_for(descriptor.provider)
        created_at = now or self._clock()

        start_time = parse_when(item.candidate_date_text, now=created_at) or (created_at + DEFAULT_START_OFFSET)
        end_time = parse_when(item.candidate_end_text, now=created_at)
        if end_time is not None and end_time < start_time:
            logger.debug("Dropping end time before start for %r", title[:80])
            end_time = None

        blob = item.text_blob()
        quality = quality_score(profile, item)
        source_url = (item.link or "").strip() or descriptor.endpoint
        cost_min, cost_max, cost_description = cost_fields(item, profile)

        metadata: Dict[str, Any] = {
            "source_name": descriptor.name,
            "source_label": descriptor.label,
            "source_kind": descriptor.kind.value,
            "scraped_at": created_at.isoformat(),
        }
        if descriptor.topic:
            metadata["topic"] = descriptor.topic
        if item.extra:
            metadata.update(item.extra)

        return Activity(
            source=descriptor.provider,
            source_id=self.source_id(item, source_url, profile),
            title=title,
            description=(item.body_text or "")[:MAX_DESCRIPTION_CHARS],
            location_name=(item.candidate_location_text or "").strip() or descriptor.locality.city,
            city=descriptor.locality.city,
            start_time=start_time,
            end_time=end_time,
            cost_min=cost_min,
            cost_max=cost_max,
            cost_description=cost_description,
            tags=_tags(item, profile),
            categories=categorize(blob, label=descriptor.label, default=profile.default_category),
            age_appropriate=profile.age_appropriate,
            indoor_outdoor=infer_indoor_outdoor(blob, online=item.is_online),
            booking_required=profile.booking_required,
            source_url=source_url,
            image_url=item.image_url,
            quality_score=quality,
            relevance_score=relevance_score(profile, item, quality),
            scraped_metadata=metadata,
            created_at=created_at,
            expires_at=expiry_for(profile, created_at, end_time),
        )
