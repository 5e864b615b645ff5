"""Field-mapping tables for structured (JSON / XML) providers.

Each `FieldMap` lists where the record list lives and, per canonical field,
the candidate dotted paths to try in order. The first non-empty value wins.
Numeric path segments index into lists (`images.0.baseUrl`).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from citypulse.ingestion.activity_types import Provider


def dig(obj: Any, path: str) -> Any:
    cur = obj
    for part in path.split("."):
        if isinstance(cur, Mapping):
            cur = cur.get(part)
        elif isinstance(cur, (list, tuple)) and part.isdigit():
            idx = int(part)
            cur = cur[idx] if idx < len(cur) else None
        else:
            return None
        if cur is None:
            return None
    return cur


def _present(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, dict)):
        return bool(value)
    return True


def first_value(obj: Any, paths: Tuple[str, ...]) -> Any:
    for path in paths:
        value = dig(obj, path)
        if _present(value):
            return value
    return None


def _yelp_summary(record: Mapping[str, Any]) -> str:
    cats = [c.get("title") for c in (record.get("categories") or []) if isinstance(c, Mapping) and c.get("title")]
    label = ", ".join(cats) or "Local business"
    return f"{label} - {record.get('review_count') or 0} reviews on Yelp"


@dataclass(frozen=True)
class FieldMap:
    roots: Tuple[str, ...] = ()
    unwrap: Tuple[str, ...] = ()
    id: Tuple[str, ...] = ("id",)
    title: Tuple[str, ...] = ("title", "name")
    description: Tuple[str, ...] = ("description",)
    location: Tuple[str, ...] = ("location", "address")
    start: Tuple[str, ...] = ()
    end: Tuple[str, ...] = ()
    link: Tuple[str, ...] = ("url",)
    image: Tuple[str, ...] = ()
    price: Tuple[str, ...] = ()
    is_free: Tuple[str, ...] = ()
    is_online: Tuple[str, ...] = ()
    rating: Tuple[str, ...] = ()
    review_count: Tuple[str, ...] = ()
    # list values; dict entries contribute their first present tag key
    tags: Tuple[str, ...] = ()
    tag_keys: Tuple[str, ...] = ("alias", "name", "title")
    metadata: Dict[str, str] = field(default_factory=dict)
    summarize: Optional[Callable[[Mapping[str, Any]], str]] = None


FIELD_MAPS: Dict[Provider, FieldMap] = {
    Provider.OPEN_DATA: FieldMap(
        roots=("records", "result.records", "results", "data", "items"),
        unwrap=("fields",),
        id=("id", "recordid", "_id", "objectid"),
        title=("name", "title", "event_name"),
        description=("description", "details", "summary"),
        location=("location", "address", "park_name", "venue"),
        start=("start_date", "start_time", "event_date", "date"),
        end=("end_date", "end_time"),
        link=("url", "website", "link"),
        metadata={"original_fields": ""},
    ),
    Provider.YELP: FieldMap(
        roots=("businesses",),
        id=("id",),
        title=("name",),
        description=(),
        location=("location.display_address", "location.address1"),
        link=("url",),
        image=("image_url",),
        price=("price",),
        rating=("rating",),
        review_count=("review_count",),
        tags=("categories",),
        metadata={
            "yelp_rating": "rating",
            "yelp_review_count": "review_count",
            "yelp_price": "price",
            "phone": "phone",
            "is_closed": "is_closed",
            "latitude": "coordinates.latitude",
            "longitude": "coordinates.longitude",
        },
        summarize=_yelp_summary,
    ),
    Provider.EVENTBRITE: FieldMap(
        roots=("events",),
        id=("id",),
        title=("name.text", "name"),
        description=("description.text", "summary"),
        location=("venue.name", "venue.address.localized_address_display"),
        start=("start.utc", "start.local"),
        end=("end.utc", "end.local"),
        link=("url",),
        image=("logo.url",),
        is_free=("is_free",),
        is_online=("online_event",),
        tags=("category.name",),
        metadata={
            "eventbrite_id": "id",
            "venue": "venue.name",
            "organizer_name": "organizer.name",
            "category": "category.name",
            "capacity": "capacity",
            "is_free": "is_free",
            "status": "status",
        },
    ),
    Provider.MEETUP: FieldMap(
        roots=("data.rankedEvents.edges", "data.events"),
        unwrap=("node",),
        id=("id",),
        title=("title",),
        description=("description",),
        location=("venue.name", "venue.address"),
        start=("dateTime",),
        end=("endTime",),
        link=("eventUrl",),
        image=("images.0.baseUrl",),
        is_online=("isOnline",),
        tags=("group.name",),
        metadata={
            "meetup_id": "id",
            "group_name": "group.name",
            "group_url": "group.urlname",
            "max_tickets": "maxTickets",
            "is_online": "isOnline",
        },
    ),
}


def field_map_for(provider: Provider) -> FieldMap:
    return FIELD_MAPS.get(provider) or FIELD_MAPS[Provider.OPEN_DATA]
