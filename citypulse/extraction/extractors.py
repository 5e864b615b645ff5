"""Content extractors: payload + source descriptor -> candidate RawItems.

One extractor per source format. Provider differences are data (selector
cascades here, field maps in `field_maps`), not subclasses.

Item-level problems skip the item. A payload that cannot be decoded at all
raises ParseError, which the orchestrator records against the source.
"""

from __future__ import annotations

import json
import logging
import re
import xml.etree.ElementTree as ET
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import urljoin

import feedparser
from bs4 import BeautifulSoup

from citypulse.extraction.dates import parse_when
from citypulse.extraction.field_maps import FieldMap, dig, field_map_for, first_value
from citypulse.fetching.http_client import FetchResult
from citypulse.ingestion.activity_types import (
    EngagementMetrics,
    Provider,
    RawItem,
    SourceDescriptor,
    SourceFormat,
)
from citypulse.ingestion.errors import ParseError


logger = logging.getLogger(__name__)

Payload = Union[FetchResult, bytes, str]


# -----------------------------
# HTML selector cascades
# -----------------------------
CONTAINER_SELECTORS = [
    ".event",
    ".program",
    ".activity",
    ".class",
    ".workshop",
    '[class*="event"]',
    '[class*="program"]',
    '[class*="activity"]',
    ".calendar-event",
    ".recreation-program",
    ".community-event",
]
PER_SELECTOR_LIMIT = 20

TITLE_SELECTORS = ["h1", "h2", "h3", "h4", ".title", ".name", ".program-title", ".event-title"]
DESCRIPTION_SELECTORS = [".description", ".details", ".summary", ".content", "p"]
DATE_SELECTORS = [".date", ".time", ".datetime", ".when", ".schedule", '[class*="date"]']
LOCATION_SELECTORS = [".location", ".venue", ".where", ".address", '[class*="location"]']
PRICE_SELECTORS = [".price", ".cost", ".fee", '[class*="price"]']

TITLE_FALLBACK_CHARS = 100
MIN_DESCRIPTION_CHARS = 20
MAX_DESCRIPTION_CHARS = 500


# -----------------------------
# Social text helpers
# -----------------------------
HASHTAG_RE = re.compile(r"#(\w+)", re.UNICODE)

REDDIT_LOCATION_PATTERNS = [
    re.compile(r"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
    re.compile(r"\bat\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
    re.compile(r"\bnear\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)*)"),
]

VIDEO_LOCATION_PATTERNS = [
    re.compile(r"\bat\s+([A-Z][a-zA-Z\s]+(?:Restaurant|Cafe|Bar|Park|Beach|Mall|Center|Store|Shop))", re.I),
    re.compile(r"(@\s*[A-Z][a-zA-Z\s]+)"),
    re.compile(r"\b((?:downtown|uptown|waterfront|harbour|harbor|beach|park)\s+[A-Z][a-zA-Z\s]*)", re.I),
]

TIKTOK_STATE_SCRIPT_ID = "__UNIVERSAL_DATA_FOR_REHYDRATION__"
TIKTOK_ID_RE = re.compile(r'"id":"(\d+)"')
TIKTOK_DESC_RE = re.compile(r'"desc":"([^"]+)"')
TIKTOK_AUTHOR_RE = re.compile(r'"uniqueId":"([^"]+)"')


def _payload_text(payload: Payload) -> str:
    if isinstance(payload, FetchResult):
        return payload.text()
    if isinstance(payload, bytes):
        return payload.decode("utf-8", errors="replace")
    return payload or ""


def _clean(text: Any) -> str:
    if text is None:
        return ""
    return " ".join(str(text).split())


def _text(value: Any) -> str:
    """Flatten a mapped field value into display text."""
    if value is None or isinstance(value, bool):
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(_text(v) for v in value if _text(v))
    if isinstance(value, Mapping):
        return _text(value.get("name") or value.get("address") or value.get("text"))
    return _clean(value)


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _as_int(value: Any) -> Optional[int]:
    f = _as_float(value)
    return int(f) if f is not None else None


def _as_bool(value: Any) -> Optional[bool]:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    if s in ("true", "1", "yes"):
        return True
    if s in ("false", "0", "no"):
        return False
    return None


def _tag_values(value: Any, keys: Tuple[str, ...]) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value.strip(),) if value.strip() else ()
    out: List[str] = []
    for entry in value if isinstance(value, (list, tuple)) else [value]:
        if isinstance(entry, Mapping):
            for key in keys:
                if entry.get(key):
                    out.append(str(entry[key]).strip())
                    break
        elif entry:
            out.append(str(entry).strip())
    return tuple(t for t in out if t)


def hashtags_in(text: str) -> Tuple[str, ...]:
    seen: List[str] = []
    for tag in HASHTAG_RE.findall(text or ""):
        if tag not in seen:
            seen.append(tag)
    return tuple(seen)


def _first_match(patterns: Iterable[re.Pattern], text: str, *, min_len: int = 1) -> Optional[str]:
    for pattern in patterns:
        m = pattern.search(text or "")
        if m and min_len <= len(m.group(1).strip()) < 50:
            return m.group(1).strip()
    return None


class ContentExtractor:
    format: SourceFormat

    def extract(self, payload: Payload, descriptor: SourceDescriptor, *, limit: Optional[int] = None) -> List[RawItem]:
        raise NotImplementedError

    @staticmethod
    def _cap(descriptor: SourceDescriptor, limit: Optional[int]) -> int:
        cap = descriptor.per_source_limit if limit is None else limit
        return max(0, int(cap))


# -----------------------------
# HTML
# -----------------------------
class HtmlExtractor(ContentExtractor):
    format = SourceFormat.HTML

    def extract(self, payload: Payload, descriptor: SourceDescriptor, *, limit: Optional[int] = None) -> List[RawItem]:
        cap = self._cap(descriptor, limit)
        soup = BeautifulSoup(_payload_text(payload), "html.parser")
        candidates = self._candidates(soup)
        # a container enclosing titled containers is a listing wrapper, not an item
        card_ids = {id(el) for el in candidates if self._has_title_node(el)}
        taken_ids = set()
        out: List[RawItem] = []

        for element in candidates:
            if len(out) >= cap:
                break
            if any(id(d) in card_ids for d in element.descendants):
                continue
            if any(id(p) in taken_ids for p in element.parents):
                continue
            if any(id(d) in taken_ids for d in element.descendants):
                continue
            taken_ids.add(id(element))
            item = self._item(element, descriptor)
            if item is not None:
                out.append(item)
        return out

    @staticmethod
    def _candidates(soup) -> List[Any]:
        """Container matches in selector-cascade order, each element once."""
        seen = set()
        out = []
        for selector in CONTAINER_SELECTORS:
            for element in soup.select(selector)[:PER_SELECTOR_LIMIT]:
                if id(element) not in seen:
                    seen.add(id(element))
                    out.append(element)
        return out

    @staticmethod
    def _has_title_node(element) -> bool:
        return any(element.select_one(sel) is not None for sel in TITLE_SELECTORS)

    def _item(self, element, descriptor: SourceDescriptor) -> Optional[RawItem]:
        title = self._title(element)
        if not title:
            return None
        link = None
        anchor = element.select_one("a[href]")
        if anchor is not None and not anchor["href"].startswith(("#", "javascript:", "mailto:")):
            link = urljoin(descriptor.endpoint, anchor["href"])
        image = element.select_one("img[src]")
        return RawItem(
            title=title,
            descriptor=descriptor,
            body_text=self._description(element),
            candidate_date_text=self._date_text(element),
            candidate_location_text=self._first_text(element, LOCATION_SELECTORS),
            link=link or descriptor.endpoint,
            image_url=urljoin(descriptor.endpoint, image["src"]) if image is not None else None,
            price_text=self._first_text(element, PRICE_SELECTORS),
        )

    @staticmethod
    def _first_text(element, selectors: List[str], *, min_len: int = 1) -> Optional[str]:
        for sel in selectors:
            node = element.select_one(sel)
            if node is None:
                continue
            text = _clean(node.get_text(" ", strip=True))
            if len(text) >= min_len:
                return text
        return None

    def _title(self, element) -> str:
        title = self._first_text(element, TITLE_SELECTORS)
        if title:
            return title
        lines = element.get_text("\n", strip=True).split("\n")
        return _clean(lines[0])[:TITLE_FALLBACK_CHARS] if lines else ""

    def _description(self, element) -> str:
        text = self._first_text(element, DESCRIPTION_SELECTORS, min_len=MIN_DESCRIPTION_CHARS + 1)
        return (text or "")[:MAX_DESCRIPTION_CHARS]

    @staticmethod
    def _date_text(element) -> Optional[str]:
        for sel in DATE_SELECTORS:
            node = element.select_one(sel)
            if node is None:
                continue
            text = _clean(node.get("datetime") or node.get_text(" ", strip=True))
            if text and parse_when(text) is not None:
                return text
        return None


# -----------------------------
# JSON / XML records
# -----------------------------
def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _element_dict(element: ET.Element) -> Dict[str, Any]:
    out: Dict[str, Any] = {k: v for k, v in element.attrib.items()}
    for child in element:
        key = _local_name(child.tag)
        out[key] = _element_dict(child) if len(child) else (child.text or "").strip()
    return out


def xml_records(text: str) -> List[Dict[str, Any]]:
    """Flatten an XML document into one dict per repeated record element."""
    root = ET.fromstring(text)
    counts: Dict[str, int] = {}
    for el in root.iter():
        if el is not root and len(el):
            name = _local_name(el.tag)
            counts[name] = counts.get(name, 0) + 1
    if not counts:
        return []
    record_tag = max(counts, key=lambda name: counts[name])
    return [_element_dict(el) for el in root.iter() if _local_name(el.tag) == record_tag]


def locate_records(data: Any, roots: Tuple[str, ...]) -> List[Any]:
    for path in roots:
        found = dig(data, path)
        if isinstance(found, list):
            return found
    if isinstance(data, list):
        return data
    return []


class JsonRecordExtractor(ContentExtractor):
    format = SourceFormat.JSON

    def extract(self, payload: Payload, descriptor: SourceDescriptor, *, limit: Optional[int] = None) -> List[RawItem]:
        cap = self._cap(descriptor, limit)
        fmap = field_map_for(descriptor.provider)
        text = _payload_text(payload).strip()
        if descriptor.format == SourceFormat.XML or text.startswith("<"):
            try:
                records: List[Any] = xml_records(text)
            except ET.ParseError as e:
                raise ParseError(descriptor.name, f"invalid xml: {e}")
        else:
            try:
                data = json.loads(text)
            except ValueError as e:
                raise ParseError(descriptor.name, f"invalid json: {e}")
            records = locate_records(data, fmap.roots)
        if not records:
            logger.debug("No record list found for %s", descriptor.name)

        out: List[RawItem] = []
        for record in records:
            if len(out) >= cap:
                break
            try:
                item = self._item(record, descriptor, fmap)
            except (TypeError, ValueError, AttributeError) as e:
                logger.debug("Skipping malformed record from %s: %s", descriptor.name, e)
                continue
            if item is not None:
                out.append(item)
        return out

    @staticmethod
    def _unwrap(record: Any, fmap: FieldMap) -> Any:
        if isinstance(record, Mapping):
            for key in fmap.unwrap:
                inner = record.get(key)
                if isinstance(inner, Mapping):
                    return inner
        return record

    def _item(self, record: Any, descriptor: SourceDescriptor, fmap: FieldMap) -> Optional[RawItem]:
        body = self._unwrap(record, fmap)
        if not isinstance(body, Mapping):
            return None
        title = _text(first_value(body, fmap.title))
        if len(title) < 4:
            return None

        native_id = first_value(body, fmap.id)
        if native_id is None and body is not record:
            native_id = first_value(record, fmap.id)
        description = _text(first_value(body, fmap.description))
        if not description and fmap.summarize is not None:
            description = fmap.summarize(body)

        price = first_value(body, fmap.price)
        metadata: Dict[str, Any] = {}
        for key, path in fmap.metadata.items():
            value = dict(body) if path == "" else dig(body, path)
            if value is not None:
                metadata[key] = value

        return RawItem(
            title=title,
            descriptor=descriptor,
            body_text=description[:MAX_DESCRIPTION_CHARS],
            candidate_date_text=_text(first_value(body, fmap.start)) or None,
            candidate_end_text=_text(first_value(body, fmap.end)) or None,
            candidate_location_text=_text(first_value(body, fmap.location)) or None,
            link=_text(first_value(body, fmap.link)) or None,
            native_id=str(native_id) if native_id is not None else None,
            image_url=_text(first_value(body, fmap.image)) or None,
            price_text=_text(price) or None,
            is_free=_as_bool(first_value(body, fmap.is_free)),
            is_online=bool(_as_bool(first_value(body, fmap.is_online))),
            tags=_tag_values(first_value(body, fmap.tags), fmap.tag_keys),
            engagement=EngagementMetrics(
                rating=_as_float(first_value(body, fmap.rating)),
                review_count=_as_int(first_value(body, fmap.review_count)),
            ),
            extra=metadata or None,
        )


# -----------------------------
# RSS / Atom
# -----------------------------
class FeedExtractor(ContentExtractor):
    format = SourceFormat.XML

    def extract(self, payload: Payload, descriptor: SourceDescriptor, *, limit: Optional[int] = None) -> List[RawItem]:
        cap = self._cap(descriptor, limit)
        raw = payload.payload if isinstance(payload, FetchResult) else payload
        if isinstance(raw, str):
            raw = raw.encode("utf-8")
        parsed = feedparser.parse(raw)
        entries = parsed.entries or []
        if not entries and getattr(parsed, "bozo", False):
            raise ParseError(descriptor.name, f"unreadable feed: {parsed.get('bozo_exception')}")

        out: List[RawItem] = []
        for entry in entries:
            if len(out) >= cap:
                break
            title = _clean(entry.get("title"))
            if not title:
                continue
            summary = entry.get("summary") or entry.get("description") or ""
            body = _clean(BeautifulSoup(summary, "html.parser").get_text(" ", strip=True)) if summary else ""
            # published / updated are common RSS fields
            published = entry.get("published") or entry.get("updated")
            image = None
            for media in entry.get("media_content") or []:
                if media.get("url"):
                    image = media["url"]
                    break
            out.append(
                RawItem(
                    title=title,
                    descriptor=descriptor,
                    body_text=body[:MAX_DESCRIPTION_CHARS],
                    candidate_date_text=published or None,
                    link=entry.get("link") or None,
                    native_id=entry.get("id") or entry.get("link") or None,
                    image_url=image,
                    tags=tuple(t.get("term") for t in entry.get("tags") or [] if t.get("term")),
                    extra={"rss_feed": descriptor.name, "published": published},
                )
            )
        return out


# -----------------------------
# Social feeds
# -----------------------------
class SocialFeedExtractor(ContentExtractor):
    format = SourceFormat.SOCIAL_JSON

    def extract(self, payload: Payload, descriptor: SourceDescriptor, *, limit: Optional[int] = None) -> List[RawItem]:
        cap = self._cap(descriptor, limit)
        text = _payload_text(payload)
        if descriptor.provider == Provider.TIKTOK or text.lstrip().startswith("<"):
            return self._video_page(text, descriptor)[:cap]
        return self._listing(text, descriptor)[:cap]

    # Reddit-style listing: data.children[].data
    def _listing(self, text: str, descriptor: SourceDescriptor) -> List[RawItem]:
        try:
            data = json.loads(text)
        except ValueError as e:
            raise ParseError(descriptor.name, f"invalid json: {e}")
        children = dig(data, "data.children") or []
        subreddit = descriptor.topic or ""
        out: List[RawItem] = []
        for child in children:
            post = child.get("data") if isinstance(child, Mapping) else None
            if not isinstance(post, Mapping):
                continue
            title = _clean(post.get("title"))
            if not title:
                continue
            selftext = (post.get("selftext") or "").strip()
            body = selftext or f"Reddit post from r/{subreddit}"
            permalink = post.get("permalink") or ""
            thumb = post.get("thumbnail") or ""
            tags = hashtags_in(f"{title} {selftext}")
            if subreddit:
                tags = (f"r/{subreddit}",) + tags
            out.append(
                RawItem(
                    title=title,
                    descriptor=descriptor,
                    body_text=body,
                    candidate_location_text=_first_match(REDDIT_LOCATION_PATTERNS, f"{title} {body}"),
                    link=f"https://reddit.com{permalink}" if permalink else (post.get("url") or None),
                    native_id=str(post["id"]) if post.get("id") else None,
                    image_url=thumb if thumb.startswith("http") else None,
                    tags=tags,
                    engagement=EngagementMetrics(
                        comments=_as_int(post.get("num_comments")),
                        score=_as_int(post.get("score")),
                        upvote_ratio=_as_float(post.get("upvote_ratio")),
                        adult=bool(post.get("over_18")),
                    ),
                    extra={
                        "subreddit": post.get("subreddit") or subreddit,
                        "author": post.get("author"),
                        "created_utc": post.get("created_utc"),
                        "reddit_score": post.get("score"),
                        "upvote_ratio": post.get("upvote_ratio"),
                        "num_comments": post.get("num_comments"),
                        "selftext_length": len(selftext),
                    },
                )
            )
        return out

    # TikTok-style hashtag page: embedded rehydration state, regex fallback
    def _video_page(self, html: str, descriptor: SourceDescriptor) -> List[RawItem]:
        soup = BeautifulSoup(html, "html.parser")
        script = soup.find("script", id=TIKTOK_STATE_SCRIPT_ID)
        if script is not None and script.string:
            try:
                state = json.loads(script.string)
            except ValueError as e:
                logger.debug("Rehydration state unreadable for %s (%s); using regex fallback", descriptor.name, e)
            else:
                return self._videos(self._video_list(state), descriptor)
        return self._videos_from_markup(html, descriptor)

    @staticmethod
    def _video_list(state: Any) -> List[Any]:
        if not isinstance(state, Mapping):
            return []
        scope = state.get("__DEFAULT_SCOPE__") or state.get("default") or {}
        detail = scope.get("webapp.challenge-detail") if isinstance(scope, Mapping) else None
        videos = dig(detail, "challenge-detail.videoList") if isinstance(detail, Mapping) else None
        return videos if isinstance(videos, list) else []

    def _videos(self, videos: List[Any], descriptor: SourceDescriptor) -> List[RawItem]:
        out: List[RawItem] = []
        for video in videos:
            if not isinstance(video, Mapping) or not video.get("video") or not video.get("desc"):
                continue
            try:
                item = self._video_from_state(video, descriptor)
            except (TypeError, ValueError, AttributeError) as e:
                logger.debug("Skipping malformed video from %s: %s", descriptor.name, e)
                continue
            out.append(item)
        return out

    def _video_from_state(self, video: Mapping, descriptor: SourceDescriptor) -> RawItem:
        stats = video.get("stats") or {}
        author = video.get("author") or {}
        return self._video_item(
            descriptor,
            video_id=str(video.get("id") or ""),
            desc=str(video["desc"]),
            author=author.get("uniqueId") or "unknown",
            nickname=author.get("nickname"),
            views=_as_int(stats.get("playCount")) or 0,
            likes=_as_int(stats.get("diggCount")) or 0,
            comments=_as_int(stats.get("commentCount")) or 0,
            created=video.get("createTime"),
        )

    def _videos_from_markup(self, html: str, descriptor: SourceDescriptor) -> List[RawItem]:
        ids = TIKTOK_ID_RE.findall(html)
        descs = TIKTOK_DESC_RE.findall(html)
        authors = TIKTOK_AUTHOR_RE.findall(html)
        out: List[RawItem] = []
        for i in range(min(len(ids), len(descs))):
            out.append(
                self._video_item(
                    descriptor,
                    video_id=ids[i],
                    desc=descs[i],
                    author=authors[i] if i < len(authors) else "unknown",
                    nickname=None,
                    views=0,
                    likes=0,
                    comments=0,
                    created=None,
                )
            )
        return out

    @staticmethod
    def _video_item(
        descriptor: SourceDescriptor,
        *,
        video_id: str,
        desc: str,
        author: str,
        nickname: Optional[str],
        views: int,
        likes: int,
        comments: int,
        created: Any,
    ) -> RawItem:
        desc = _clean(desc)
        created_at = parse_when(created)
        return RawItem(
            title=desc,
            descriptor=descriptor,
            body_text=desc,
            candidate_location_text=_first_match(VIDEO_LOCATION_PATTERNS, desc, min_len=4),
            link=f"https://www.tiktok.com/@{author}/video/{video_id}",
            native_id=video_id or None,
            tags=hashtags_in(desc),
            engagement=EngagementMetrics(views=views, likes=likes, comments=comments),
            extra={
                "author": nickname or author,
                "source_hashtag": descriptor.topic,
                "created_at": created_at.isoformat() if created_at else None,
                "view_count": views,
                "like_count": likes,
                "comment_count": comments,
            },
        )


_EXTRACTORS: Dict[SourceFormat, ContentExtractor] = {
    SourceFormat.HTML: HtmlExtractor(),
    SourceFormat.JSON: JsonRecordExtractor(),
    SourceFormat.SOCIAL_JSON: SocialFeedExtractor(),
}


def extractor_for(fmt: SourceFormat, provider: Optional[Provider] = None) -> ContentExtractor:
    """XML means a feed for RSS sources and a record document for open data."""
    fmt = SourceFormat(fmt)
    if fmt == SourceFormat.XML:
        if provider in (None, Provider.TOURISM_RSS):
            return FeedExtractor()
        return _EXTRACTORS[SourceFormat.JSON]
    return _EXTRACTORS[fmt]
