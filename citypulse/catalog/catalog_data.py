"""Static source configuration.

URL families use `{city}`, `{compact}`, `{slug}`, `{camel}` and `{region}` placeholders (see
`Locality`). Per-locality tables are keyed by (city, country), lowercased.
"""

from __future__ import annotations

from typing import Dict, List, Tuple


# -----------------------------
# Municipal pages
# -----------------------------
CITY_BASE_PATTERNS = [
    "https://www.{compact}.ca",
    "https://www.{compact}.gov",
    "https://www.{compact}.org",
    "https://{compact}.ca",
    "https://city.{compact}.ca",
    "https://www.city-{slug}.ca",
]

CITY_PATH_SUFFIXES = [
    ("recreation", "city_recreation"),
    ("parks-recreation", "city_parks"),
    ("events", "city_events"),
    ("programs", "city_programs"),
    ("activities", "city_activities"),
    ("community", "city_community"),
]

REGIONAL_BASE_PATTERNS = [
    "https://www.{region}.ca",
    "https://{region}.ca",
    "https://www.{region}.gov",
]

REGIONAL_PATH_SUFFIXES = [
    ("recreation", "regional_recreation"),
    ("events", "regional_events"),
    ("parks", "regional_parks"),
]

LIBRARY_PATTERNS = [
    "https://{compact}library.ca/events",
    "https://www.{compact}library.ca/events",
    "https://{compact}library.org/events",
    "https://library.{compact}.ca/events",
    "https://{compact}.bibliocommons.com/events",
]

COMMUNITY_CENTRE_PATTERNS = [
    "https://{compact}rec.ca",
    "https://www.{compact}rec.ca",
    "https://{compact}recreation.ca",
    "https://rec.{compact}.ca",
]

COMMUNITY_CENTRE_SUFFIXES = [
    ("programs", "community_programs"),
    ("events", "community_events"),
]

CULTURE_PATTERNS = [
    "https://{compact}arts.ca",
    "https://{compact}theatre.ca",
    "https://{compact}museum.ca",
    "https://arts.{compact}.ca",
]

CULTURE_SUFFIXES = [
    ("events", "culture_events"),
    ("shows", "culture_shows"),
]

# Explicit municipal pages that replace the generic families for a city.
MUNICIPAL_OVERRIDES: Dict[Tuple[str, str], List[Tuple[str, str]]] = {
    ("victoria", "canada"): [
        ("https://www.victoria.ca/recreation", "city_recreation"),
        ("https://www.victoria.ca/events", "city_events"),
        ("https://www.crd.bc.ca/parks-recreation-culture/parks-trails", "regional_parks"),
        ("https://www.gvpl.ca/events", "library_events"),
    ],
}


# -----------------------------
# Open data
# -----------------------------
OPEN_DATA_ENDPOINTS: Dict[Tuple[str, str], List[Tuple[str, str, str]]] = {
    # (name, url, label)
    ("vancouver", "canada"): [
        (
            "Vancouver Open Data - Events",
            "https://opendata.vancouver.ca/api/records/1.0/search/?dataset=city-events&rows=50",
            "vancouver_events",
        ),
    ],
    ("toronto", "canada"): [
        (
            "Toronto Open Data - Recreation",
            "https://ckan0.cf.opendata.inter.prod-toronto.ca/api/3/action/datastore_search?resource_id=parks-and-recreation&limit=50",
            "toronto_recreation",
        ),
    ],
    ("seattle", "usa"): [
        ("Seattle Open Data - Parks", "https://data.seattle.gov/resource/kzjm-xkqj.json?$limit=50", "seattle_parks"),
    ],
}

GENERIC_OPEN_DATA_PATTERNS = [
    ("{city} Generic Open Data Search", "https://www.{compact}.gov/api/data/events", "generic_municipal"),
]


# -----------------------------
# Tourism RSS
# -----------------------------
RSS_FEEDS: Dict[Tuple[str, str], List[Tuple[str, str, str]]] = {
    ("victoria", "canada"): [
        ("Tourism Victoria News", "https://www.tourismvictoria.com/rss.xml", "tourism_official"),
        ("Times Colonist Entertainment", "https://www.timescolonist.com/rss/entertainment", "local_news"),
    ],
    ("vancouver", "canada"): [
        ("Destination Vancouver", "https://www.destinationvancouver.com/feed/", "tourism_official"),
    ],
}

GENERIC_RSS_PATTERNS = [
    ("Visit {city}", "https://www.visit{compact}.com/rss", "tourism_official"),
    ("Tourism {city}", "https://www.tourism{compact}.com/rss.xml", "tourism_official"),
    ("{city} Events Feed", "https://www.{compact}.ca/events/rss", "city_events_feed"),
]


# -----------------------------
# Business / event APIs
# -----------------------------
BUSINESS_CATEGORIES = [
    "restaurants", "bars", "coffee", "nightlife",
    "arts", "museums", "galleries", "theaters",
    "active", "tours", "shopping", "spas",
]
BUSINESS_CATEGORY_LIMIT = 4

YELP_SEARCH_URL = (
    "https://api.yelp.com/v3/businesses/search?latitude={lat}&longitude={lng}"
    "&categories={category}&limit={limit}&sort_by=rating&radius=20000"
)

EVENTBRITE_SEARCH_URL = (
    "https://www.eventbriteapi.com/v3/events/search/?location.latitude={lat}&location.longitude={lng}"
    "&location.within=25km&status=live&order_by=start_asc&expand=venue,organizer,category&page_size={limit}"
)

MEETUP_GQL_URL = "https://www.meetup.com/gql"

MEETUP_QUERY = """
query($lat: Float!, $lon: Float!, $radius: Int!, $first: Int!) {
  rankedEvents(filter: {lat: $lat, lon: $lon, radius: $radius}, first: $first) {
    edges {
      node {
        id title description dateTime endTime eventUrl isOnline maxTickets
        venue { name address lat lng }
        group { name urlname }
        images { baseUrl }
      }
    }
  }
}
"""

CITY_COORDINATES: Dict[Tuple[str, str], Tuple[float, float]] = {
    ("victoria", "canada"): (48.4284, -123.3656),
    ("vancouver", "canada"): (49.2827, -123.1207),
    ("toronto", "canada"): (43.6532, -79.3832),
    ("seattle", "usa"): (47.6062, -122.3321),
}


# -----------------------------
# Social feeds
# -----------------------------
REDDIT_LISTING_URL = "https://www.reddit.com/r/{subreddit}/hot.json?limit={limit}"
TIKTOK_TAG_URL = "https://www.tiktok.com/tag/{hashtag}"

SUBREDDIT_SEEDS: Dict[Tuple[str, str], List[str]] = {
    ("victoria", "canada"): ["VictoriaBC", "vancouverisland", "britishcolumbia", "canada"],
    ("vancouver", "canada"): ["vancouver", "britishcolumbia"],
    ("seattle", "usa"): ["Seattle", "SeattleWA"],
}

GENERIC_SUBREDDIT_PATTERNS = ["{camel}"]

HASHTAG_SEEDS: Dict[Tuple[str, str], List[str]] = {
    ("victoria", "canada"): [
        "VictoriaBC", "YYJEats", "VancouverIsland", "YYJLife", "VictoriaBCFood",
        "VictoriaVibes", "YYJEvents", "BCLife", "VictoriaCanada",
    ],
}

GENERIC_HASHTAG_PATTERNS = [
    "{camel}", "{camel}Life", "{camel}Food", "{camel}Eats", "{camel}Events",
    "{camel}Vibes", "Visit{camel}", "{camel}Travel", "{camel}Local",
]
HASHTAG_LIMIT = 5

# Extra lowercase terms that count as mentioning the locality.
LOCALITY_ALIASES: Dict[Tuple[str, str], List[str]] = {
    ("victoria", "canada"): ["yyj", "vancouver island", "victoria bc", "british columbia"],
    ("vancouver", "canada"): ["yvr", "british columbia"],
    ("seattle", "usa"): ["sea-tac", "pnw"],
}
