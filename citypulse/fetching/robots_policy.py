"""robots.txt policy guard.

One robots.txt fetch per host per run. Anything short of an explicit, matched
Disallow rule allows the URL: missing files, fetch errors and unparsable
content all fail open.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Tuple
from urllib.parse import urlparse

from citypulse.ingestion.errors import FetchError, PolicyDenied
from citypulse.ingestion.url_utils import host_of, robots_url


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RobotsRules:
    disallow: Tuple[str, ...] = ()

    def allows(self, path: str) -> bool:
        for rule in self.disallow:
            if rule == "/" or path.startswith(rule):
                return False
        return True


ALLOW_ALL = RobotsRules()


def parse_robots(text: str, agent_token: str) -> RobotsRules:
    """Collect Disallow paths from every group addressed to `*` or our token."""
    token = (agent_token or "").lower()
    disallow: List[str] = []
    group_applies = False
    in_agent_lines = False
    for raw_line in (text or "").splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or ":" not in line:
            continue
        directive, _, value = line.partition(":")
        directive = directive.strip().lower()
        value = value.strip()
        if directive == "user-agent":
            agent = value.lower()
            matches = agent == "*" or (bool(token) and token in agent)
            # consecutive user-agent lines share one group
            group_applies = (group_applies or matches) if in_agent_lines else matches
            in_agent_lines = True
            continue
        in_agent_lines = False
        if directive == "disallow" and group_applies and value:
            disallow.append(value)
    return RobotsRules(disallow=tuple(disallow))


class RobotsPolicy:
    def __init__(self, fetcher, *, agent_token: str = "citypulse"):
        self.fetcher = fetcher
        self.agent_token = agent_token
        self._cache: Dict[str, RobotsRules] = {}

    def reset(self) -> None:
        """Forget cached rules; called at the start of every run."""
        self._cache.clear()

    def _rules_for(self, url: str) -> RobotsRules:
        r_url = robots_url(url)
        if not r_url:
            return ALLOW_ALL
        host = host_of(url) or ""
        cached = self._cache.get(host)
        if cached is not None:
            return cached
        rules = ALLOW_ALL
        try:
            res = self.fetcher.fetch(r_url)
            rules = parse_robots(res.text(), self.agent_token)
        except FetchError as e:
            logger.debug("No usable robots.txt for %s (%s); allowing", host, e.cause)
        except (UnicodeError, ValueError) as e:
            logger.debug("Unparsable robots.txt for %s (%s); allowing", host, e)
        self._cache[host] = rules
        return rules

    def allowed(self, url: str) -> bool:
        path = urlparse(url or "").path or "/"
        return self._rules_for(url).allows(path)

    def check(self, url: str) -> None:
        if not self.allowed(url):
            raise PolicyDenied(url)

    def cached_hosts(self) -> List[str]:
        return sorted(self._cache)
