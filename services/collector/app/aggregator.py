"""
Feed aggregation: pull candidate story URLs from news APIs and RSS feeds,
dedupe them and cap how many come from any one host.
"""

import asyncio
import math
from typing import Awaitable, Iterable, List, Optional

import feedparser
import httpx

from services.collector.app.feeds import Feed, pick_feeds
from shared.app_logging.logger import get_logger
from shared.config.settings import NewsSettings
from shared.schemas.messages import NewsCandidate
from shared.utils.urls import host_of, url_key

logger = get_logger("collector.aggregator")

NEWSAPI_URL = "https://newsapi.org/v2/top-headlines"
GNEWS_URL = "https://gnews.io/api/v4/top-headlines"

# NewsAPI alone is enough when it fills this share of the request
NEWSAPI_SUFFICIENT_SHARE = 0.6


def dedupe(items: Iterable[NewsCandidate], limit: int) -> List[NewsCandidate]:
    """Keep the first candidate per origin+path (query ignored), dropping bad URLs."""
    seen = set()
    out: List[NewsCandidate] = []
    for item in items:
        key = url_key(item.url)
        if key is None or key in seen:
            continue
        seen.add(key)
        out.append(item)
        if len(out) >= limit:
            break
    return out


def cap_per_host(items: Iterable[NewsCandidate], per_host: int, limit: int) -> List[NewsCandidate]:
    counts = {}
    out: List[NewsCandidate] = []
    for item in items:
        host = host_of(item.url)
        if counts.get(host, 0) >= per_host:
            continue
        counts[host] = counts.get(host, 0) + 1
        out.append(item)
        if len(out) >= limit:
            break
    return out


class FeedAggregator:
    """Collects ``{url, source}`` candidates from every configured provider.

    A provider that errors or times out contributes nothing; the aggregation
    itself never fails.
    """

    def __init__(self, news: NewsSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.news = news
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.news.http_timeout,
            follow_redirects=True,
            headers={"User-Agent": self.news.user_agent},
            transport=self._transport,
        )

    async def _safely(self, name: str, call: Awaitable[List[NewsCandidate]]) -> List[NewsCandidate]:
        try:
            return await asyncio.wait_for(call, timeout=self.news.http_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{name} timed out after {self.news.http_timeout}s")
        except Exception as e:
            logger.warning(f"{name} failed: {e}")
        return []

    async def from_newsapi(self, client: httpx.AsyncClient, limit: int) -> List[NewsCandidate]:
        if not self.news.newsapi_key:
            return []
        response = await client.get(
            NEWSAPI_URL,
            params={"language": "en", "pageSize": min(100, limit)},
            headers={"X-Api-Key": self.news.newsapi_key},
        )
        response.raise_for_status()
        return dedupe(self._api_articles(response.json(), "NewsAPI"), limit)

    async def from_gnews(self, client: httpx.AsyncClient, limit: int) -> List[NewsCandidate]:
        if not self.news.gnews_api_key:
            return []
        response = await client.get(
            GNEWS_URL,
            params={"lang": "en", "max": min(100, limit), "apikey": self.news.gnews_api_key},
        )
        response.raise_for_status()
        return dedupe(self._api_articles(response.json(), "GNews"), limit)

    @staticmethod
    def _api_articles(payload: dict, default_source: str) -> List[NewsCandidate]:
        out = []
        for article in payload.get("articles") or []:
            url = (article.get("url") or "").strip()
            if not url:
                continue
            source = (article.get("source") or {}).get("name") or default_source
            out.append(NewsCandidate(url=url, source=source))
        return out

    async def parse_feed(self, client: httpx.AsyncClient, feed: Feed) -> List[NewsCandidate]:
        response = await client.get(feed.url)
        response.raise_for_status()
        parsed = feedparser.parse(response.content)
        out = []
        for entry in parsed.entries:
            link = (entry.get("link") or entry.get("id") or "").strip()
            if link:
                out.append(NewsCandidate(url=link, source=feed.source))
        return out

    async def from_rss(self, client: httpx.AsyncClient, limit: int, topics: Iterable[str]) -> List[NewsCandidate]:
        feeds = pick_feeds(topics, self.news.default_topics, self.news.extra_feeds)
        if not feeds:
            return []
        per_feed = max(6, math.ceil(limit / max(6, len(feeds) // 2)))
        results = await asyncio.gather(
            *(self._safely(f"RSS {feed.source}", self.parse_feed(client, feed)) for feed in feeds)
        )
        merged = [item for items in results for item in items[:per_feed]]
        return dedupe(merged, limit * 2)

    async def fetch_news_items(self, limit: int = 40, topics: Iterable[str] = ()) -> List[NewsCandidate]:
        """A broad, host-diverse list of at most ``limit`` story candidates."""
        limit = max(1, int(limit))
        topics = [t.lower() for t in topics]

        async with self._client() as client:
            newsapi = await self._safely("NewsAPI", self.from_newsapi(client, limit))
            if newsapi and len(newsapi) >= math.floor(limit * NEWSAPI_SUFFICIENT_SHARE):
                picked = cap_per_host(dedupe(newsapi, limit), self.news.per_host_cap, limit)
                logger.info(f"NewsAPI supplied {len(picked)} candidates")
                return picked

            gnews, rss = await asyncio.gather(
                self._safely("GNews", self.from_gnews(client, limit)),
                self.from_rss(client, limit, topics),
            )

        merged = dedupe(newsapi + gnews + rss, limit * 3)
        picked = cap_per_host(merged, self.news.per_host_cap, limit)
        logger.info(
            f"Aggregated {len(picked)} candidates "
            f"(newsapi={len(newsapi)}, gnews={len(gnews)}, rss={len(rss)})"
        )
        return picked
