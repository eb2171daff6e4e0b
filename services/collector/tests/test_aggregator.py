import asyncio

import httpx
import pytest

from services.collector.app.aggregator import FeedAggregator, cap_per_host, dedupe
from services.collector.app.feeds import TECH_FEEDS, WORLD_FEEDS, pick_feeds
from shared.config.settings import NewsSettings
from shared.schemas.messages import NewsCandidate


def rss(host, count):
    items = "".join(
        f"<item><title>Story {i}</title><link>https://{host}/story-{i}?utm_source=rss</link></item>"
        for i in range(count)
    )
    return f'<?xml version="1.0"?><rss version="2.0"><channel><title>{host}</title>{items}</channel></rss>'


def news_settings(**overrides):
    defaults = {"newsapi_key": None, "gnews_api_key": None, "default_topics": ["tech"], "extra_feeds": []}
    defaults.update(overrides)
    return NewsSettings().model_copy(update=defaults)


class Recorder:
    """MockTransport handler that serves canned responses per host."""

    def __init__(self, routes):
        self.routes = routes
        self.hosts = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.hosts.append(host)
        route = self.routes.get(host)
        if route is None:
            return httpx.Response(200, content=rss(host, 4).encode())
        return route(request)


def api_payload(urls, source="Wire"):
    return {"articles": [{"url": u, "source": {"name": source}} for u in urls]}


def test_dedupe_uses_origin_and_path():
    items = [
        NewsCandidate(url="https://a.com/x?page=1", source="A"),
        NewsCandidate(url="https://A.com/x?page=2", source="A2"),
        NewsCandidate(url="not-a-url", source="B"),
        NewsCandidate(url="https://b.com/y", source="B"),
    ]
    out = dedupe(items, limit=10)
    assert [c.url for c in out] == ["https://a.com/x?page=1", "https://b.com/y"]


def test_cap_per_host():
    items = [NewsCandidate(url=f"https://www.a.com/{i}") for i in range(5)]
    items += [NewsCandidate(url=f"https://b.com/{i}") for i in range(2)]
    out = cap_per_host(items, per_host=3, limit=10)
    assert len(out) == 5
    assert sum(1 for c in out if "a.com" in c.url) == 3


def test_pick_feeds_ignores_unknown_topics_and_adds_extras():
    feeds = pick_feeds(["Tech", "astrology", "technology"], ["world"], ["https://my.blog/feed"])
    assert feeds[: len(TECH_FEEDS)] == TECH_FEEDS
    assert len(feeds) == len(TECH_FEEDS) + 1
    assert feeds[-1].source == "Custom"

    assert pick_feeds([], ["world"]) == WORLD_FEEDS
    assert pick_feeds(["astrology"], ["world"]) == []


async def test_newsapi_alone_when_it_covers_the_request():
    urls = [f"https://site{i}.com/a" for i in range(6)]
    handler = Recorder({"newsapi.org": lambda r: httpx.Response(200, json=api_payload(urls))})
    aggregator = FeedAggregator(news_settings(newsapi_key="key"), transport=httpx.MockTransport(handler))

    items = await aggregator.fetch_news_items(limit=5)

    assert [c.url for c in items] == urls[:5]
    assert all(c.source == "Wire" for c in items)
    assert handler.hosts == ["newsapi.org"]


async def test_falls_back_to_feeds_and_caps_hosts():
    handler = Recorder({"gnews.io": lambda r: httpx.Response(500)})
    aggregator = FeedAggregator(news_settings(gnews_api_key="key"), transport=httpx.MockTransport(handler))

    items = await aggregator.fetch_news_items(limit=10, topics=["tech"])

    assert len(items) == 10
    hosts = [httpx.URL(c.url).host for c in items]
    assert max(hosts.count(h) for h in set(hosts)) <= 3
    assert "gnews.io" in handler.hosts


async def test_provider_failures_are_swallowed():
    def boom(request):
        raise httpx.ConnectError("unreachable", request=request)

    routes = {httpx.URL(feed.url).host: boom for feed in TECH_FEEDS}
    routes["newsapi.org"] = lambda r: httpx.Response(401, json={"status": "error"})
    handler = Recorder(routes)
    aggregator = FeedAggregator(news_settings(newsapi_key="key"), transport=httpx.MockTransport(handler))

    assert await aggregator.fetch_news_items(limit=8, topics=["tech"]) == []


async def test_slow_provider_times_out():
    async def slow(request):
        await asyncio.sleep(1)
        return httpx.Response(200, content=rss("slow.example", 3).encode())

    feed_host = httpx.URL(TECH_FEEDS[0].url).host
    handler = Recorder({feed_host: slow})
    settings = news_settings(http_timeout=0.05)
    aggregator = FeedAggregator(settings, transport=httpx.MockTransport(handler))

    items = await aggregator.fetch_news_items(limit=20, topics=["tech"])

    assert items
    assert all("slow.example" not in c.url for c in items)


@pytest.mark.parametrize("limit", [1, 3])
async def test_result_never_exceeds_limit(limit):
    handler = Recorder({})
    aggregator = FeedAggregator(news_settings(), transport=httpx.MockTransport(handler))
    assert len(await aggregator.fetch_news_items(limit=limit)) <= limit
