"""
Daily digest generation.

Candidates come from the user's article store, optionally refreshed from the
feed aggregator first. They are ranked, spread across hosts, split into
sections and summarized, then saved as the one digest for (user, date).
"""

import asyncio
from datetime import datetime, timedelta
from typing import Callable, Iterable, List, Optional, Sequence
from uuid import UUID

from prometheus_client import Counter
from sqlalchemy.orm import Session

from services.analyzer.app.normalize import fallback_summary
from services.analyzer.app.summarize import Summarizer
from services.collector.app.aggregator import FeedAggregator
from services.collector.app.crud import Reader, find_candidates, refresh_for_digest
from services.collector.app.reader import fetch_and_parse
from services.composer.app.crud import save_digest
from services.composer.app.ranking import Ranked, diversify, rank_articles, section
from services.composer.app.redis_client import publish_digest_ready
from shared.app_logging.logger import get_logger
from shared.config.settings import DigestSettings
from shared.database.models.article import Article
from shared.database.models.digest import Digest
from shared.schemas.messages import DigestItem, DigestStats
from shared.utils.dates import hours_between, today_ymd, utcnow
from shared.utils.text import compress, strip_html
from shared.utils.urls import host_of

logger = get_logger("composer.digest_builder")

DIGESTS_GENERATED = Counter("composer_digests_generated_total", "Digests saved", ["refresh"])
EMPTY_DIGESTS = Counter("composer_empty_digests_total", "Digests saved with no articles available")
SUMMARY_FALLBACKS = Counter(
    "composer_summary_fallbacks_total", "Summaries replaced by local text", ["kind"]
)

EMPTY_TLDR = "(No articles fetched from your feeds right now.)"
MAX_TOPICS = 6
FORCED_REFRESH_FLOOR = 14


class DigestBuilder:
    """Builds and saves one user's digest for one date."""

    def __init__(
        self,
        db: Session,
        aggregator: FeedAggregator,
        summarizer: Summarizer,
        settings: DigestSettings,
        reader: Reader = fetch_and_parse,
        publisher: Optional[Callable[[Digest], object]] = publish_digest_ready,
        max_concurrency: int = 4,
    ):
        self.db = db
        self.aggregator = aggregator
        self.summarizer = summarizer
        self.settings = settings
        self.reader = reader
        self.publisher = publisher
        self.max_concurrency = max(1, max_concurrency)

    def clamp_limit(self, limit: Optional[int]) -> int:
        if limit is None:
            limit = self.settings.default_limit
        return max(self.settings.min_limit, min(self.settings.max_limit, int(limit)))

    async def refresh(self, user_id: UUID, count: int, topics: Sequence[str], now: datetime) -> int:
        """Pull ``count`` candidates and store the ones not yet saved; returns how many were new."""
        candidates = await self.aggregator.fetch_news_items(limit=count, topics=topics)
        return await refresh_for_digest(self.db, user_id, candidates, reader=self.reader, now=now)

    async def select_candidates(
        self, user_id: UUID, limit: int, topics: Sequence[str], now: datetime
    ) -> List[Article]:
        """Freshest window that has anything, else a forced refresh and the newest overall."""
        cap = limit * 4
        for hours in (self.settings.fresh_window_hours, self.settings.wide_window_hours):
            rows = find_candidates(self.db, user_id, now - timedelta(hours=hours), cap)
            if rows:
                logger.info(f"{len(rows)} candidates for {user_id} within {hours:g}h")
                return rows

        logger.info(f"No recent candidates for {user_id}; forcing a refresh")
        await self.refresh(user_id, max(limit * 2, FORCED_REFRESH_FLOOR), topics, now)
        return find_candidates(self.db, user_id, None, cap)

    async def _summary(self, text: str, mode: str) -> str:
        try:
            return await self.summarizer.summarize(text, mode)
        except Exception as e:
            logger.warning(f"Summarizer raised in {mode} mode: {e}")
            return ""

    async def _topics(self, headlines: List[str]) -> List[str]:
        try:
            return await self.summarizer.topic_ideas(headlines)
        except Exception as e:
            logger.warning(f"Topic suggestions failed: {e}")
            return []

    async def summarize_items(self, articles: List[Article]) -> List[str]:
        """Short blurbs per article, run concurrently; failures fall back to the excerpt."""
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def one(article: Article) -> str:
            async with semaphore:
                summary = await self._summary(article_text(article), "tldr")
            if summary:
                return summary
            SUMMARY_FALLBACKS.labels(kind="item").inc()
            return compress(article.excerpt or "")

        return list(await asyncio.gather(*(one(a) for a in articles)))

    async def generate(
        self,
        user_id: UUID,
        date: Optional[str] = None,
        limit: Optional[int] = None,
        refresh: bool = False,
        summary_length: str = "detailed",
        topics: Iterable[str] = (),
        now: Optional[datetime] = None,
    ) -> Digest:
        """Build and save the digest; datastore errors propagate after a rollback."""
        now = now or utcnow()
        date = date or today_ymd(now)
        limit = self.clamp_limit(limit)
        topics = [t for t in topics if t]

        try:
            if refresh:
                await self.refresh(user_id, limit * 2, topics, now)

            candidates = await self.select_candidates(user_id, limit, topics, now)
            if not candidates:
                digest = self.save_empty(user_id, date, now)
            else:
                digest = await self.build(user_id, date, limit, candidates, summary_length, now)
        except Exception:
            self.db.rollback()
            logger.exception(f"Digest generation failed for {user_id} on {date}")
            raise

        DIGESTS_GENERATED.labels(refresh=str(bool(refresh)).lower()).inc()
        await self.publish(digest)
        return digest

    def save_empty(self, user_id: UUID, date: str, now: datetime) -> Digest:
        logger.info(f"Feeds returned nothing for {user_id}; saving an empty digest")
        EMPTY_DIGESTS.inc()
        return save_digest(
            self.db,
            user_id,
            date,
            tldr=EMPTY_TLDR,
            topics=[],
            sources=[],
            stats=DigestStats().model_dump(by_alias=True),
            items=[],
            generated_at=now,
        )

    async def build(
        self,
        user_id: UUID,
        date: str,
        limit: int,
        candidates: List[Article],
        summary_length: str,
        now: datetime,
    ) -> Digest:
        picked = diversify(rank_articles(candidates, now), limit, self.settings.max_per_source)
        sectioned = section(picked, self.settings.long_read_minutes)

        articles = [ranked.article for ranked, _ in sectioned]
        headlines = [compress(a.title) for a in articles if a.title and compress(a.title)]
        lines = [headline_line(a) for a in articles]
        merged = "\n".join(dict.fromkeys(line for line in lines if line))

        tldr, topic_list, blurbs = await asyncio.gather(
            self._summary(merged, summary_length),
            self._topics(headlines),
            self.summarize_items(articles),
        )

        if not tldr:
            SUMMARY_FALLBACKS.labels(kind="tldr").inc()
            tldr = fallback_summary(merged, summary_length) or "; ".join(dict.fromkeys(headlines))
        topic_list = [t for t in topic_list if t][:MAX_TOPICS]
        if not topic_list:
            SUMMARY_FALLBACKS.labels(kind="topics").inc()
            topic_list = [f"Reflect on: {h}" for h in headlines[:3]]

        items = [
            digest_item(ranked, category, rank, blurb)
            for rank, ((ranked, category), blurb) in enumerate(zip(sectioned, blurbs), start=1)
        ]
        stats = DigestStats(
            total_items=len(items),
            long_reads=sum(1 for item in items if item.reading_minutes >= self.settings.long_read_minutes),
            new_count=sum(
                1
                for a in articles
                if a.last_seen_at is not None
                and hours_between(a.last_seen_at, now) < self.settings.new_item_hours
            ),
        )
        sources = sorted({strip_www(item.source) for item in items if strip_www(item.source)})

        return save_digest(
            self.db,
            user_id,
            date,
            tldr=tldr,
            topics=topic_list,
            sources=sources,
            stats=stats.model_dump(by_alias=True),
            items=[item.model_dump(by_alias=True, mode="json") for item in items],
            generated_at=now,
        )

    async def publish(self, digest: Digest) -> None:
        """Announce the digest; never fails the build."""
        if self.publisher is None:
            return
        try:
            await asyncio.to_thread(self.publisher, digest)
        except Exception as e:
            logger.warning(f"Could not publish digest_ready for {digest.id}: {e}")


def strip_www(value: str) -> str:
    value = (value or "").strip()
    return value[4:] if value.lower().startswith("www.") else value


def headline_line(article: Article) -> str:
    title = compress(article.title or "")
    excerpt = compress(strip_html(article.excerpt or ""))
    if title and excerpt:
        return f"{title.rstrip('.')}. {excerpt}"
    return title or excerpt


def article_text(article: Article) -> str:
    """Full body when stored, else title and excerpt."""
    body = compress(strip_html(article.full_content or ""))
    return body or headline_line(article)


def digest_item(ranked: Ranked, category: str, rank: int, summary: str) -> DigestItem:
    article = ranked.article
    return DigestItem(
        article_ref=article.id,
        url=article.url,
        title=article.title or "",
        summary=summary,
        source=article.source or host_of(article.url),
        reading_minutes=article.reading_minutes or 1,
        category=category,
        rank=rank,
    )
