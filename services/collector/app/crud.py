"""Article store: per-user articles keyed by normalized URL."""

import asyncio
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import String, cast, delete, func, select
from sqlalchemy.orm import Session

from services.collector.app.reader import fetch_and_parse
from shared.app_logging.logger import get_logger
from shared.database.models.article import Article
from shared.database.store import find_one, upsert
from shared.schemas.messages import NewsCandidate, ParsedArticle
from shared.utils.dates import utcnow
from shared.utils.text import reading_minutes
from shared.utils.urls import normalize_url

logger = get_logger("collector.crud")

Reader = Callable[[str], Awaitable[Optional[ParsedArticle]]]

# page fetches in flight during one refresh
FETCH_CONCURRENCY = 6


@dataclass
class RefreshResult:
    articles: List[Article] = field(default_factory=list)
    imported: int = 0
    updated: int = 0
    seen: int = 0


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def unique_candidates(candidates: Iterable[NewsCandidate]) -> List[Tuple[str, NewsCandidate]]:
    """Pair each candidate with its normalized URL, keeping the first per URL."""
    seen = set()
    out = []
    for candidate in candidates:
        raw = (candidate.url or "").strip()
        if not raw:
            continue
        url = normalize_url(raw)
        if url in seen:
            continue
        seen.add(url)
        out.append((url, candidate))
    return out


async def parse_many(urls: Sequence[str], reader: Reader) -> Dict[str, Optional[ParsedArticle]]:
    """Fetch pages concurrently; a failed fetch maps to None."""
    semaphore = asyncio.Semaphore(FETCH_CONCURRENCY)

    async def one(url: str) -> Optional[ParsedArticle]:
        async with semaphore:
            return await reader(url)

    results = await asyncio.gather(*(one(url) for url in urls))
    return dict(zip(urls, results))


def get_article(db: Session, user_id: UUID, article_id: UUID) -> Optional[Article]:
    return find_one(db, Article, {"id": article_id, "user_id": user_id})


def find_article_by_url(db: Session, user_id: UUID, url: str) -> Optional[Article]:
    return find_one(db, Article, {"user_id": user_id, "url": normalize_url(url)})


def list_articles(
    db: Session,
    user_id: UUID,
    page: int = 1,
    limit: int = 30,
    q: Optional[str] = None,
    tag: Optional[str] = None,
) -> Tuple[List[Article], int]:
    """Freshest first; ``q`` matches titles, ``tag`` matches one tag exactly."""
    filters = [Article.user_id == user_id]
    if q:
        filters.append(Article.title.ilike(f"%{_escape_like(q)}%", escape="\\"))
    if tag:
        # tags are stored as a JSON array of strings
        filters.append(cast(Article.tags, String).like(f"%{_escape_like(json.dumps(tag))}%", escape="\\"))

    total = db.execute(select(func.count()).select_from(Article).where(*filters)).scalar_one()
    rows = db.execute(
        select(Article)
        .where(*filters)
        .order_by(Article.last_seen_at.desc(), Article.updated_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    ).scalars().all()
    return list(rows), total


def find_candidates(db: Session, user_id: UUID, since: Optional[datetime], limit: int) -> List[Article]:
    """Most recently seen articles, optionally only those seen after ``since``."""
    query = select(Article).where(Article.user_id == user_id)
    if since is not None:
        query = query.where(Article.last_seen_at >= since)
    query = query.order_by(Article.last_seen_at.desc(), Article.updated_at.desc()).limit(limit)
    return list(db.execute(query).scalars().all())


def delete_article(db: Session, user_id: UUID, article_id: UUID) -> bool:
    result = db.execute(delete(Article).where(Article.id == article_id, Article.user_id == user_id))
    db.commit()
    return result.rowcount > 0


async def import_by_url(
    db: Session,
    user_id: UUID,
    url: str,
    tags: Sequence[str] = (),
    reader: Reader = fetch_and_parse,
) -> Optional[Article]:
    """Parse and save a single URL for the user; None when the page is unreadable."""
    parsed = await reader(url)
    if parsed is None:
        return None

    article, created = upsert(
        db,
        Article,
        {"user_id": user_id, "url": normalize_url(url)},
        patch={**parsed.model_dump(), "tags": [t for t in tags if t][:20], "last_seen_at": utcnow()},
        on_insert={"source": "manual"},
    )
    db.commit()
    logger.info(f"{'Imported' if created else 'Re-imported'} article {article.id} for user {user_id}")
    return article


async def refresh_articles(
    db: Session,
    user_id: UUID,
    candidates: Iterable[NewsCandidate],
    limit: int,
    force: bool = False,
    reader: Reader = fetch_and_parse,
    now: Optional[datetime] = None,
) -> RefreshResult:
    """User-triggered refresh: every encountered URL counts as freshly seen.

    New URLs are stored from the candidate alone unless ``force`` asks for
    the page to be parsed; ``force`` also re-parses known articles.
    """
    now = now or utcnow()
    pairs = unique_candidates(candidates)
    parsed_by_url = await parse_many([url for url, _ in pairs], reader) if force else {}

    result = RefreshResult()
    for url, candidate in pairs:
        patch = {"last_seen_at": now}
        parsed = parsed_by_url.get(url)
        if parsed is not None:
            patch.update(parsed.model_dump())

        article, created = upsert(
            db,
            Article,
            {"user_id": user_id, "url": url},
            patch=patch,
            on_insert={"source": candidate.source or "", "reading_minutes": reading_minutes("")},
        )
        if created:
            result.imported += 1
        elif force:
            result.updated += 1
        else:
            result.seen += 1

        result.articles.append(article)
        if len(result.articles) >= limit:
            break

    db.commit()
    logger.info(
        f"Refreshed articles for {user_id}: imported={result.imported} "
        f"updated={result.updated} seen={result.seen}"
    )
    return result


async def refresh_for_digest(
    db: Session,
    user_id: UUID,
    candidates: Iterable[NewsCandidate],
    reader: Reader = fetch_and_parse,
    now: Optional[datetime] = None,
) -> int:
    """Digest-time refresh; returns how many articles were created.

    Known URLs only get a missing ``source`` filled in and keep their
    ``last_seen_at``. Unknown URLs are parsed and stored; unreadable pages
    are skipped.
    """
    now = now or utcnow()
    new_urls: List[Tuple[str, NewsCandidate]] = []
    for url, candidate in unique_candidates(candidates):
        existing = find_one(db, Article, {"user_id": user_id, "url": url})
        if existing is None:
            new_urls.append((url, candidate))
        elif candidate.source and not existing.source:
            existing.source = candidate.source

    parsed_by_url = await parse_many([url for url, _ in new_urls], reader)

    created_count = 0
    for url, candidate in new_urls:
        parsed = parsed_by_url.get(url)
        if parsed is None:
            continue
        _, created = upsert(
            db,
            Article,
            {"user_id": user_id, "url": url},
            patch=parsed.model_dump(),
            on_insert={"source": candidate.source or "", "last_seen_at": now},
        )
        created_count += int(created)

    db.commit()
    logger.info(f"Digest refresh for {user_id}: {created_count} new of {len(new_urls)} unseen candidates")
    return created_count
