"""Scoring, per-host diversification and sectioning of digest candidates."""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, List, Tuple

from shared.database.models.article import Article
from shared.utils.dates import hours_between
from shared.utils.urls import host_of

RECENCY_HORIZON_HOURS = 48
RECENCY_WEIGHT = 1.4
LENGTH_WEIGHT = 0.8
LENGTH_SATURATION_MINUTES = 10

TOP_COUNT = 5
LONG_CAP = 4
SECTION_CAP = 6


@dataclass
class Ranked:
    article: Article
    host: str
    score: float


def source_key(article: Article) -> str:
    """What diversification counts: URL host, else source name, else ``other``."""
    return host_of(article.url) or article.source or "other"


def score_article(article: Article, now: datetime) -> float:
    """More recent and longer scores higher; recency carries more weight."""
    updated = article.updated_at or article.created_at
    recency = max(0.0, RECENCY_HORIZON_HOURS - hours_between(updated, now))
    length = min(1.0, (article.reading_minutes or 1) / LENGTH_SATURATION_MINUTES)
    return recency * RECENCY_WEIGHT + length * LENGTH_WEIGHT


def rank_articles(articles: Iterable[Article], now: datetime) -> List[Ranked]:
    """Best first; ties keep their incoming order."""
    ranked = [Ranked(article=a, host=source_key(a), score=score_article(a, now)) for a in articles]
    ranked.sort(key=lambda r: r.score, reverse=True)
    return ranked


def diversify(ranked: Iterable[Ranked], limit: int, max_per_source: int) -> List[Ranked]:
    """Walk the ranking, skipping hosts that already filled their quota."""
    per_host = {}
    picked: List[Ranked] = []
    for item in ranked:
        count = per_host.get(item.host, 0)
        if count >= max_per_source:
            continue
        per_host[item.host] = count + 1
        picked.append(item)
        if len(picked) >= limit:
            break
    return picked


def section(picked: List[Ranked], long_read_minutes: int) -> List[Tuple[Ranked, str]]:
    """Split picks into top, emerging and long, in that output order."""
    top = picked[:TOP_COUNT]
    rest = picked[len(top):]
    long_reads = [r for r in rest if (r.article.reading_minutes or 0) >= long_read_minutes][:LONG_CAP]
    emerging = [r for r in rest if (r.article.reading_minutes or 0) < long_read_minutes]
    emerging = emerging[: SECTION_CAP - len(long_reads)]

    return (
        [(r, "top") for r in top]
        + [(r, "emerging") for r in emerging]
        + [(r, "long") for r in long_reads]
    )
