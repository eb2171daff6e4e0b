from datetime import datetime, timedelta
from types import SimpleNamespace

from services.composer.app.ranking import diversify, rank_articles, score_article, section, source_key

NOW = datetime(2024, 5, 1, 12, 0, 0)


def article(url, hours_old=1.0, minutes=3, source=""):
    updated = NOW - timedelta(hours=hours_old)
    return SimpleNamespace(
        url=url, source=source, reading_minutes=minutes, updated_at=updated, created_at=updated
    )


def test_recent_and_longer_articles_score_higher():
    assert score_article(article("https://a.com/1", hours_old=1), NOW) > score_article(
        article("https://a.com/2", hours_old=10), NOW
    )
    assert score_article(article("https://a.com/1", minutes=9), NOW) > score_article(
        article("https://a.com/2", minutes=2), NOW
    )
    # one hour of recency outweighs the whole length bonus
    assert score_article(article("https://a.com/1", hours_old=1, minutes=1), NOW) > score_article(
        article("https://a.com/2", hours_old=2, minutes=30), NOW
    )


def test_stale_articles_bottom_out_at_length_score():
    stale = article("https://a.com/1", hours_old=200, minutes=5)
    assert score_article(stale, NOW) == 0.5 * 0.8


def test_source_key_prefers_host():
    assert source_key(article("https://www.a.com/x", source="Wire")) == "a.com"
    assert source_key(article("not a url", source="Wire")) == "Wire"
    assert source_key(article("not a url")) == "other"


def test_diversify_eight_eight_four():
    candidates = []
    for i in range(8):
        candidates.append(article(f"https://one.com/{i}", hours_old=i * 0.1))
        candidates.append(article(f"https://two.com/{i}", hours_old=i * 0.1 + 0.05))
    for i in range(4):
        candidates.append(article(f"https://three.com/{i}", hours_old=5 + i))

    picked = diversify(rank_articles(candidates, NOW), limit=10, max_per_source=4)

    hosts = [p.host for p in picked]
    assert len(picked) == 10
    assert hosts.count("one.com") == 4
    assert hosts.count("two.com") == 4
    assert [p.article.url for p in picked if p.host == "three.com"] == ["https://three.com/0", "https://three.com/1"]


def test_diversify_never_exceeds_quota():
    candidates = [article(f"https://same.com/{i}", hours_old=i) for i in range(10)]
    picked = diversify(rank_articles(candidates, NOW), limit=10, max_per_source=4)
    assert len(picked) == 4


def test_section_orders_top_emerging_long():
    candidates = [article(f"https://s{i}.com/x", hours_old=i, minutes=12 if i in (6, 8) else 2) for i in range(12)]
    picked = diversify(rank_articles(candidates, NOW), limit=12, max_per_source=4)

    sections = section(picked, long_read_minutes=8)
    categories = [c for _, c in sections]

    assert categories == ["top"] * 5 + ["emerging"] * 4 + ["long"] * 2
    assert [r.article.url for r, c in sections if c == "long"] == ["https://s6.com/x", "https://s8.com/x"]


def test_section_caps_long_reads_at_four():
    candidates = [article(f"https://s{i}.com/x", hours_old=i, minutes=20) for i in range(12)]
    picked = diversify(rank_articles(candidates, NOW), limit=12, max_per_source=4)
    categories = [c for _, c in section(picked, long_read_minutes=8)]
    assert categories == ["top"] * 5 + ["long"] * 4


def test_small_pick_is_all_top():
    picked = diversify(rank_articles([article("https://a.com/1"), article("https://b.com/1")], NOW), 10, 4)
    assert [c for _, c in section(picked, 8)] == ["top", "top"]
