"""Static syndication feeds grouped by topic."""

from typing import Iterable, List, NamedTuple


class Feed(NamedTuple):
    source: str
    url: str


WORLD_FEEDS = [
    Feed("BBC", "https://feeds.bbci.co.uk/news/world/rss.xml"),
    Feed("Reuters", "https://feeds.reuters.com/reuters/worldNews"),
    Feed("The Guardian", "https://www.theguardian.com/world/rss"),
    Feed("CNN", "http://rss.cnn.com/rss/edition_world.rss"),
    Feed("NYTimes", "https://rss.nytimes.com/services/xml/rss/nyt/World.xml"),
    Feed("Al Jazeera", "https://www.aljazeera.com/xml/rss/all.xml"),
    Feed("DW", "https://rss.dw.com/xml/rss-en-all"),
    Feed("WashingtonPost", "https://feeds.washingtonpost.com/rss/world"),
    Feed("NPR", "https://feeds.npr.org/1004/rss.xml"),
]

BUSINESS_FEEDS = [
    Feed("Reuters Biz", "https://feeds.reuters.com/reuters/businessNews"),
    Feed("CNBC", "https://www.cnbc.com/id/10001147/device/rss/rss.html"),
    Feed("WSJ World", "https://feeds.a.dj.com/rss/RSSWorldNews.xml"),
    Feed("FT", "https://www.ft.com/?format=rss"),
    Feed("BBC Biz", "https://feeds.bbci.co.uk/news/business/rss.xml"),
]

TECH_FEEDS = [
    Feed("The Verge", "https://www.theverge.com/rss/index.xml"),
    Feed("TechCrunch", "https://techcrunch.com/feed/"),
    Feed("Ars Technica", "https://feeds.arstechnica.com/arstechnica/index"),
    Feed("WIRED", "https://www.wired.com/feed/rss"),
    Feed("Hacker News", "https://news.ycombinator.com/rss"),
]

SCIENCE_FEEDS = [
    Feed("BBC Science", "https://feeds.bbci.co.uk/news/science_and_environment/rss.xml"),
    Feed("New Scientist", "https://www.newscientist.com/section/news/feed/"),
    Feed("NPR Science", "https://feeds.npr.org/1007/rss.xml"),
]

# topic word -> feed group; words not listed here are ignored
TOPIC_GROUPS = {
    "world": WORLD_FEEDS,
    "general": WORLD_FEEDS,
    "business": BUSINESS_FEEDS,
    "economy": BUSINESS_FEEDS,
    "finance": BUSINESS_FEEDS,
    "tech": TECH_FEEDS,
    "technology": TECH_FEEDS,
    "science": SCIENCE_FEEDS,
}


def pick_feeds(topics: Iterable[str], default_topics: Iterable[str], extra_urls: Iterable[str] = ()) -> List[Feed]:
    """Feeds for the requested topics (or the defaults when none), plus custom feeds."""
    wanted = [t.strip().lower() for t in topics if t and t.strip()]
    if not wanted:
        wanted = [t.lower() for t in default_topics]

    out: List[Feed] = []
    seen_groups = set()
    for topic in wanted:
        group = TOPIC_GROUPS.get(topic)
        if group is None or id(group) in seen_groups:
            continue
        seen_groups.add(id(group))
        out.extend(group)

    out.extend(Feed("Custom", url) for url in extra_urls)
    return out
