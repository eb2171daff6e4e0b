import os

# must be set before any shared module reads the settings
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ["DIGEST_EVENTS_ENABLED"] = "false"
os.environ["AI_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["NEWSAPI_KEY"] = ""
os.environ["GNEWS_API_KEY"] = ""
os.environ["MAX_RETRIES"] = "1"
os.environ["RETRY_DELAY"] = "0"

import uuid
from datetime import timedelta
from typing import List, Optional

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from shared.database.base import Base
from shared.database.models.article import Article
from shared.database.models.user import User
from shared.database.session import configure_sqlite
from shared.schemas.messages import NewsCandidate, ParsedArticle
from shared.utils.dates import utcnow


@pytest.fixture
def engine(tmp_path):
    """A file-backed SQLite database per test, so app and test sessions use separate connections."""
    engine = create_engine(f"sqlite:///{tmp_path / 'digest.db'}", connect_args={"check_same_thread": False})
    configure_sqlite(engine)

    @event.listens_for(engine, "connect")
    def _wal(dbapi_connection, connection_record):
        dbapi_connection.execute("PRAGMA journal_mode=WAL")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def user_id(db):
    uid = uuid.uuid4()
    db.add(User(id=uid))
    db.commit()
    return uid


@pytest.fixture
def now():
    return utcnow().replace(microsecond=0)


@pytest.fixture
def make_article(db, now):
    """Insert an article seen ``hours_ago`` hours before ``now``."""

    def make(
        user_id,
        url: str,
        title: str = "A story",
        hours_ago: float = 1,
        reading_minutes: int = 3,
        source: str = "",
        excerpt: str = "",
        full_content: str = "",
        updated_hours_ago: Optional[float] = None,
    ) -> Article:
        seen = now - timedelta(hours=hours_ago)
        updated = now - timedelta(hours=hours_ago if updated_hours_ago is None else updated_hours_ago)
        article = Article(
            user_id=user_id,
            url=url,
            title=title,
            excerpt=excerpt,
            full_content=full_content,
            reading_minutes=reading_minutes,
            source=source,
            last_seen_at=seen,
            created_at=updated,
            updated_at=updated,
        )
        db.add(article)
        db.commit()
        return article

    return make


class FakeAggregator:
    """Returns a fixed candidate list and records each call."""

    def __init__(self, items: Optional[List[NewsCandidate]] = None):
        self.items = list(items or [])
        self.calls = []

    async def fetch_news_items(self, limit: int = 40, topics=()):
        self.calls.append({"limit": limit, "topics": list(topics)})
        return self.items[:limit]


class FakeSummarizer:
    """Answers every call with a fixed summary; an empty string mimics provider failure."""

    def __init__(self, summary: str = "", topics: Optional[List[str]] = None):
        self.summary = summary
        self.topics = list(topics or [])
        self.calls = []

    async def summarize(self, text: str, mode: str = "tldr") -> str:
        self.calls.append((mode, text))
        return self.summary

    async def topic_ideas(self, titles) -> List[str]:
        return list(self.topics)


class FakeReader:
    """Parses every URL into a small article, or fails for URLs listed in ``failing``."""

    def __init__(self, failing=(), reading_minutes: int = 2):
        self.failing = set(failing)
        self.reading_minutes = reading_minutes
        self.urls = []

    async def __call__(self, url: str) -> Optional[ParsedArticle]:
        self.urls.append(url)
        if url in self.failing:
            return None
        return ParsedArticle(
            title=f"Parsed {url}",
            excerpt="Parsed excerpt. With two sentences.",
            full_content="<p>Parsed body text.</p>",
            reading_minutes=self.reading_minutes,
        )


@pytest.fixture
def fake_aggregator():
    return FakeAggregator()


@pytest.fixture
def fake_summarizer():
    return FakeSummarizer()


@pytest.fixture
def fake_reader():
    return FakeReader()
