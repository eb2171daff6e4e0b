import uuid

from sqlalchemy import JSON, Column, DateTime, Integer, String, Text, UniqueConstraint, Uuid

from shared.utils.dates import utcnow

from ..base import Base


class Article(Base):
    """An article saved for one user, keyed by its normalized URL."""

    __tablename__ = "articles"
    __table_args__ = (
        UniqueConstraint("user_id", "url", name="uq_articles_user_url"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    url = Column(Text, nullable=False)
    title = Column(Text, nullable=False, default="")
    byline = Column(Text, nullable=False, default="")
    excerpt = Column(Text, nullable=False, default="")
    full_content = Column(Text, nullable=False, default="")
    image_url = Column(Text, nullable=False, default="")
    reading_minutes = Column(Integer, nullable=False, default=0)
    source = Column(String, nullable=False, default="")
    tags = Column(JSON, nullable=False, default=list)
    # bumped by user-triggered refreshes and imports only
    last_seen_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
