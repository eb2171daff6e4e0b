import uuid

from sqlalchemy import JSON, Column, DateTime, String, Text, UniqueConstraint, Uuid

from shared.database.base import Base
from shared.utils.dates import utcnow


class Digest(Base):
    """Database model for a user's daily digest.

    ``items`` holds denormalized snapshots of the picked articles in their
    wire form, so later article edits do not rewrite past digests.
    """

    __tablename__ = "digests"
    __table_args__ = (
        UniqueConstraint("user_id", "date", name="uq_digests_user_date"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, nullable=False, index=True)
    date = Column(String(10), nullable=False, index=True)
    tldr = Column(Text, nullable=False, default="")
    topics = Column(JSON, nullable=False, default=list)
    sources = Column(JSON, nullable=False, default=list)
    stats = Column(JSON, nullable=False, default=dict)
    items = Column(JSON, nullable=False, default=list)
    generated_at = Column(DateTime, nullable=False, default=utcnow)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
