import uuid

from sqlalchemy import Column, DateTime, Uuid

from shared.database.base import Base
from shared.utils.dates import utcnow


class User(Base):
    """Account known to the digest services; credentials live with the auth gateway."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at = Column(DateTime, nullable=False, default=utcnow)
