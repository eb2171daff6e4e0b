from datetime import datetime
from typing import List, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from shared.utils.urls import host_of

SummaryMode = Literal["tldr", "detailed", "outline"]
DigestLength = Literal["tldr", "detailed"]
DigestCategory = Literal["top", "emerging", "long"]


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class NewsCandidate(BaseModel):
    url: str = Field(..., description="Story URL as reported by the provider")
    source: str = Field("", description="Provider or publication name")


class ParsedArticle(BaseModel):
    title: str = ""
    byline: str = ""
    excerpt: str = ""
    full_content: str = ""
    image_url: str = ""
    reading_minutes: int = 1


class ArticleOut(WireModel):
    id: UUID
    title: str
    url: str
    host: str
    byline: str
    reading_minutes: int
    excerpt: str
    full_content: str
    image_url: str
    tags: List[str]
    source: str
    created_at: datetime
    updated_at: datetime
    last_seen_at: datetime

    @classmethod
    def from_row(cls, row) -> "ArticleOut":
        host = host_of(row.url)
        return cls(
            id=row.id,
            title=row.title or "",
            url=row.url,
            host=host,
            byline=row.byline or "",
            reading_minutes=row.reading_minutes or 0,
            excerpt=row.excerpt or "",
            full_content=row.full_content or "",
            image_url=row.image_url or "",
            tags=list(row.tags or []),
            source=row.source or host,
            created_at=row.created_at,
            updated_at=row.updated_at,
            last_seen_at=row.last_seen_at,
        )


class ArticleImport(WireModel):
    url: str = Field(..., min_length=1)
    tags: List[str] = Field(default_factory=list)


class DigestItem(WireModel):
    article_ref: Optional[UUID] = Field(None, description="Weak reference to the source article, by id only")
    url: str
    title: str = ""
    summary: str = ""
    source: str = ""
    reading_minutes: int = 1
    category: DigestCategory = "top"
    rank: int = Field(..., ge=1, description="1-based position in the digest")


class DigestStats(WireModel):
    total_items: int = 0
    long_reads: int = 0
    new_count: int = 0


class DigestOut(WireModel):
    id: UUID
    date: str
    tldr: str = ""
    topics: List[str] = Field(default_factory=list)
    sources: List[str] = Field(default_factory=list)
    stats: DigestStats = Field(default_factory=DigestStats)
    items: List[DigestItem] = Field(default_factory=list)
    generated_at: datetime


class DigestEnvelope(BaseModel):
    item: Optional[DigestOut] = None


class SummarizeRequest(WireModel):
    text: Optional[str] = Field(None, min_length=1)
    article_id: Optional[UUID] = None
    mode: SummaryMode = "tldr"

    @model_validator(mode="after")
    def require_text_or_article(self):
        if not self.text and self.article_id is None:
            raise ValueError("Provide text or articleId")
        return self


class SummarizeResponse(BaseModel):
    summary: str
    mode: SummaryMode


class DigestReady(BaseModel):
    version: Literal["1.0"] = Field("1.0", description="Schema version")
    digest_id: UUID = Field(..., description="UUID of the generated digest")
    user_id: UUID = Field(..., description="Owner of the digest")
    date: str = Field(..., description="Digest date, YYYY-MM-DD")
    total_items: int = Field(..., ge=0, description="Number of items in the digest")
    generated_at: datetime = Field(..., description="Timestamp when the digest was generated")
