import re
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from services.collector.app.crud import Reader, get_article
from shared.app_logging.logger import get_logger
from shared.database.models.article import Article
from shared.utils.text import compress, strip_html

logger = get_logger("analyzer.crud")

# bodies shorter than this get one re-parse attempt
MIN_SOURCE_CHARS = 280


def remove_headline(text: str, title: str) -> str:
    """Drop every occurrence of the headline so the model cannot echo it."""
    if not title:
        return text
    return compress(re.sub(re.escape(title), " ", text, flags=re.IGNORECASE))


def article_text(article: Article, title: str) -> str:
    raw = article.full_content or article.excerpt or article.title or ""
    return remove_headline(compress(strip_html(raw)), title)


async def load_article_text(db: Session, user_id: UUID, article_id: UUID, reader: Reader) -> Optional[str]:
    """Best text to summarize for one of the user's articles; None when it does not exist.

    A thin body triggers a fresh parse of the page, which is also saved back
    onto the article.
    """
    article = get_article(db, user_id, article_id)
    if article is None:
        return None

    title = compress(article.title or "")
    text = article_text(article, title)
    if len(text) >= MIN_SOURCE_CHARS or not article.url:
        return text

    parsed = await reader(article.url)
    if parsed is None:
        return text

    for key, value in parsed.model_dump().items():
        setattr(article, key, value)
    db.commit()
    logger.info(f"Re-parsed article {article.id} for a fuller summary")

    fresh = remove_headline(compress(strip_html(parsed.full_content or parsed.excerpt or title)), title)
    return fresh if len(fresh) > len(text) else text
